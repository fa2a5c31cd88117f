"""
Fleet maintenance core.

This package decides when transit vehicles need maintenance and fans the
resulting alerts out to notification channels:
- Strategies: TimeBased, UsageBased, Predictive rules over a PolicyTable
- ComponentUsageTracker: usage hours against replacement thresholds
- AlertDispatcher: persist-then-notify publish/subscribe for alerts
- pair_events: arrival/departure dwell intervals from GPS station events
- FleetMaintenanceService: the operations exposed to the application
"""

from .status import (
    AlertStatus,
    AlertType,
    ComponentStatus,
    EventKind,
    MaintenanceStatus,
    StrategyName,
    UnmatchedReason,
    VehicleStatus,
)
from .errors import ConfigError, FleetError, PersistenceError
from .vehicle import Vehicle
from .maintenance_record import MaintenanceRecord
from .components import ComponentUsageTracker, VehicleComponent
from .strategy import (
    AgeTier,
    PolicyTable,
    Predictive,
    StrategySelector,
    TimeBased,
    UsageBased,
    is_due,
    strategy_from_name,
)
from .alerts import Alert, AlertDispatcher, EmailObserver, SmsObserver
from .stations import DwellInterval, PairingResult, StationEvent, UnmatchedEvent, pair_events
from .service_due import ServiceDue
from .loader import FleetStore, Settings, load_fleet, load_policy
from .service import FleetMaintenanceService, build_service

__all__ = [
    "AlertStatus",
    "AlertType",
    "ComponentStatus",
    "EventKind",
    "MaintenanceStatus",
    "StrategyName",
    "UnmatchedReason",
    "VehicleStatus",
    "ConfigError",
    "FleetError",
    "PersistenceError",
    "Vehicle",
    "MaintenanceRecord",
    "ComponentUsageTracker",
    "VehicleComponent",
    "AgeTier",
    "PolicyTable",
    "Predictive",
    "StrategySelector",
    "TimeBased",
    "UsageBased",
    "is_due",
    "strategy_from_name",
    "Alert",
    "AlertDispatcher",
    "EmailObserver",
    "SmsObserver",
    "DwellInterval",
    "PairingResult",
    "StationEvent",
    "UnmatchedEvent",
    "pair_events",
    "ServiceDue",
    "FleetStore",
    "Settings",
    "load_fleet",
    "load_policy",
    "FleetMaintenanceService",
    "build_service",
]
