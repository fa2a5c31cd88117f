"""Status and kind enums shared across the fleet maintenance core."""

from enum import Enum


class VehicleStatus(Enum):
    """Operational state of a vehicle in the fleet registry."""

    ACTIVE = "Active"
    MAINTENANCE = "Maintenance"
    AVAILABLE = "Available"


class MaintenanceStatus(Enum):
    """Lifecycle of a maintenance record."""

    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ComponentStatus(Enum):
    OPERATIONAL = "Operational"
    MAINTENANCE_REQUIRED = "Maintenance Required"


class AlertStatus(Enum):
    OPEN = "Open"
    RESOLVED = "Resolved"


class AlertType(Enum):
    """Alert categories. Matches the alert types stored by the fleet system."""

    MAINTENANCE = "Maintenance"
    FUEL_CONSUMPTION = "Fuel Consumption"
    GPS = "GPS"


class EventKind(Enum):
    """GPS event kinds. LOCATION pings are not station events."""

    ARRIVAL = "ARRIVAL"
    DEPARTURE = "DEPARTURE"
    LOCATION = "LOCATION"


class StrategyName(Enum):
    """Selectable maintenance strategies, keyed by their CLI/config name."""

    TIME = "time"
    USAGE = "usage"
    PREDICTIVE = "predictive"

    @classmethod
    def parse(cls, name):
        """Case-insensitive lookup. Returns None for unknown names."""
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            return None
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


class UnmatchedReason(Enum):
    """Why a station event could not be paired into a dwell interval."""

    SUPERSEDED_ARRIVAL = 1  # A newer arrival at the same station replaced it
    ORPHAN_DEPARTURE = 2  # Departure with no open arrival
    OPEN_ARRIVAL = 3  # Arrival still open at end of stream
