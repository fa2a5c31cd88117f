"""Maintenance evaluation, alert fan-out and dwell pairing for the fleet application."""

import logging
from datetime import date
from typing import List, Optional, TYPE_CHECKING

from .alerts import Alert, AlertDispatcher, EmailObserver, NotificationObserver, SmsObserver
from .components import ComponentUsageTracker
from .service_due import ServiceDue
from .stations import DwellInterval, PairingResult, pair_events
from .status import AlertType
from .strategy import (
    StrategySelector,
    early_warning_date,
    is_due,
    last_maintenance,
    next_due_date,
    usage_threshold,
)

if TYPE_CHECKING:
    from .loader import FleetStore, Settings
    from .ports import ComponentStore, MaintenanceHistory, StationEventSource, VehicleLookup

logger = logging.getLogger(__name__)


class FleetMaintenanceService:
    """
    Entry point for the surrounding application.

    Collaborators are passed in at construction; nothing here reaches for
    global state. Operations report failure through return values.
    """

    def __init__(
        self,
        vehicles: "VehicleLookup",
        history: "MaintenanceHistory",
        components: "ComponentStore",
        events: "StationEventSource",
        selector: StrategySelector,
        dispatcher: AlertDispatcher,
        tracker: Optional[ComponentUsageTracker] = None,
    ):
        self.vehicles = vehicles
        self.history = history
        self.components = components
        self.events = events
        self.selector = selector
        self.dispatcher = dispatcher
        self.tracker = tracker or ComponentUsageTracker(components)

    def check_vehicle(
        self, vehicle_id: int, strategy_name=None, today: Optional[date] = None
    ) -> Optional[ServiceDue]:
        """Full evaluation of one vehicle. None for unknown vehicles or strategy names."""
        vehicle = self.vehicles.get_vehicle(vehicle_id)
        if vehicle is None:
            logger.warning(f"Vehicle {vehicle_id} not found")
            return None
        strategy = self.selector.resolve(strategy_name)
        if strategy is None:
            return None

        today = today or date.today()
        last = last_maintenance(self.history.get_maintenance_history(vehicle_id))
        components = self.components.get_components(vehicle_id)
        threshold = usage_threshold(strategy)

        return ServiceDue(
            vehicle=vehicle,
            strategy=strategy,
            is_due=is_due(strategy, vehicle, last, components, today),
            as_of=today,
            last_service_date=last.service_date if last is not None else None,
            next_due_date=next_due_date(strategy, vehicle, last, today),
            early_warning_date=early_warning_date(strategy, vehicle, last, today),
            components_over=(
                [c for c in components if c.is_over(threshold)]
                if threshold is not None
                else []
            ),
        )

    def evaluate_maintenance_due(
        self, vehicle_id: int, strategy_name=None, today: Optional[date] = None
    ) -> bool:
        """Is the vehicle due under the named strategy? False for unknown vehicles or names."""
        result = self.check_vehicle(vehicle_id, strategy_name, today)
        return result is not None and result.is_due

    def check_and_alert(
        self, vehicle_id: int, strategy_name=None, today: Optional[date] = None
    ) -> bool:
        """Evaluate and publish a Maintenance alert when due. Returns True if an alert went out."""
        result = self.check_vehicle(vehicle_id, strategy_name, today)
        if result is None or not result.is_due:
            return False
        message = f"Maintenance due ({result.strategy.display_name})"
        if result.components_over:
            names = ", ".join(c.component_name for c in result.components_over)
            message += f": {names} near service limit"
        return self.dispatcher.create_alert(vehicle_id, AlertType.MAINTENANCE, message)

    def publish_alert(self, alert: Alert) -> bool:
        return self.dispatcher.publish(alert)

    def register_observer(self, channel: NotificationObserver) -> bool:
        return self.dispatcher.subscribe(channel)

    def remove_observer(self, channel: NotificationObserver) -> bool:
        return self.dispatcher.unsubscribe(channel)

    def pair_station_events(self, vehicle_id: int) -> PairingResult:
        return pair_events(self.events.get_station_events(vehicle_id))

    def compute_dwell_intervals(self, vehicle_id: int) -> List[DwellInterval]:
        return self.pair_station_events(vehicle_id).intervals


def build_service(store: "FleetStore", settings: "Settings") -> FleetMaintenanceService:
    """Wire a service over one store, subscribing the configured default observers."""
    dispatcher = AlertDispatcher(store, timeout=settings.timeout_seconds)
    for address in settings.email:
        dispatcher.subscribe(EmailObserver(address))
    for number in settings.sms:
        dispatcher.subscribe(SmsObserver(number))

    return FleetMaintenanceService(
        vehicles=store,
        history=store,
        components=store,
        events=store,
        selector=StrategySelector(settings.policy, settings.default_strategy),
        dispatcher=dispatcher,
        tracker=ComponentUsageTracker(store),
    )
