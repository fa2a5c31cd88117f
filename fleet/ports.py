"""Contracts for the collaborators the maintenance core reads from and writes to."""

from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from .alerts import Alert
    from .components import VehicleComponent
    from .maintenance_record import MaintenanceRecord
    from .stations import StationEvent
    from .vehicle import Vehicle


class VehicleLookup(Protocol):
    """Port for the fleet registry."""

    def get_vehicle(self, vehicle_id: int) -> Optional["Vehicle"]:
        """Return the vehicle, or None if it is not registered."""
        ...


class MaintenanceHistory(Protocol):
    """Port for maintenance records."""

    def get_maintenance_history(self, vehicle_id: int) -> List["MaintenanceRecord"]:
        """Return a vehicle's records ordered most-recent-last."""
        ...


class ComponentStore(Protocol):
    """Port for component usage persistence.

    Write methods either return False or raise PersistenceError on failure.
    """

    def get_components(self, vehicle_id: int) -> List["VehicleComponent"]:
        ...

    def get_component(self, component_id: int) -> Optional["VehicleComponent"]:
        ...

    def all_components(self) -> List["VehicleComponent"]:
        ...

    def persist_usage(self, component_id: int, hours: float) -> bool:
        """Add hours to a component's cumulative usage."""
        ...

    def update_component(self, component: "VehicleComponent") -> bool:
        """Replace a stored component with the given one."""
        ...


class AlertStore(Protocol):
    """Port for alert persistence."""

    def persist_alert(self, alert: "Alert") -> Optional["Alert"]:
        """
        Store a new alert and return the stored copy, with its assigned id.

        Returns None or raises PersistenceError on failure.
        """
        ...


class StationEventSource(Protocol):
    """Port for recorded GPS station events."""

    def get_station_events(self, vehicle_id: int) -> List["StationEvent"]:
        """Return a vehicle's events, in any order."""
        ...
