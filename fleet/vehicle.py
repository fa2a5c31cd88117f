"""Vehicle class for fleet registry records."""

from typing import Optional

from .status import VehicleStatus


class Vehicle:
    """A fleet vehicle as read from the registry. The core never mutates it."""

    def __init__(
        self,
        vehicle_id: int,
        vehicle_type: str,
        fuel_type: str,
        status: VehicleStatus = VehicleStatus.AVAILABLE,
        max_passengers: Optional[int] = None,
        vehicle_number: Optional[str] = None,
        year: Optional[int] = None,
        current_route: Optional[str] = None,
    ):
        self.vehicle_id = vehicle_id
        self.vehicle_type = vehicle_type
        self.fuel_type = fuel_type
        self.status = status
        self.max_passengers = max_passengers
        self.vehicle_number = vehicle_number
        self.year = year
        self.current_route = current_route

    @property
    def name(self) -> str:
        """Human-readable vehicle name."""
        label = self.vehicle_number or f"#{self.vehicle_id}"
        return f"{label} ({self.vehicle_type})"
