"""MaintenanceRecord class for service history."""
from datetime import date
from typing import Optional

from .status import MaintenanceStatus


class MaintenanceRecord:
    """A maintenance entry for one vehicle."""

    def __init__(
            self,
            vehicle_id: int,
            service_date: date,
            description: Optional[str] = None,
            cost: Optional[float] = None,
            status: MaintenanceStatus = MaintenanceStatus.COMPLETED,
            maintenance_id: Optional[int] = None,
    ):
        self.vehicle_id = vehicle_id
        self.service_date = service_date
        self.description = description
        self.cost = cost
        self.status = status
        self.maintenance_id = maintenance_id
