"""ServiceDue dataclass for a calculated maintenance evaluation."""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .components import VehicleComponent
    from .strategy import Strategy
    from .vehicle import Vehicle


@dataclass
class ServiceDue:
    """Outcome of evaluating one vehicle under one strategy as of a date."""

    vehicle: "Vehicle"
    strategy: "Strategy"
    is_due: bool
    as_of: date
    last_service_date: Optional[date] = None
    next_due_date: Optional[date] = None
    # Earlier than next_due_date when the strategy warns ahead of time
    early_warning_date: Optional[date] = None
    components_over: List["VehicleComponent"] = field(default_factory=list)

    @property
    def time_remaining_days(self) -> Optional[int]:
        """Days until the time rule fires, negative when overdue."""
        if self.next_due_date is None:
            return None
        return (self.next_due_date - self.as_of).days
