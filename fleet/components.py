"""Vehicle components and usage-hour tracking."""

import logging
import math
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, TYPE_CHECKING

from .calculations import is_usage_over
from .errors import PersistenceError
from .status import ComponentStatus

if TYPE_CHECKING:
    from .ports import ComponentStore

logger = logging.getLogger(__name__)


@dataclass
class VehicleComponent:
    """A wearing part of a vehicle with cumulative usage hours."""

    component_id: int
    vehicle_id: int
    component_name: str
    usage_hours: float = 0.0
    max_hours: Optional[float] = None
    status: ComponentStatus = ComponentStatus.OPERATIONAL

    @property
    def usage_ratio(self) -> Optional[float]:
        """Fraction of max hours used: None when max is unknown, inf when max is zero."""
        if self.max_hours is None:
            return None
        if self.max_hours == 0:
            return math.inf
        return self.usage_hours / self.max_hours

    def is_over(self, threshold: float) -> bool:
        return is_usage_over(self.usage_hours, self.max_hours, threshold)


class ComponentUsageTracker:
    """
    Accumulates usage hours per component against replacement thresholds.

    Usage writes on the same component are serialized with a per-component
    lock. Each add_usage call adds its hours once; callers must not report
    the same operating interval twice.
    """

    def __init__(self, store: "ComponentStore"):
        self.store = store
        self._locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, component_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(component_id)
            if lock is None:
                lock = self._locks[component_id] = threading.Lock()
            return lock

    def add_usage(self, component_id: int, hours: float) -> bool:
        """Add operating hours to a component. Returns False if nothing was recorded."""
        if hours is None or not math.isfinite(hours) or hours < 0:
            logger.warning(
                f"Rejected usage of {hours!r} hours for component {component_id}"
            )
            return False

        with self._lock_for(component_id):
            if self.store.get_component(component_id) is None:
                logger.warning(f"Component {component_id} not found")
                return False
            return self._write(
                lambda: self.store.persist_usage(component_id, hours),
                f"usage for component {component_id}",
            )

    def is_over_threshold(self, component_id: int, threshold: float) -> bool:
        """Inclusive check of usage >= max_hours * threshold. Unknown components are not over."""
        component = self.store.get_component(component_id)
        if component is None:
            return False
        return component.is_over(threshold)

    def components_needing_maintenance(self, threshold: float) -> List[VehicleComponent]:
        """All components at or over threshold. Components without max_hours are skipped."""
        return [c for c in self.store.all_components() if c.is_over(threshold)]

    def components_for_vehicle(self, vehicle_id: int) -> List[VehicleComponent]:
        return self.store.get_components(vehicle_id)

    def mark_for_maintenance(self, component_id: int) -> bool:
        """Flag a component as requiring maintenance."""
        return self._update(
            component_id,
            lambda c: replace(c, status=ComponentStatus.MAINTENANCE_REQUIRED),
        )

    def reset_component(self, component_id: int) -> bool:
        """
        Record a completed replacement.

        This is the only operation that lowers usage hours: usage goes back
        to zero and the component is operational again.
        """
        return self._update(
            component_id,
            lambda c: replace(c, usage_hours=0.0, status=ComponentStatus.OPERATIONAL),
        )

    def _update(self, component_id: int, change) -> bool:
        with self._lock_for(component_id):
            component = self.store.get_component(component_id)
            if component is None:
                logger.warning(f"Component {component_id} not found")
                return False
            updated = change(component)
            return self._write(
                lambda: self.store.update_component(updated),
                f"component {component_id}",
            )

    def _write(self, write, what: str) -> bool:
        try:
            ok = write()
        except PersistenceError as e:
            logger.error(f"Failed to persist {what}: {e}")
            return False
        if not ok:
            logger.error(f"Store rejected {what}")
        return bool(ok)
