"""
Maintenance strategies: the rules that decide whether a vehicle is due.

A strategy is one of three closed variants:
- TimeBased: due when the interval since the last service has run out
- UsageBased: due when any component reaches a fraction of its max hours
- Predictive: due when a shortened, age-aware time rule OR a lower usage
  threshold fires; the time rule also fires a buffer of days early

All numbers come from a PolicyTable, so policy can change without touching
callers. Evaluation is pure: strategies never mutate vehicles, records or
components.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union, TYPE_CHECKING

from .calculations import calc_due_date, days_since, is_interval_elapsed
from .status import StrategyName

if TYPE_CHECKING:
    from .components import VehicleComponent
    from .maintenance_record import MaintenanceRecord
    from .vehicle import Vehicle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgeTier:
    """Predictive interval and buffer for vehicles older than a number of years."""

    older_than_years: int
    interval_days: int
    buffer_days: int


DEFAULT_AGE_TIERS = (
    AgeTier(older_than_years=10, interval_days=30, buffer_days=14),
    AgeTier(older_than_years=5, interval_days=45, buffer_days=10),
    AgeTier(older_than_years=2, interval_days=60, buffer_days=5),
)


@dataclass(frozen=True)
class PolicyTable:
    """Tunable constants for all strategies."""

    interval_days: int = 90
    usage_threshold: float = 0.8
    predictive_interval_days: int = 60
    predictive_usage_threshold: float = 0.7
    # Vehicle type -> interval days, e.g. {"Diesel Bus": 60}
    type_interval_days: Dict[str, int] = field(default_factory=dict)
    # Days the predictive time rule fires early, for vehicles in no age tier
    predictive_buffer_days: int = 5
    age_tiers: Tuple[AgeTier, ...] = DEFAULT_AGE_TIERS


@dataclass(frozen=True)
class TimeBased:
    interval_days: int
    type_interval_days: Dict[str, int] = field(default_factory=dict)

    display_name = "Time-Based"

    def interval_for(self, vehicle: "Vehicle") -> int:
        return self.type_interval_days.get(vehicle.vehicle_type, self.interval_days)


@dataclass(frozen=True)
class UsageBased:
    threshold: float

    display_name = "Usage-Based"


@dataclass(frozen=True)
class Predictive:
    """
    Early-warning blend of a tighter time rule and a tighter usage rule.

    The time rule uses the shorter of its own interval and the interval of
    the vehicle's age tier, and fires buffer_days before that interval runs
    out. Vehicles with no known year fall in no tier.
    """

    time: TimeBased
    usage: UsageBased
    age_tiers: Tuple[AgeTier, ...] = ()
    buffer_days: int = 0

    display_name = "Predictive"

    def tier_for(self, vehicle: "Vehicle", today: date) -> Optional[AgeTier]:
        if vehicle.year is None:
            return None
        age = today.year - vehicle.year
        for tier in sorted(self.age_tiers, key=lambda t: t.older_than_years, reverse=True):
            if age > tier.older_than_years:
                return tier
        return None

    def interval_for(self, vehicle: "Vehicle", today: date) -> int:
        interval = self.time.interval_for(vehicle)
        tier = self.tier_for(vehicle, today)
        if tier is not None:
            interval = min(interval, tier.interval_days)
        return interval

    def buffer_for(self, vehicle: "Vehicle", today: date) -> int:
        tier = self.tier_for(vehicle, today)
        return tier.buffer_days if tier is not None else self.buffer_days


Strategy = Union[TimeBased, UsageBased, Predictive]


def strategy_from_name(name, policy: PolicyTable) -> Optional[Strategy]:
    """Build the strategy for a name ("time", "usage", "predictive"). None if unknown."""
    key = StrategyName.parse(name)
    if key is StrategyName.TIME:
        return TimeBased(policy.interval_days, dict(policy.type_interval_days))
    if key is StrategyName.USAGE:
        return UsageBased(policy.usage_threshold)
    if key is StrategyName.PREDICTIVE:
        # Never looser than the plain time rule for any vehicle type
        tightened = {
            vehicle_type: min(days, policy.predictive_interval_days)
            for vehicle_type, days in policy.type_interval_days.items()
        }
        return Predictive(
            TimeBased(policy.predictive_interval_days, tightened),
            UsageBased(policy.predictive_usage_threshold),
            tuple(policy.age_tiers),
            policy.predictive_buffer_days,
        )
    return None


def last_maintenance(history: Sequence["MaintenanceRecord"]) -> Optional["MaintenanceRecord"]:
    """Most recent record of a most-recent-last history."""
    return history[-1] if history else None


def is_due(
    strategy: Strategy,
    vehicle: "Vehicle",
    last: Optional["MaintenanceRecord"],
    components: Iterable["VehicleComponent"] = (),
    today: Optional[date] = None,
) -> bool:
    """
    Decide whether a vehicle requires maintenance under a strategy.

    - TimeBased: no history -> due; else days since last service >= interval
    - UsageBased: any component with known max_hours at or over
      max_hours * threshold -> due; no component data -> not due
    - Predictive: no history -> due; else days since last service >=
      age-aware interval - buffer; or the tighter usage rule
    """
    today = today or date.today()

    if isinstance(strategy, TimeBased):
        last_date = last.service_date if last is not None else None
        return is_interval_elapsed(last_date, strategy.interval_for(vehicle), today)
    elif isinstance(strategy, UsageBased):
        return any(c.is_over(strategy.threshold) for c in components)
    elif isinstance(strategy, Predictive):
        components = list(components)
        if last is None:
            time_due = True
        else:
            early = strategy.interval_for(vehicle, today) - strategy.buffer_for(vehicle, today)
            time_due = days_since(last.service_date, today) >= early
        return time_due or is_due(strategy.usage, vehicle, last, components, today)
    raise TypeError(f"Unknown maintenance strategy: {strategy!r}")


def next_due_date(
    strategy: Strategy,
    vehicle: "Vehicle",
    last: Optional["MaintenanceRecord"],
    today: Optional[date] = None,
) -> Optional[date]:
    """
    Date the time rule of a strategy runs out. None for usage-only rules or no history.

    For Predictive this is the end of the age-aware interval; the rule is
    already due from early_warning_date on.
    """
    if isinstance(strategy, TimeBased):
        last_date = last.service_date if last is not None else None
        return calc_due_date(last_date, strategy.interval_for(vehicle))
    elif isinstance(strategy, UsageBased):
        return None
    elif isinstance(strategy, Predictive):
        last_date = last.service_date if last is not None else None
        return calc_due_date(last_date, strategy.interval_for(vehicle, today or date.today()))
    raise TypeError(f"Unknown maintenance strategy: {strategy!r}")


def early_warning_date(
    strategy: Strategy,
    vehicle: "Vehicle",
    last: Optional["MaintenanceRecord"],
    today: Optional[date] = None,
) -> Optional[date]:
    """Date a strategy's time rule starts reporting due: next_due_date less any buffer."""
    today = today or date.today()
    due = next_due_date(strategy, vehicle, last, today)
    if due is None or not isinstance(strategy, Predictive):
        return due
    return due - timedelta(days=strategy.buffer_for(vehicle, today))


def usage_threshold(strategy: Strategy) -> Optional[float]:
    """Usage threshold a strategy applies, or None for time-only rules."""
    if isinstance(strategy, TimeBased):
        return None
    elif isinstance(strategy, UsageBased):
        return strategy.threshold
    elif isinstance(strategy, Predictive):
        return strategy.usage.threshold
    raise TypeError(f"Unknown maintenance strategy: {strategy!r}")


class StrategySelector:
    """
    Routes due evaluations to a strategy.

    Holds a default strategy name used only when a caller does not pass one.
    Every evaluation resolves its strategy once, up front, so a concurrent
    change of the default cannot affect an evaluation in progress.
    """

    def __init__(
        self,
        policy: Optional[PolicyTable] = None,
        default: StrategyName = StrategyName.TIME,
    ):
        self.policy = policy or PolicyTable()
        self._default = default
        self._lock = threading.Lock()

    @property
    def current(self) -> StrategyName:
        with self._lock:
            return self._default

    def select(self, name) -> bool:
        """Change the default strategy. Unknown names are rejected and the prior default kept."""
        key = StrategyName.parse(name)
        if key is None:
            logger.warning(f"Unknown maintenance strategy {name!r}; keeping {self.current.value}")
            return False
        with self._lock:
            self._default = key
        return True

    def resolve(self, name=None) -> Optional[Strategy]:
        """Strategy for name, or for the current default when name is None."""
        if name is None:
            name = self.current
        strategy = strategy_from_name(name, self.policy)
        if strategy is None:
            logger.warning(f"Unknown maintenance strategy {name!r}")
        return strategy

    def is_due(
        self,
        vehicle: "Vehicle",
        last: Optional["MaintenanceRecord"],
        components: Iterable["VehicleComponent"] = (),
        strategy=None,
        today: Optional[date] = None,
    ) -> bool:
        """Evaluate with the named strategy (or the default). Unknown names evaluate to False."""
        resolved = self.resolve(strategy)
        if resolved is None:
            return False
        return is_due(resolved, vehicle, last, components, today)
