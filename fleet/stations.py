"""Station events and arrival/departure dwell pairing."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .calculations import as_naive_utc
from .status import EventKind, UnmatchedReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StationEvent:
    """A recorded GPS event. Immutable once recorded."""

    vehicle_id: int
    station_id: Optional[str]
    kind: EventKind
    timestamp: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    operator_id: Optional[int] = None
    tracking_id: Optional[int] = None

    @property
    def bucket(self) -> Tuple[int, Optional[str]]:
        return (self.vehicle_id, self.station_id)


@dataclass(frozen=True)
class DwellInterval:
    """Time a vehicle spent at a station between a matched arrival and departure."""

    vehicle_id: int
    station_id: str
    arrival: datetime
    departure: datetime

    @property
    def duration(self) -> timedelta:
        return self.departure - self.arrival


@dataclass(frozen=True)
class UnmatchedEvent:
    event: StationEvent
    reason: UnmatchedReason


@dataclass
class PairingResult:
    intervals: List[DwellInterval] = field(default_factory=list)
    unmatched: List[UnmatchedEvent] = field(default_factory=list)

    @property
    def unmatched_arrivals(self) -> List[UnmatchedEvent]:
        return [
            u for u in self.unmatched if u.reason is not UnmatchedReason.ORPHAN_DEPARTURE
        ]

    @property
    def unmatched_departures(self) -> List[UnmatchedEvent]:
        return [
            u for u in self.unmatched if u.reason is UnmatchedReason.ORPHAN_DEPARTURE
        ]


def _moment(event: StationEvent) -> datetime:
    return as_naive_utc(event.timestamp)


def _is_chronological(events: List[StationEvent]) -> bool:
    return all(_moment(a) <= _moment(b) for a, b in zip(events, events[1:]))


def pair_events(events: Iterable[StationEvent]) -> PairingResult:
    """
    Reconstruct dwell intervals from station arrival/departure events.

    Events are bucketed per (vehicle, station) and scanned in timestamp
    order; out-of-order input is sorted first (stable, so ties keep their
    input order), which also means a pair can never have a negative
    duration. Per bucket:
    - ARRIVAL with an arrival already open: the older one is unmatched
      (SUPERSEDED_ARRIVAL) and the new one becomes the open arrival
    - DEPARTURE with an open arrival: emit an interval, close the bucket
    - DEPARTURE without an open arrival: unmatched (ORPHAN_DEPARTURE)
    Arrivals still open at the end are unmatched (OPEN_ARRIVAL).
    LOCATION pings are ignored. Offset-aware and naive timestamps may be
    mixed: all are compared as UTC, and interval bounds are naive UTC.
    """
    station_events = [e for e in events if e.kind is not EventKind.LOCATION]
    if not _is_chronological(station_events):
        logger.debug("Station events out of order; sorting by timestamp")
        station_events = sorted(station_events, key=_moment)

    result = PairingResult()
    open_arrivals: Dict[Tuple[int, Optional[str]], StationEvent] = {}

    for event in station_events:
        if event.kind is EventKind.ARRIVAL:
            previous = open_arrivals.get(event.bucket)
            if previous is not None:
                logger.info(
                    f"Vehicle {event.vehicle_id} arrived at {event.station_id} "
                    f"twice without departing; dropping arrival at {previous.timestamp}"
                )
                result.unmatched.append(
                    UnmatchedEvent(previous, UnmatchedReason.SUPERSEDED_ARRIVAL)
                )
            open_arrivals[event.bucket] = event
            continue

        arrival = open_arrivals.pop(event.bucket, None)
        if arrival is None:
            logger.info(
                f"Vehicle {event.vehicle_id} departed {event.station_id} at "
                f"{event.timestamp} with no recorded arrival"
            )
            result.unmatched.append(
                UnmatchedEvent(event, UnmatchedReason.ORPHAN_DEPARTURE)
            )
            continue
        result.intervals.append(
            DwellInterval(
                vehicle_id=event.vehicle_id,
                station_id=event.station_id,
                arrival=_moment(arrival),
                departure=_moment(event),
            )
        )

    for arrival in open_arrivals.values():
        result.unmatched.append(UnmatchedEvent(arrival, UnmatchedReason.OPEN_ARRIVAL))

    return result
