"""YAML loading and saving for fleet data and maintenance policy."""

import copy
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from dateutil.parser import isoparse
from jsonschema import ValidationError, validate

from .alerts import Alert
from .calculations import as_naive_utc
from .components import VehicleComponent
from .errors import ConfigError, PersistenceError
from .maintenance_record import MaintenanceRecord
from .stations import StationEvent
from .status import (
    AlertStatus,
    AlertType,
    ComponentStatus,
    EventKind,
    MaintenanceStatus,
    StrategyName,
    VehicleStatus,
)
from .strategy import AgeTier, PolicyTable
from .vehicle import Vehicle

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.yaml"


def load_schema() -> dict:
    """Load the JSON schema for fleet data files."""
    with open(SCHEMA_PATH) as f:
        return yaml.safe_load(f)


def policy_schema(schema: Optional[dict] = None) -> dict:
    """Schema for policy files, sharing the definitions of the fleet schema."""
    schema = schema or load_schema()
    return {
        "$schema": schema["$schema"],
        "$defs": schema["$defs"],
        "$ref": "#/$defs/policy",
    }


def _parse_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return isoparse(str(value)).date()


def _parse_timestamp(value: Union[str, date]) -> datetime:
    """Parse a YAML timestamp to naive UTC so every stored timestamp compares."""
    if isinstance(value, datetime):
        return as_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return as_naive_utc(isoparse(str(value)))


def _parse_vehicle(dct: Dict[str, Any]) -> Vehicle:
    return Vehicle(
        dct["vehicleId"],
        dct["vehicleType"],
        dct["fuelType"],
        VehicleStatus(dct.get("status", VehicleStatus.AVAILABLE.value)),
        dct.get("maxPassengers"),
        dct.get("vehicleNumber"),
        dct.get("year"),
        dct.get("currentRoute"),
    )


def _parse_maintenance(dct: Dict[str, Any]) -> MaintenanceRecord:
    return MaintenanceRecord(
        dct["vehicleId"],
        _parse_date(dct["serviceDate"]),
        dct.get("description"),
        dct.get("cost"),
        MaintenanceStatus(dct.get("status", MaintenanceStatus.COMPLETED.value)),
        dct.get("maintenanceId"),
    )


def _parse_component(dct: Dict[str, Any]) -> VehicleComponent:
    return VehicleComponent(
        component_id=dct["componentId"],
        vehicle_id=dct["vehicleId"],
        component_name=dct["componentName"],
        usage_hours=float(dct.get("usageHours") or 0),
        max_hours=dct.get("maxHours"),
        status=ComponentStatus(dct.get("status", ComponentStatus.OPERATIONAL.value)),
    )


def _parse_event(dct: Dict[str, Any]) -> StationEvent:
    return StationEvent(
        vehicle_id=dct["vehicleId"],
        station_id=dct.get("stationId"),
        kind=EventKind(dct["eventType"]),
        timestamp=_parse_timestamp(dct["timestamp"]),
        latitude=dct.get("latitude"),
        longitude=dct.get("longitude"),
        operator_id=dct.get("operatorId"),
        tracking_id=dct.get("trackingId"),
    )


def _parse_alert(dct: Dict[str, Any]) -> Alert:
    created = dct.get("createdAt")
    return Alert(
        alert_type=AlertType(dct["alertType"]),
        message=dct["message"],
        vehicle_id=dct.get("vehicleId"),
        status=AlertStatus(dct.get("status", AlertStatus.OPEN.value)),
        created_at=_parse_timestamp(created) if created is not None else None,
        alert_id=dct.get("alertId"),
    )


def _vehicle_to_dict(vehicle: Vehicle) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "vehicleId": vehicle.vehicle_id,
        "vehicleType": vehicle.vehicle_type,
        "fuelType": vehicle.fuel_type,
        "status": vehicle.status.value,
    }
    if vehicle.vehicle_number is not None:
        d["vehicleNumber"] = vehicle.vehicle_number
    if vehicle.max_passengers is not None:
        d["maxPassengers"] = vehicle.max_passengers
    if vehicle.year is not None:
        d["year"] = vehicle.year
    if vehicle.current_route is not None:
        d["currentRoute"] = vehicle.current_route
    return d


def _maintenance_to_dict(record: MaintenanceRecord) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "vehicleId": record.vehicle_id,
        "serviceDate": record.service_date.isoformat(),
        "status": record.status.value,
    }
    if record.maintenance_id is not None:
        d["maintenanceId"] = record.maintenance_id
    if record.description is not None:
        d["description"] = record.description
    if record.cost is not None:
        d["cost"] = record.cost
    return d


def _component_to_dict(component: VehicleComponent) -> Dict[str, Any]:
    return {
        "componentId": component.component_id,
        "vehicleId": component.vehicle_id,
        "componentName": component.component_name,
        "usageHours": component.usage_hours,
        "maxHours": component.max_hours,
        "status": component.status.value,
    }


def _event_to_dict(event: StationEvent) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "vehicleId": event.vehicle_id,
        "stationId": event.station_id,
        "eventType": event.kind.value,
        "timestamp": event.timestamp.isoformat(),
    }
    if event.tracking_id is not None:
        d["trackingId"] = event.tracking_id
    if event.latitude is not None:
        d["latitude"] = event.latitude
    if event.longitude is not None:
        d["longitude"] = event.longitude
    if event.operator_id is not None:
        d["operatorId"] = event.operator_id
    return d


def _alert_to_dict(alert: Alert) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "alertId": alert.alert_id,
        "vehicleId": alert.vehicle_id,
        "alertType": alert.alert_type.value,
        "message": alert.message,
        "status": alert.status.value,
    }
    if alert.created_at is not None:
        d["createdAt"] = alert.created_at.isoformat()
    return d


def _alert_order(alert: Alert):
    created = as_naive_utc(alert.created_at) if alert.created_at else datetime.min
    return (created, alert.alert_id or 0)


class FleetStore:
    """
    Fleet data held in memory and written back to a YAML file.

    Implements every collaborator port the maintenance core uses. With no
    path it is purely in-memory. A failed write-back restores the previous
    in-memory state and raises PersistenceError.
    """

    def __init__(
        self,
        vehicles: Optional[List[Vehicle]] = None,
        maintenance: Optional[List[MaintenanceRecord]] = None,
        components: Optional[List[VehicleComponent]] = None,
        station_events: Optional[List[StationEvent]] = None,
        alerts: Optional[List[Alert]] = None,
        path: Optional[Union[str, Path]] = None,
    ):
        self.vehicles = vehicles or []
        self.maintenance = maintenance or []
        self.components = components or []
        self.station_events = station_events or []
        self.alerts = alerts or []
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()

    # -- VehicleLookup ---------------------------------------------------------

    def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        for vehicle in self.vehicles:
            if vehicle.vehicle_id == vehicle_id:
                return vehicle
        return None

    # -- MaintenanceHistory ----------------------------------------------------

    def get_maintenance_history(self, vehicle_id: int) -> List[MaintenanceRecord]:
        """Records for a vehicle, oldest first (stable for same-day entries)."""
        with self._lock:
            records = [r for r in self.maintenance if r.vehicle_id == vehicle_id]
        return sorted(records, key=lambda r: r.service_date)

    # -- ComponentStore --------------------------------------------------------

    def get_components(self, vehicle_id: int) -> List[VehicleComponent]:
        with self._lock:
            return [copy.copy(c) for c in self.components if c.vehicle_id == vehicle_id]

    def get_component(self, component_id: int) -> Optional[VehicleComponent]:
        with self._lock:
            index = self._component_index(component_id)
            return copy.copy(self.components[index]) if index is not None else None

    def all_components(self) -> List[VehicleComponent]:
        with self._lock:
            return [copy.copy(c) for c in self.components]

    def persist_usage(self, component_id: int, hours: float) -> bool:
        with self._lock:
            index = self._component_index(component_id)
            if index is None:
                return False
            current = self.components[index]
            self._replace_item(
                self.components,
                index,
                replace(current, usage_hours=current.usage_hours + hours),
            )
            return True

    def update_component(self, component: VehicleComponent) -> bool:
        with self._lock:
            index = self._component_index(component.component_id)
            if index is None:
                return False
            self._replace_item(self.components, index, copy.copy(component))
            return True

    def _component_index(self, component_id: int) -> Optional[int]:
        for i, component in enumerate(self.components):
            if component.component_id == component_id:
                return i
        return None

    # -- StationEventSource ----------------------------------------------------

    def get_station_events(self, vehicle_id: int) -> List[StationEvent]:
        with self._lock:
            return [e for e in self.station_events if e.vehicle_id == vehicle_id]

    # -- AlertStore ------------------------------------------------------------

    def persist_alert(self, alert: Alert) -> Optional[Alert]:
        """Append an alert, assigning the next alert id. Returns the stored alert."""
        with self._lock:
            next_id = max((a.alert_id or 0 for a in self.alerts), default=0) + 1
            created = as_naive_utc(alert.created_at) if alert.created_at else None
            stored = replace(alert, alert_id=next_id, created_at=created)
            self._commit(
                lambda: self.alerts.append(stored),
                lambda: self.alerts.pop(),
            )
            return stored

    def get_alerts(self, open_only: bool = False) -> List[Alert]:
        """Alerts newest first."""
        with self._lock:
            alerts = list(self.alerts)
        if open_only:
            alerts = [a for a in alerts if a.status is AlertStatus.OPEN]
        return sorted(alerts, key=_alert_order, reverse=True)

    def resolve_alert(self, alert_id: int) -> bool:
        with self._lock:
            for i, alert in enumerate(self.alerts):
                if alert.alert_id == alert_id:
                    self._replace_item(
                        self.alerts, i, replace(alert, status=AlertStatus.RESOLVED)
                    )
                    return True
        return False

    # -- Write-back --------------------------------------------------------------

    def _replace_item(self, items: list, index: int, item) -> None:
        previous = items[index]

        def apply():
            items[index] = item

        def undo():
            items[index] = previous

        self._commit(apply, undo)

    def _commit(self, apply: Callable[[], None], undo: Callable[[], None]) -> None:
        apply()
        try:
            self.save()
        except PersistenceError:
            undo()
            raise

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "vehicles": [_vehicle_to_dict(v) for v in self.vehicles],
                "maintenance": [_maintenance_to_dict(r) for r in self.maintenance],
                "components": [_component_to_dict(c) for c in self.components],
                "stationEvents": [_event_to_dict(e) for e in self.station_events],
                "alerts": [_alert_to_dict(a) for a in self.alerts],
            }

    def save(self) -> None:
        """Write the store back to its YAML file. No-op for in-memory stores."""
        if self.path is None:
            return
        data = self.to_dict()
        try:
            with open(self.path, "w") as fp:
                yaml.dump(
                    data,
                    fp,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                    width=120,
                )
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e


def load_fleet(filename: Union[str, Path]) -> FleetStore:
    """Load fleet data from a YAML file into a store that writes back to it."""
    with open(filename, "r") as fp:
        data = yaml.load(fp, Loader=yaml.SafeLoader) or {}

    return FleetStore(
        vehicles=[_parse_vehicle(d) for d in data.get("vehicles") or []],
        maintenance=[_parse_maintenance(d) for d in data.get("maintenance") or []],
        components=[_parse_component(d) for d in data.get("components") or []],
        station_events=[_parse_event(d) for d in data.get("stationEvents") or []],
        alerts=[_parse_alert(d) for d in data.get("alerts") or []],
        path=filename,
    )


@dataclass(frozen=True)
class Settings:
    """Policy plus notification settings read from a policy file."""

    policy: PolicyTable = field(default_factory=PolicyTable)
    default_strategy: StrategyName = StrategyName.TIME
    timeout_seconds: float = 5.0
    email: List[str] = field(default_factory=list)
    sms: List[str] = field(default_factory=list)


def _parse_age_tier(dct: Dict[str, Any], buffer_days: int) -> AgeTier:
    return AgeTier(
        older_than_years=dct["olderThanYears"],
        interval_days=dct["intervalDays"],
        buffer_days=dct.get("bufferDays", buffer_days),
    )


def parse_settings(data: Optional[Dict[str, Any]]) -> Settings:
    """Validate a policy mapping and build Settings. Raises ConfigError."""
    data = data or {}
    try:
        validate(instance=data, schema=policy_schema())
    except ValidationError as e:
        where = ".".join(str(p) for p in e.path)
        raise ConfigError(
            f"Invalid policy{' at ' + where if where else ''}: {e.message}"
        ) from e

    defaults = PolicyTable()
    buffer_days = data.get("predictiveBufferDays", defaults.predictive_buffer_days)
    age_tiers = defaults.age_tiers
    if "ageTiers" in data:
        age_tiers = tuple(_parse_age_tier(d, buffer_days) for d in data["ageTiers"] or [])
    policy = PolicyTable(
        interval_days=data.get("intervalDays", defaults.interval_days),
        usage_threshold=data.get("usageThreshold", defaults.usage_threshold),
        predictive_interval_days=data.get(
            "predictiveIntervalDays", defaults.predictive_interval_days
        ),
        predictive_usage_threshold=data.get(
            "predictiveUsageThreshold", defaults.predictive_usage_threshold
        ),
        type_interval_days=dict(data.get("typeIntervalDays") or {}),
        predictive_buffer_days=buffer_days,
        age_tiers=age_tiers,
    )
    if policy.predictive_interval_days > policy.interval_days:
        raise ConfigError("predictiveIntervalDays must not exceed intervalDays")
    if policy.predictive_usage_threshold > policy.usage_threshold:
        raise ConfigError("predictiveUsageThreshold must not exceed usageThreshold")

    notifications = data.get("notifications") or {}
    return Settings(
        policy=policy,
        default_strategy=StrategyName(data.get("defaultStrategy", "time")),
        timeout_seconds=notifications.get("timeoutSeconds", 5.0),
        email=list(notifications.get("email") or []),
        sms=list(notifications.get("sms") or []),
    )


def load_policy(filename: Optional[Union[str, Path]] = None) -> Settings:
    """Load Settings from a YAML policy file. No file means default settings."""
    if filename is None:
        return Settings()
    try:
        with open(filename, "r") as fp:
            data = yaml.safe_load(fp)
    except OSError as e:
        raise ConfigError(f"Cannot read policy file {filename}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {filename}: {e}") from e
    settings = parse_settings(data)
    logger.debug(f"Loaded policy from {filename}: {settings.policy}")
    return settings
