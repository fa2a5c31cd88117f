"""Flask JSON API exposing fleet maintenance operations to the surrounding application."""

import logging
import os
from datetime import date
from typing import Any, Dict, Optional

from dateutil.parser import isoparse
from flask import Flask, jsonify, request

from fleet import (
    Alert,
    AlertType,
    FleetMaintenanceService,
    StrategyName,
    build_service,
    load_fleet,
    load_policy,
)
from fleet.alerts import EmailObserver, SmsObserver
from fleet.stations import DwellInterval, UnmatchedEvent

logger = logging.getLogger(__name__)


def _interval_to_json(interval: DwellInterval) -> Dict[str, Any]:
    return {
        "vehicleId": interval.vehicle_id,
        "stationId": interval.station_id,
        "arrival": interval.arrival.isoformat(),
        "departure": interval.departure.isoformat(),
        "durationSeconds": interval.duration.total_seconds(),
    }


def _unmatched_to_json(unmatched: UnmatchedEvent) -> Dict[str, Any]:
    return {
        "stationId": unmatched.event.station_id,
        "eventType": unmatched.event.kind.value,
        "timestamp": unmatched.event.timestamp.isoformat(),
        "reason": unmatched.reason.name,
    }


def _observer_from_json(body: Dict[str, Any]):
    """Build an observer from {"channel": "email"|"sms", "address": ...}."""
    channel = str(body.get("channel", "")).lower()
    address = body.get("address")
    if not address:
        return None
    if channel == "email":
        return EmailObserver(address)
    if channel == "sms":
        return SmsObserver(address)
    return None


def _parse_today(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return isoparse(value).date()


def create_app(service: Optional[FleetMaintenanceService] = None) -> Flask:
    """
    Create the API app.

    With no service, one is built from $FLEET_DATA (fleet YAML file) and
    $FLEET_POLICY (optional policy YAML file).
    """
    if service is None:
        store = load_fleet(os.environ.get("FLEET_DATA", "data/fleet.yaml"))
        service = build_service(store, load_policy(os.environ.get("FLEET_POLICY")))

    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-prod")

    @app.route("/vehicles/<int:vehicle_id>/due")
    def vehicle_due(vehicle_id: int):
        """Maintenance-due evaluation. ?strategy=time|usage|predictive&today=YYYY-MM-DD"""
        strategy = request.args.get("strategy") or None
        if strategy is not None and StrategyName.parse(strategy) is None:
            return jsonify(error=f"Unknown strategy '{strategy}'"), 400
        try:
            today = _parse_today(request.args.get("today"))
        except ValueError:
            return jsonify(error="Invalid date"), 400

        result = service.check_vehicle(vehicle_id, strategy, today)
        if result is None:
            return jsonify(error=f"Vehicle {vehicle_id} not found"), 404
        return jsonify(
            vehicleId=vehicle_id,
            strategy=result.strategy.display_name,
            due=result.is_due,
            lastServiceDate=(
                result.last_service_date.isoformat() if result.last_service_date else None
            ),
            nextDueDate=result.next_due_date.isoformat() if result.next_due_date else None,
            earlyWarningDate=(
                result.early_warning_date.isoformat() if result.early_warning_date else None
            ),
            componentsOver=[c.component_name for c in result.components_over],
        )

    @app.route("/vehicles/<int:vehicle_id>/dwell")
    def vehicle_dwell(vehicle_id: int):
        """Dwell intervals and unmatched station events for a vehicle."""
        if service.vehicles.get_vehicle(vehicle_id) is None:
            return jsonify(error=f"Vehicle {vehicle_id} not found"), 404
        result = service.pair_station_events(vehicle_id)
        return jsonify(
            intervals=[_interval_to_json(i) for i in result.intervals],
            unmatched=[_unmatched_to_json(u) for u in result.unmatched],
        )

    @app.route("/alerts", methods=["POST"])
    def publish_alert():
        """Publish an alert: {"alertType", "message", "vehicleId"?}."""
        body = request.get_json(silent=True) or {}
        try:
            alert_type = AlertType(body.get("alertType"))
        except ValueError:
            return jsonify(error="Invalid alertType"), 400
        message = body.get("message")
        if not message:
            return jsonify(error="message is required"), 400
        vehicle_id = body.get("vehicleId")
        if vehicle_id is not None and service.vehicles.get_vehicle(vehicle_id) is None:
            return jsonify(error=f"Vehicle {vehicle_id} not found"), 404

        alert = Alert(alert_type=alert_type, message=message, vehicle_id=vehicle_id)
        if not service.publish_alert(alert):
            return jsonify(error="Alert could not be saved"), 503
        return jsonify(published=True), 201

    @app.route("/observers", methods=["POST", "DELETE"])
    def observers():
        """Register or remove a notification channel: {"channel", "address"}."""
        observer = _observer_from_json(request.get_json(silent=True) or {})
        if observer is None:
            return jsonify(error="channel must be 'email' or 'sms' with an address"), 400
        if request.method == "POST":
            added = service.register_observer(observer)
            return jsonify(subscribed=added), 201 if added else 200
        removed = service.remove_observer(observer)
        return jsonify(removed=removed), 200 if removed else 404

    @app.route("/components/<int:component_id>/usage", methods=["POST"])
    def add_usage(component_id: int):
        """Add operating hours: {"hours": float}."""
        body = request.get_json(silent=True) or {}
        hours = body.get("hours")
        if isinstance(hours, bool) or not isinstance(hours, (int, float)):
            return jsonify(error="hours must be a number"), 400
        if not service.tracker.add_usage(component_id, float(hours)):
            return jsonify(error="Usage could not be recorded"), 409
        return jsonify(recorded=True)

    @app.route("/components/due")
    def components_due():
        """Components at or over ?threshold= (default: policy usage threshold)."""
        try:
            threshold = float(
                request.args.get("threshold", service.selector.policy.usage_threshold)
            )
        except ValueError:
            return jsonify(error="Invalid threshold"), 400
        components = service.tracker.components_needing_maintenance(threshold)
        return jsonify(
            threshold=threshold,
            components=[
                {
                    "componentId": c.component_id,
                    "vehicleId": c.vehicle_id,
                    "componentName": c.component_name,
                    "usageHours": c.usage_hours,
                    "maxHours": c.max_hours,
                }
                for c in components
            ],
        )

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
