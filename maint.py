#!/usr/bin/env python3
"""
Unified CLI for fleet maintenance tracking.

Commands:
  status          - Show which vehicles are due for maintenance
  check           - Evaluate one vehicle, optionally raising an alert
  components      - List components at or over their usage threshold
  add-usage       - Add operating hours to a component
  reset-component - Record a completed component replacement
  dwell           - Show station dwell intervals for a vehicle
  alerts          - List alerts
  resolve-alert   - Mark an alert as resolved
"""

import argparse
import logging
import os
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional

from dateutil.parser import isoparse
from tabulate import tabulate

from fleet import (
    Alert,
    ConfigError,
    PairingResult,
    PersistenceError,
    ServiceDue,
    VehicleComponent,
    build_service,
    load_fleet,
    load_policy,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Formatting helpers
# =============================================================================


def format_hours(hours: Optional[float]) -> str:
    """Format usage hours for display."""
    return f"{hours:,.1f}" if hours is not None else "-"


def format_percent(ratio: Optional[float]) -> str:
    """Format a usage ratio as a percentage."""
    return f"{ratio:.0%}" if ratio is not None else "-"


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value is not None else "-"


def format_duration(duration: timedelta) -> str:
    """Format a dwell duration (e.g., '1h 05m 30s', '4m 10s', '45s')."""
    total = int(duration.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {seconds:02d}s"
    if minutes:
        return f"{minutes}m {seconds:02d}s"
    return f"{seconds}s"


def format_time_remaining(svc: ServiceDue) -> str:
    """Format days until the time rule fires (e.g., '3mo 15d' or '-2mo 5d')."""
    days = svc.time_remaining_days
    if days is None:
        return "-"
    sign = "-" if days < 0 else ""
    days = abs(days)
    months, remaining_days = divmod(days, 30)
    if months > 0:
        return f"{sign}{months}mo {remaining_days}d"
    return f"{sign}{days}d"


def truncate(text: Optional[str], max_len: int = 40) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


# =============================================================================
# Table builders
# =============================================================================


def make_status_table(results: List[ServiceDue]) -> List[List[str]]:
    """Convert service due results to table rows."""
    rows = []
    for svc in results:
        rows.append(
            [
                svc.vehicle.name,
                "DUE" if svc.is_due else "OK",
                format_date(svc.last_service_date),
                format_date(svc.next_due_date),
                format_time_remaining(svc),
                ", ".join(c.component_name for c in svc.components_over) or "-",
            ]
        )
    return rows


def make_component_table(components: List[VehicleComponent]) -> List[List[str]]:
    rows = []
    for c in components:
        rows.append(
            [
                str(c.component_id),
                str(c.vehicle_id),
                c.component_name,
                format_hours(c.usage_hours),
                format_hours(c.max_hours),
                format_percent(c.usage_ratio),
                c.status.value,
            ]
        )
    return rows


def make_dwell_table(result: PairingResult) -> List[List[str]]:
    return [
        [
            i.station_id,
            i.arrival.isoformat(sep=" ", timespec="seconds"),
            i.departure.isoformat(sep=" ", timespec="seconds"),
            format_duration(i.duration),
        ]
        for i in result.intervals
    ]


def make_unmatched_table(result: PairingResult) -> List[List[str]]:
    return [
        [
            u.event.station_id or "-",
            u.event.kind.value,
            u.event.timestamp.isoformat(sep=" ", timespec="seconds"),
            u.reason.name.replace("_", " ").lower(),
        ]
        for u in result.unmatched
    ]


def make_alert_table(alerts: List[Alert]) -> List[List[str]]:
    rows = []
    for a in alerts:
        rows.append(
            [
                str(a.alert_id) if a.alert_id is not None else "-",
                a.created_at.isoformat(sep=" ", timespec="seconds") if a.created_at else "-",
                str(a.vehicle_id) if a.vehicle_id is not None else "fleet",
                a.alert_type.value,
                a.status.value,
                truncate(a.message),
            ]
        )
    return rows


# =============================================================================
# Commands
# =============================================================================


def cmd_status(args, store, service):
    """Show which vehicles are due for maintenance."""
    strategy = service.selector.resolve(args.strategy)
    if strategy is None:
        print(f"Error: Unknown strategy '{args.strategy}'")
        return 1

    print(f"Strategy: {strategy.display_name}")
    print(f"As of: {args.today.isoformat()}")
    print(f"Vehicles: {len(store.vehicles)}")
    print()

    results = [
        service.check_vehicle(v.vehicle_id, args.strategy, args.today)
        for v in store.vehicles
    ]
    results = [r for r in results if r is not None]
    due = [r for r in results if r.is_due]
    ok = [r for r in results if not r.is_due]

    headers = ["Vehicle", "Status", "Last Service", "Next Due", "Remaining", "Components Over"]
    if due:
        print("DUE:")
        print(tabulate(make_status_table(due), headers=headers, tablefmt="simple"))
        print()
    if ok:
        print("OK:")
        print(tabulate(make_status_table(ok), headers=headers, tablefmt="simple"))
        print()
    return 0


def cmd_check(args, store, service):
    """Evaluate one vehicle, optionally publishing a maintenance alert."""
    if store.get_vehicle(args.vehicle_id) is None:
        print(f"Error: Unknown vehicle {args.vehicle_id}")
        return 1
    result = service.check_vehicle(args.vehicle_id, args.strategy, args.today)
    if result is None:
        print(f"Error: Unknown strategy '{args.strategy}'")
        return 1

    print(f"Vehicle:      {result.vehicle.name}")
    print(f"Strategy:     {result.strategy.display_name}")
    print(f"Last service: {format_date(result.last_service_date)}")
    print(f"Next due:     {format_date(result.next_due_date)}")
    if result.early_warning_date != result.next_due_date:
        print(f"Warn from:    {format_date(result.early_warning_date)}")
    print(f"Due:          {'yes' if result.is_due else 'no'}")
    for component in result.components_over:
        print(
            f"  {component.component_name}: {format_hours(component.usage_hours)}"
            f" / {format_hours(component.max_hours)} h"
        )

    if args.alert and result.is_due:
        if service.check_and_alert(args.vehicle_id, args.strategy, args.today):
            print("Alert published.")
        else:
            print("Error: Alert could not be saved")
            return 1
    return 0


def cmd_components(args, store, service):
    """List components at or over the usage threshold."""
    threshold = (
        args.threshold if args.threshold is not None else service.selector.policy.usage_threshold
    )
    components = service.tracker.components_needing_maintenance(threshold)
    print(f"Threshold: {threshold:.0%} of max hours")
    print(f"Components over threshold: {len(components)}")
    print()
    if not components:
        return 0
    headers = ["ID", "Vehicle", "Component", "Usage (h)", "Max (h)", "Used", "Status"]
    print(tabulate(make_component_table(components), headers=headers, tablefmt="simple"))
    return 0


def cmd_add_usage(args, store, service):
    """Add operating hours to a component."""
    component = store.get_component(args.component_id)
    if component is None:
        print(f"Error: Unknown component {args.component_id}")
        return 1

    print(f"Component: {component.component_name} (vehicle {component.vehicle_id})")
    print(f"Usage:     {format_hours(component.usage_hours)} h")
    print(f"Adding:    {format_hours(args.hours)} h")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    if not service.tracker.add_usage(args.component_id, args.hours):
        print("Error: Usage could not be recorded")
        return 1
    print("Usage recorded.")
    return 0


def cmd_reset_component(args, store, service):
    """Record a completed component replacement."""
    if not service.tracker.reset_component(args.component_id):
        print(f"Error: Could not reset component {args.component_id}")
        return 1
    print(f"Component {args.component_id} reset to 0 h.")
    return 0


def cmd_dwell(args, store, service):
    """Show station dwell intervals for a vehicle."""
    vehicle = store.get_vehicle(args.vehicle_id)
    if vehicle is None:
        print(f"Error: Unknown vehicle {args.vehicle_id}")
        return 1

    result = service.pair_station_events(args.vehicle_id)
    print(f"Vehicle: {vehicle.name}")
    print(f"Dwell intervals: {len(result.intervals)}")
    print(f"Unmatched events: {len(result.unmatched)}")
    print()

    if result.intervals:
        headers = ["Station", "Arrival", "Departure", "Dwell"]
        print(tabulate(make_dwell_table(result), headers=headers, tablefmt="simple"))
        print()
    if result.unmatched:
        print("UNMATCHED:")
        headers = ["Station", "Event", "Time", "Reason"]
        print(tabulate(make_unmatched_table(result), headers=headers, tablefmt="simple"))
        print()
    return 0


def cmd_alerts(args, store, service):
    """List alerts, newest first."""
    alerts = store.get_alerts(open_only=args.open)
    if not alerts:
        print("No alerts found.")
        return 0
    headers = ["ID", "Created", "Vehicle", "Type", "Status", "Message"]
    print(tabulate(make_alert_table(alerts), headers=headers, tablefmt="simple"))
    return 0


def cmd_resolve_alert(args, store, service):
    """Mark an alert as resolved."""
    try:
        resolved = store.resolve_alert(args.alert_id)
    except PersistenceError as e:
        print(f"Error: {e}")
        return 1
    if not resolved:
        print(f"Error: Unknown alert {args.alert_id}")
        return 1
    print(f"Alert {args.alert_id} resolved.")
    return 0


COMMANDS = {
    "status": cmd_status,
    "check": cmd_check,
    "components": cmd_components,
    "add-usage": cmd_add_usage,
    "reset-component": cmd_reset_component,
    "dwell": cmd_dwell,
    "alerts": cmd_alerts,
    "resolve-alert": cmd_resolve_alert,
}


# =============================================================================
# Main
# =============================================================================


def parse_date(value: str) -> date:
    """argparse type for YYYY-MM-DD dates."""
    try:
        return isoparse(value).date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fleet maintenance tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/fleet.yaml status
  %(prog)s data/fleet.yaml status --strategy predictive
  %(prog)s data/fleet.yaml check 1 --strategy usage --alert
  %(prog)s data/fleet.yaml components --threshold 0.9
  %(prog)s data/fleet.yaml add-usage 2 12.5
  %(prog)s data/fleet.yaml dwell 1
  %(prog)s data/fleet.yaml alerts --open
""",
    )
    parser.add_argument("data_file", type=Path, help="Path to fleet YAML file")
    parser.add_argument(
        "--policy",
        type=Path,
        default=os.environ.get("FLEET_POLICY"),
        help="Path to policy YAML file (default: $FLEET_POLICY or built-in policy)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    strategy_help = "Strategy: time, usage or predictive (default: policy default)"

    status_parser = subparsers.add_parser(
        "status", help="Show which vehicles are due for maintenance"
    )
    status_parser.add_argument("--strategy", type=str, help=strategy_help)
    status_parser.add_argument(
        "--today", type=parse_date, default=date.today(), help="Evaluate as of date (YYYY-MM-DD)"
    )

    check_parser = subparsers.add_parser("check", help="Evaluate one vehicle")
    check_parser.add_argument("vehicle_id", type=int, help="Vehicle ID")
    check_parser.add_argument("--strategy", type=str, help=strategy_help)
    check_parser.add_argument(
        "--today", type=parse_date, default=date.today(), help="Evaluate as of date (YYYY-MM-DD)"
    )
    check_parser.add_argument(
        "--alert", action="store_true", help="Publish a maintenance alert if due"
    )

    components_parser = subparsers.add_parser(
        "components", help="List components at or over their usage threshold"
    )
    components_parser.add_argument(
        "--threshold",
        type=float,
        help="Fraction of max hours (default: policy usage threshold)",
    )

    usage_parser = subparsers.add_parser("add-usage", help="Add hours to a component")
    usage_parser.add_argument("component_id", type=int, help="Component ID")
    usage_parser.add_argument("hours", type=float, help="Operating hours to add")
    usage_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be added without saving"
    )

    reset_parser = subparsers.add_parser(
        "reset-component", help="Record a completed component replacement"
    )
    reset_parser.add_argument("component_id", type=int, help="Component ID")

    dwell_parser = subparsers.add_parser("dwell", help="Show station dwell intervals")
    dwell_parser.add_argument("vehicle_id", type=int, help="Vehicle ID")

    alerts_parser = subparsers.add_parser("alerts", help="List alerts")
    alerts_parser.add_argument("--open", action="store_true", help="Only open alerts")

    resolve_parser = subparsers.add_parser("resolve-alert", help="Resolve an alert")
    resolve_parser.add_argument("alert_id", type=int, help="Alert ID")

    return parser


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    # Validate data file exists
    if not args.data_file.exists():
        print(f"Error: File not found: {args.data_file}")
        return 1

    try:
        settings = load_policy(args.policy)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    store = load_fleet(args.data_file)
    service = build_service(store, settings)
    logger.debug(f"Loaded {len(store.vehicles)} vehicles from {args.data_file}")

    return COMMANDS[args.command](args, store, service)


if __name__ == "__main__":
    sys.exit(main() or 0)
