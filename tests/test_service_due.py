#!/usr/bin/env python3
"""Tests for ServiceDue dataclass."""
from datetime import date

import pytest

from fleet import ServiceDue, TimeBased, UsageBased, Vehicle, VehicleComponent


@pytest.fixture
def bus():
    return Vehicle(1, "Diesel Bus", "Diesel", vehicle_number="BUS001")


class TestServiceDue:
    """Tests for ServiceDue dataclass."""

    def test_time_remaining(self, bus):
        """Days left until the time rule fires."""
        svc = ServiceDue(
            bus, TimeBased(90), False, as_of=date(2025, 10, 1), next_due_date=date(2025, 10, 11)
        )
        assert svc.time_remaining_days == 10

    def test_time_remaining_overdue(self, bus):
        """Overdue results are negative."""
        svc = ServiceDue(
            bus, TimeBased(90), True, as_of=date(2025, 10, 1), next_due_date=date(2025, 9, 26)
        )
        assert svc.time_remaining_days == -5

    def test_time_remaining_none_without_due_date(self, bus):
        svc = ServiceDue(bus, UsageBased(0.8), True, as_of=date(2025, 10, 1))
        assert svc.time_remaining_days is None

    def test_defaults(self, bus):
        svc = ServiceDue(bus, TimeBased(90), True, as_of=date(2025, 10, 1))
        assert svc.last_service_date is None
        assert svc.components_over == []

    def test_components_over(self, bus):
        engine = VehicleComponent(2, 1, "Engine", 8500, 10000)
        svc = ServiceDue(bus, UsageBased(0.8), True, date(2025, 10, 1), components_over=[engine])
        assert svc.components_over[0].component_name == "Engine"
