#!/usr/bin/env python3
"""Tests for Vehicle and MaintenanceRecord classes."""

from datetime import date

from fleet import MaintenanceRecord, MaintenanceStatus, Vehicle, VehicleStatus


class TestVehicle:
    """Tests for Vehicle."""

    def test_defaults(self):
        vehicle = Vehicle(1, "Diesel Bus", "Diesel")
        assert vehicle.status is VehicleStatus.AVAILABLE
        assert vehicle.max_passengers is None
        assert vehicle.vehicle_number is None
        assert vehicle.current_route is None

    def test_name_uses_vehicle_number(self):
        vehicle = Vehicle(1, "Diesel Bus", "Diesel", vehicle_number="BUS001")
        assert vehicle.name == "BUS001 (Diesel Bus)"

    def test_name_falls_back_to_id(self):
        assert Vehicle(7, "CNG Bus", "CNG").name == "#7 (CNG Bus)"


class TestMaintenanceRecord:
    """Tests for MaintenanceRecord."""

    def test_defaults(self):
        record = MaintenanceRecord(1, date(2025, 7, 15))
        assert record.status is MaintenanceStatus.COMPLETED
        assert record.description is None
        assert record.cost is None
        assert record.maintenance_id is None

    def test_all_fields(self):
        record = MaintenanceRecord(
            2, date(2025, 7, 20), "Pantograph check", 450.0, MaintenanceStatus.SCHEDULED, 3
        )
        assert record.vehicle_id == 2
        assert record.description == "Pantograph check"
        assert record.cost == 450.0
        assert record.status is MaintenanceStatus.SCHEDULED
        assert record.maintenance_id == 3
