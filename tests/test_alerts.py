#!/usr/bin/env python3
"""
Tests for alerts, notification observers and AlertDispatcher.

Covers:
1. Formatting - email body and SMS text
2. Observers - transport delivery and value equality
3. Subscriptions - set semantics, unsubscribe
4. Publish - persist before notify, failure isolation, timeouts
"""
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from fleet import (
    Alert,
    AlertDispatcher,
    AlertStatus,
    AlertType,
    EmailObserver,
    FleetStore,
    PersistenceError,
    SmsObserver,
)
from fleet.alerts import format_email_body, format_sms


class RecordingObserver:
    """Observer that records every alert it receives."""

    channel = "Test"

    def __init__(self):
        self.received = []

    def notify(self, alert):
        self.received.append(alert)


class FailingObserver:
    channel = "Broken"

    def notify(self, alert):
        raise RuntimeError("mail server down")


class BlockingObserver:
    """Observer that hangs until released."""

    channel = "Slow"

    def __init__(self):
        self.release = threading.Event()

    def notify(self, alert):
        self.release.wait(10)


@pytest.fixture
def alert():
    return Alert(
        alert_type=AlertType.MAINTENANCE,
        message="Engine approaching maximum service hours",
        vehicle_id=1,
        created_at=datetime(2025, 8, 6, 9, 0),
    )


@pytest.fixture
def store():
    return FleetStore()


@pytest.fixture
def dispatcher(store):
    return AlertDispatcher(store, timeout=2.0)


# =============================================================================
# Formatting
# =============================================================================


class TestFormatting:
    """Tests for alert text formatting."""

    def test_subject_vehicle(self, alert):
        assert alert.subject == "[Maintenance] vehicle 1"

    def test_subject_fleet_wide(self):
        alert = Alert(AlertType.FUEL_CONSUMPTION, "Fuel prices updated")
        assert alert.subject == "[Fuel Consumption] fleet"

    def test_email_body(self, alert):
        assert format_email_body(alert) == (
            "Vehicle: 1\n"
            "Alert Type: Maintenance\n"
            "Message: Engine approaching maximum service hours\n"
            "Status: Open\n"
            "Created: 2025-08-06T09:00:00 UTC"
        )

    def test_email_body_without_vehicle(self):
        body = format_email_body(Alert(AlertType.GPS, "Feed lost"))
        assert body.splitlines()[0] == "Alert Type: GPS"
        assert "Created" not in body

    def test_sms_short(self, alert):
        assert format_sms(alert) == (
            "[Maintenance] vehicle 1: Engine approaching maximum service hours"
        )

    def test_sms_truncated(self):
        text = format_sms(Alert(AlertType.GPS, "x" * 300, vehicle_id=2))
        assert len(text) == 160
        assert text.endswith("...")

    def test_sms_custom_length(self, alert):
        assert len(format_sms(alert, max_len=20)) == 20


# =============================================================================
# Observers
# =============================================================================


class TestObservers:
    """Tests for EmailObserver and SmsObserver."""

    def test_email_uses_transport(self, alert):
        transport = MagicMock()
        EmailObserver("ops@example.com", transport).notify(alert)
        transport.assert_called_once_with(
            "ops@example.com", "[Maintenance] vehicle 1", format_email_body(alert)
        )

    def test_sms_uses_transport(self, alert):
        transport = MagicMock()
        SmsObserver("+15555550100", transport).notify(alert)
        transport.assert_called_once_with(
            "+15555550100", "[Maintenance] vehicle 1", format_sms(alert)
        )

    def test_without_transport_logs(self, alert, caplog):
        with caplog.at_level("INFO", logger="fleet.alerts"):
            EmailObserver("ops@example.com").notify(alert)
            SmsObserver("+15555550100").notify(alert)
        assert "EMAIL ALERT to ops@example.com" in caplog.text
        assert "SMS ALERT to +15555550100" in caplog.text

    def test_equal_by_address(self):
        assert EmailObserver("a@example.com") == EmailObserver("a@example.com", MagicMock())
        assert EmailObserver("a@example.com") != EmailObserver("b@example.com")

    def test_channels(self):
        assert EmailObserver("a@example.com").channel == "Email"
        assert SmsObserver("+1").channel == "SMS"


# =============================================================================
# Subscriptions
# =============================================================================


class TestSubscriptions:
    """Tests for subscribe/unsubscribe."""

    def test_subscribe(self, dispatcher):
        observer = RecordingObserver()
        assert dispatcher.subscribe(observer) is True
        assert dispatcher.subscribers == [observer]

    def test_subscribe_twice(self, dispatcher, alert):
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        assert dispatcher.subscribe(observer) is False
        dispatcher.publish(alert)
        assert len(observer.received) == 1

    def test_equal_observers_deduplicated(self, dispatcher):
        dispatcher.subscribe(EmailObserver("ops@example.com"))
        assert dispatcher.subscribe(EmailObserver("ops@example.com")) is False
        assert len(dispatcher.subscribers) == 1

    def test_unsubscribe(self, dispatcher, alert):
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        assert dispatcher.unsubscribe(observer) is True
        dispatcher.publish(alert)
        assert observer.received == []

    def test_unsubscribe_unknown(self, dispatcher):
        assert dispatcher.unsubscribe(RecordingObserver()) is False

    def test_subscribers_is_snapshot(self, dispatcher):
        dispatcher.subscribe(RecordingObserver())
        dispatcher.subscribers.clear()
        assert len(dispatcher.subscribers) == 1


# =============================================================================
# Publish
# =============================================================================


class TestPublish:
    """Tests for AlertDispatcher.publish and create_alert."""

    def test_persists_then_notifies(self, dispatcher, store, alert):
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        assert dispatcher.publish(alert) is True
        assert len(store.alerts) == 1
        assert store.alerts[0].alert_id == 1
        assert observer.received == [replace(alert, alert_id=1)]

    def test_no_subscribers(self, dispatcher, store, alert):
        assert dispatcher.publish(alert) is True
        assert len(store.alerts) == 1

    def test_persist_error_notifies_nobody(self, alert):
        store = MagicMock()
        store.persist_alert.side_effect = PersistenceError("database unavailable")
        dispatcher = AlertDispatcher(store)
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        assert dispatcher.publish(alert) is False
        assert observer.received == []

    def test_persist_rejected_notifies_nobody(self, alert):
        store = MagicMock()
        store.persist_alert.return_value = False
        dispatcher = AlertDispatcher(store)
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        assert dispatcher.publish(alert) is False
        assert observer.received == []

    def test_failing_observer_isolated(self, dispatcher, alert, caplog):
        """One broken channel does not stop the others."""
        first, second = RecordingObserver(), RecordingObserver()
        dispatcher.subscribe(first)
        dispatcher.subscribe(FailingObserver())
        dispatcher.subscribe(second)
        assert dispatcher.publish(alert) is True
        assert first.received == second.received == [replace(alert, alert_id=1)]
        assert "mail server down" in caplog.text

    def test_hung_observer_bounded_by_timeout(self, store, alert, caplog):
        dispatcher = AlertDispatcher(store, timeout=0.2)
        slow, fast = BlockingObserver(), RecordingObserver()
        dispatcher.subscribe(slow)
        dispatcher.subscribe(fast)
        try:
            assert dispatcher.publish(alert) is True
        finally:
            slow.release.set()
        assert [a.message for a in fast.received] == [alert.message]
        assert "timed out" in caplog.text

    def test_fills_created_at(self, dispatcher, store):
        dispatcher.publish(Alert(AlertType.GPS, "Feed lost", vehicle_id=2))
        assert store.alerts[0].created_at is not None

    def test_keeps_created_at(self, dispatcher, store, alert):
        dispatcher.publish(alert)
        assert store.alerts[0].created_at == datetime(2025, 8, 6, 9, 0)

    def test_create_alert(self, dispatcher, store):
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        assert dispatcher.create_alert(3, AlertType.MAINTENANCE, "Due") is True
        received = observer.received[0]
        assert received.vehicle_id == 3
        assert received.status is AlertStatus.OPEN
        assert received.created_at is not None
        assert store.alerts[0].message == "Due"

    def test_concurrent_subscribe_during_publish(self, dispatcher, alert):
        """Subscribing while publishing never raises."""
        observers = [RecordingObserver() for _ in range(20)]
        threads = [threading.Thread(target=dispatcher.subscribe, args=(o,)) for o in observers]
        for t in threads:
            t.start()
        for _ in range(5):
            assert dispatcher.publish(alert) is True
        for t in threads:
            t.join()
        assert len(dispatcher.subscribers) == 20


class TestStoredAlertDelivery:
    """Observers receive the alert as stored, with its assigned id."""

    def test_observers_see_assigned_id(self, dispatcher, store, alert):
        store.persist_alert(Alert(AlertType.GPS, "Earlier alert"))
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        dispatcher.publish(alert)
        assert observer.received[0].alert_id == 2

    def test_email_and_sms_cite_id(self, dispatcher, alert):
        email, sms = MagicMock(), MagicMock()
        dispatcher.subscribe(EmailObserver("ops@example.com", email))
        dispatcher.subscribe(SmsObserver("+15555550100", sms))
        dispatcher.publish(alert)
        assert email.call_args[0][2].startswith("Alert ID: 1\nVehicle: 1\n")
        assert sms.call_args[0][2].startswith("#1 [Maintenance] vehicle 1:")

    def test_store_returning_stored_copy(self, alert):
        store = MagicMock()
        store.persist_alert.return_value = replace(alert, alert_id=42)
        dispatcher = AlertDispatcher(store)
        observer = RecordingObserver()
        dispatcher.subscribe(observer)
        assert dispatcher.publish(alert) is True
        assert observer.received[0].alert_id == 42


class TestNotificationThreads:
    """Tests for the threads observers run on."""

    def test_observers_run_on_daemon_threads(self, dispatcher, alert):
        """Abandoned observers cannot keep the process alive at exit."""
        seen = []

        class ThreadRecorder:
            channel = "Thread"

            def notify(self, alert):
                seen.append(threading.current_thread().daemon)

        dispatcher.subscribe(ThreadRecorder())
        dispatcher.publish(alert)
        assert seen == [True]

    def test_timed_out_thread_is_daemon(self, store, alert):
        dispatcher = AlertDispatcher(store, timeout=0.1)
        slow = BlockingObserver()
        dispatcher.subscribe(slow)
        try:
            dispatcher.publish(alert)
            running = [t for t in threading.enumerate() if t.name.startswith("alert-notify-")]
            assert running
            assert all(t.daemon for t in running)
        finally:
            slow.release.set()


class TestAlertTimestamps:
    """Alert creation times are naive UTC."""

    def test_create_alert_stamps_naive_utc(self, dispatcher, store):
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        dispatcher.create_alert(1, AlertType.MAINTENANCE, "Due")
        created = store.alerts[0].created_at
        assert created.tzinfo is None
        assert before - timedelta(seconds=1) <= created <= before + timedelta(minutes=1)

    def test_aware_created_at_normalized(self, dispatcher, store):
        aware = datetime(2025, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        dispatcher.publish(Alert(AlertType.GPS, "Feed lost", created_at=aware))
        assert store.alerts[0].created_at == datetime(2025, 1, 1, 10, 0)

    def test_listing_mixes_loaded_and_new_alerts(self, dispatcher, store):
        """A stored offset-aware alert and a fresh one sort together."""
        store.alerts.append(
            Alert(
                AlertType.GPS,
                "Old",
                created_at=datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc),
                alert_id=1,
            )
        )
        dispatcher.create_alert(1, AlertType.MAINTENANCE, "New")
        assert [a.message for a in store.get_alerts()] == ["New", "Old"]
