"""Alerts and their publish/subscribe fan-out to notification channels."""

import logging
import threading
from concurrent.futures import Future, wait
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, TYPE_CHECKING

from .calculations import utc_now
from .errors import PersistenceError
from .status import AlertStatus, AlertType

if TYPE_CHECKING:
    from .ports import AlertStore

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = 160


@dataclass(frozen=True)
class Alert:
    """An alert record. vehicle_id is None for system-wide alerts."""

    alert_type: AlertType
    message: str
    vehicle_id: Optional[int] = None
    status: AlertStatus = AlertStatus.OPEN
    created_at: Optional[datetime] = None
    alert_id: Optional[int] = None

    @property
    def subject(self) -> str:
        target = f"vehicle {self.vehicle_id}" if self.vehicle_id is not None else "fleet"
        return f"[{self.alert_type.value}] {target}"


class NotificationObserver(Protocol):
    """A notification channel that receives published alerts."""

    channel: str

    def notify(self, alert: Alert) -> None:
        ...


# (recipient, subject, body) -> None; raises on delivery failure
Transport = Callable[[str, str, str], None]


def format_email_body(alert: Alert) -> str:
    lines = [
        f"Alert Type: {alert.alert_type.value}",
        f"Message: {alert.message}",
        f"Status: {alert.status.value}",
    ]
    if alert.vehicle_id is not None:
        lines.insert(0, f"Vehicle: {alert.vehicle_id}")
    if alert.alert_id is not None:
        lines.insert(0, f"Alert ID: {alert.alert_id}")
    if alert.created_at is not None:
        lines.append(f"Created: {alert.created_at.isoformat(timespec='seconds')} UTC")
    return "\n".join(lines)


def format_sms(alert: Alert, max_len: int = SMS_MAX_LENGTH) -> str:
    """One-line alert text, truncated with ellipsis to fit an SMS."""
    text = f"{alert.subject}: {alert.message}"
    if alert.alert_id is not None:
        text = f"#{alert.alert_id} {text}"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


@dataclass(frozen=True)
class EmailObserver:
    """Emails alerts to one address. Equal addresses are the same subscriber."""

    address: str
    transport: Optional[Transport] = field(default=None, compare=False)

    channel = "Email"

    def notify(self, alert: Alert) -> None:
        body = format_email_body(alert)
        if self.transport is None:
            logger.info(f"EMAIL ALERT to {self.address}: {alert.subject}\n{body}")
            return
        self.transport(self.address, alert.subject, body)


@dataclass(frozen=True)
class SmsObserver:
    """Texts alerts to one phone number."""

    phone_number: str
    transport: Optional[Transport] = field(default=None, compare=False)

    channel = "SMS"

    def notify(self, alert: Alert) -> None:
        text = format_sms(alert)
        if self.transport is None:
            logger.info(f"SMS ALERT to {self.phone_number}: {text}")
            return
        self.transport(self.phone_number, alert.subject, text)


def _channel(observer) -> str:
    return getattr(observer, "channel", type(observer).__name__)


class AlertDispatcher:
    """
    Persists alerts and fans them out to subscribed observers.

    - An alert is only delivered after the store accepted it
    - Subscribers are a set: subscribing twice still means one delivery
    - Each publish works on a snapshot of the subscribers taken at call time
    - Observers run on worker threads; a failing or hung observer is logged
      and never fails the publish or blocks it past the timeout
    """

    def __init__(self, store: "AlertStore", timeout: float = 5.0):
        self.store = store
        self.timeout = timeout
        # dict keys as an insertion-ordered set
        self._subscribers: Dict[NotificationObserver, None] = {}
        self._lock = threading.Lock()

    @property
    def subscribers(self) -> List[NotificationObserver]:
        with self._lock:
            return list(self._subscribers)

    def subscribe(self, observer: NotificationObserver) -> bool:
        """Register an observer. Returns False if it was already subscribed."""
        with self._lock:
            if observer in self._subscribers:
                return False
            self._subscribers[observer] = None
        logger.debug(f"Subscribed {_channel(observer)} observer {observer!r}")
        return True

    def unsubscribe(self, observer: NotificationObserver) -> bool:
        """Remove an observer. Returns False if it was not subscribed."""
        with self._lock:
            if observer not in self._subscribers:
                return False
            del self._subscribers[observer]
        logger.debug(f"Unsubscribed {_channel(observer)} observer {observer!r}")
        return True

    def create_alert(
        self, vehicle_id: Optional[int], alert_type: AlertType, message: str
    ) -> bool:
        """Build an open alert stamped now and publish it."""
        alert = Alert(
            alert_type=alert_type,
            message=message,
            vehicle_id=vehicle_id,
            status=AlertStatus.OPEN,
            created_at=utc_now(),
        )
        return self.publish(alert)

    def publish(self, alert: Alert) -> bool:
        """
        Persist an alert, then notify every current subscriber.

        Observers receive the stored alert, so they see the id the store
        assigned. Returns False, with no notifications sent, when persistence
        fails. Observer failures are logged and do not change the result.
        """
        if alert.created_at is None:
            alert = replace(alert, created_at=utc_now())

        try:
            stored = self.store.persist_alert(alert)
        except PersistenceError as e:
            logger.error(f"Failed to persist alert '{alert.subject}': {e}")
            return False
        if not stored:
            logger.error(f"Alert store rejected alert '{alert.subject}'")
            return False

        delivered = self._notify_all(stored)
        logger.info(f"Published alert '{stored.subject}' to {delivered} observer(s)")
        return True

    def _notify_all(self, alert: Alert) -> int:
        """
        Deliver to a snapshot of subscribers. Returns the number of successful deliveries.

        Each observer runs on its own daemon thread. Observers still running
        after the timeout are abandoned: they do not hold up this call, and
        they do not keep the process alive at exit.
        """
        observers = self.subscribers
        if not observers:
            return 0

        futures: Dict[Future, NotificationObserver] = {}
        for observer in observers:
            future: Future = Future()
            futures[future] = observer
            threading.Thread(
                target=_deliver,
                args=(observer, alert, future),
                name=f"alert-notify-{_channel(observer)}",
                daemon=True,
            ).start()
        done, not_done = wait(futures, timeout=self.timeout)

        delivered = 0
        for future in done:
            observer = futures[future]
            error = future.exception()
            if error is None:
                delivered += 1
                continue
            logger.error(
                f"{_channel(observer)} observer {observer!r} failed: {error}",
                exc_info=error,
            )
        for future in not_done:
            observer = futures[future]
            logger.warning(
                f"{_channel(observer)} observer {observer!r} timed out "
                f"after {self.timeout}s"
            )
        return delivered


def _deliver(observer: NotificationObserver, alert: Alert, future: Future) -> None:
    """Run one notification and report its outcome through future."""
    try:
        observer.notify(alert)
    except Exception as e:
        future.set_exception(e)
    else:
        future.set_result(None)
