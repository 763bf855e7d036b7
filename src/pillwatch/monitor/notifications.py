"""
Notifications
=============

Sinks for user-facing alerts.

The engine decides WHEN to notify and with what text and severity.
Display and expiry policy belong to the sink.

Sinks:
    - NotificationSink: Protocol
    - LoggingNotificationSink: Writes notifications to the log
    - NotificationBoard: Holds the latest notification until its display
      duration expires, for polling clients
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol


logger = logging.getLogger(__name__)


DEFAULT_DURATION_MS = 5000


class Severity(str, Enum):
    """Notification severity levels."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class Notification:
    """
    One user-facing notification.

    Attributes:
        message: Text to display
        severity: Severity level
        duration_ms: How long the sink should display it
        created_at: Monotonic time of creation (seconds)
    """

    message: str
    severity: Severity
    duration_ms: int
    created_at: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.duration_ms / 1000.0

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "severity": self.severity.value,
            "duration_ms": self.duration_ms,
        }


class NotificationSink(Protocol):
    """Protocol for notification consumers."""

    def notify(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        duration_ms: int = DEFAULT_DURATION_MS,
    ) -> None:
        ...


class LoggingNotificationSink:
    """Sink that only logs."""

    def notify(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        duration_ms: int = DEFAULT_DURATION_MS,
    ) -> None:
        logger.log(_LOG_LEVELS[Severity(severity)], f"[{Severity(severity).value}] {message}")


class NotificationBoard:
    """
    Latest-notification holder with timed expiry.

    A new notification replaces the previous one and restarts the display
    timer. Every notification is also logged and kept in a bounded history.

    Example:
        board = NotificationBoard()
        board.notify("Baseline set. Monitoring started.", Severity.SUCCESS)
        current = board.current()
    """

    def __init__(
        self,
        default_duration_ms: int = DEFAULT_DURATION_MS,
        history_size: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_duration_ms = default_duration_ms
        self.history_size = history_size
        self._clock = clock
        self._current: Optional[Notification] = None
        self._history: List[Notification] = []
        self._log_sink = LoggingNotificationSink()

    def notify(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        duration_ms: Optional[int] = None,
    ) -> None:
        notification = Notification(
            message=message,
            severity=Severity(severity),
            duration_ms=duration_ms if duration_ms is not None else self.default_duration_ms,
            created_at=self._clock(),
        )
        self._current = notification
        self._history.append(notification)
        if len(self._history) > self.history_size:
            del self._history[0]

        self._log_sink.notify(message, notification.severity, notification.duration_ms)

    def current(self) -> Optional[Notification]:
        """The notification on display, or None once it has expired."""
        if self._current is not None and self._current.expired(self._clock()):
            self._current = None
        return self._current

    @property
    def history(self) -> List[Notification]:
        return list(self._history)
