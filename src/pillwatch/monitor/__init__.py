"""
Monitor Module
==============

Per-cell state machine and the session that orchestrates all cells.

Components:
    - CellMonitor: Baseline lifecycle and edge-triggered change detection
    - GridSession: Grid regeneration, baseline fan-out and polling loop
    - NotificationSink / NotificationBoard: User-facing alerts
    - SettingsStore / InMemorySettingsStore: Optional persistence
"""

from pillwatch.monitor.cell import DEFAULT_DIFF_THRESHOLD, CellMonitor
from pillwatch.monitor.notifications import (
    LoggingNotificationSink,
    Notification,
    NotificationBoard,
    NotificationSink,
    Severity,
)
from pillwatch.monitor.store import InMemorySettingsStore, SettingsStore
from pillwatch.monitor.session import DEFAULT_POLL_INTERVAL, GridSession

__all__ = [
    "DEFAULT_DIFF_THRESHOLD",
    "DEFAULT_POLL_INTERVAL",
    "CellMonitor",
    "GridSession",
    "Notification",
    "NotificationSink",
    "LoggingNotificationSink",
    "NotificationBoard",
    "Severity",
    "SettingsStore",
    "InMemorySettingsStore",
]
