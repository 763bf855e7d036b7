"""
PillWatch
=========

Camera-based pill calendar monitor.

The user marks a single master region over a weekly pill organizer. The
region is split into a grid of pockets (one per day and time slot), a
baseline snapshot is captured for each pocket, and live frames are compared
against those baselines on a fixed polling interval. Pockets whose appearance
changes beyond a threshold are flagged as "changed", suggesting the
medication was taken.

Components:
    - geometry: Master region to grid cell partitioning
    - capture: Frame sources and mirrored region capture
    - codec: Lossless PNG encoding of baseline images
    - compare: Per-pixel difference metric
    - monitor: Per-cell state machine and the grid session orchestrator

Example:
    from pillwatch.capture import StillFrameSource
    from pillwatch.monitor import GridSession, LoggingNotificationSink
    from pillwatch.models import Rectangle

    session = GridSession(source, notifier=LoggingNotificationSink())
    session.set_master_region(Rectangle(x=0, y=0, width=280, height=490))
    await session.capture_all_baselines()
"""

__version__ = "0.1.0"
__author__ = "PillWatch Project"

__all__ = [
    "__version__",
]
