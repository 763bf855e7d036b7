"""
Test Configuration
==================

Pytest fixtures and test configuration for PillWatch.
"""

import numpy as np
import pytest


FRAME_WIDTH = 280
FRAME_HEIGHT = 490


class MutableFrameSource:
    """Frame source whose frame can be swapped or broken mid-test."""

    def __init__(self, frame):
        self.frame = frame
        self.error = None
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.error is not None:
            raise self.error
        return self.frame


def solid_frame(width=FRAME_WIDTH, height=FRAME_HEIGHT, bgr=(128, 128, 128)):
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:, :] = bgr
    return frame


@pytest.fixture
def master_region():
    """Master region covering the whole default test frame."""
    from pillwatch.models.geometry import Rectangle

    return Rectangle(x=0, y=0, width=FRAME_WIDTH, height=FRAME_HEIGHT)


@pytest.fixture
def gray_frame():
    """Uniform gray BGR frame of 280x490."""
    return solid_frame()


@pytest.fixture
def frame_source(gray_frame):
    """Mutable source serving the gray frame."""
    return MutableFrameSource(gray_frame)


@pytest.fixture
def board():
    """Notification board with a manual clock."""
    from pillwatch.monitor.notifications import NotificationBoard

    clock = {"now": 0.0}
    board = NotificationBoard(default_duration_ms=5000, clock=lambda: clock["now"])
    board.clock = clock
    return board


@pytest.fixture
def sample_cell():
    """A single 4x4 cell at the origin."""
    from pillwatch.models.geometry import CellId, GridCell

    return GridCell(
        id=CellId("test-r0c0"),
        row=0,
        col=0,
        label="Mon-Morning",
        x=0,
        y=0,
        width=4,
        height=4,
    )
