"""
Cell Monitor
============

Per-cell baseline lifecycle and change-detection state machine.

Transitions:
    mark_pending:          any → NO_BASELINE (decode in flight)
    apply_decoded(image):  → IDLE
    apply_decoded(None):   → BASELINE_ERROR
    clear_baseline:        any → NO_BASELINE
    apply_capture_failure: → CAPTURE_ERROR
    apply_diff(-1):        → COMPARISON_ERROR
    apply_diff(d):         → CHANGED if d > threshold else IDLE

Edge Triggering:
    apply_diff returns True only on the rising edge into CHANGED. Staying
    CHANGED on later cycles and falling back to IDLE are both silent.
    An error cycle breaks the latch, so the next CHANGED is a new edge.
    The latch belongs to the polling loop and is reset via reset_edge()
    whenever the loop (re)starts.
"""

import logging
from typing import Optional

from pillwatch.capture.region import capture_region
from pillwatch.capture.source import FrameSource
from pillwatch.compare.metrics import DEFAULT_TOLERANCE, diff_percent
from pillwatch.errors import CaptureFailure
from pillwatch.models.geometry import GridCell
from pillwatch.models.image import RawImage
from pillwatch.models.output import CellView
from pillwatch.models.status import CellStatus, CycleOutcome


logger = logging.getLogger(__name__)


DEFAULT_DIFF_THRESHOLD = 10.0
PENDING_TEXT = "Waiting for baseline processing..."


class CellMonitor:
    """
    State machine for one grid cell.

    Attributes:
        cell: The monitored cell
        diff_threshold: Percentage above which the cell counts as CHANGED
        status: Current status
        diff: Last successful difference percentage
        baseline: Decoded baseline image, if any
        pending: True while a baseline decode is in flight
    """

    def __init__(
        self,
        cell: GridCell,
        diff_threshold: float = DEFAULT_DIFF_THRESHOLD,
    ) -> None:
        self.cell = cell
        self.diff_threshold = diff_threshold

        self.status: CellStatus = CellStatus.NO_BASELINE
        self.diff: Optional[float] = None
        self.baseline: Optional[RawImage] = None
        self.pending: bool = False

        self._change_latched: bool = False

    @property
    def has_baseline(self) -> bool:
        """True iff a decoded baseline is available for comparison."""
        return self.baseline is not None

    def mark_pending(self) -> None:
        """A new baseline string was set; its decode has not finished."""
        self.baseline = None
        self.diff = None
        self.pending = True
        self.status = CellStatus.NO_BASELINE
        self._change_latched = False

    def apply_decoded(self, image: Optional[RawImage]) -> CellStatus:
        """
        Install the result of a baseline decode.

        A decoded image whose size differs from the cell's capture size is
        rejected, since every later comparison would fail.
        """
        self.pending = False
        self.diff = None
        self._change_latched = False

        if image is None:
            self.baseline = None
            self.status = CellStatus.BASELINE_ERROR
            return self.status

        expected = self.cell.pixel_size()
        if image.size != expected:
            logger.warning(
                f"Baseline for {self.cell.label} is {image.width}x{image.height}, "
                f"expected {expected[0]}x{expected[1]}"
            )
            self.baseline = None
            self.status = CellStatus.BASELINE_ERROR
            return self.status

        self.baseline = image
        self.status = CellStatus.IDLE
        return self.status

    def clear_baseline(self) -> None:
        self.baseline = None
        self.diff = None
        self.pending = False
        self.status = CellStatus.NO_BASELINE
        self._change_latched = False

    def reset_edge(self) -> None:
        self._change_latched = False

    def apply_capture_failure(self) -> CellStatus:
        self.diff = None
        self.status = CellStatus.CAPTURE_ERROR
        self._change_latched = False
        return self.status

    def apply_diff(self, diff: float) -> bool:
        """
        Record one comparison result.

        Args:
            diff: Difference percentage, or -1 for a failed comparison

        Returns:
            True exactly on the rising edge into CHANGED
        """
        if diff < 0:
            self.diff = None
            self.status = CellStatus.COMPARISON_ERROR
            self._change_latched = False
            return False

        self.diff = diff

        if diff > self.diff_threshold:
            rising = not self._change_latched
            self.status = CellStatus.CHANGED
            self._change_latched = True
            return rising

        self.status = CellStatus.IDLE
        self._change_latched = False
        return False

    def evaluate(
        self,
        source: FrameSource,
        tolerance: int = DEFAULT_TOLERANCE,
    ) -> CycleOutcome:
        """
        Run one polling cycle: capture, compare, update status.

        Only meaningful while a decoded baseline exists.

        Raises:
            FrameSourceError: Propagated from the source untouched
        """
        if self.baseline is None:
            return CycleOutcome(self.cell.id, self.status, self.diff)

        try:
            current = capture_region(source, self.cell)
        except CaptureFailure as e:
            logger.debug(f"Capture failed for {self.cell.label}: {e}")
            self.apply_capture_failure()
            return CycleOutcome(self.cell.id, self.status, None)

        rising = self.apply_diff(diff_percent(self.baseline, current, tolerance))
        return CycleOutcome(self.cell.id, self.status, self.diff, rising_edge=rising)

    def view(self, has_encoded: bool) -> CellView:
        cell = self.cell
        return CellView(
            id=cell.id,
            row=cell.row,
            col=cell.col,
            label=cell.label,
            x=cell.x,
            y=cell.y,
            width=cell.width,
            height=cell.height,
            status=self.status,
            status_text=PENDING_TEXT if self.pending else self.status.describe(self.diff),
            diff=self.diff,
            has_baseline=has_encoded,
        )

    def __repr__(self) -> str:
        return f"CellMonitor({self.cell.id}, {self.cell.label}, {self.status.value})"
