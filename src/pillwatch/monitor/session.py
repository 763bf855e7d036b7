"""
Grid Session
============

Orchestrates every cell under one master region.

Responsibilities:
    - Regenerate cells when the master region changes (discarding all
      per-cell state tied to the old ids)
    - Capture all baselines from one frame and apply them atomically
    - Fan out baseline decodes and apply their results together
    - Drive the fixed-interval polling loop
    - Publish a read-only snapshot and user-facing notifications

Concurrency Model:
    Everything runs on one asyncio event loop. Three generation counters
    guard against stale continuations:

        grid generation      bumped on every regeneration
        baseline generation  bumped whenever baselines are set or cleared
        loop generation      bumped whenever the polling loop starts/stops

    Every async continuation captures the generation it was started under
    and discards its result if the counter has moved on. Invalidation is
    always synchronous, so a slow decode of an old baseline can never
    overwrite a newer cleared or replaced state.

Example:
    session = GridSession(camera, notifier=NotificationBoard())
    session.set_master_region(Rectangle(x=40, y=20, width=280, height=490))
    await session.capture_all_baselines()
    await session.wait_until_decoded()
    print(session.snapshot().monitoring)
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from pillwatch.capture.region import capture_region
from pillwatch.capture.source import FrameSource, StillFrameSource
from pillwatch.codec.png import decode_image, encode_image
from pillwatch.compare.metrics import DEFAULT_TOLERANCE
from pillwatch.errors import CaptureFailure, FrameSourceError
from pillwatch.geometry.grid import (
    DEFAULT_COLS,
    DEFAULT_DAY_LABELS,
    DEFAULT_ROWS,
    DEFAULT_SLOT_LABELS,
    partition_grid,
)
from pillwatch.models.geometry import CellId, GridCell, Rectangle
from pillwatch.models.image import EncodedImage, RawImage
from pillwatch.models.output import GridSnapshot
from pillwatch.models.status import CellStatus, CycleOutcome
from pillwatch.monitor.cell import DEFAULT_DIFF_THRESHOLD, CellMonitor
from pillwatch.monitor.notifications import (
    DEFAULT_DURATION_MS,
    LoggingNotificationSink,
    NotificationSink,
    Severity,
)
from pillwatch.monitor.store import SettingsStore


logger = logging.getLogger(__name__)


DEFAULT_POLL_INTERVAL = 1.0

MSG_BASELINE_SET = "Baseline set. Monitoring started."
MSG_BASELINE_FAILED = "Failed to process baseline image."
MSG_CAPTURE_FAILED = "Failed to capture baseline image."
MSG_BASELINE_CLEARED = "Baseline cleared. Monitoring stopped."
MSG_ALL_CLEARED = "All settings cleared."
MSG_NOT_READY = "Please select a region first and ensure the camera is active."


Decoder = Callable[[EncodedImage], Awaitable[Optional[RawImage]]]
Encoder = Callable[[RawImage], EncodedImage]


class GridSession:
    """
    Change-detection session for one master region.

    Attributes:
        source: Live frame source
        notifier: Sink for user-facing notifications
        store: Optional settings persistence
        rows, cols: Grid dimensions
        tolerance: Per-channel tolerance for the difference metric
        diff_threshold: Percentage above which a cell is CHANGED
        poll_interval: Seconds between polling cycles
    """

    def __init__(
        self,
        source: FrameSource,
        notifier: Optional[NotificationSink] = None,
        store: Optional[SettingsStore] = None,
        rows: int = DEFAULT_ROWS,
        cols: int = DEFAULT_COLS,
        day_labels: Sequence[str] = DEFAULT_DAY_LABELS,
        slot_labels: Sequence[str] = DEFAULT_SLOT_LABELS,
        tolerance: int = DEFAULT_TOLERANCE,
        diff_threshold: float = DEFAULT_DIFF_THRESHOLD,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        notification_duration_ms: int = DEFAULT_DURATION_MS,
        decoder: Decoder = decode_image,
        encoder: Encoder = encode_image,
    ) -> None:
        if not 0 <= tolerance <= 255:
            raise ValueError("tolerance must be in [0, 255]")
        if not 0 <= diff_threshold <= 100:
            raise ValueError("diff_threshold must be in [0, 100]")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.source = source
        self.notifier = notifier if notifier is not None else LoggingNotificationSink()
        self.store = store
        self.rows = rows
        self.cols = cols
        self.day_labels = tuple(day_labels)
        self.slot_labels = tuple(slot_labels)
        self.tolerance = tolerance
        self.diff_threshold = diff_threshold
        self.poll_interval = poll_interval
        self.notification_duration_ms = notification_duration_ms

        self._decoder = decoder
        self._encoder = encoder

        self._master_region: Optional[Rectangle] = None
        self._cells: List[GridCell] = []
        self._monitors: Dict[CellId, CellMonitor] = {}
        self._encoded: Dict[CellId, Optional[EncodedImage]] = {}

        self._grid_generation: int = 0
        self._baseline_generation: int = 0
        self._loop_generation: int = 0

        self._decode_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

        logger.info(
            f"GridSession initialized: grid={rows}x{cols}, tolerance={tolerance}, "
            f"threshold={diff_threshold}%, interval={poll_interval}s"
        )

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def master_region(self) -> Optional[Rectangle]:
        return self._master_region

    @property
    def cells(self) -> List[GridCell]:
        return list(self._cells)

    @property
    def monitoring(self) -> bool:
        """True iff at least one cell has a decoded baseline."""
        return any(m.has_baseline for m in self._monitors.values())

    @property
    def polling(self) -> bool:
        """True while the polling task is alive."""
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def baselines_pending(self) -> bool:
        return self._decode_task is not None and not self._decode_task.done()

    @property
    def baselines(self) -> Dict[CellId, Optional[EncodedImage]]:
        return dict(self._encoded)

    @property
    def statuses(self) -> Dict[CellId, CellStatus]:
        return {cid: m.status for cid, m in self._monitors.items()}

    @property
    def diffs(self) -> Dict[CellId, Optional[float]]:
        return {cid: m.diff for cid, m in self._monitors.items()}

    def monitor(self, cell_id: CellId) -> CellMonitor:
        return self._monitors[cell_id]

    def decoded_baseline(self, cell_id: CellId) -> Optional[RawImage]:
        monitor = self._monitors.get(cell_id)
        return monitor.baseline if monitor is not None else None

    def snapshot(self) -> GridSnapshot:
        return GridSnapshot(
            master_region=self._master_region,
            monitoring=self.monitoring,
            baselines_pending=self.baselines_pending,
            cells=[
                self._monitors[cell.id].view(bool(self._encoded.get(cell.id)))
                for cell in self._cells
            ],
        )

    # =========================================================================
    # Master region
    # =========================================================================

    def set_master_region(self, region) -> None:
        """
        Set or clear the master region.

        A new region regenerates every cell with fresh ids and resets all
        baselines and statuses. Setting the region that is already active
        leaves the grid untouched.

        Raises:
            InvalidRegion: If the region has non-positive dimensions
            ConfigurationError: If the grid cannot be labeled
        """
        rect = Rectangle.from_data(region) if region is not None else None
        if rect is not None and rect == self._master_region and self._cells:
            logger.debug("Master region unchanged, keeping current grid")
            return

        self._apply_region(rect, persist=True)

    def _apply_region(self, rect: Optional[Rectangle], persist: bool) -> None:
        cells: List[GridCell] = []
        if rect is not None:
            # Raises before any state is touched
            cells = partition_grid(
                rect,
                self.rows,
                self.cols,
                self.day_labels,
                self.slot_labels,
                id_prefix=f"g{self._grid_generation + 1}",
            )

        self._grid_generation += 1
        self._invalidate_baselines()

        self._master_region = rect
        self._cells = cells
        self._monitors = {cell.id: CellMonitor(cell, self.diff_threshold) for cell in cells}
        self._encoded = {}

        if persist and self.store is not None:
            self.store.save_region(rect)
            self.store.save_baselines({})

        if rect is None:
            logger.info("Master region cleared")
        else:
            logger.info(
                f"Master region set to ({rect.x:.0f}, {rect.y:.0f}, "
                f"{rect.width:.0f}x{rect.height:.0f}): {len(cells)} cells"
            )

    # =========================================================================
    # Baselines
    # =========================================================================

    async def capture_all_baselines(self) -> int:
        """
        Capture and encode a baseline for every cell from one frame.

        Per-cell failures are recorded as None and do not block siblings.
        The resulting map replaces all baselines in one step.

        Returns:
            Number of cells captured successfully

        Raises:
            CaptureFailure: If there are no cells or no frame is available
        """
        if not self._cells:
            self.notify(MSG_NOT_READY, Severity.ERROR)
            raise CaptureFailure("No grid cells; set a master region first")

        generations = (self._grid_generation, self._baseline_generation)

        try:
            frame = await asyncio.to_thread(self.source.read)
        except FrameSourceError as e:
            self.handle_source_error(e)
            raise CaptureFailure(f"Frame source failed: {e}") from e

        if generations != (self._grid_generation, self._baseline_generation):
            logger.info("Grid or baselines changed while reading frame, discarding capture")
            return 0

        if frame is None:
            self.notify(MSG_NOT_READY, Severity.ERROR)
            raise CaptureFailure("No frame available from source")

        cells = list(self._cells)
        encoded = await asyncio.to_thread(self._capture_batch, frame, cells)

        if generations != (self._grid_generation, self._baseline_generation):
            logger.info("Grid or baselines changed during capture, discarding batch")
            return 0

        self.set_baselines(encoded)

        captured = sum(1 for value in encoded.values() if value)
        if captured == 0:
            self.notify(MSG_CAPTURE_FAILED, Severity.ERROR)
        logger.info(f"Captured {captured}/{len(cells)} baselines")
        return captured

    def _capture_batch(
        self,
        frame: np.ndarray,
        cells: Sequence[GridCell],
    ) -> Dict[CellId, Optional[EncodedImage]]:
        still = StillFrameSource(frame)
        encoded: Dict[CellId, Optional[EncodedImage]] = {}
        for cell in cells:
            try:
                encoded[cell.id] = self._encoder(capture_region(still, cell))
            except (CaptureFailure, ValueError) as e:
                logger.warning(f"Baseline capture failed for {cell.label}: {e}")
                encoded[cell.id] = None
        return encoded

    def set_baselines(self, baselines: Mapping[CellId, Optional[EncodedImage]]) -> None:
        """
        Replace every baseline at once and start decoding them.

        Previous decoded data is invalidated synchronously and the polling
        loop stops until the new decodes complete. Ids not in the current
        grid are dropped; cells missing from the mapping get no baseline.
        Must be called from within the running event loop.
        """
        unknown = [cid for cid in baselines if cid not in self._monitors]
        if unknown:
            logger.warning(f"Ignoring baselines for {len(unknown)} unknown cell id(s)")

        self._invalidate_baselines()
        self._encoded = {cid: baselines.get(cid) or None for cid in self._monitors}

        for cid, monitor in self._monitors.items():
            if self._encoded[cid]:
                monitor.mark_pending()
            else:
                monitor.clear_baseline()

        self._persist_baselines()

        pending = {cid: enc for cid, enc in self._encoded.items() if enc}
        if not pending:
            return

        generation = self._baseline_generation
        self._decode_task = asyncio.get_running_loop().create_task(
            self._decode_all(generation, pending),
            name=f"baseline_decode_{generation}",
        )

    async def _decode_all(
        self,
        generation: int,
        pending: Dict[CellId, EncodedImage],
    ) -> None:
        ids = list(pending)
        results = await asyncio.gather(
            *(self._decoder(pending[cid]) for cid in ids),
            return_exceptions=True,
        )

        if generation != self._baseline_generation:
            logger.debug(f"Discarding stale baseline decode (generation {generation})")
            return

        # Applied in one step, no awaits below this point
        succeeded = 0
        for cid, result in zip(ids, results):
            if isinstance(result, BaseException):
                logger.warning(f"Baseline decode raised for {cid}: {result!r}")
                result = None
            if self._monitors[cid].apply_decoded(result) is CellStatus.IDLE:
                succeeded += 1

        logger.info(f"Decoded {succeeded}/{len(ids)} baselines")

        if succeeded:
            self.notify(MSG_BASELINE_SET, Severity.SUCCESS)
            self.start_monitoring()
        else:
            self.notify(MSG_BASELINE_FAILED, Severity.ERROR)

    async def wait_until_decoded(self) -> None:
        """Wait for the current decode batch, following replacements."""
        while self._decode_task is not None and not self._decode_task.done():
            await asyncio.wait({self._decode_task})

    def clear_baselines(self, notify: bool = True) -> None:
        """Drop every baseline and stop monitoring. Always safe."""
        self._invalidate_baselines()
        self._encoded = {}
        for monitor in self._monitors.values():
            monitor.clear_baseline()
        self._persist_baselines()

        if notify:
            self.notify(MSG_BASELINE_CLEARED, Severity.INFO)

    def clear_all(self) -> None:
        """Drop baselines, cells and the master region. Always safe."""
        self._apply_region(None, persist=False)
        if self.store is not None:
            self.store.clear()
        self.notify(MSG_ALL_CLEARED, Severity.INFO)

    def restore(self) -> bool:
        """
        Reload the master region and baselines from the settings store.

        Returns:
            True if a region was restored
        """
        if self.store is None:
            return False

        region = self.store.load_region()
        if region is None:
            return False

        self._apply_region(region, persist=False)

        stored = self.store.load_baselines()
        mapping = {cell.id: stored.get(cell.position) for cell in self._cells}
        if any(mapping.values()):
            self.set_baselines(mapping)

        logger.info(f"Restored region and {sum(1 for v in mapping.values() if v)} baseline(s)")
        return True

    def _invalidate_baselines(self) -> None:
        self._baseline_generation += 1
        if self._decode_task is not None and not self._decode_task.done():
            self._decode_task.cancel()
        self._decode_task = None
        self.stop_monitoring()

    def _persist_baselines(self) -> None:
        if self.store is None:
            return
        self.store.save_baselines({
            self._monitors[cid].cell.position: enc
            for cid, enc in self._encoded.items()
            if enc
        })

    # =========================================================================
    # Polling loop
    # =========================================================================

    def start_monitoring(self) -> bool:
        """
        Start the polling loop if it is not already running.

        Returns:
            True if a new loop was started
        """
        if not self.monitoring:
            logger.debug("No decoded baselines, not starting polling loop")
            return False
        if self.polling:
            return False

        self._loop_generation += 1
        for monitor in self._monitors.values():
            monitor.reset_edge()

        generation = self._loop_generation
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_loop(generation),
            name=f"grid_poll_{generation}",
        )
        logger.info(f"Polling loop started (every {self.poll_interval}s)")
        return True

    def stop_monitoring(self) -> None:
        """Cancel the polling loop. No cycle runs after this returns."""
        self._loop_generation += 1
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
            logger.info("Polling loop stopped")
        self._poll_task = None

    async def _poll_loop(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if generation != self._loop_generation:
                return
            if not self.monitoring:
                logger.info("No decoded baselines left, polling loop exiting")
                return

            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Polling cycle error: {e}")

    async def run_cycle(self) -> List[CycleOutcome]:
        """
        Evaluate every cell that currently has a decoded baseline.

        The frame is read in a worker thread so a slow camera never stalls
        the event loop. All cells are compared against that one frame. A
        missing frame degrades each cell to CAPTURE_ERROR; a
        FrameSourceError stops the session. If baselines or the grid change
        while the frame is being read, the cycle is dropped.
        """
        if not any(m.has_baseline for m in self._monitors.values()):
            return []

        generations = (self._grid_generation, self._baseline_generation)

        try:
            frame = await asyncio.to_thread(self.source.read)
        except FrameSourceError as e:
            self.handle_source_error(e)
            return []
        except Exception as e:
            logger.warning(f"Frame read failed: {e}")
            frame = None

        if generations != (self._grid_generation, self._baseline_generation):
            logger.debug("Grid or baselines changed during frame read, dropping cycle")
            return []

        active = [m for m in self._monitors.values() if m.has_baseline]
        still = StillFrameSource(frame)
        outcomes = [monitor.evaluate(still, self.tolerance) for monitor in active]

        for monitor, outcome in zip(active, outcomes):
            if outcome.rising_edge:
                self.notify(
                    f"Change detected in {monitor.cell.label}! "
                    f"Medication might have been taken.",
                    Severity.WARNING,
                )

        return outcomes

    # =========================================================================
    # Failures and teardown
    # =========================================================================

    def handle_source_error(self, error: Exception) -> None:
        """
        Hard stop after a camera-level failure.

        Cell geometry is meaningless without a source, so monitoring stops
        and the master region is cleared. Stored settings are kept.
        """
        logger.error(f"Frame source failure: {error}")
        self._apply_region(None, persist=False)
        self.notify(f"Camera Error: {error}", Severity.ERROR)

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        self.notifier.notify(message, severity, self.notification_duration_ms)

    async def aclose(self) -> None:
        """Cancel every task owned by the session."""
        tasks = [t for t in (self._decode_task, self._poll_task) if t is not None]
        self._baseline_generation += 1
        self._decode_task = None
        self.stop_monitoring()

        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("GridSession closed")
