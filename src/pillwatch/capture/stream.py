"""
Stream Frame Source
===================

Frame source fed by a networked camera that pushes JPEG frames over a
WebSocket instead of a local capture device.

Each message carries one frame:

    {
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "image": "<base64 JPEG>"
    }

Extra keys are ignored. Frame ids restart on every connection, since a
rebooted camera counts from zero again.

Only the newest frame matters to a poller that compares stills, so the
source keeps a single slot. A frame whose id is not newer than the one
already held is a late delivery and is dropped. JPEG decoding happens
lazily in read(), at most once per frame.

The connection is retried with a fixed backoff. After
max_reconnect_attempts consecutive failures the source gives up and
read() raises FrameSourceError, which the grid session treats like a
lost camera.

Example:
    source = StreamFrameSource("ws://camera.local:8000/ws/frames")
    task = asyncio.create_task(source.run())
    ...
    frame = source.read()
    ...
    await source.stop()
"""

import asyncio
import base64
import binascii
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np
import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from pillwatch.errors import FrameSourceError


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StreamFrame:
    """
    One received, not yet decoded, camera frame.

    Attributes:
        frame_id: Per-connection frame counter from the camera
        timestamp: UNIX timestamp at which the camera took the frame
        image_b64: Base64-encoded JPEG data
    """

    frame_id: int
    timestamp: float
    image_b64: str

    def __repr__(self) -> str:
        return f"StreamFrame(frame_id={self.frame_id}, timestamp={self.timestamp:.3f})"


class StreamSourceMetrics:
    """Counters exposed on /ready."""

    __slots__ = (
        "frames_received",
        "frames_dropped",
        "frames_decoded",
        "reconnect_count",
        "last_frame_id",
        "parse_errors",
        "decode_errors",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.frames_dropped: int = 0
        self.frames_decoded: int = 0
        self.reconnect_count: int = 0
        self.last_frame_id: int = -1
        self.parse_errors: int = 0
        self.decode_errors: int = 0

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.__slots__}


class StreamFrameSource:
    """
    WebSocket-backed frame source holding the newest camera frame.

    Attributes:
        url: WebSocket URL of the camera feed
        connected: Whether currently connected
        metrics: Operational counters
    """

    def __init__(
        self,
        url: str,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
        max_frame_age_sec: float = 5.0,
    ) -> None:
        """
        Args:
            url: WebSocket URL of the camera feed
            reconnect_backoff_ms: Wait between connection attempts
            max_reconnect_attempts: Consecutive failures tolerated (0 = unlimited)
            max_frame_age_sec: A frame held longer than this is not served
        """
        self.url = url
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts
        self.max_frame_age_sec = max_frame_age_sec

        self._websocket = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self._failure: Optional[str] = None
        self._failed_attempts: int = 0

        self._latest: Optional[StreamFrame] = None
        self._latest_received_at: float = 0.0
        self._decoded_for: Optional[StreamFrame] = None
        self._decoded: Optional[np.ndarray] = None

        self.metrics = StreamSourceMetrics()

    @property
    def connected(self) -> bool:
        return self._connected

    def read(self) -> Optional[np.ndarray]:
        """
        Decode and return the newest frame.

        Returns:
            BGR frame, or None if no fresh, decodable frame is held

        Raises:
            FrameSourceError: If the source gave up reconnecting
        """
        if self._failure is not None:
            raise FrameSourceError(self._failure)

        frame = self._latest
        if frame is None:
            return None
        if time.monotonic() - self._latest_received_at > self.max_frame_age_sec:
            logger.debug(f"Frame {frame.frame_id} is stale, not serving it")
            return None
        if frame is self._decoded_for:
            return self._decoded

        try:
            jpeg_bytes = base64.b64decode(frame.image_b64, validate=True)
            bgr = cv2.imdecode(np.frombuffer(jpeg_bytes, np.uint8), cv2.IMREAD_COLOR)
        except (binascii.Error, cv2.error) as e:
            bgr = None
            logger.warning(f"Failed to decode frame {frame.frame_id}: {e}")

        if bgr is None:
            self.metrics.decode_errors += 1
            return None

        self._decoded_for = frame
        self._decoded = bgr
        self.metrics.frames_decoded += 1
        return bgr

    # =========================================================================
    # Connection loop
    # =========================================================================

    async def run(self) -> None:
        """Hold the camera connection open until stop() or give-up."""
        self._running = True
        self._stop_event.clear()
        self._failure = None
        self._failed_attempts = 0

        logger.info(f"StreamFrameSource connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
                reason = "camera closed the connection"
            except Exception as e:
                reason = str(e) or type(e).__name__

            self._connected = False
            if not self._running:
                break

            self._failed_attempts += 1
            if 0 < self.max_reconnect_attempts < self._failed_attempts:
                self._give_up(reason)
                break

            logger.warning(f"Camera stream lost ({reason}), retrying")
            if await self._backoff():
                break

        logger.info("StreamFrameSource stopped")

    async def _backoff(self) -> bool:
        """Sleep before reconnecting. Returns True if stop() was called."""
        self.metrics.reconnect_count += 1
        delay = self.reconnect_backoff_ms / 1000.0
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    def _give_up(self, reason: str) -> None:
        self._failure = (
            f"Camera stream unavailable after {self._failed_attempts} "
            f"failed connection attempts: {reason}"
        )
        self._latest = None
        logger.error(self._failure)

    async def stop(self) -> None:
        """Signal the run loop to exit and close the connection."""
        logger.info("StreamFrameSource stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except ConnectionClosed:
                pass

        self._connected = False

    async def _connect_and_consume(self) -> None:
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
            max_size=10 * 1024 * 1024,
        ) as ws:
            self._websocket = ws
            self._connected = True
            self._failed_attempts = 0
            self.metrics.last_frame_id = -1
            logger.info(f"Connected to camera stream: {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break
                    frame = self.parse_message(message)
                    if frame is not None:
                        self.accept(frame)
            except ConnectionClosedOK:
                logger.info("Camera stream closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"Camera stream closed with error: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None

    # =========================================================================
    # Frames
    # =========================================================================

    def parse_message(self, raw) -> Optional[StreamFrame]:
        """Parse one raw message. Returns None and counts malformed input."""
        try:
            data = json.loads(raw)
            frame = StreamFrame(
                frame_id=int(data["frame_id"]),
                timestamp=float(data["timestamp"]),
                image_b64=str(data["image"]),
            )
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Malformed camera frame message: {e!r}")
            return None
        return frame

    def accept(self, frame: StreamFrame) -> bool:
        """
        Hold a frame as the newest one.

        Returns:
            False if the frame was dropped as a late delivery
        """
        if frame.frame_id <= self.metrics.last_frame_id:
            self.metrics.frames_dropped += 1
            logger.debug(
                f"Dropping late frame {frame.frame_id} "
                f"(holding {self.metrics.last_frame_id})"
            )
            return False

        self._latest = frame
        self._latest_received_at = time.monotonic()
        self.metrics.frames_received += 1
        self.metrics.last_frame_id = frame.frame_id
        return True
