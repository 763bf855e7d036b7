"""
Frame Sources
=============

Thin adapters around the camera. The engine only ever calls `read()`.

Contract:
    - read() returns the current frame as a numpy array (H, W, 3) BGR,
      (H, W, 4) BGRA or (H, W) grayscale, dtype uint8
    - read() returns None when no frame is available right now
    - read() raises FrameSourceError on unrecoverable failures
      (permission denied, device removed)

Frames are the raw, UNMIRRORED camera output. Mirroring for on-screen
preview is compensated in exactly one place: `capture_region`.
"""

import logging
from typing import Optional, Protocol

import cv2
import numpy as np

from pillwatch.errors import FrameSourceError


logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """
    Protocol for video sources.

    Any object with a matching `read` method can be used.
    """

    def read(self) -> Optional[np.ndarray]:
        """
        Return the current frame, or None if none is available.

        Raises:
            FrameSourceError: On unrecoverable source failure
        """
        ...


class StillFrameSource:
    """
    Source that always returns the same frame.

    Used by the grid session to capture a whole batch of cells from one
    consistent frame, and by tests to feed known content.

    Example:
        source = StillFrameSource(frame)
        image = capture_region(source, rect)
    """

    def __init__(self, frame: Optional[np.ndarray]) -> None:
        self.frame = frame

    def read(self) -> Optional[np.ndarray]:
        return self.frame


class CameraSource:
    """
    OpenCV VideoCapture adapter for a local camera.

    Transient read failures return None. After `max_read_failures`
    consecutive failures the device is considered lost and read()
    raises FrameSourceError.

    Attributes:
        device_index: OpenCV camera index
        width: Requested frame width
        height: Requested frame height
    """

    def __init__(
        self,
        device_index: int = 0,
        width: int = 640,
        height: int = 480,
        max_read_failures: int = 30,
    ) -> None:
        self.device_index = device_index
        self.width = width
        self.height = height
        self.max_read_failures = max_read_failures

        self._capture: Optional[cv2.VideoCapture] = None
        self._consecutive_failures: int = 0

    @property
    def is_open(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    def open(self) -> None:
        """
        Open the camera device.

        Raises:
            FrameSourceError: If the device cannot be opened
        """
        capture = cv2.VideoCapture(self.device_index)
        if not capture.isOpened():
            capture.release()
            raise FrameSourceError(f"Unable to open camera device {self.device_index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        self._consecutive_failures = 0

        logger.info(
            f"Camera {self.device_index} opened: "
            f"{int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))}"
        )

    def read(self) -> Optional[np.ndarray]:
        if not self.is_open:
            raise FrameSourceError(f"Camera device {self.device_index} is not open")

        ok, frame = self._capture.read()
        if not ok or frame is None:
            self._consecutive_failures += 1
            if self._consecutive_failures >= self.max_read_failures:
                self.release()
                raise FrameSourceError(
                    f"Camera device {self.device_index} stopped delivering frames"
                )
            return None

        self._consecutive_failures = 0
        return frame

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info(f"Camera {self.device_index} released")
