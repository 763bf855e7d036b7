"""
Region Capture
==============

Copies one rectangle of the current camera frame into a RawImage.

Mirroring:
    The preview shown to the user is horizontally mirrored, and rectangles
    are drawn on that preview. The source frame is not mirrored, so the
    horizontal source offset is

        source_x = frame_width - rect.x - rect.width

    while the vertical offset is rect.y unchanged. This is the ONLY place in
    the codebase that performs this adjustment.

Design Rules:
    - Capture size is the rectangle size rounded to whole pixels, at least 1
    - Offsets are clamped so the read never leaves the frame
    - Every failure is reported as CaptureFailure, per cell
    - FrameSourceError from the source is propagated untouched
"""

import logging

import cv2
import numpy as np

from pillwatch.capture.source import FrameSource
from pillwatch.errors import CaptureFailure, FrameSourceError
from pillwatch.models.geometry import Rectangle, round_half_up
from pillwatch.models.image import RawImage


logger = logging.getLogger(__name__)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def to_rgba(pixels: np.ndarray) -> np.ndarray:
    """
    Convert an OpenCV frame (gray, BGR or BGRA) to RGBA.

    Raises:
        CaptureFailure: If the frame layout is not supported
    """
    if pixels.dtype != np.uint8:
        raise CaptureFailure(f"Unsupported frame dtype: {pixels.dtype}")

    if pixels.ndim == 2:
        return cv2.cvtColor(pixels, cv2.COLOR_GRAY2RGBA)
    if pixels.ndim == 3 and pixels.shape[2] == 3:
        return cv2.cvtColor(pixels, cv2.COLOR_BGR2RGBA)
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return cv2.cvtColor(pixels, cv2.COLOR_BGRA2RGBA)

    raise CaptureFailure(f"Unsupported frame shape: {pixels.shape}")


def crop_mirrored(frame: np.ndarray, rect: Rectangle) -> RawImage:
    """
    Crop a preview-space rectangle out of an unmirrored frame.

    Args:
        frame: Raw camera frame
        rect: Rectangle in mirrored preview coordinates

    Returns:
        RawImage of size rect.pixel_size()

    Raises:
        CaptureFailure: If the rectangle is invalid or larger than the frame
    """
    if rect.width <= 0 or rect.height <= 0:
        raise CaptureFailure(f"Invalid capture region: {rect.width}x{rect.height}")
    if frame.ndim < 2 or frame.size == 0:
        raise CaptureFailure(f"Empty frame: {frame.shape}")

    frame_height, frame_width = frame.shape[:2]
    width, height = rect.pixel_size()

    if width > frame_width or height > frame_height:
        raise CaptureFailure(
            f"Region {width}x{height} exceeds frame {frame_width}x{frame_height}"
        )

    source_x = round_half_up(frame_width - rect.x - rect.width)
    source_y = round_half_up(rect.y)
    source_x = _clamp(source_x, 0, frame_width - width)
    source_y = _clamp(source_y, 0, frame_height - height)

    patch = frame[source_y:source_y + height, source_x:source_x + width]

    try:
        return RawImage(to_rgba(patch))
    except cv2.error as e:
        raise CaptureFailure(f"Pixel conversion failed: {e}") from e


def capture_region(source: FrameSource, rect: Rectangle) -> RawImage:
    """
    Capture a rectangle from the source's current frame.

    Args:
        source: Frame source (live camera or still frame)
        rect: Rectangle in mirrored preview coordinates

    Returns:
        Captured RawImage

    Raises:
        CaptureFailure: No frame, invalid region or read error
        FrameSourceError: Unrecoverable source failure
    """
    if rect.width <= 0 or rect.height <= 0:
        raise CaptureFailure(f"Invalid capture region: {rect.width}x{rect.height}")

    try:
        frame = source.read()
    except FrameSourceError:
        raise
    except Exception as e:
        raise CaptureFailure(f"Frame read failed: {e}") from e

    if frame is None:
        raise CaptureFailure("No frame available from source")

    return crop_mirrored(frame, rect)
