"""
Capture Module
==============

Frame sources and mirrored region capture.

    - FrameSource: Protocol for anything that can return the current frame
    - StillFrameSource: Fixed-frame source (batch capture, tests)
    - CameraSource: Local camera via OpenCV
    - StreamFrameSource: WebSocket JPEG frame stream
    - capture_region: Copy one preview-space rectangle into a RawImage
"""

from pillwatch.capture.source import CameraSource, FrameSource, StillFrameSource
from pillwatch.capture.region import capture_region, crop_mirrored
from pillwatch.capture.stream import StreamFrame, StreamFrameSource


__all__ = [
    "FrameSource",
    "StillFrameSource",
    "CameraSource",
    "StreamFrame",
    "StreamFrameSource",
    "capture_region",
    "crop_mirrored",
]
