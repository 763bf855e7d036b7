"""
Capture Tests
=============

Tests for mirrored region capture and frame sources.
"""

import numpy as np
import pytest


RED_BGR = (0, 0, 255)
BLUE_BGR = (255, 0, 0)


def split_frame():
    """10x4 BGR frame: left half red, right half blue."""
    frame = np.zeros((4, 10, 3), dtype=np.uint8)
    frame[:, :5] = RED_BGR
    frame[:, 5:] = BLUE_BGR
    return frame


class TestMirroredCapture:
    """Rectangles are drawn on a mirrored preview of an unmirrored frame."""

    def test_left_preview_rect_reads_right_of_frame(self):
        from pillwatch.capture import StillFrameSource, capture_region
        from pillwatch.models.geometry import Rectangle

        image = capture_region(
            StillFrameSource(split_frame()),
            Rectangle(x=0, y=0, width=5, height=4),
        )

        assert image.size == (5, 4)
        assert np.all(image.pixels[:, :, :3] == (0, 0, 255))
        assert np.all(image.pixels[:, :, 3] == 255)

    def test_right_preview_rect_reads_left_of_frame(self):
        from pillwatch.capture import StillFrameSource, capture_region
        from pillwatch.models.geometry import Rectangle

        image = capture_region(
            StillFrameSource(split_frame()),
            Rectangle(x=5, y=0, width=5, height=4),
        )

        assert np.all(image.pixels[:, :, :3] == (255, 0, 0))

    def test_pixels_not_flipped(self):
        """Only the offset is mirrored; column order inside the patch is kept."""
        from pillwatch.capture import crop_mirrored
        from pillwatch.models.geometry import Rectangle

        frame = np.zeros((1, 4, 3), dtype=np.uint8)
        frame[0, :, 0] = [10, 20, 30, 40]

        image = crop_mirrored(frame, Rectangle(x=0, y=0, width=2, height=1))

        # source_x = 4 - 0 - 2 = 2; BGR blue channel becomes RGBA index 2
        assert list(image.pixels[0, :, 2]) == [30, 40]

    def test_vertical_offset_not_mirrored(self):
        from pillwatch.capture import crop_mirrored
        from pillwatch.models.geometry import Rectangle

        frame = np.zeros((4, 2, 3), dtype=np.uint8)
        frame[3] = (0, 255, 0)

        image = crop_mirrored(frame, Rectangle(x=0, y=3, width=2, height=1))
        assert np.all(image.pixels[:, :, 1] == 255)

    def test_offsets_clamped_inside_frame(self):
        from pillwatch.capture import crop_mirrored
        from pillwatch.models.geometry import Rectangle

        frame = split_frame()

        # source_x = 10 + 3 - 5 = 8, clamped to 5
        left = crop_mirrored(frame, Rectangle(x=-3, y=-2, width=5, height=4))
        assert left.size == (5, 4)
        assert np.all(left.pixels[:, :, :3] == (0, 0, 255))

        # source_x = 10 - 8 - 5 = -3, clamped to 0
        right = crop_mirrored(frame, Rectangle(x=8, y=1, width=5, height=4))
        assert right.size == (5, 4)
        assert np.all(right.pixels[:, :, :3] == (255, 0, 0))

    def test_fractional_rect_rounded(self):
        from pillwatch.capture import crop_mirrored
        from pillwatch.models.geometry import Rectangle

        image = crop_mirrored(split_frame(), Rectangle(x=0.4, y=0, width=2.5, height=1.5))
        assert image.size == (3, 2)

    def test_grayscale_and_bgra_frames(self):
        from pillwatch.capture import crop_mirrored
        from pillwatch.models.geometry import Rectangle

        rect = Rectangle(x=0, y=0, width=2, height=2)

        gray = np.full((2, 2), 77, dtype=np.uint8)
        image = crop_mirrored(gray, rect)
        assert np.all(image.pixels[:, :, :3] == 77)

        bgra = np.zeros((2, 2, 4), dtype=np.uint8)
        bgra[:, :] = (1, 2, 3, 128)
        image = crop_mirrored(bgra, rect)
        assert np.all(image.pixels == (3, 2, 1, 128))


class TestCaptureFailures:
    """Failures are reported per region as CaptureFailure."""

    def test_no_frame(self):
        from pillwatch.capture import StillFrameSource, capture_region
        from pillwatch.errors import CaptureFailure
        from pillwatch.models.geometry import Rectangle

        with pytest.raises(CaptureFailure):
            capture_region(StillFrameSource(None), Rectangle(x=0, y=0, width=2, height=2))

    def test_region_larger_than_frame(self):
        from pillwatch.capture import StillFrameSource, capture_region
        from pillwatch.errors import CaptureFailure
        from pillwatch.models.geometry import Rectangle

        with pytest.raises(CaptureFailure):
            capture_region(
                StillFrameSource(split_frame()),
                Rectangle(x=0, y=0, width=11, height=4),
            )

    def test_unsupported_frame_layout(self):
        from pillwatch.capture import crop_mirrored
        from pillwatch.errors import CaptureFailure
        from pillwatch.models.geometry import Rectangle

        frame = np.zeros((2, 2, 2), dtype=np.uint8)
        with pytest.raises(CaptureFailure):
            crop_mirrored(frame, Rectangle(x=0, y=0, width=1, height=1))

    def test_read_error_wrapped(self):
        from pillwatch.capture import capture_region
        from pillwatch.errors import CaptureFailure
        from pillwatch.models.geometry import Rectangle

        class BrokenSource:
            def read(self):
                raise RuntimeError("driver glitch")

        with pytest.raises(CaptureFailure):
            capture_region(BrokenSource(), Rectangle(x=0, y=0, width=1, height=1))

    def test_source_error_propagates(self):
        from pillwatch.capture import capture_region
        from pillwatch.errors import FrameSourceError
        from pillwatch.models.geometry import Rectangle

        class DeadSource:
            def read(self):
                raise FrameSourceError("permission denied")

        with pytest.raises(FrameSourceError):
            capture_region(DeadSource(), Rectangle(x=0, y=0, width=1, height=1))


class TestCameraSource:
    """Tests for the OpenCV camera adapter that need no device."""

    def test_read_before_open_raises(self):
        from pillwatch.capture import CameraSource
        from pillwatch.errors import FrameSourceError

        camera = CameraSource(device_index=0)
        assert camera.is_open is False
        with pytest.raises(FrameSourceError):
            camera.read()

    def test_release_without_open(self):
        from pillwatch.capture import CameraSource

        CameraSource().release()
