"""
Stream Source Tests
===================

Tests for parsing, late-frame dropping, decoding and reconnects of the
WebSocket camera feed.
"""

import asyncio
import base64
import json
import time

import cv2
import numpy as np
import pytest


def jpeg_b64(width=16, height=8, value=90):
    frame = np.full((height, width, 3), value, dtype=np.uint8)
    ok, buffer = cv2.imencode(".jpg", frame)
    assert ok
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def message(frame_id, timestamp=1707321234.0, image="AAAA", **extra):
    return json.dumps({
        "frame_id": frame_id,
        "timestamp": timestamp,
        "image": image,
        **extra,
    })


class TestParseMessage:
    """Message parsing."""

    def test_valid_message(self):
        from pillwatch.capture import StreamFrameSource

        source = StreamFrameSource("ws://localhost:1/ws")
        frame = source.parse_message(message(100, fps=30))

        assert frame.frame_id == 100
        assert frame.image_b64 == "AAAA"
        assert "AAAA" not in repr(frame)

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            json.dumps({"frame_id": 1, "timestamp": 1.0}),
            json.dumps({"frame_id": "x", "timestamp": 1.0, "image": ""}),
        ],
    )
    def test_invalid_messages(self, raw):
        from pillwatch.capture import StreamFrameSource

        source = StreamFrameSource("ws://localhost:1/ws")

        assert source.parse_message(raw) is None
        assert source.metrics.parse_errors == 1


class TestAccept:
    """Only the newest frame is held."""

    def test_late_frames_dropped(self):
        from pillwatch.capture import StreamFrameSource

        source = StreamFrameSource("ws://localhost:1/ws")

        assert source.accept(source.parse_message(message(1, image=jpeg_b64(value=40)))) is True
        assert source.accept(source.parse_message(message(5, image=jpeg_b64(value=200)))) is True
        assert source.accept(source.parse_message(message(3, image=jpeg_b64(value=40)))) is False
        assert source.accept(source.parse_message(message(5, image=jpeg_b64(value=40)))) is False

        assert source.metrics.frames_received == 2
        assert source.metrics.frames_dropped == 2
        assert source.metrics.last_frame_id == 5
        assert abs(int(source.read()[0, 0, 0]) - 200) < 5

    def test_stale_frame_not_served(self):
        from pillwatch.capture import StreamFrameSource

        source = StreamFrameSource("ws://localhost:1/ws", max_frame_age_sec=0.2)
        source.accept(source.parse_message(message(1, image=jpeg_b64())))
        assert source.read() is not None

        time.sleep(0.3)
        assert source.read() is None


class TestStreamRead:
    """read() decodes the latest frame lazily."""

    def test_no_frame_yet(self):
        from pillwatch.capture import StreamFrameSource

        assert StreamFrameSource("ws://localhost:1/ws").read() is None

    def test_decodes_latest_once(self):
        from pillwatch.capture import StreamFrameSource

        source = StreamFrameSource("ws://localhost:1/ws")
        source.accept(source.parse_message(message(1, image=jpeg_b64())))

        first = source.read()
        second = source.read()

        assert first.shape == (8, 16, 3)
        assert second is first
        assert source.metrics.frames_decoded == 1

    def test_bad_image_is_none(self):
        from pillwatch.capture import StreamFrameSource

        source = StreamFrameSource("ws://localhost:1/ws")
        source.accept(source.parse_message(message(1, image="AAAA")))

        assert source.read() is None
        assert source.metrics.decode_errors == 1

    def test_frame_usable_for_capture(self):
        from pillwatch.capture import StreamFrameSource, capture_region
        from pillwatch.models.geometry import Rectangle

        source = StreamFrameSource("ws://localhost:1/ws")
        source.accept(source.parse_message(message(1, image=jpeg_b64(value=200))))

        image = capture_region(source, Rectangle(x=0, y=0, width=4, height=4))
        assert image.size == (4, 4)

    @pytest.mark.asyncio
    async def test_gives_up_after_reconnect_attempts(self):
        from pillwatch.capture import StreamFrameSource
        from pillwatch.errors import FrameSourceError

        source = StreamFrameSource(
            "ws://127.0.0.1:9/ws",
            reconnect_backoff_ms=100,
            max_reconnect_attempts=1,
        )

        await asyncio.wait_for(source.run(), timeout=10.0)

        assert source.connected is False
        with pytest.raises(FrameSourceError):
            source.read()

        assert source.metrics.reconnect_count == 1


class TestConnection:
    """Connection handling against a local camera feed."""

    @pytest.mark.asyncio
    async def test_frame_ids_restart_per_connection(self):
        import websockets

        from pillwatch.capture import StreamFrameSource

        connections = 0

        async def camera(ws):
            nonlocal connections
            connections += 1
            if connections == 1:
                await ws.send(message(7, image=jpeg_b64()))
            else:
                # rebooted camera counts from one again
                await ws.send(message(1, image=jpeg_b64()))
                await ws.wait_closed()

        async with websockets.serve(camera, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            source = StreamFrameSource(f"ws://127.0.0.1:{port}/ws", reconnect_backoff_ms=50)
            task = asyncio.create_task(source.run())

            for _ in range(200):
                if connections >= 2 and source.metrics.last_frame_id == 1:
                    break
                await asyncio.sleep(0.02)

            await source.stop()
            await asyncio.wait_for(task, timeout=5.0)

        assert source.metrics.last_frame_id == 1
        assert source.metrics.frames_received == 2
        assert source.metrics.frames_dropped == 0
        assert source.metrics.reconnect_count >= 1
