"""
PillWatch Main Application
==========================

FastAPI entry point for the pill calendar monitor.

The service owns one frame source and one grid session. Region selection,
baseline capture and resets are driven over HTTP; the aggregated grid
state is published over HTTP and WebSocket for renderers.

Endpoints:
    GET    /              - Service information
    GET    /health        - Liveness probe
    GET    /ready         - Readiness probe (frame source available?)
    GET    /state         - Grid snapshot (cells, statuses, diffs, monitoring)
    PUT    /region        - Set the master region
    DELETE /region        - Clear the master region and grid
    POST   /baselines     - Capture baselines for every cell
    DELETE /baselines     - Clear all baselines
    POST   /reset         - Clear region, baselines and stored settings
    GET    /notification  - Notification currently on display
    WS     /ws/state      - Real-time snapshot stream
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from pillwatch.capture import CameraSource, FrameSource, StreamFrameSource
from pillwatch.config import settings
from pillwatch.errors import CaptureFailure, ConfigurationError, FrameSourceError, InvalidRegion
from pillwatch.monitor import GridSession, InMemorySettingsStore, NotificationBoard, Severity


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_frame_source: Optional[FrameSource] = None
_source_task: Optional[asyncio.Task] = None
_session: Optional[GridSession] = None
_notifications: Optional[NotificationBoard] = None
_store: Optional[InMemorySettingsStore] = None
_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_session() -> Optional[GridSession]:
    return _session

def get_frame_source() -> Optional[FrameSource]:
    return _frame_source

def get_notifications() -> Optional[NotificationBoard]:
    return _notifications


# =============================================================================
# Frame Source Factory
# =============================================================================

def create_frame_source() -> FrameSource:
    """
    Create the frame source selected in config.

    A camera that fails to open is still returned; its read() raises
    FrameSourceError, which the session handles as a hard stop.
    """
    backend = settings.camera.backend

    if backend == "opencv":
        camera = CameraSource(
            device_index=settings.camera.device_index,
            width=settings.camera.frame_width,
            height=settings.camera.frame_height,
        )
        try:
            camera.open()
        except FrameSourceError as e:
            logger.error(f"Camera unavailable at startup: {e}")
        return camera

    elif backend == "stream":
        logger.info(f"Using StreamFrameSource: {settings.camera.stream_url}")
        return StreamFrameSource(
            url=settings.camera.stream_url,
            reconnect_backoff_ms=settings.camera.reconnect_backoff_ms,
            max_reconnect_attempts=settings.camera.max_reconnect_attempts,
        )

    else:
        raise ValueError(f"Unknown camera backend: {backend}")


def _source_ready(source: Optional[FrameSource]) -> bool:
    if isinstance(source, CameraSource):
        return source.is_open
    if isinstance(source, StreamFrameSource):
        return source.connected
    return source is not None


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _frame_source, _source_task, _session, _notifications, _store, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.app.name} {settings.app.version}")

    _frame_source = create_frame_source()
    _source_task = None
    if isinstance(_frame_source, StreamFrameSource):
        _source_task = asyncio.create_task(_frame_source.run(), name="frame_stream")

    _notifications = NotificationBoard(default_duration_ms=settings.notifications.duration_ms)
    _store = InMemorySettingsStore()
    _session = GridSession(
        source=_frame_source,
        notifier=_notifications,
        store=_store,
        rows=settings.grid.rows,
        cols=settings.grid.cols,
        day_labels=settings.grid.day_labels,
        slot_labels=settings.grid.slot_labels,
        tolerance=settings.detection.tolerance,
        diff_threshold=settings.detection.diff_threshold,
        poll_interval=settings.detection.poll_interval_ms / 1000.0,
        notification_duration_ms=settings.notifications.duration_ms,
    )
    _session.restore()

    if isinstance(_frame_source, CameraSource) and not _frame_source.is_open:
        _notifications.notify(
            f"Camera Error: unable to open device {settings.camera.device_index}",
            Severity.ERROR,
        )

    logger.info("All components started")

    yield

    logger.info("Shutting down gracefully...")

    if _session is not None:
        await _session.aclose()

    if isinstance(_frame_source, StreamFrameSource):
        await _frame_source.stop()
    if _source_task is not None:
        try:
            await asyncio.wait_for(_source_task, timeout=5.0)
        except asyncio.TimeoutError:
            _source_task.cancel()
            try:
                await _source_task
            except asyncio.CancelledError:
                pass
    if isinstance(_frame_source, CameraSource):
        _frame_source.release()

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="PillWatch",
    description="Pill calendar monitor with per-pocket change detection",
    version=settings.app.version,
    lifespan=lifespan,
)


def _not_ready() -> JSONResponse:
    return JSONResponse({"error": "Session not initialized"}, status_code=503)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "PillWatch",
        "version": settings.app.version,
        "name": settings.app.name,
        "status": "running",
        "camera_backend": settings.camera.backend,
        "grid": f"{settings.grid.rows}x{settings.grid.cols}",
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe. Always 200 while the process runs."""
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """Readiness probe. 503 until the frame source is available."""
    source = get_frame_source()
    source_ready = _source_ready(source)
    session = get_session()

    body = {
        "source_ready": source_ready,
        "session_initialized": session is not None,
        "monitoring": session.monitoring if session else False,
    }
    if isinstance(source, StreamFrameSource):
        body["stream"] = source.metrics.to_dict()

    if source_ready and session is not None:
        return JSONResponse({"status": "ready", **body})
    return JSONResponse({"status": "not_ready", **body}, status_code=503)


@app.get("/state")
async def state() -> JSONResponse:
    """Aggregated grid snapshot."""
    session = get_session()
    if session is None:
        return _not_ready()
    return JSONResponse(session.snapshot().model_dump(mode="json"))


@app.put("/region")
async def put_region(region: dict) -> JSONResponse:
    """Set the master region from {x, y, width, height}."""
    session = get_session()
    if session is None:
        return _not_ready()

    try:
        session.set_master_region(region)
    except InvalidRegion as e:
        return JSONResponse({"error": str(e)}, status_code=422)
    except ConfigurationError as e:
        logger.error(f"Grid configuration error: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)

    return JSONResponse(session.snapshot().model_dump(mode="json"))


@app.delete("/region")
async def delete_region() -> JSONResponse:
    session = get_session()
    if session is None:
        return _not_ready()
    session.set_master_region(None)
    return JSONResponse(session.snapshot().model_dump(mode="json"))


@app.post("/baselines")
async def post_baselines() -> JSONResponse:
    """Capture a baseline for every cell of the current grid."""
    session = get_session()
    if session is None:
        return _not_ready()

    try:
        captured = await session.capture_all_baselines()
    except CaptureFailure as e:
        return JSONResponse({"error": str(e)}, status_code=409)

    return JSONResponse({"captured": captured, "cells": len(session.cells)})


@app.delete("/baselines")
async def delete_baselines() -> JSONResponse:
    session = get_session()
    if session is None:
        return _not_ready()
    session.clear_baselines()
    return JSONResponse(session.snapshot().model_dump(mode="json"))


@app.post("/reset")
async def reset() -> JSONResponse:
    """Clear region, baselines and stored settings."""
    session = get_session()
    if session is None:
        return _not_ready()
    session.clear_all()
    return JSONResponse(session.snapshot().model_dump(mode="json"))


@app.get("/notification")
async def notification() -> JSONResponse:
    board = get_notifications()
    current = board.current() if board is not None else None
    return JSONResponse({"notification": current.to_dict() if current else None})


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/state")
async def state_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time grid snapshots."""
    await websocket.accept()
    logger.info("Client connected to /ws/state")

    interval = settings.detection.poll_interval_ms / 1000.0

    # One receive stays pending across ticks; client messages are ignored
    # and a close surfaces as WebSocketDisconnect from its result.
    receiver = asyncio.create_task(websocket.receive_text())
    try:
        while True:
            session = get_session()
            if session is not None:
                await websocket.send_json(session.snapshot().model_dump(mode="json"))

            done, _ = await asyncio.wait({receiver}, timeout=interval)
            if receiver in done:
                receiver.result()
                receiver = asyncio.create_task(websocket.receive_text())
    except WebSocketDisconnect:
        pass
    finally:
        receiver.cancel()
        logger.info("Client disconnected from /ws/state")


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "pillwatch.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
