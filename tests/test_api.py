"""
API Tests
=========

Tests for the FastAPI service surface, driven through TestClient with a
still frame in place of the camera.
"""

import time

import pytest
from fastapi.testclient import TestClient

from conftest import MutableFrameSource, solid_frame


REGION = {"x": 0, "y": 0, "width": 280, "height": 490}


@pytest.fixture
def source():
    return MutableFrameSource(solid_frame())


@pytest.fixture
def client(monkeypatch, source):
    from pillwatch import main

    monkeypatch.setattr(main, "create_frame_source", lambda: source)
    with TestClient(main.app) as client:
        yield client


def wait_for_state(client, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    state = client.get("/state").json()
    while not predicate(state) and time.monotonic() < deadline:
        time.sleep(0.05)
        state = client.get("/state").json()
    return state


class TestServiceEndpoints:
    """Info and probe endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "PillWatch"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["source_ready"] is True

    def test_ready_with_missing_source(self, monkeypatch):
        from pillwatch import main

        monkeypatch.setattr(main, "create_frame_source", lambda: None)
        with TestClient(main.app) as client:
            assert client.get("/ready").status_code == 503


class TestRegionEndpoints:
    """Setting and clearing the master region."""

    def test_initial_state_empty(self, client):
        state = client.get("/state").json()

        assert state["master_region"] is None
        assert state["monitoring"] is False
        assert state["cells"] == []

    def test_put_region(self, client):
        response = client.put("/region", json=REGION)

        assert response.status_code == 200
        state = response.json()
        assert len(state["cells"]) == 28
        assert state["cells"][0]["label"] == "Mon-Morning"
        assert state["cells"][0]["status"] == "NO_BASELINE"
        assert state["cells"][0]["status_text"] == "Baseline: Not Set"

    def test_invalid_region(self, client):
        response = client.put("/region", json={"x": 0, "y": 0, "width": 0, "height": 10})

        assert response.status_code == 422
        assert client.get("/state").json()["cells"] == []

    def test_delete_region(self, client):
        client.put("/region", json=REGION)
        response = client.delete("/region")

        assert response.status_code == 200
        assert response.json()["master_region"] is None
        assert response.json()["cells"] == []


class TestBaselineEndpoints:
    """Baseline capture, clearing and reset."""

    def test_capture_without_region(self, client):
        response = client.post("/baselines")

        assert response.status_code == 409
        notification = client.get("/notification").json()["notification"]
        assert notification["severity"] == "error"

    def test_capture_and_monitor(self, client):
        client.put("/region", json=REGION)

        response = client.post("/baselines")
        assert response.status_code == 200
        assert response.json() == {"captured": 28, "cells": 28}

        state = wait_for_state(client, lambda s: s["monitoring"])
        assert state["monitoring"] is True
        assert {cell["status"] for cell in state["cells"]} == {"IDLE"}
        assert all(cell["has_baseline"] for cell in state["cells"])

    def test_clear_baselines(self, client):
        client.put("/region", json=REGION)
        client.post("/baselines")
        wait_for_state(client, lambda s: s["monitoring"])

        response = client.delete("/baselines")

        assert response.status_code == 200
        assert response.json()["monitoring"] is False
        notification = client.get("/notification").json()["notification"]
        assert notification["message"] == "Baseline cleared. Monitoring stopped."

    def test_reset(self, client):
        client.put("/region", json=REGION)

        response = client.post("/reset")

        assert response.status_code == 200
        assert response.json()["master_region"] is None
        notification = client.get("/notification").json()["notification"]
        assert notification["message"] == "All settings cleared."

    def test_camera_error_clears_region(self, client, source):
        from pillwatch.errors import FrameSourceError

        client.put("/region", json=REGION)
        source.error = FrameSourceError("permission denied")

        response = client.post("/baselines")

        assert response.status_code == 409
        assert client.get("/state").json()["master_region"] is None
        notification = client.get("/notification").json()["notification"]
        assert notification["message"] == "Camera Error: permission denied"


class TestStateStream:
    """WebSocket snapshot stream."""

    def test_receives_snapshot(self, client):
        client.put("/region", json=REGION)

        with client.websocket_connect("/ws/state") as websocket:
            snapshot = websocket.receive_json()

        assert len(snapshot["cells"]) == 28
        assert snapshot["master_region"]["width"] == 280

    def test_client_messages_do_not_break_stream(self, client):
        client.put("/region", json=REGION)

        with client.websocket_connect("/ws/state") as websocket:
            websocket.receive_json()
            websocket.send_text("ping")
            websocket.send_text("ping")
            second = websocket.receive_json()
            third = websocket.receive_json()

        assert len(second["cells"]) == 28
        assert third["monitoring"] is False
