"""
PillWatch Configuration
=======================

This module handles configuration loading for the pill calendar monitor.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    PILLWATCH_GRID_ROWS         -> grid.rows
    PILLWATCH_GRID_COLS         -> grid.cols
    PILLWATCH_TOLERANCE         -> detection.tolerance
    PILLWATCH_DIFF_THRESHOLD    -> detection.diff_threshold
    PILLWATCH_POLL_INTERVAL_MS  -> detection.poll_interval_ms
    PILLWATCH_CAMERA_BACKEND    -> camera.backend
    PILLWATCH_CAMERA_INDEX      -> camera.device_index
    PILLWATCH_STREAM_URL        -> camera.stream_url
    PILLWATCH_PORT              -> server.port
    PILLWATCH_LOG_LEVEL         -> logging.level
    PORT                        -> server.port (Cloud Run)

Example:
    from pillwatch.config import settings

    print(settings.grid.rows, settings.grid.cols)
    print(settings.detection.diff_threshold)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from pillwatch.geometry.grid import DEFAULT_DAY_LABELS, DEFAULT_SLOT_LABELS


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AppConfig(BaseModel):
    """Application identification configuration."""

    name: str = Field(default="pillwatch", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class GridConfig(BaseModel):
    """Grid layout of the pill calendar."""

    rows: int = Field(default=7, ge=1, description="Rows (days)")
    cols: int = Field(default=4, ge=1, description="Columns (time slots)")
    day_labels: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DAY_LABELS),
        description="Row names, at least `rows` entries",
    )
    slot_labels: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SLOT_LABELS),
        description="Column names, at least `cols` entries",
    )


class DetectionConfig(BaseModel):
    """Change detection parameters."""

    tolerance: int = Field(
        default=30,
        ge=0,
        le=255,
        description="Per-channel difference ignored by the metric",
    )
    diff_threshold: float = Field(
        default=10.0,
        ge=0,
        le=100,
        description="Percentage of differing pixels that counts as changed",
    )
    poll_interval_ms: int = Field(
        default=1000,
        ge=50,
        description="Milliseconds between comparison cycles",
    )


class CameraConfig(BaseModel):
    """Frame source configuration."""

    backend: str = Field(
        default="opencv",
        description="Frame source: 'opencv' (local camera) or 'stream' (WebSocket)",
    )
    device_index: int = Field(default=0, ge=0, description="OpenCV camera index")
    frame_width: int = Field(default=640, ge=1, description="Requested frame width")
    frame_height: int = Field(default=480, ge=1, description="Requested frame height")
    stream_url: str = Field(
        default="ws://localhost:8000/ws/stream",
        description="WebSocket URL of the frame stream",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )


class NotificationConfig(BaseModel):
    """Notification display configuration."""

    duration_ms: int = Field(default=5000, ge=0, description="Display duration")


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for PillWatch.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    app: AppConfig = Field(default_factory=AppConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Grid
    if env_rows := os.environ.get("PILLWATCH_GRID_ROWS"):
        config_data.setdefault("grid", {})["rows"] = int(env_rows)
    if env_cols := os.environ.get("PILLWATCH_GRID_COLS"):
        config_data.setdefault("grid", {})["cols"] = int(env_cols)

    # Detection
    if env_tol := os.environ.get("PILLWATCH_TOLERANCE"):
        config_data.setdefault("detection", {})["tolerance"] = int(env_tol)
    if env_th := os.environ.get("PILLWATCH_DIFF_THRESHOLD"):
        config_data.setdefault("detection", {})["diff_threshold"] = float(env_th)
    if env_interval := os.environ.get("PILLWATCH_POLL_INTERVAL_MS"):
        config_data.setdefault("detection", {})["poll_interval_ms"] = int(env_interval)

    # Camera
    if env_backend := os.environ.get("PILLWATCH_CAMERA_BACKEND"):
        config_data.setdefault("camera", {})["backend"] = env_backend
    if env_index := os.environ.get("PILLWATCH_CAMERA_INDEX"):
        config_data.setdefault("camera", {})["device_index"] = int(env_index)
    if env_url := os.environ.get("PILLWATCH_STREAM_URL"):
        config_data.setdefault("camera", {})["stream_url"] = env_url

    # Server (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("PILLWATCH_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging
    if env_log := os.environ.get("PILLWATCH_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
