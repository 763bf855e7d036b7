"""
Settings Store
==============

Optional key-value persistence for the master region and baselines.

The grid session works identically with no store at all. Only an
in-memory implementation is provided.

Baselines are keyed by (row, col) position rather than cell id, because
cell ids are regenerated every time the grid is rebuilt.
"""

import logging
from typing import Dict, Optional, Protocol, Tuple

from pillwatch.models.geometry import Rectangle
from pillwatch.models.image import EncodedImage


logger = logging.getLogger(__name__)


Position = Tuple[int, int]


class SettingsStore(Protocol):
    """Protocol for settings persistence backends."""

    def load_region(self) -> Optional[Rectangle]:
        ...

    def save_region(self, region: Optional[Rectangle]) -> None:
        ...

    def load_baselines(self) -> Dict[Position, EncodedImage]:
        ...

    def save_baselines(self, baselines: Dict[Position, EncodedImage]) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemorySettingsStore:
    """Process-local settings store."""

    def __init__(self) -> None:
        self._region: Optional[Rectangle] = None
        self._baselines: Dict[Position, EncodedImage] = {}

    def load_region(self) -> Optional[Rectangle]:
        return self._region

    def save_region(self, region: Optional[Rectangle]) -> None:
        self._region = region
        logger.debug(f"Saved region: {region}")

    def load_baselines(self) -> Dict[Position, EncodedImage]:
        return dict(self._baselines)

    def save_baselines(self, baselines: Dict[Position, EncodedImage]) -> None:
        self._baselines = dict(baselines)
        logger.debug(f"Saved {len(baselines)} baseline(s)")

    def clear(self) -> None:
        self._region = None
        self._baselines = {}
        logger.debug("Cleared stored settings")
