"""
Snapshot Models
===============

Read-only view of a grid session for renderers and API clients.

Output Contract:
    {
        "master_region": {"x": 0, "y": 0, "width": 280, "height": 490},
        "monitoring": true,
        "baselines_pending": false,
        "cells": [
            {
                "id": "g1-r0c0",
                "row": 0,
                "col": 0,
                "label": "Mon-Morning",
                "x": 0, "y": 0, "width": 40, "height": 70,
                "status": "CHANGED",
                "status_text": "Change Detected (23.4%)",
                "diff": 23.4,
                "has_baseline": true
            }
        ]
    }

Design Rules:
    - A snapshot is built in one step from session state, never partially
    - Only cells of the current grid appear; orphaned ids are never reported
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from pillwatch.models.geometry import CellId, Rectangle
from pillwatch.models.status import CellStatus


class CellView(BaseModel):
    """
    Rendered state of one grid cell.

    Attributes:
        id: Cell identifier
        row: Row index
        col: Column index
        label: Pocket name
        x, y, width, height: Cell rectangle
        status: Current status
        status_text: Cell-local status string
        diff: Last difference percentage, if the last comparison succeeded
        has_baseline: Whether an encoded baseline exists for this cell
    """

    id: CellId
    row: int
    col: int
    label: str
    x: float
    y: float
    width: float
    height: float
    status: CellStatus
    status_text: str
    diff: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    has_baseline: bool = False


class GridSnapshot(BaseModel):
    """
    Aggregate view of a grid session.

    Attributes:
        master_region: Current master region, if any
        monitoring: True iff at least one cell has a decoded baseline
        baselines_pending: True while a baseline decode batch is in flight
        cells: Cells of the current grid in row-major order
    """

    master_region: Optional[Rectangle] = None
    monitoring: bool = False
    baselines_pending: bool = False
    cells: List[CellView] = Field(default_factory=list)

    @property
    def statuses(self) -> Dict[CellId, CellStatus]:
        return {cell.id: cell.status for cell in self.cells}

    @property
    def diffs(self) -> Dict[CellId, Optional[float]]:
        return {cell.id: cell.diff for cell in self.cells}
