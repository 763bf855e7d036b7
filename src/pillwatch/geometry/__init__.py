"""
Geometry Module
===============

Derives the grid of pockets from the single user-selected master region.
"""

from pillwatch.geometry.grid import (
    DEFAULT_COLS,
    DEFAULT_DAY_LABELS,
    DEFAULT_ROWS,
    DEFAULT_SLOT_LABELS,
    make_label,
    partition_grid,
)

__all__ = [
    "DEFAULT_ROWS",
    "DEFAULT_COLS",
    "DEFAULT_DAY_LABELS",
    "DEFAULT_SLOT_LABELS",
    "make_label",
    "partition_grid",
]
