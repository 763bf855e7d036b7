"""
Grid Partitioning
=================

Splits a master region into a ROWS×COLS grid of labeled cells.

Rows are days of the week and columns are time slots, so the default
7×4 grid yields 28 pockets labeled "Mon-Morning" ... "Sun-Bedtime".

All functions here are PURE: no side effects, safe to call on every master
region change. Fresh cell ids per regeneration come from the caller's
`id_prefix`, not from hidden state.

Example:
    from pillwatch.geometry import partition_grid
    from pillwatch.models import Rectangle

    cells = partition_grid(Rectangle(x=0, y=0, width=280, height=490), 7, 4)
    assert len(cells) == 28
    assert cells[0].label == "Mon-Morning"
"""

import logging
from typing import List, Sequence

from pillwatch.errors import ConfigurationError
from pillwatch.models.geometry import CellId, GridCell, Rectangle


logger = logging.getLogger(__name__)


DEFAULT_ROWS = 7
DEFAULT_COLS = 4

DEFAULT_DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
DEFAULT_SLOT_LABELS = ("Morning", "Noon", "Evening", "Bedtime")


def make_label(
    row: int,
    col: int,
    day_labels: Sequence[str] = DEFAULT_DAY_LABELS,
    slot_labels: Sequence[str] = DEFAULT_SLOT_LABELS,
) -> str:
    """Deterministic pocket name for (row, col)."""
    return f"{day_labels[row]}-{slot_labels[col]}"


def make_cell_id(id_prefix: str, row: int, col: int) -> CellId:
    return CellId(f"{id_prefix}-r{row}c{col}")


def partition_grid(
    master: Rectangle,
    rows: int = DEFAULT_ROWS,
    cols: int = DEFAULT_COLS,
    day_labels: Sequence[str] = DEFAULT_DAY_LABELS,
    slot_labels: Sequence[str] = DEFAULT_SLOT_LABELS,
    id_prefix: str = "cell",
) -> List[GridCell]:
    """
    Partition a master rectangle into a row-major grid of cells.

    Cell sizes are floating point; nothing is rounded here.

    Args:
        master: The user-selected region covering the whole calendar
        rows: Number of rows (days)
        cols: Number of columns (time slots)
        day_labels: Row names, at least `rows` entries
        slot_labels: Column names, at least `cols` entries
        id_prefix: Prefix making ids unique per regeneration

    Returns:
        rows * cols cells in row-major order

    Raises:
        ConfigurationError: If dimensions are not positive or a label table
            is shorter than the grid. Raised before any cell is created.
    """
    if rows < 1 or cols < 1:
        raise ConfigurationError(f"Grid dimensions must be positive, got {rows}x{cols}")
    if len(day_labels) < rows:
        raise ConfigurationError(
            f"Day label table has {len(day_labels)} entries, grid needs {rows}"
        )
    if len(slot_labels) < cols:
        raise ConfigurationError(
            f"Slot label table has {len(slot_labels)} entries, grid needs {cols}"
        )

    cell_width = master.width / cols
    cell_height = master.height / rows

    cells: List[GridCell] = []
    for row in range(rows):
        for col in range(cols):
            cells.append(
                GridCell(
                    id=make_cell_id(id_prefix, row, col),
                    row=row,
                    col=col,
                    label=make_label(row, col, day_labels, slot_labels),
                    x=master.x + col * cell_width,
                    y=master.y + row * cell_height,
                    width=cell_width,
                    height=cell_height,
                )
            )

    logger.debug(
        f"Partitioned {master.width:.1f}x{master.height:.1f} region into "
        f"{rows}x{cols} cells of {cell_width:.1f}x{cell_height:.1f}"
    )
    return cells
