"""
Cell Status Models
==================

Per-cell status values reported by the cell monitor.

State Machine:
    NO_BASELINE → (baseline set, decode pending) → BASELINE_ERROR | IDLE
    IDLE ⟷ CHANGED
    IDLE/CHANGED → COMPARISON_ERROR | CAPTURE_ERROR → IDLE/CHANGED

Errors are not sticky: the next successful polling cycle returns the cell
to IDLE or CHANGED.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pillwatch.models.geometry import CellId


class CellStatus(str, Enum):
    """
    Discrete status of one grid cell.

    Attributes:
        NO_BASELINE: No decoded baseline (never set, cleared, or pending)
        BASELINE_ERROR: Baseline was set but could not be decoded
        IDLE: Baseline decoded, no significant change
        CHANGED: Difference above threshold, medication likely taken
        COMPARISON_ERROR: Baseline and capture could not be compared
        CAPTURE_ERROR: Current region could not be captured
    """

    NO_BASELINE = "NO_BASELINE"
    BASELINE_ERROR = "BASELINE_ERROR"
    IDLE = "IDLE"
    CHANGED = "CHANGED"
    COMPARISON_ERROR = "COMPARISON_ERROR"
    CAPTURE_ERROR = "CAPTURE_ERROR"

    @property
    def is_error(self) -> bool:
        return self in (
            CellStatus.BASELINE_ERROR,
            CellStatus.COMPARISON_ERROR,
            CellStatus.CAPTURE_ERROR,
        )

    def describe(self, diff: Optional[float] = None) -> str:
        """Cell-local status string for display."""
        if self is CellStatus.CHANGED:
            return f"Change Detected ({diff:.1f}%)" if diff is not None else "Change Detected"
        if self is CellStatus.IDLE:
            return f"No Significant Change ({diff:.1f}%)" if diff is not None else "Monitoring"
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    CellStatus.NO_BASELINE: "Baseline: Not Set",
    CellStatus.BASELINE_ERROR: "Baseline Error",
    CellStatus.COMPARISON_ERROR: "Comparison Error",
    CellStatus.CAPTURE_ERROR: "Capture Error",
}


@dataclass(frozen=True, slots=True)
class CycleOutcome:
    """
    Result of one polling cycle for one cell.

    Attributes:
        cell_id: Evaluated cell
        status: Status after the cycle
        diff: Difference percentage, None unless the comparison succeeded
        rising_edge: True only on the transition into CHANGED
    """

    cell_id: CellId
    status: CellStatus
    diff: Optional[float]
    rising_edge: bool = False

    def __repr__(self) -> str:
        diff = f"{self.diff:.2f}" if self.diff is not None else "None"
        return (
            f"CycleOutcome({self.cell_id}, {self.status.value}, "
            f"diff={diff}, rising={self.rising_edge})"
        )
