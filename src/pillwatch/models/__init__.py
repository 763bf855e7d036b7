"""
Data Models
===========

Typed models shared across the PillWatch engine.

Models:
    Geometry:
        - Rectangle: Validated region in frame coordinates
        - GridCell: One labeled pocket of the grid
        - CellId: Cell identifier newtype

    Image:
        - RawImage: RGBA pixel buffer
        - EncodedImage: Portable encoded image string

    Status:
        - CellStatus: Per-cell state machine status
        - CycleOutcome: Result of one polling cycle for one cell

    Output:
        - CellView, GridSnapshot: Read-only session view
"""

from pillwatch.models.geometry import CellId, GridCell, Rectangle
from pillwatch.models.image import EncodedImage, RawImage
from pillwatch.models.status import CellStatus, CycleOutcome
from pillwatch.models.output import CellView, GridSnapshot

__all__ = [
    # Geometry
    "CellId",
    "Rectangle",
    "GridCell",
    # Image
    "RawImage",
    "EncodedImage",
    # Status
    "CellStatus",
    "CycleOutcome",
    # Output
    "CellView",
    "GridSnapshot",
]
