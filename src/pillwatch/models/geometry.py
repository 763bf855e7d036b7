"""
Geometry Models
===============

Rectangles and grid cells in camera frame coordinates.

Coordinate Space:
    All coordinates are in pixels of the on-screen (mirrored) preview,
    origin at top-left, X increasing rightward and Y downward. Positions and
    sizes are floats; rounding to whole pixels only happens at capture time
    via `Rectangle.pixel_size()`.

Example:
    from pillwatch.models.geometry import Rectangle

    master = Rectangle(x=0, y=0, width=280, height=490)
    print(master.pixel_size())  # (280, 490)
"""

import math
from typing import Any, NewType, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pillwatch.errors import InvalidRegion


CellId = NewType("CellId", str)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class Rectangle(BaseModel):
    """
    Axis-aligned rectangle.

    A rectangle with non-positive width or height is not a valid region
    and is rejected at construction.

    Attributes:
        x: Left edge (pixels)
        y: Top edge (pixels)
        width: Horizontal extent (pixels, > 0)
        height: Vertical extent (pixels, > 0)
    """

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="Left edge in pixels")
    y: float = Field(..., description="Top edge in pixels")
    width: float = Field(..., gt=0, description="Width in pixels")
    height: float = Field(..., gt=0, description="Height in pixels")

    @classmethod
    def from_data(cls, data: Any) -> "Rectangle":
        """
        Build a rectangle from a mapping or another rectangle.

        Raises:
            InvalidRegion: If the data does not describe a valid region
        """
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidRegion(f"Invalid region {data!r}: {e.error_count()} error(s)") from e

    @property
    def area(self) -> float:
        return self.width * self.height

    def pixel_size(self) -> Tuple[int, int]:
        """
        Integer capture size as (width, height), each at least 1.
        """
        return (
            max(1, round_half_up(self.width)),
            max(1, round_half_up(self.height)),
        )

    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


class GridCell(Rectangle):
    """
    One pocket of the pill calendar, derived from the master region.

    Attributes:
        id: Unique identifier within the session's current grid
        row: Row index (day), in [0, rows)
        col: Column index (time slot), in [0, cols)
        label: Human-readable name, e.g. "Mon-Morning"
    """

    id: CellId = Field(..., description="Cell identifier")
    row: int = Field(..., ge=0, description="Row index")
    col: int = Field(..., ge=0, description="Column index")
    label: str = Field(..., description="Human-readable pocket name")

    @property
    def position(self) -> Tuple[int, int]:
        """(row, col) pair, stable across id regenerations."""
        return (self.row, self.col)

    def region(self) -> Rectangle:
        """The plain rectangle covered by this cell."""
        return Rectangle(x=self.x, y=self.y, width=self.width, height=self.height)
