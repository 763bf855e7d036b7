"""
Image Models
============

In-memory raster representation shared by capture, codec and comparison.

Design Rules:
    - Pixels are always RGBA, dtype uint8, shape (height, width, 4)
    - Two images are comparable only if width and height match exactly
    - Encoded images are plain strings, opaque outside the codec
"""

from dataclasses import dataclass

import numpy as np


EncodedImage = str


@dataclass(frozen=True, slots=True, eq=False)
class RawImage:
    """
    Dense RGBA pixel buffer.

    Attributes:
        pixels: Array of shape (height, width, 4), dtype uint8
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"RawImage requires (H, W, 4) pixels, got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"RawImage requires uint8 pixels, got {self.pixels.dtype}")

    @classmethod
    def blank(cls, width: int, height: int, rgba=(0, 0, 0, 255)) -> "RawImage":
        """Create a solid-color image."""
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = rgba
        return cls(pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple:
        """(width, height)"""
        return (self.width, self.height)

    def comparable(self, other: "RawImage") -> bool:
        return self.size == other.size

    def tobytes(self) -> bytes:
        """Flat RGBA buffer of length width * height * 4."""
        return self.pixels.tobytes()

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel data."""
        return f"RawImage(width={self.width}, height={self.height})"
