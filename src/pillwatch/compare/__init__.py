"""
Compare Module
==============

Pixel difference metric between a baseline and a fresh capture.
"""

from pillwatch.compare.metrics import (
    DEFAULT_TOLERANCE,
    DIFF_ERROR,
    diff_percent,
    require_comparable,
)

__all__ = [
    "DEFAULT_TOLERANCE",
    "DIFF_ERROR",
    "diff_percent",
    "require_comparable",
]
