"""
Difference Metric
=================

Fraction of pixels whose color moved beyond a fixed per-channel tolerance.

Formula:
    differing(p) = |ΔR| > tol OR |ΔG| > tol OR |ΔB| > tol    (alpha ignored)
    diff_percent = 100 * count(differing) / pixel_count

Design Note:
    Channels are tested independently rather than through a combined color
    distance. Global lighting shifts larger than the tolerance register as
    change; no normalization is attempted.
"""

import logging

import numpy as np

from pillwatch.errors import DimensionMismatch
from pillwatch.models.image import RawImage


logger = logging.getLogger(__name__)


DEFAULT_TOLERANCE = 30

# Returned instead of raising when images are not comparable
DIFF_ERROR = -1.0


def require_comparable(baseline: RawImage, current: RawImage) -> None:
    """
    Raises:
        DimensionMismatch: If the images differ in width or height
    """
    if not baseline.comparable(current):
        raise DimensionMismatch(
            f"Cannot compare {baseline.width}x{baseline.height} "
            f"with {current.width}x{current.height}"
        )


def diff_percent(
    baseline: RawImage,
    current: RawImage,
    tolerance: int = DEFAULT_TOLERANCE,
) -> float:
    """
    Percentage of pixels differing beyond tolerance.

    Never raises. Callers are expected to check dimensions first; a
    mismatch is still reported through the DIFF_ERROR sentinel.

    Args:
        baseline: Reference image
        current: Freshly captured image
        tolerance: Per-channel absolute difference ignored (0-255)

    Returns:
        Value in [0, 100], 0.0 for empty images, or -1.0 on size mismatch
    """
    if not baseline.comparable(current):
        logger.error(
            f"Cannot compare images with different dimensions: "
            f"{baseline.size} vs {current.size}"
        )
        return DIFF_ERROR

    total_pixels = baseline.width * baseline.height
    if total_pixels == 0:
        return 0.0

    base_rgb = baseline.pixels[:, :, :3].astype(np.int16)
    curr_rgb = current.pixels[:, :, :3].astype(np.int16)
    channel_diff = np.abs(base_rgb - curr_rgb)

    differing = np.any(channel_diff > tolerance, axis=2)
    differing_count = int(np.count_nonzero(differing))

    return 100.0 * differing_count / total_pixels
