"""
Error Taxonomy
==============

Exceptions raised by the change-detection engine.

Propagation Rules:
    - Per-cell failures (capture, decode, comparison) are contained by the
      grid session and degrade only that cell's status
    - ConfigurationError is fatal to grid generation and is raised before
      any cell exists
    - FrameSourceError is a hard stop for the whole session
"""


class PillWatchError(Exception):
    """Base class for all PillWatch errors."""
    pass


class InvalidRegion(PillWatchError):
    """Raised when a rectangle has non-positive width or height."""
    pass


class CaptureFailure(PillWatchError):
    """Raised when a region cannot be captured from the frame source."""
    pass


class DecodeFailure(PillWatchError):
    """Raised when an encoded image is corrupt or empty."""
    pass


class DimensionMismatch(PillWatchError):
    """Raised when two images of unequal size are compared."""
    pass


class ConfigurationError(PillWatchError):
    """Raised when grid configuration cannot produce a labeled grid."""
    pass


class FrameSourceError(PillWatchError):
    """
    Raised by a frame source on an unrecoverable failure.

    Examples are camera permission denied or the device being removed.
    Unlike CaptureFailure this is not a per-cell condition.
    """
    pass
