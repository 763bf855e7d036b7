"""
Codec Module
============

Baseline image encoding (PNG data URLs).
"""

from pillwatch.codec.png import (
    DATA_URL_PREFIX,
    decode_image,
    decode_image_sync,
    encode_image,
)

__all__ = [
    "DATA_URL_PREFIX",
    "encode_image",
    "decode_image",
    "decode_image_sync",
]
