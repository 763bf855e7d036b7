"""
PNG Image Codec
===============

Lossless encoding of baseline images to portable strings and back.

Format:
    data:image/png;base64,<base64 PNG bytes>

Design Rules:
    - This is the ONLY place in the codebase that encodes or decodes baselines
    - PNG keeps the round trip lossless, alpha included
    - Decoding runs in a worker thread and never raises: failure resolves
      to None, which callers treat as "no usable baseline"
    - Ordering of concurrent decodes is the caller's concern (the grid
      session tags each batch with a generation)
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional

import cv2
import numpy as np

from pillwatch.errors import DecodeFailure
from pillwatch.models.image import EncodedImage, RawImage


logger = logging.getLogger(__name__)


DATA_URL_PREFIX = "data:image/png;base64,"


def encode_image(image: RawImage) -> EncodedImage:
    """
    Encode an RGBA image as a PNG data URL.

    Args:
        image: Image to encode

    Returns:
        Data URL string

    Raises:
        ValueError: If the image is empty or OpenCV fails to encode it
    """
    if image.width == 0 or image.height == 0:
        raise ValueError("Cannot encode an empty image")

    # OpenCV expects BGRA channel order for 4-channel PNG
    bgra = cv2.cvtColor(image.pixels, cv2.COLOR_RGBA2BGRA)
    ok, buffer = cv2.imencode(".png", bgra)
    if not ok:
        raise ValueError(f"PNG encoding failed for {image!r}")

    return DATA_URL_PREFIX + base64.b64encode(buffer.tobytes()).decode("ascii")


def decode_image_sync(encoded: EncodedImage) -> RawImage:
    """
    Decode a PNG data URL (or bare base64 PNG) to an RGBA image.

    Raises:
        DecodeFailure: If the data is corrupt, not an image, or empty
    """
    if not encoded:
        raise DecodeFailure("Encoded image is empty")

    payload = encoded
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        if not header.endswith(";base64"):
            raise DecodeFailure(f"Unsupported data URL header: {header[:40]}")

    try:
        png_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailure(f"Base64 decode failed: {e}") from e

    if not png_bytes:
        raise DecodeFailure("Encoded image has no payload")

    try:
        decoded = cv2.imdecode(np.frombuffer(png_bytes, np.uint8), cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeFailure(f"Image decode failed: {e}") from e

    if decoded is None:
        raise DecodeFailure("cv2.imdecode returned None")
    if decoded.size == 0:
        raise DecodeFailure("Decoded image has zero dimensions")
    if decoded.dtype != np.uint8:
        raise DecodeFailure(f"Unsupported decoded dtype: {decoded.dtype}")

    if decoded.ndim == 2:
        rgba = cv2.cvtColor(decoded, cv2.COLOR_GRAY2RGBA)
    elif decoded.shape[2] == 3:
        rgba = cv2.cvtColor(decoded, cv2.COLOR_BGR2RGBA)
    elif decoded.shape[2] == 4:
        rgba = cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA)
    else:
        raise DecodeFailure(f"Unsupported decoded shape: {decoded.shape}")

    return RawImage(rgba)


async def decode_image(encoded: EncodedImage) -> Optional[RawImage]:
    """
    Decode off the event loop.

    Returns:
        RawImage, or None if decoding failed
    """
    try:
        return await asyncio.to_thread(decode_image_sync, encoded)
    except DecodeFailure as e:
        logger.warning(f"Baseline decode failed: {e}")
        return None
