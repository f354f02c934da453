"""Image preprocessing pipeline.

Handles decoding, EXIF orientation, color space conversion, size validation
and conversion to the normalized tensor layout Teachable Machine image
models expect.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray


class ImageDecodeError(ValueError):
    """Raised when an uploaded image cannot be decoded or exceeds size limits."""


def decode_image(image_bytes: bytes, max_pixels: int | None = None) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGB uint8 numpy array.

    Args:
        image_bytes: Raw file bytes (any format Pillow can read).
        max_pixels: Optional upper bound on width * height.

    Returns:
        HxWx3 RGB uint8 numpy array.

    Raises:
        ImageDecodeError: If the image cannot be decoded or exceeds size limits.
    """
    if not image_bytes:
        raise ImageDecodeError("Image payload is empty")

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if max_pixels is not None and width * height > max_pixels:
                raise ImageDecodeError(f"Image has {width * height} pixels, limit is {max_pixels}")
            img.load()
            oriented = ImageOps.exif_transpose(img)
            rgb = oriented.convert("RGB")
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Cannot decode image: {exc}") from exc

    return np.asarray(rgb, dtype=np.uint8)


def preprocess_for_classification(image: NDArray[np.uint8], size: int = 224) -> NDArray[np.float32]:
    """Centre-crop to a square, resize and scale pixels to [-1, 1].

    Args:
        image: HxWx3 RGB uint8 array.
        size: Target edge length in pixels.

    Returns:
        1xSxSx3 float32 tensor.
    """
    height, width = image.shape[:2]
    edge = min(height, width)
    top = (height - edge) // 2
    left = (width - edge) // 2
    cropped = image[top : top + edge, left : left + edge]

    resized = Image.fromarray(cropped).resize((size, size), Image.Resampling.BILINEAR)
    array = np.asarray(resized, dtype=np.float32)
    array = array / 127.5 - 1.0
    return np.expand_dims(array, axis=0)
