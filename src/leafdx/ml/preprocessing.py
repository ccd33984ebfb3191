"""Image preprocessing pipeline.

Decodes uploaded bytes into a :class:`DecodedImage` and turns a decoded image
into the model's input tensor: bilinear resize to 128x128 (aspect ratio is not
kept), scale to [0, 1], normalize with mean = std = 0.5 and pack channel-first.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from leafdx.ml.errors import ImageDecodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

INPUT_SIZE: int = 128

# Pinned to the kernel the model was exported with; changing it shifts predictions silently.
RESAMPLE = Image.Resampling.BILINEAR

MEAN = np.array([0.5, 0.5, 0.5], dtype=np.float32)
STD = np.array([0.5, 0.5, 0.5], dtype=np.float32)

_SUPPORTED_CHANNELS = (3, 4)


@dataclass(frozen=True, eq=False)
class DecodedImage:
    """An 8-bit RGB or RGBA image held as an HxWxC array, top-left origin."""

    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        pixels = self.pixels
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] not in _SUPPORTED_CHANNELS:
            raise ValueError(f"Expected an HxWx3 or HxWx4 array, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("Image width and height must be positive")

    @classmethod
    def from_buffer(cls, width: int, height: int, buffer: bytes, channels: int = 3) -> DecodedImage:
        """Wrap a row-major, channel-interleaved 8-bit pixel buffer."""
        if width <= 0 or height <= 0:
            raise ValueError("Image width and height must be positive")
        if channels not in _SUPPORTED_CHANNELS:
            raise ValueError(f"Unsupported channel count: {channels}")
        expected = width * height * channels
        if len(buffer) != expected:
            raise ValueError(f"Buffer holds {len(buffer)} bytes, expected {expected}")
        pixels = np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, channels)
        return cls(pixels=pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])


def decode_image(image_bytes: bytes, max_pixels: int) -> DecodedImage:
    """Decode raw image bytes into a :class:`DecodedImage`.

    EXIF orientation is applied and 16-bit grayscale is scaled to 8 bits.
    Images with transparency are kept as RGBA, everything else is converted
    to RGB.

    Args:
        image_bytes: Raw file bytes (any format Pillow can read).
        max_pixels: Upper bound on width * height.

    Raises:
        ImageDecodeError: If the bytes are not a readable image or the image
            exceeds ``max_pixels``.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if width * height > max_pixels:
                raise ImageDecodeError(f"Image is {width}x{height}, exceeding the {max_pixels} pixel limit")
            oriented = _to_8bit(ImageOps.exif_transpose(img))
            mode = "RGBA" if _has_alpha(oriented) else "RGB"
            pixels = np.asarray(oriented.convert(mode), dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ImageDecodeError(f"Could not decode image: {exc}") from exc

    return DecodedImage(pixels=pixels)


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale 16-bit grayscale (Pillow opens it as "I" or "I;16*") to "L"; convert() would clip it."""
    if img.mode == "I" or img.mode.startswith("I;16"):
        wide = np.asarray(img).astype(np.int64)
        return Image.fromarray(np.clip(wide >> 8, 0, 255).astype(np.uint8))
    return img


def preprocess(image: DecodedImage, size: int = INPUT_SIZE) -> NDArray[np.float32]:
    """Convert a decoded image into a ``(1, 3, size, size)`` float32 tensor in [-1, 1].

    The buffer holds the whole R plane, then G, then B, each row-major.
    """
    rgb = Image.fromarray(np.ascontiguousarray(image.pixels[:, :, :3]))
    resized = rgb.resize((size, size), resample=RESAMPLE)

    arr = np.asarray(resized, dtype=np.float32) / 255.0
    arr = (arr - MEAN) / STD
    chw = arr.transpose(2, 0, 1)  # HWC -> CHW
    return np.ascontiguousarray(chw[np.newaxis, ...], dtype=np.float32)
