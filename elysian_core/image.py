"""
Pixel buffer images.

``PixelImage`` is the image type at the engine boundary: explicit width and
height plus raw RGBA samples (4 per pixel, row-major). It is independent of
any display system; Pillow is only used to decode and encode it.
"""

from __future__ import annotations

import base64
import io

import numpy as np
from PIL import Image


class PixelImage:
    def __init__(self, width: int, height: int, data: np.ndarray):
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid image size {width}x{height}")
        pixels = np.asarray(data, dtype=np.uint8)
        if pixels.size != width * height * 4:
            raise ValueError(
                f"expected {width * height * 4} RGBA samples for {width}x{height}, got {pixels.size}"
            )
        self.width = width
        self.height = height
        self.data = pixels.reshape(height, width, 4)

    @property
    def size(self) -> tuple:
        return (self.width, self.height)

    @classmethod
    def from_bytes(cls, width: int, height: int, samples: bytes) -> "PixelImage":
        return cls(width, height, np.frombuffer(samples, dtype=np.uint8))

    @classmethod
    def blank(cls, width: int, height: int, color: tuple = (0, 0, 0, 255)) -> "PixelImage":
        data = np.empty((height, width, 4), dtype=np.uint8)
        data[...] = color
        return cls(width, height, data)

    @classmethod
    def from_pil(cls, image: Image.Image) -> "PixelImage":
        rgba = image.convert("RGBA")
        return cls(rgba.width, rgba.height, np.asarray(rgba))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.data)

    def to_bytes(self) -> bytes:
        return self.data.tobytes()

    def __repr__(self) -> str:
        return f"PixelImage({self.width}x{self.height})"


def decode_data_url(data_url: str) -> PixelImage:
    """Decode a base64 data URL (or bare base64) into a ``PixelImage``."""
    encoded = data_url.split(",", 1)[1] if "," in data_url else data_url
    raw = base64.b64decode(encoded)
    with Image.open(io.BytesIO(raw)) as image:
        return PixelImage.from_pil(image)


def encode_data_url(image: PixelImage, fmt: str = "PNG") -> str:
    buffer = io.BytesIO()
    image.to_pil().save(buffer, format=fmt)
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/{fmt.lower()};base64,{encoded}"


def load_image(path: str) -> PixelImage:
    with Image.open(path) as image:
        return PixelImage.from_pil(image)


def save_image(image: PixelImage, path: str) -> None:
    image.to_pil().save(path)
