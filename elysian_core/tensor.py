"""
Tensor pipeline shared by all task processors.

Images are converted to batched, channel-major (planar) float32 tensors of
shape ``[1, 3, H, W]`` and back. Resizing is a direct stretch to the target
size: the aspect ratio of the source is not preserved, which matches what
the models were exported against.
"""

from __future__ import annotations

from enum import Enum
from typing import Sequence, Tuple

import numpy as np
from PIL import Image

from .image import PixelImage


class Normalization(str, Enum):
    SIGNED = "signed"  # [-1, 1], pose
    UNSIGNED = "unsigned"  # [0, 1], style transfer and enhancement


def resample(image: PixelImage, size: Tuple[int, int], high_quality: bool = False) -> PixelImage:
    """Stretch ``image`` to ``size`` (width, height)."""
    width, height = int(size[0]), int(size[1])
    if (width, height) == image.size:
        return image
    method = Image.Resampling.LANCZOS if high_quality else Image.Resampling.BILINEAR
    resized = image.to_pil().resize((width, height), resample=method)
    return PixelImage.from_pil(resized)


def to_planar_tensor(image: PixelImage, target_shape: Sequence[int], normalize: Normalization) -> np.ndarray:
    """Convert an RGBA image into a normalized ``[1, 3, H, W]`` tensor.

    :param image: Source image, any size.
    :param target_shape: Model input shape (batch, channels, height, width).
    :param normalize: Normalization scheme applied to the 0-255 samples.
    :return: Contiguous float32 tensor.
    """
    _, channels, height, width = target_shape
    if channels != 3:
        raise ValueError(f"expected a 3-channel input shape, got {tuple(target_shape)}")

    resized = resample(image, (width, height))
    rgb = resized.data[..., :3].astype(np.float32) / 255.0
    if normalize == Normalization.SIGNED:
        rgb = rgb * 2.0 - 1.0

    planar = rgb.transpose(2, 0, 1)[np.newaxis, ...]
    return np.ascontiguousarray(planar, dtype=np.float32)


def from_planar_tensor(
    tensor: np.ndarray,
    normalize: Normalization,
    target_size: Tuple[int, int],
) -> PixelImage:
    """Convert a ``[1, 3, H, W]`` (or ``[3, H, W]``) tensor back into an image.

    Samples are denormalized to 0-255, rounded and clamped; alpha is opaque.
    The result is stretched to ``target_size`` (width, height) so callers get
    their requested output size whatever the model's working resolution.
    """
    planes = np.asarray(tensor, dtype=np.float32)
    if planes.ndim == 4:
        planes = planes[0]
    if planes.ndim != 3:
        raise ValueError(f"expected a planar image tensor, got shape {planes.shape}")
    if planes.shape[0] == 1:
        planes = np.repeat(planes, 3, axis=0)
    planes = planes[:3]

    if normalize == Normalization.SIGNED:
        planes = (planes + 1.0) / 2.0
    samples = np.clip(np.rint(planes * 255.0), 0, 255).astype(np.uint8)

    _, height, width = samples.shape
    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[..., :3] = samples.transpose(1, 2, 0)
    rgba[..., 3] = 255
    return resample(PixelImage(width, height, rgba), target_size)
