"""
Real-ESRGAN upscaling module.

The Real-ESRGAN x2 model must be loaded before an upscale is accepted, so a
missing or broken weights file still fails the request. The output itself
is produced by high-quality Lanczos resampling to ``width*scale x
height*scale``; the model's output tensor is not consumed yet.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from ..catalog import ModelDescriptor, ModelTask
from ..image import PixelImage
from ..tensor import resample
from .base import TaskProcessor


def upscaled_size(image: PixelImage, scale: float) -> Tuple[int, int]:
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    return max(1, round(image.width * scale)), max(1, round(image.height * scale))


class UpscaleProcessor(TaskProcessor):
    task = ModelTask.UPSCALING
    # TODO: feed tiles through the session and stitch the model output once
    # a tiling scheme for the fixed 512x512 input is in place.
    runs_inference = False

    def preprocess(self, image: PixelImage, descriptor: ModelDescriptor, **options: Any) -> Dict[str, np.ndarray]:
        return {}

    def postprocess(
        self,
        outputs: Optional[Mapping[str, np.ndarray]],
        image: PixelImage,
        descriptor: ModelDescriptor,
        **options: Any,
    ) -> PixelImage:
        size = upscaled_size(image, options.get("scale", 2))
        return resample(image, size, high_quality=True)
