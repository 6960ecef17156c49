"""
Portrait enhancement module.

Runs the portrait enhancer on a [0, 1] planar tensor and stretches the
result back to the size of the input image.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import numpy as np

from ..catalog import ModelDescriptor, ModelTask
from ..image import PixelImage
from ..tensor import Normalization, from_planar_tensor, to_planar_tensor
from .base import TaskProcessor


class EnhancementProcessor(TaskProcessor):
    task = ModelTask.ENHANCEMENT

    def preprocess(self, image: PixelImage, descriptor: ModelDescriptor, **options: Any) -> Dict[str, np.ndarray]:
        return {self.input_name: to_planar_tensor(image, descriptor.input_shape, Normalization.UNSIGNED)}

    def postprocess(
        self,
        outputs: Optional[Mapping[str, np.ndarray]],
        image: PixelImage,
        descriptor: ModelDescriptor,
        **options: Any,
    ) -> PixelImage:
        return from_planar_tensor(self.select_output(outputs or {}), Normalization.UNSIGNED, image.size)
