"""
Artistic style transfer.

The content image is fed in [0, 1] together with a scalar style strength.
The stylized output is brought back to the caller's image size and then
composited with the original according to ``StyleTransferOptions``:
``preserve_colors`` keeps the chroma of the source and takes only the
luminance of the stylized image, ``blend_mode`` combines both with Pillow's
channel operations.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Mapping, Optional

import numpy as np
from PIL import Image, ImageChops
from pydantic import BaseModel, Field

from ..catalog import ModelDescriptor, ModelTask
from ..image import PixelImage
from ..tensor import Normalization, from_planar_tensor, to_planar_tensor
from .base import TaskProcessor

BlendMode = Literal["normal", "multiply", "overlay"]


class StyleTransferOptions(BaseModel):
    style_strength: float = Field(default=1.0, ge=0.0)
    preserve_colors: bool = False
    blend_mode: BlendMode = "normal"


def composite(original: PixelImage, stylized: PixelImage, options: StyleTransferOptions) -> PixelImage:
    """Combine the stylized image with the original (both the same size)."""
    source = original.to_pil().convert("RGB")
    styled = stylized.to_pil().convert("RGB")

    if options.preserve_colors:
        luma, _, _ = styled.convert("YCbCr").split()
        _, cb, cr = source.convert("YCbCr").split()
        styled = Image.merge("YCbCr", (luma, cb, cr)).convert("RGB")

    if options.blend_mode == "multiply":
        styled = ImageChops.multiply(source, styled)
    elif options.blend_mode == "overlay":
        styled = ImageChops.overlay(source, styled)

    return PixelImage.from_pil(styled)


class StyleTransferProcessor(TaskProcessor):
    task = ModelTask.STYLE_TRANSFER
    input_name = "content_image"
    strength_name = "style_strength"

    def preprocess(self, image: PixelImage, descriptor: ModelDescriptor, **options: Any) -> Dict[str, np.ndarray]:
        opts: StyleTransferOptions = options.get("options") or StyleTransferOptions()
        return {
            self.input_name: to_planar_tensor(image, descriptor.input_shape, Normalization.UNSIGNED),
            self.strength_name: np.array([opts.style_strength], dtype=np.float32),
        }

    def postprocess(
        self,
        outputs: Optional[Mapping[str, np.ndarray]],
        image: PixelImage,
        descriptor: ModelDescriptor,
        **options: Any,
    ) -> PixelImage:
        opts: StyleTransferOptions = options.get("options") or StyleTransferOptions()
        stylized = from_planar_tensor(self.select_output(outputs or {}), Normalization.UNSIGNED, image.size)
        return composite(image, stylized, opts)
