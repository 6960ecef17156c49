"""
Pose estimation.

The pose model takes a ``[1, 3, H, W]`` image in [-1, 1] and returns one
heatmap per joint, ``[1, K, h, w]``. Decoding picks the peak cell of every
heatmap and keeps it when its value exceeds ``CONFIDENCE_THRESHOLD``.

Keypoints keep the index of the heatmap channel they came from. The skeleton
is always the full COCO table over those indices, so edges may reference
joints that were not detected; consumers match edges against
``Keypoint.index``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
from pydantic import BaseModel, computed_field

from ..catalog import ModelDescriptor, ModelTask
from ..image import PixelImage
from ..tensor import Normalization, to_planar_tensor
from .base import TaskProcessor

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.3

# COCO keypoint order
KEYPOINT_NAMES: List[str] = [
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
]

SKELETON: List[Tuple[int, int]] = [
    # head
    (0, 1),
    (0, 2),
    (1, 3),
    (2, 4),
    # arms
    (5, 6),
    (5, 7),
    (7, 9),
    (6, 8),
    (8, 10),
    # torso
    (5, 11),
    (6, 12),
    (11, 12),
    # legs
    (11, 13),
    (13, 15),
    (12, 14),
    (14, 16),
]


class Keypoint(BaseModel):
    x: float
    y: float
    confidence: float
    name: str
    index: int


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float

    @computed_field  # type: ignore[misc]
    @property
    def is_degenerate(self) -> bool:
        """True when the box does not enclose any keypoint."""
        return self.width < 0 or self.height < 0


class PoseData(BaseModel):
    keypoints: List[Keypoint]
    skeleton: List[Tuple[int, int]]
    bounding_box: BoundingBox


def keypoint_name(index: int) -> str:
    if index < len(KEYPOINT_NAMES):
        return KEYPOINT_NAMES[index]
    return f"keypoint_{index}"


def bounding_box(keypoints: List[Keypoint], original_width: int, original_height: int) -> BoundingBox:
    """Min/max rectangle over ``keypoints``.

    With no keypoints the bounds never move from their starting values, so
    the box sits at the far image corner with negative width and height.
    """
    min_x, min_y = float(original_width), float(original_height)
    max_x, max_y = 0.0, 0.0
    for keypoint in keypoints:
        min_x = min(min_x, keypoint.x)
        min_y = min(min_y, keypoint.y)
        max_x = max(max_x, keypoint.x)
        max_y = max(max_y, keypoint.y)
    return BoundingBox(x=min_x, y=min_y, width=max_x - min_x, height=max_y - min_y)


def decode_heatmaps(
    heatmaps: np.ndarray,
    original_width: int,
    original_height: int,
    threshold: float = CONFIDENCE_THRESHOLD,
) -> PoseData:
    """Decode ``[1, K, H, W]`` heatmaps into pose data in image coordinates.

    For each channel the first maximum in row-major order wins. Channels whose
    peak does not exceed ``threshold`` are left out of ``keypoints``.
    """
    maps = np.asarray(heatmaps, dtype=np.float32)
    if maps.ndim == 4:
        maps = maps[0]
    if maps.ndim != 3:
        raise ValueError(f"expected heatmaps of shape [1, K, H, W], got {np.shape(heatmaps)}")

    num_keypoints, height, width = maps.shape
    flat = maps.reshape(num_keypoints, height * width)
    # NaN cells never win the peak search
    flat = np.where(np.isnan(flat), -np.inf, flat)

    keypoints: List[Keypoint] = []
    for k in range(num_keypoints):
        peak = int(np.argmax(flat[k]))
        confidence = float(flat[k, peak])
        if confidence <= threshold:
            continue
        peak_y, peak_x = divmod(peak, width)
        keypoints.append(
            Keypoint(
                x=peak_x / width * original_width,
                y=peak_y / height * original_height,
                confidence=confidence,
                name=keypoint_name(k),
                index=k,
            )
        )

    return PoseData(
        keypoints=keypoints,
        skeleton=list(SKELETON),
        bounding_box=bounding_box(keypoints, original_width, original_height),
    )


class PoseProcessor(TaskProcessor):
    task = ModelTask.POSE

    def preprocess(self, image: PixelImage, descriptor: ModelDescriptor, **options: Any) -> Dict[str, np.ndarray]:
        return {self.input_name: to_planar_tensor(image, descriptor.input_shape, Normalization.SIGNED)}

    def postprocess(
        self,
        outputs: Optional[Mapping[str, np.ndarray]],
        image: PixelImage,
        descriptor: ModelDescriptor,
        **options: Any,
    ) -> PoseData:
        pose = decode_heatmaps(self.select_output(outputs or {}), image.width, image.height)
        if pose.bounding_box.is_degenerate:
            logger.debug(f"No keypoint above {CONFIDENCE_THRESHOLD} in {image.width}x{image.height} image")
        return pose
