"""
Request and response bodies for the HTTP API.

Field names follow the camelCase convention of the JSON contract; images
travel as base64 data URLs.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.pose import BoundingBox, Keypoint
from ..resources import UnloadOutcome


class ApiError(BaseModel):
    code: str
    message: str
    requestId: str
    details: Optional[dict] = None


class ImageRequest(BaseModel):
    imageBase64: str


class StyleTransferRequest(ImageRequest):
    styleId: str = "artistic-style-classic"
    styleStrength: float = Field(default=1.0, ge=0.0)
    preserveColors: bool = False
    blendMode: Literal["normal", "multiply", "overlay"] = "normal"


class UpscaleRequest(ImageRequest):
    scale: float = Field(default=2.0, gt=0.0, le=8.0)


class PoseResponse(BaseModel):
    keypoints: List[Keypoint]
    skeleton: List[List[int]]
    boundingBox: BoundingBox
    latencyMs: float
    requestId: str


class ImageResponse(BaseModel):
    imageBase64: str
    width: int
    height: int
    modelId: str
    latencyMs: float
    requestId: str


class UnloadAllResponse(BaseModel):
    items: List[UnloadOutcome]
    failed: int
    requestId: str
