"""
Model catalog for the inference engine.

The catalog is a static registry of model descriptors keyed by id. It is
built once when the engine is constructed (see ``builtin_catalog``) and is
never persisted. Descriptors are mutated only by the load coordinator and
the resource manager; everything handed to external callers is a frozen
``ModelInfo`` snapshot without the session handle.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .errors import DuplicateModel, ModelNotFound


class ModelTask(str, Enum):
    POSE = "pose"
    STYLE_TRANSFER = "style-transfer"
    UPSCALING = "upscaling"
    ENHANCEMENT = "enhancement"
    DIFFUSION = "diffusion"


class ModelRequirements(BaseModel):
    model_config = ConfigDict(frozen=True)

    memory_mb: int
    gpu_preferred: bool


class ModelPerformance(BaseModel):
    model_config = ConfigDict(frozen=True)

    speed: Literal["fast", "medium", "slow"]
    quality: Literal["basic", "good", "excellent"]


class ModelInfo(BaseModel):
    """Read-only view of a descriptor returned to callers."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    task: ModelTask
    weights_path: str
    input_shape: Tuple[int, ...]
    output_shape: Tuple[int, ...]
    loaded: bool
    description: str = ""
    requirements: ModelRequirements
    performance: ModelPerformance


class ModelDescriptor(BaseModel):
    """One installable/loadable model.

    ``session`` is present if and only if ``loaded`` is true.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    name: str
    task: ModelTask
    weights_path: str
    input_shape: Tuple[int, ...]
    output_shape: Tuple[int, ...]
    description: str = ""
    requirements: ModelRequirements
    performance: ModelPerformance
    loaded: bool = False
    session: Optional[Any] = None

    def attach_session(self, session: Any) -> None:
        self.session = session
        self.loaded = True

    def detach_session(self) -> Any:
        session = self.session
        self.session = None
        self.loaded = False
        return session

    def snapshot(self) -> ModelInfo:
        return ModelInfo(
            id=self.id,
            name=self.name,
            task=self.task,
            weights_path=self.weights_path,
            input_shape=self.input_shape,
            output_shape=self.output_shape,
            loaded=self.loaded,
            description=self.description,
            requirements=self.requirements,
            performance=self.performance,
        )


class ModelCatalog:
    def __init__(self) -> None:
        self._models: Dict[str, ModelDescriptor] = {}

    def register(self, descriptor: ModelDescriptor) -> None:
        if descriptor.id in self._models:
            raise DuplicateModel(descriptor.id)
        self._models[descriptor.id] = descriptor

    def lookup(self, model_id: str) -> ModelDescriptor:
        try:
            return self._models[model_id]
        except KeyError:
            raise ModelNotFound(model_id) from None

    def list_all(self) -> List[ModelInfo]:
        return [descriptor.snapshot() for descriptor in self._models.values()]

    def ids(self) -> List[str]:
        return list(self._models.keys())

    def by_task(self, task: ModelTask) -> List[ModelDescriptor]:
        return [descriptor for descriptor in self._models.values() if descriptor.task == task]

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)


POSE_MODEL_ID = "pose-estimation-light"
STYLE_MODEL_ID = "artistic-style-classic"
UPSCALE_MODEL_ID = "real-esrgan-x2"
ENHANCE_MODEL_ID = "portrait-enhancer"

BUILTIN_MODELS: List[dict] = [
    {
        "id": POSE_MODEL_ID,
        "name": "Lightweight Pose Estimation",
        "task": ModelTask.POSE,
        "weights_path": "pose-models/pose-light.onnx",
        "input_shape": (1, 3, 368, 368),
        "output_shape": (1, 17, 46, 46),
        "description": "Fast pose detection for real-time editing",
        "requirements": {"memory_mb": 50, "gpu_preferred": False},
        "performance": {"speed": "fast", "quality": "good"},
    },
    {
        "id": STYLE_MODEL_ID,
        "name": "Classic Artistic Style Transfer",
        "task": ModelTask.STYLE_TRANSFER,
        "weights_path": "style-transfer-models/classic-art.onnx",
        "input_shape": (1, 3, 512, 512),
        "output_shape": (1, 3, 512, 512),
        "description": "Transform images with classical art styles",
        "requirements": {"memory_mb": 200, "gpu_preferred": True},
        "performance": {"speed": "medium", "quality": "excellent"},
    },
    {
        "id": UPSCALE_MODEL_ID,
        "name": "Real-ESRGAN 2x Upscaler",
        "task": ModelTask.UPSCALING,
        "weights_path": "upscaling-models/real-esrgan-x2.onnx",
        "input_shape": (1, 3, 512, 512),
        "output_shape": (1, 3, 1024, 1024),
        "description": "High-quality 2x image upscaling",
        "requirements": {"memory_mb": 300, "gpu_preferred": True},
        "performance": {"speed": "slow", "quality": "excellent"},
    },
    {
        "id": ENHANCE_MODEL_ID,
        "name": "Portrait Enhancement AI",
        "task": ModelTask.ENHANCEMENT,
        "weights_path": "enhancement-models/portrait-enhance.onnx",
        "input_shape": (1, 3, 512, 512),
        "output_shape": (1, 3, 512, 512),
        "description": "AI-powered portrait enhancement and beautification",
        "requirements": {"memory_mb": 150, "gpu_preferred": False},
        "performance": {"speed": "medium", "quality": "excellent"},
    },
]


def builtin_catalog() -> ModelCatalog:
    """Build a fresh catalog holding the built-in models, all unloaded."""
    catalog = ModelCatalog()
    for entry in BUILTIN_MODELS:
        catalog.register(ModelDescriptor(**entry))
    return catalog
