"""Task processors for the inference engine.

Each ``ModelTask`` maps to the processor class that implements it. Diffusion
models can be catalogued but have no processor; asking for one raises
``UnsupportedTask``.
"""

from typing import Dict, Optional, Type

from ..catalog import ModelTask
from ..errors import UnsupportedTask
from .base import TaskProcessor
from .enhance import EnhancementProcessor
from .pose import PoseData, PoseProcessor
from .style_transfer import StyleTransferOptions, StyleTransferProcessor
from .upscale import UpscaleProcessor

PROCESSOR_TYPES: Dict[ModelTask, Optional[Type[TaskProcessor]]] = {
    ModelTask.POSE: PoseProcessor,
    ModelTask.STYLE_TRANSFER: StyleTransferProcessor,
    ModelTask.UPSCALING: UpscaleProcessor,
    ModelTask.ENHANCEMENT: EnhancementProcessor,
    ModelTask.DIFFUSION: None,
}


def build_processors() -> Dict[ModelTask, TaskProcessor]:
    return {task: cls() for task, cls in PROCESSOR_TYPES.items() if cls is not None}


def processor_for(processors: Dict[ModelTask, TaskProcessor], task: ModelTask) -> TaskProcessor:
    processor = processors.get(task)
    if processor is None:
        raise UnsupportedTask(f"No processor available for {task.value} models", stage="dispatch")
    return processor


__all__ = [
    "PROCESSOR_TYPES",
    "PoseData",
    "StyleTransferOptions",
    "TaskProcessor",
    "build_processors",
    "processor_for",
]
