"""
Common preprocess / infer / postprocess contract for task processors.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import numpy as np

from ..catalog import ModelDescriptor, ModelTask
from ..errors import EngineError, InferenceFailure, SessionUnavailable
from ..image import PixelImage

logger = logging.getLogger(__name__)


class TaskProcessor(ABC):
    """Runs one task against one loaded model.

    Subclasses turn an image into named input tensors (``preprocess``) and
    turn the session outputs into the task result (``postprocess``).
    Failures are reported with the stage they happened in.
    """

    task: ModelTask
    input_name: str = "input"
    output_name: str = "output"
    runs_inference: bool = True

    @abstractmethod
    def preprocess(self, image: PixelImage, descriptor: ModelDescriptor, **options: Any) -> Dict[str, np.ndarray]:
        ...

    @abstractmethod
    def postprocess(
        self,
        outputs: Optional[Mapping[str, np.ndarray]],
        image: PixelImage,
        descriptor: ModelDescriptor,
        **options: Any,
    ) -> Any:
        ...

    def select_output(self, outputs: Mapping[str, np.ndarray]) -> np.ndarray:
        if self.output_name in outputs:
            return outputs[self.output_name]
        if len(outputs) == 1:
            return next(iter(outputs.values()))
        raise KeyError(f"model produced no '{self.output_name}' output (got {sorted(outputs)})")

    async def process(self, descriptor: ModelDescriptor, image: PixelImage, **options: Any) -> Any:
        session = descriptor.session
        if not descriptor.loaded or session is None:
            raise SessionUnavailable(descriptor.id, descriptor.name)

        outputs = None
        if self.runs_inference:
            try:
                feeds = self.preprocess(image, descriptor, **options)
            except EngineError:
                raise
            except Exception as exc:
                raise InferenceFailure(descriptor.id, descriptor.name, exc, stage="preprocess") from exc

            try:
                outputs = await session.run(feeds)
            except Exception as exc:
                logger.error(f"{self.task.value} inference failed on {descriptor.name}: {exc}")
                raise InferenceFailure(descriptor.id, descriptor.name, exc) from exc

        try:
            return self.postprocess(outputs, image, descriptor, **options)
        except EngineError:
            raise
        except Exception as exc:
            raise InferenceFailure(descriptor.id, descriptor.name, exc, stage="decode") from exc
