"""
Engine facade.

``Engine`` is the single entry point used by the HTTP API and the CLI. It is
constructed once by the process entry point and passed around explicitly;
there is no module-level instance. Each task operation resolves its model in
the catalog, makes sure it is loaded (waiting only when a load is really
needed) and hands the image to the processor for that model's task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .catalog import (
    ENHANCE_MODEL_ID,
    POSE_MODEL_ID,
    STYLE_MODEL_ID,
    UPSCALE_MODEL_ID,
    ModelCatalog,
    ModelInfo,
    ModelTask,
    builtin_catalog,
)
from .config import Settings
from .errors import UnsupportedTask
from .image import PixelImage
from .loader import LoadCoordinator, ModelStatus
from .models import PoseData, StyleTransferOptions, build_processors, processor_for
from .resources import ResourceManager, UnloadOutcome
from .session import OnnxSessionProvider, SessionProvider

logger = logging.getLogger(__name__)


class Engine:
    def __init__(
        self,
        provider: SessionProvider,
        catalog: Optional[ModelCatalog] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.catalog = catalog if catalog is not None else builtin_catalog()
        self.loader = LoadCoordinator(self.catalog, provider, prefer_gpu=self.settings.PREFER_GPU)
        self.resources = ResourceManager(self.catalog, self.loader)
        self._processors = build_processors()
        self._inference_locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "Engine":
        """Build an engine backed by ONNX Runtime with the built-in catalog."""
        return cls(OnnxSessionProvider(settings.MODELS_DIR), settings=settings)

    # Catalog queries

    def get_available_models(self) -> List[ModelInfo]:
        return self.catalog.list_all()

    def get_model_status(self, model_id: str) -> ModelStatus:
        return self.loader.get_status(model_id)

    # Lifecycle

    async def load_model(self, model_id: str) -> ModelStatus:
        await self.loader.ensure_loaded(model_id)
        return self.loader.get_status(model_id)

    async def unload_model(self, model_id: str) -> UnloadOutcome:
        return await self.resources.unload(model_id)

    async def unload_all_models(self) -> List[UnloadOutcome]:
        return await self.resources.unload_all()

    # Tasks

    async def _run(self, model_id: str, image: PixelImage, expected: ModelTask, **options: Any) -> Any:
        task = self.catalog.lookup(model_id).task
        if task != expected:
            raise UnsupportedTask(
                f"Model {model_id} is a {task.value} model, not {expected.value}",
                model_id=model_id,
            )
        descriptor = await self.loader.ensure_loaded(model_id)
        processor = processor_for(self._processors, descriptor.task)
        logger.debug(f"Running {expected.value} task on {model_id} ({image.width}x{image.height})")

        if not self.settings.SERIALIZE_INFERENCE:
            return await processor.process(descriptor, image, **options)

        lock = self._inference_locks.setdefault(model_id, asyncio.Lock())
        async with lock:
            return await processor.process(descriptor, image, **options)

    async def detect_pose(self, image: PixelImage) -> PoseData:
        return await self._run(POSE_MODEL_ID, image, ModelTask.POSE)

    async def apply_style_transfer(
        self,
        image: PixelImage,
        style_id: str = STYLE_MODEL_ID,
        options: Optional[StyleTransferOptions] = None,
    ) -> PixelImage:
        """Stylize ``image`` with the style-transfer model ``style_id``.

        The result always has the size of ``image``.
        """
        return await self._run(
            style_id,
            image,
            ModelTask.STYLE_TRANSFER,
            options=options or StyleTransferOptions(),
        )

    async def upscale_image(self, image: PixelImage, scale: float = 2) -> PixelImage:
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        return await self._run(UPSCALE_MODEL_ID, image, ModelTask.UPSCALING, scale=scale)

    async def enhance_image(self, image: PixelImage) -> PixelImage:
        return await self._run(ENHANCE_MODEL_ID, image, ModelTask.ENHANCEMENT)

    def loaded_count(self) -> int:
        return sum(1 for model in self.catalog.list_all() if model.loaded)
