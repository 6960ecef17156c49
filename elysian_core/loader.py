"""
Load coordinator.

Guarantees at most one physical load per model id. The first request for an
unloaded model starts a load task and records it in the in-flight registry;
every request arriving while that task runs awaits the very same task and
observes the same outcome. The registry entry is removed inside the task
itself (``finally``), on success and failure alike, so a failed load can be
retried by the next call.

All state changes happen on the event loop; the only suspension point is
the call into the session provider.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional

from pydantic import BaseModel

from .catalog import ModelCatalog, ModelDescriptor
from .errors import LoadFailure
from .session import SessionProvider, select_backends

logger = logging.getLogger(__name__)


def _retrieve_exception(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled; the failure is already logged in _load.
    if not task.cancelled():
        task.exception()


class ModelStatus(BaseModel):
    loaded: bool
    loading: bool


class LoadCoordinator:
    def __init__(self, catalog: ModelCatalog, provider: SessionProvider, prefer_gpu: bool = True) -> None:
        self._catalog = catalog
        self._provider = provider
        self._prefer_gpu = prefer_gpu
        self._inflight: Dict[str, asyncio.Task] = {}

    async def ensure_loaded(self, model_id: str) -> ModelDescriptor:
        """Make sure ``model_id`` has a live session, loading it if needed.

        :raises ModelNotFound: if the id is not in the catalog (the provider
            is never called in that case).
        :raises LoadFailure: if the provider fails; every concurrent caller
            sharing the load receives the same error.
        """
        descriptor = self._catalog.lookup(model_id)
        if descriptor.loaded:
            return descriptor

        task = self._inflight.get(model_id)
        if task is None:
            task = asyncio.ensure_future(self._load(descriptor))
            task.add_done_callback(_retrieve_exception)
            self._inflight[model_id] = task

        # A caller giving up must not cancel the load shared with the others.
        await asyncio.shield(task)
        return descriptor

    def in_flight(self, model_id: str) -> Optional[asyncio.Task]:
        return self._inflight.get(model_id)

    def get_status(self, model_id: str) -> ModelStatus:
        descriptor = self._catalog.lookup(model_id)
        return ModelStatus(loaded=descriptor.loaded, loading=model_id in self._inflight)

    async def _load(self, descriptor: ModelDescriptor) -> None:
        backends = select_backends(descriptor.requirements, self._prefer_gpu)
        logger.info(f"Loading AI model: {descriptor.name} (backends={backends})")
        started = time.perf_counter()
        try:
            try:
                session = await self._provider.create_session(descriptor.weights_path, backends)
            except Exception as exc:
                logger.error(f"Failed to load model {descriptor.name}: {exc}")
                descriptor.detach_session()
                raise LoadFailure(descriptor.id, descriptor.name, exc) from exc
            descriptor.attach_session(session)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(f"Model {descriptor.name} loaded successfully in {elapsed_ms:.0f} ms")
        finally:
            self._inflight.pop(descriptor.id, None)
