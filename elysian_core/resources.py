"""
Session release, per model and in bulk.

``unload`` is idempotent: unloading a model that holds no session does
nothing. A load still in flight for the model is awaited first, so a
session attached by that load is released as well. ``unload_all`` is best
effort: every model is released concurrently and failures are collected into
the returned outcomes instead of being raised.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, ConfigDict

from .catalog import ModelCatalog
from .errors import EngineError, ModelNotFound, ReleaseFailure

if TYPE_CHECKING:
    from .loader import LoadCoordinator

logger = logging.getLogger(__name__)


class UnloadOutcome(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    released: bool
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ResourceManager:
    def __init__(self, catalog: ModelCatalog, loader: Optional[LoadCoordinator] = None) -> None:
        self._catalog = catalog
        self._loader = loader

    async def unload(self, model_id: str) -> UnloadOutcome:
        """Release the session of ``model_id``.

        The descriptor is reset to unloaded even when releasing the session
        fails; the failure is then raised as ``ReleaseFailure``.
        """
        try:
            descriptor = self._catalog.lookup(model_id)
        except ModelNotFound:
            logger.warning(f"Ignoring unload of unknown model {model_id}")
            return UnloadOutcome(model_id=model_id, released=False)

        pending = self._loader.in_flight(model_id) if self._loader is not None else None
        if pending is not None:
            # the outcome of the load is reported to its own callers
            await asyncio.wait([pending])

        if not descriptor.loaded:
            return UnloadOutcome(model_id=model_id, released=False)

        session = descriptor.detach_session()
        try:
            await session.release()
        except Exception as exc:
            logger.error(f"Failed to release model {descriptor.name}: {exc}")
            raise ReleaseFailure(model_id, descriptor.name, exc) from exc

        logger.info(f"Unloaded model {descriptor.name}")
        return UnloadOutcome(model_id=model_id, released=True)

    async def unload_all(self) -> List[UnloadOutcome]:
        model_ids = self._catalog.ids()
        results = await asyncio.gather(
            *(self.unload(model_id) for model_id in model_ids),
            return_exceptions=True,
        )

        outcomes: List[UnloadOutcome] = []
        for model_id, result in zip(model_ids, results):
            if isinstance(result, UnloadOutcome):
                outcomes.append(result)
            elif isinstance(result, EngineError):
                outcomes.append(UnloadOutcome(model_id=model_id, released=False, error=result.message))
            elif isinstance(result, Exception):
                outcomes.append(UnloadOutcome(model_id=model_id, released=False, error=str(result)))
            else:
                raise result

        failed = [outcome.model_id for outcome in outcomes if not outcome.ok]
        if failed:
            logger.warning(f"Unload finished with failures for: {', '.join(failed)}")
        return outcomes
