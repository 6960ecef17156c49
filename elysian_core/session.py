"""
Inference sessions.

The engine treats the session provider as a black box: it is handed a
weights path and an ordered list of execution backends and returns a
session able to run inference on named input tensors. ``OnnxSessionProvider``
is the production provider and is backed by ONNX Runtime. Compilation and
inference run in a worker thread via ``asyncio.to_thread`` so that the event
loop stays free; engine state is never touched from those threads.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

import numpy as np
import onnxruntime as ort

from .catalog import ModelRequirements

logger = logging.getLogger(__name__)

GPU_BACKEND = "CUDAExecutionProvider"
GENERIC_BACKEND = "CPUExecutionProvider"


def select_backends(requirements: ModelRequirements, prefer_gpu: bool = True) -> List[str]:
    """Return the ordered backend preference list for a model.

    The GPU backend comes first when the model prefers one; the generic
    backend is always included as the last fallback.
    """
    if requirements.gpu_preferred and prefer_gpu:
        return [GPU_BACKEND, GENERIC_BACKEND]
    return [GENERIC_BACKEND]


class InferenceSession(Protocol):
    async def run(self, feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        ...

    async def release(self) -> None:
        ...


class SessionProvider(Protocol):
    async def create_session(self, weights_path: str, backends: Sequence[str]) -> InferenceSession:
        ...


class OnnxSession:
    """Wraps an ``onnxruntime.InferenceSession``.

    Outputs are returned keyed by the graph's output names.
    """

    def __init__(self, session: ort.InferenceSession):
        self._session: Optional[ort.InferenceSession] = session
        self.output_names = [output.name for output in session.get_outputs()]
        self.input_names = [model_input.name for model_input in session.get_inputs()]

    @property
    def providers(self) -> List[str]:
        if self._session is None:
            return []
        return list(self._session.get_providers())

    def _run_sync(self, feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        if self._session is None:
            raise RuntimeError("session has been released")
        outputs = self._session.run(self.output_names, feeds)
        return dict(zip(self.output_names, outputs))

    async def run(self, feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        return await asyncio.to_thread(self._run_sync, feeds)

    async def release(self) -> None:
        # ONNX Runtime frees native memory once the session is garbage collected.
        self._session = None


class OnnxSessionProvider:
    def __init__(self, models_dir: str = "/models"):
        self.models_dir = Path(models_dir)

    def resolve(self, weights_path: str) -> Path:
        path = Path(weights_path)
        if not path.is_absolute():
            path = self.models_dir / path
        return path

    @staticmethod
    def available_backends() -> List[str]:
        return list(ort.get_available_providers())

    def _create_sync(self, path: Path, backends: Sequence[str]) -> OnnxSession:
        available = self.available_backends()
        providers = [backend for backend in backends if backend in available]
        if not providers:
            providers = [GENERIC_BACKEND]
        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        options.enable_mem_pattern = True
        options.enable_cpu_mem_arena = True
        session = ort.InferenceSession(str(path), sess_options=options, providers=providers)
        logger.info(f"Compiled {path.name} with providers {session.get_providers()}")
        return OnnxSession(session)

    async def create_session(self, weights_path: str, backends: Sequence[str]) -> OnnxSession:
        path = self.resolve(weights_path)
        if not path.exists():
            raise FileNotFoundError(f"weights not found: {path}")
        return await asyncio.to_thread(self._create_sync, path, list(backends))
