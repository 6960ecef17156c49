"""Fake session provider and fixtures shared by the test modules."""

import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from elysian_core.catalog import BUILTIN_MODELS, ENHANCE_MODEL_ID, POSE_MODEL_ID, STYLE_MODEL_ID
from elysian_core.image import PixelImage

Outputs = Union[Dict[str, np.ndarray], Callable[[Dict[str, np.ndarray]], Dict[str, np.ndarray]]]


def weights_of(model_id: str) -> str:
    return next(entry["weights_path"] for entry in BUILTIN_MODELS if entry["id"] == model_id)


def single_peak_heatmap(channels: int = 1, size: int = 46, peak: Tuple[int, int] = (23, 23), value: float = 0.9):
    heatmap = np.zeros((1, channels, size, size), dtype=np.float32)
    heatmap[0, 0, peak[1], peak[0]] = value
    return heatmap


def gradient_image(width: int, height: int) -> PixelImage:
    data = np.zeros((height, width, 4), dtype=np.uint8)
    data[..., 0] = np.linspace(0, 255, width, dtype=np.uint8)[np.newaxis, :]
    data[..., 1] = np.linspace(0, 255, height, dtype=np.uint8)[:, np.newaxis]
    data[..., 2] = 128
    data[..., 3] = 255
    return PixelImage(width, height, data)


class FakeSession:
    def __init__(self, outputs: Optional[Outputs] = None):
        self.outputs = outputs if outputs is not None else {}
        self.calls: List[Dict[str, np.ndarray]] = []
        self.released = False
        self.run_error: Optional[Exception] = None
        self.release_error: Optional[Exception] = None
        # ``gate`` holds every run open until set; ``max_active`` records overlap
        self.gate: Optional[asyncio.Event] = None
        self.active = 0
        self.max_active = 0

    async def run(self, feeds: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        self.calls.append(feeds)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.active -= 1
        if self.run_error is not None:
            raise self.run_error
        if callable(self.outputs):
            return self.outputs(feeds)
        return self.outputs

    async def release(self) -> None:
        if self.release_error is not None:
            raise self.release_error
        self.released = True


class FakeProvider:
    """Session provider that records every call.

    ``gate`` (an ``asyncio.Event``) holds loads open until it is set;
    weights paths listed in ``fail_paths`` raise instead of loading.
    """

    def __init__(self, outputs: Optional[Dict[str, Outputs]] = None):
        self.outputs = outputs if outputs is not None else default_outputs()
        self.calls: List[Tuple[str, List[str]]] = []
        self.sessions: Dict[str, FakeSession] = {}
        self.fail_paths: set = set()
        self.gate: Optional[asyncio.Event] = None

    def calls_for(self, model_id: str) -> int:
        path = weights_of(model_id)
        return sum(1 for called_path, _ in self.calls if called_path == path)

    async def create_session(self, weights_path: str, backends: Sequence[str]) -> FakeSession:
        self.calls.append((weights_path, list(backends)))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if weights_path in self.fail_paths:
            raise RuntimeError(f"corrupt weights file {weights_path}")
        session = FakeSession(self.outputs.get(weights_path))
        self.sessions[weights_path] = session
        return session


def default_outputs() -> Dict[str, Outputs]:
    return {
        weights_of(POSE_MODEL_ID): {"output": single_peak_heatmap(channels=17)},
        weights_of(STYLE_MODEL_ID): {"output": np.full((1, 3, 512, 512), 0.5, dtype=np.float32)},
        weights_of(ENHANCE_MODEL_ID): {"output": np.full((1, 3, 512, 512), 0.25, dtype=np.float32)},
    }
