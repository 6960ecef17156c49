"""
Error taxonomy for the inference engine.

Every failure raised by the engine derives from ``EngineError`` and carries
a stable ``code`` (used by the HTTP layer), the id of the model involved and
the ``stage`` at which it failed (lookup, load, inference, decode, ...).
Nothing in the engine retries: errors are surfaced to the caller as-is.
"""

from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base class for all engine failures."""

    code: str = "engine_error"
    stage: str = "engine"

    def __init__(self, message: str, model_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.model_id = model_id
        if stage is not None:
            self.stage = stage

    def details(self) -> dict:
        return {"modelId": self.model_id, "stage": self.stage}


class ModelNotFound(EngineError):
    code = "model_not_found"
    stage = "lookup"

    def __init__(self, model_id: str):
        super().__init__(f"Model {model_id} not found", model_id=model_id)


class DuplicateModel(EngineError):
    code = "duplicate_model"
    stage = "register"

    def __init__(self, model_id: str):
        super().__init__(f"Model {model_id} is already registered", model_id=model_id)


class LoadFailure(EngineError):
    """The session provider could not build a session for a model."""

    code = "load_failed"
    stage = "load"

    def __init__(self, model_id: str, model_name: str, cause: BaseException):
        super().__init__(f"Failed to load model {model_name}: {cause}", model_id=model_id)
        self.model_name = model_name
        self.cause = cause


class SessionUnavailable(EngineError):
    """An inference was attempted on a model without a loaded session."""

    code = "session_unavailable"
    stage = "inference"

    def __init__(self, model_id: str, model_name: str):
        super().__init__(f"Model session not available for {model_name}", model_id=model_id)
        self.model_name = model_name


class InferenceFailure(EngineError):
    code = "inference_failed"
    stage = "inference"

    def __init__(self, model_id: str, model_name: str, cause: BaseException, stage: str = "inference"):
        super().__init__(f"{stage.capitalize()} failed for model {model_name}: {cause}", model_id=model_id, stage=stage)
        self.model_name = model_name
        self.cause = cause


class ReleaseFailure(EngineError):
    code = "release_failed"
    stage = "release"

    def __init__(self, model_id: str, model_name: str, cause: BaseException):
        super().__init__(f"Failed to release model {model_name}: {cause}", model_id=model_id)
        self.model_name = model_name
        self.cause = cause


class UnsupportedTask(EngineError):
    code = "unsupported_task"
    stage = "dispatch"
