"""
Elysian inference engine - HTTP backend
FastAPI server exposing the on-device inference engine
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from elysian_core import __version__
from elysian_core.api import get_engine, router
from elysian_core.api.schemas import ApiError
from elysian_core.config import settings
from elysian_core.engine import Engine
from elysian_core.errors import EngineError
from elysian_core.session import OnnxSessionProvider

# Logging setup
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# HTTP status per engine error code
ERROR_STATUS = {
    "model_not_found": 404,
    "duplicate_model": 409,
    "load_failed": 503,
    "session_unavailable": 503,
    "inference_failed": 500,
    "release_failed": 500,
    "unsupported_task": 400,
}

# FastAPI app
app = FastAPI(
    title="Elysian Inference Engine",
    description="On-device AI inference orchestration: pose, style transfer, upscaling, enhancement",
    version=__version__,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


def _new_request_id() -> str:
    return str(uuid.uuid4())


def _error_response(status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    payload = ApiError(code=code, message=message, requestId=_new_request_id(), details=details)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(EngineError)
async def engine_exception_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.code, 500)
    if status_code >= 500:
        logger.error(f"[{exc.stage}] {request.url.path} failed: {exc.message}")
    return _error_response(status_code, exc.code, exc.message, {**exc.details(), "path": str(request.url.path)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        422,
        "validation_error",
        "Request validation failed",
        {"errors": jsonable_encoder(exc.errors()), "path": str(request.url.path)},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and {"code", "message", "requestId"}.issubset(set(detail.keys())):
        return JSONResponse(status_code=exc.status_code, content=detail)
    return _error_response(
        exc.status_code,
        "http_error",
        str(detail),
        {"path": str(request.url.path)},
    )


@app.on_event("startup")
async def startup_event():
    """Create the engine. Models are loaded lazily on first use."""
    logger.info("Starting Elysian inference engine...")

    providers = OnnxSessionProvider.available_backends()
    if "CUDAExecutionProvider" in providers:
        logger.info(f"✅ CUDA execution provider available: {providers}")
    else:
        logger.warning(f"⚠️ CUDA execution provider not available, GPU models fall back to CPU: {providers}")

    app.state.engine = Engine.from_settings(settings)
    logger.info(f"✅ Engine ready with {len(app.state.engine.get_available_models())} catalogued models")


@app.on_event("shutdown")
async def shutdown_event():
    """Release every loaded session."""
    logger.info("Shutting down engine...")
    engine: Optional[Engine] = getattr(app.state, "engine", None)
    if engine is None:
        return
    outcomes = await engine.unload_all_models()
    for outcome in outcomes:
        if not outcome.ok:
            logger.error(f"❌ Failed to release {outcome.model_id}: {outcome.error}")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Elysian Inference Engine",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check(engine: Engine = Depends(get_engine)):
    """Health check endpoint"""
    providers = OnnxSessionProvider.available_backends()
    return {
        "status": "ok",
        "version": __version__,
        "executionProviders": providers,
        "cudaAvailable": "CUDAExecutionProvider" in providers,
        "modelsAvailable": len(engine.get_available_models()),
        "modelsLoaded": engine.loaded_count(),
        "requestId": _new_request_id(),
    }


def run() -> None:
    import uvicorn
    uvicorn.run(
        "elysian_core.main:app",
        host=settings.HOST,
        port=settings.PORT,
    )


if __name__ == "__main__":
    run()
