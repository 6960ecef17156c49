"""
API routes for the inference engine.

Every route reaches the engine through the ``get_engine`` dependency, which
returns the instance created at startup and stored on ``app.state``.
Engine errors are not handled here: they propagate to the exception
handlers registered in ``elysian_core.main``, which turn them into the
``ApiError`` envelope.
"""

import logging
import time
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request

from ..catalog import ENHANCE_MODEL_ID, UPSCALE_MODEL_ID
from ..engine import Engine
from ..image import PixelImage, decode_data_url, encode_data_url
from ..models.style_transfer import StyleTransferOptions
from .schemas import (
    ApiError,
    ImageRequest,
    ImageResponse,
    PoseResponse,
    StyleTransferRequest,
    UnloadAllResponse,
    UpscaleRequest,
)

# Logger for API events
logger = logging.getLogger(__name__)

router = APIRouter()


def _new_request_id() -> str:
    return str(uuid.uuid4())


def get_engine(request: Request) -> Engine:
    """Dependency returning the engine created at application startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=503,
            detail=ApiError(
                code="engine_unavailable",
                message="inference engine is not initialised",
                requestId=_new_request_id(),
            ).model_dump(),
        )
    return engine


def _decode_image(payload: ImageRequest, engine: Engine) -> PixelImage:
    """Decode the request image and enforce the configured size limit."""
    try:
        image = decode_data_url(payload.imageBase64)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(
            status_code=400,
            detail=ApiError(
                code="invalid_image_payload",
                message=f"invalid image payload: {exc}",
                requestId=_new_request_id(),
                details={"stage": "decode_or_open"},
            ).model_dump(),
        ) from exc

    limit = engine.settings.MAX_IMAGE_SIZE
    if image.width > limit or image.height > limit:
        raise HTTPException(
            status_code=400,
            detail=ApiError(
                code="image_too_large",
                message=f"image dimensions must not exceed {limit}px",
                requestId=_new_request_id(),
                details={"width": image.width, "height": image.height},
            ).model_dump(),
        )
    return image


def _image_response(image: PixelImage, model_id: str, started: float) -> ImageResponse:
    return ImageResponse(
        imageBase64=encode_data_url(image),
        width=image.width,
        height=image.height,
        modelId=model_id,
        latencyMs=round((time.perf_counter() - started) * 1000, 2),
        requestId=_new_request_id(),
    )


@router.get("/models")
async def list_models(engine: Engine = Depends(get_engine)):
    """List every catalogued model with its current load state."""
    return [model.model_dump(mode="json") for model in engine.get_available_models()]


@router.get("/models/{model_id}/status")
async def model_status(model_id: str, engine: Engine = Depends(get_engine)):
    return engine.get_model_status(model_id).model_dump()


@router.post("/models/unload-all", response_model=UnloadAllResponse)
async def unload_all_models(engine: Engine = Depends(get_engine)) -> UnloadAllResponse:
    """Release every loaded session; failures are reported per model."""
    outcomes = await engine.unload_all_models()
    failed = sum(1 for outcome in outcomes if not outcome.ok)
    return UnloadAllResponse(items=outcomes, failed=failed, requestId=_new_request_id())


@router.post("/models/{model_id}/load")
async def load_model(model_id: str, engine: Engine = Depends(get_engine)):
    logger.info(f"[load] Loading {model_id}")
    status = await engine.load_model(model_id)
    return status.model_dump()


@router.post("/models/{model_id}/unload")
async def unload_model(model_id: str, engine: Engine = Depends(get_engine)):
    logger.info(f"[unload] Unloading {model_id}")
    outcome = await engine.unload_model(model_id)
    return outcome.model_dump()


@router.post("/ai/pose", response_model=PoseResponse)
async def api_detect_pose(payload: ImageRequest, engine: Engine = Depends(get_engine)) -> PoseResponse:
    """Detect body keypoints.

    Skeleton edges index the full 17-joint layout; match them against each
    keypoint's ``index``.
    """
    started = time.perf_counter()
    image = _decode_image(payload, engine)
    logger.info(f"[pose] Processing {image.width}x{image.height} image")
    pose = await engine.detect_pose(image)
    return PoseResponse(
        keypoints=pose.keypoints,
        skeleton=[list(edge) for edge in pose.skeleton],
        boundingBox=pose.bounding_box,
        latencyMs=round((time.perf_counter() - started) * 1000, 2),
        requestId=_new_request_id(),
    )


@router.post("/ai/style-transfer", response_model=ImageResponse)
async def api_style_transfer(payload: StyleTransferRequest, engine: Engine = Depends(get_engine)) -> ImageResponse:
    started = time.perf_counter()
    image = _decode_image(payload, engine)
    logger.info(f"[style-transfer] Processing {image.width}x{image.height} image (style={payload.styleId})")
    options = StyleTransferOptions(
        style_strength=payload.styleStrength,
        preserve_colors=payload.preserveColors,
        blend_mode=payload.blendMode,
    )
    result = await engine.apply_style_transfer(image, payload.styleId, options)
    return _image_response(result, payload.styleId, started)


@router.post("/ai/upscale", response_model=ImageResponse)
async def api_upscale(payload: UpscaleRequest, engine: Engine = Depends(get_engine)) -> ImageResponse:
    started = time.perf_counter()
    image = _decode_image(payload, engine)
    logger.info(f"[upscale] Processing {image.width}x{image.height} image (scale={payload.scale})")
    result = await engine.upscale_image(image, payload.scale)
    return _image_response(result, UPSCALE_MODEL_ID, started)


@router.post("/ai/enhance", response_model=ImageResponse)
async def api_enhance(payload: ImageRequest, engine: Engine = Depends(get_engine)) -> ImageResponse:
    started = time.perf_counter()
    image = _decode_image(payload, engine)
    logger.info(f"[enhance] Processing {image.width}x{image.height} image")
    result = await engine.enhance_image(image)
    return _image_response(result, ENHANCE_MODEL_ID, started)
