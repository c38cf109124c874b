"""FastAPI routes for the photobooth video API."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from photobooth_video.api.deps import (
    get_dispatcher_dep,
    get_ledger_dep,
    get_media_proxy_dep,
    get_provider_dep,
    get_settings_dep,
)
from photobooth_video.config import Settings
from photobooth_video.models.job import VideoJobRequest
from photobooth_video.models.status import TickReport
from photobooth_video.services.dispatcher import Dispatcher
from photobooth_video.services.intake import enqueue_video_job
from photobooth_video.services.ledger import Ledger
from photobooth_video.services.media_proxy import MediaProxy
from photobooth_video.services.provider import SeedanceClient
from photobooth_video.utils.errors import (
    ConfigurationError,
    JobValidationError,
    LedgerUnavailableError,
    MediaProxyError,
    PhotoboothVideoError,
    ProviderError,
    TickInProgressError,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api")


# ==================== Exception Handlers ====================


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body validation errors."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "error_type": "ValidationError",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


def status_code_for(exc: PhotoboothVideoError) -> int:
    """Map an application error onto an HTTP status code."""
    if isinstance(exc, JobValidationError):
        return 400
    if isinstance(exc, TickInProgressError):
        return 409
    if isinstance(exc, MediaProxyError):
        return exc.status_code
    if isinstance(exc, (ProviderError, LedgerUnavailableError)):
        return 502  # Bad Gateway for upstream failures
    return 500


async def photobooth_video_exception_handler(
    request: Request, exc: PhotoboothVideoError
) -> JSONResponse:
    """Handle application-specific errors."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "error_type": "HTTPException",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "error_type": "InternalError",
        },
    )


# ==================== Response Models ====================


class QueuedResponse(BaseModel):
    """Response model for the intake endpoint."""

    status: str
    message: str


class TickResponse(BaseModel):
    """Response model for the tick endpoint."""

    ok: bool
    report: TickReport


class VideoStatusResponse(BaseModel):
    """Response model for the direct status poll."""

    status: str
    videoUrl: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None


# ==================== Endpoints ====================


@router.post("/video/start", response_model=QueuedResponse)
async def start_video(
    request: VideoJobRequest,
    ledger: Ledger = Depends(get_ledger_dep),
    settings: Settings = Depends(get_settings_dep),
) -> QueuedResponse:
    """
    Queue a video job for a captured photo.

    Returns as soon as the ledger write is acknowledged; submission happens on
    a later tick.
    """
    await enqueue_video_job(request, ledger, settings)
    return QueuedResponse(status="queued", message="Video task queued successfully")


@router.api_route("/video/tick", methods=["GET", "POST"], response_model=TickResponse)
async def tick(dispatcher: Dispatcher = Depends(get_dispatcher_dep)) -> TickResponse:
    """Run one dispatcher pass over the ledger."""
    report = await dispatcher.tick()
    return TickResponse(ok=True, report=report)


@router.get(
    "/video/status",
    response_model=VideoStatusResponse,
    response_model_exclude_none=True,
)
async def video_status(
    task_id: Optional[str] = Query(default=None, alias="taskId"),
    provider: SeedanceClient = Depends(get_provider_dep),
) -> VideoStatusResponse:
    """Poll the provider directly for one task."""
    if not task_id:
        raise HTTPException(status_code=400, detail="Invalid task id")

    missing = provider.missing_settings()
    if missing:
        raise ConfigurationError(f"Config missing: {', '.join(missing)}")

    status = await provider.query_status(task_id)

    if status.kind == "succeeded":
        return VideoStatusResponse(status="done", videoUrl=status.result_url)
    if status.kind == "failed":
        return VideoStatusResponse(status="failed", error=status.reason)
    return VideoStatusResponse(status="processing", details=status.detail)


@router.get("/video/proxy")
async def proxy_video(
    request: Request,
    url: Optional[str] = Query(default=None),
    media_proxy: MediaProxy = Depends(get_media_proxy_dep),
) -> StreamingResponse:
    """Stream a remote video with Range support so the kiosk can seek and loop."""
    media = await media_proxy.open(url, request.headers.get("range"))
    return StreamingResponse(
        media.iter_bytes(),
        status_code=media.status_code,
        headers=media.headers,
        background=BackgroundTask(media.close),
    )


@router.get("/debug/provider")
async def provider_diagnostics(
    provider: SeedanceClient = Depends(get_provider_dep),
    settings: Settings = Depends(get_settings_dep),
) -> JSONResponse:
    """Report which collaborators are configured and probe the provider."""
    config: Dict[str, Any] = {
        "hasApiKey": bool(settings.ark_api_key),
        "hasBaseUrl": bool(settings.ark_base_url),
        "baseUrl": settings.ark_base_url,
        "ledgerBackend": settings.ledger_backend,
        "hasLedger": bool(
            settings.apps_script_base_url
            if settings.ledger_backend == "apps_script"
            else settings.supabase_url and settings.supabase_key
        ),
        "hasArchive": bool(settings.effective_archive_url),
    }

    missing: List[str] = provider.missing_settings()
    if missing:
        return JSONResponse(
            status_code=500,
            content={"status": "Missing API Config", "error": ", ".join(missing), "config": config},
        )

    try:
        http_code, body = await provider.ping()
    except ProviderError as e:
        return JSONResponse(
            status_code=502,
            content={"status": "Connection Failed", "error": str(e), "config": config},
        )

    return JSONResponse(
        status_code=200,
        content={
            "status": "Connection Attempted",
            "httpCode": http_code,
            "response": body,
            "config": config,
        },
    )
