"""Job intake: validates a video request and queues it in the ledger."""

import logging
from typing import Optional

from photobooth_video.config import Settings, get_settings
from photobooth_video.models.job import VideoJob, VideoJobRequest
from photobooth_video.services.ledger import Ledger
from photobooth_video.utils.errors import ConfigurationError, JobValidationError

logger = logging.getLogger(__name__)


async def enqueue_video_job(
    request: VideoJobRequest,
    ledger: Ledger,
    settings: Optional[Settings] = None,
) -> VideoJob:
    """
    Write a new queued job for a captured photo.

    Submission to the provider happens on a later dispatcher tick; this
    returns as soon as the ledger acknowledges the write. Re-queuing an
    existing photo overwrites its record.

    Args:
        request: Intake payload
        ledger: Job store
        settings: Application settings (defaults to the cached settings)

    Returns:
        The queued VideoJob as written

    Raises:
        JobValidationError: If sourceImageId is missing or blank
        ConfigurationError: If the ledger is not configured
        LedgerUnavailableError: If the ledger write fails
    """
    settings = settings or get_settings()

    source_image_id = (request.source_image_id or "").strip()
    if not source_image_id:
        raise JobValidationError("Missing sourceImageId")

    missing = ledger.missing_settings()
    if missing:
        raise ConfigurationError(f"Config missing: {', '.join(missing)}")

    job = VideoJob(
        id=source_image_id,
        state="queued",
        source_image_id=source_image_id,
        session_folder_id=request.session_folder_id,
        prompt=request.prompt or settings.default_video_prompt,
        resolution=request.resolution or settings.default_video_resolution,
        model=request.model or settings.seedance_model_id,
    )

    await ledger.create_job(job)
    logger.info(f"Queued video job {job.id} ({job.resolution}, {job.model})")
    return job
