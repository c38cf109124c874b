"""Archival trigger: copies a provider-hosted video into long-term storage."""

import json
import logging
from typing import Any, Optional

import httpx

from photobooth_video.models.job import VideoJob
from photobooth_video.models.status import ArchivalOutcome
from photobooth_video.utils.errors import ArchivalError

logger = logging.getLogger(__name__)


class ArchivalService:
    """Triggers the external finalizeVideoUpload action.

    Outcomes are tagged rather than raised so that a failed copy never
    blocks job completion.
    """

    def __init__(
        self,
        archive_url: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.archive_url = archive_url.strip()
        self.timeout = timeout
        self._transport = transport

    async def _finalize(self, job: VideoJob, video_url: str) -> dict[str, Any]:
        body = {
            "action": "finalizeVideoUpload",
            "photoId": job.id,
            "videoUrl": video_url,
            "sessionFolderId": job.session_folder_id,
        }

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.timeout, follow_redirects=True
            ) as client:
                response = await client.post(
                    self.archive_url,
                    content=json.dumps(body),
                    headers={"Content-Type": "text/plain;charset=utf-8"},
                )
        except httpx.HTTPError as e:
            raise ArchivalError(f"Trigger error: {e}")

        if not response.is_success:
            raise ArchivalError(f"Archive endpoint returned {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise ArchivalError("Archive endpoint returned a non-JSON body")

        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error") if isinstance(data, dict) else None
            raise ArchivalError(f"Upload failed: {error or 'unknown'}")
        return data

    async def archive(self, job: VideoJob, video_url: str) -> ArchivalOutcome:
        """
        Ask the archival collaborator to copy a finished video.

        Args:
            job: The job whose result is being archived
            video_url: Provider-hosted result URL

        Returns:
            ArchivalOutcome (triggered, skipped or failed)
        """
        if not self.archive_url:
            return ArchivalOutcome.skipped("archival endpoint not configured")

        try:
            data = await self._finalize(job, video_url)
        except ArchivalError as e:
            logger.warning(f"Archival failed for {job.id}: {e}")
            return ArchivalOutcome.failed(str(e))

        file_id = data.get("fileId")
        logger.info(f"Archived video for {job.id} as file {file_id}")
        return ArchivalOutcome.triggered(file_id=str(file_id) if file_id else None)


def create_archival_service(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ArchivalService:
    """Create an ArchivalService using application settings."""
    from photobooth_video.config import get_settings

    settings = get_settings()
    return ArchivalService(
        archive_url=settings.effective_archive_url,
        timeout=settings.http_timeout_seconds,
        transport=transport,
    )
