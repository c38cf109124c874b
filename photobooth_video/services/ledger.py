"""Ledger clients: the durable job store shared by every tick."""

import json
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import httpx
from pydantic import ValidationError

from photobooth_video.models.job import VideoJob
from photobooth_video.utils.errors import LedgerUnavailableError

logger = logging.getLogger(__name__)

# Job fields as the Apps Script updateVideoStatus action names them
APPS_SCRIPT_UPDATE_KEYS: dict[str, str] = {
    "provider_task_id": "taskId",
    "provider_result_url": "providerUrl",
    "archived_file_id": "fileId",
    "failure_reason": "error",
    "archive_attempts": "archiveAttempts",
}

STATE_CONFLICT_CODE = "StateConflict"


class Ledger(ABC):
    """Read/write access to job records. No caching, no business logic."""

    @abstractmethod
    def missing_settings(self) -> list[str]:
        """Names of required settings that are not configured."""

    @abstractmethod
    async def list_jobs(self, states: Optional[Iterable[str]] = None) -> list[VideoJob]:
        """Return the current snapshot, optionally filtered by state."""

    @abstractmethod
    async def update_job_state(
        self,
        job_id: str,
        new_state: str,
        fields: Optional[dict[str, Any]] = None,
        expected_state: Optional[str] = None,
    ) -> bool:
        """
        Partially update a job; unspecified fields are left untouched.

        Returns False when expected_state was given and the stored state no
        longer matches it.
        """

    @abstractmethod
    async def create_job(self, job: VideoJob) -> None:
        """Write a new job record, overwriting any record with the same id."""


def _filter_states(jobs: list[VideoJob], states: Optional[Iterable[str]]) -> list[VideoJob]:
    if states is None:
        return jobs
    wanted = set(states)
    return [job for job in jobs if job.state in wanted]


class AppsScriptLedger(Ledger):
    """Ledger backed by the kiosk's Apps Script web app (a Google Sheet)."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the AppsScriptLedger.

        Args:
            base_url: Deployed web app URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.strip()
        self.timeout = timeout
        self._transport = transport

    def missing_settings(self) -> list[str]:
        return [] if self.base_url else ["APPS_SCRIPT_BASE_URL"]

    def _client(self) -> httpx.AsyncClient:
        # Web app responses redirect to a content host
        return httpx.AsyncClient(
            transport=self._transport, timeout=self.timeout, follow_redirects=True
        )

    async def _request(self, method: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, self.base_url, **kwargs)
        except httpx.HTTPError as e:
            raise LedgerUnavailableError(f"Ledger transport error: {e}")

        if not response.is_success:
            raise LedgerUnavailableError(
                f"Ledger returned {response.status_code}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError:
            raise LedgerUnavailableError(
                "Ledger returned a non-JSON body", status_code=response.status_code
            )

        if not isinstance(data, dict):
            raise LedgerUnavailableError("Ledger returned an unexpected body")
        return data

    async def _post_action(self, body: dict[str, Any]) -> dict[str, Any]:
        # Apps Script web apps do not answer CORS preflight; keep the body text/plain
        return await self._request(
            "POST",
            content=json.dumps(body),
            headers={"Content-Type": "text/plain;charset=utf-8"},
        )

    @staticmethod
    def _parse_row(row: dict[str, Any]) -> Optional[VideoJob]:
        data = dict(row)
        # One job per photo: the photo id is the source image
        if not data.get("sourceImageId"):
            data["sourceImageId"] = data.get("id")
        try:
            return VideoJob.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Skipping unreadable ledger row {row.get('id')!r}: {e}")
            return None

    async def list_jobs(self, states: Optional[Iterable[str]] = None) -> list[VideoJob]:
        data = await self._request(
            "GET", params={"action": "gallery", "t": int(time.time() * 1000)}
        )
        items = data.get("items") or []

        jobs: list[VideoJob] = []
        for row in items:
            if not isinstance(row, dict):
                continue
            job = self._parse_row(row)
            if job is not None:
                jobs.append(job)

        return _filter_states(jobs, states)

    async def update_job_state(
        self,
        job_id: str,
        new_state: str,
        fields: Optional[dict[str, Any]] = None,
        expected_state: Optional[str] = None,
    ) -> bool:
        body: dict[str, Any] = {
            "action": "updateVideoStatus",
            "photoId": job_id,
            "status": new_state,
        }
        for name, value in (fields or {}).items():
            key = APPS_SCRIPT_UPDATE_KEYS.get(name)
            if key is None:
                raise ValueError(f"Unknown job field for ledger update: {name}")
            body[key] = value
        if expected_state is not None:
            body["expectedStatus"] = expected_state

        data = await self._post_action(body)

        if data.get("ok") is False:
            if data.get("code") == STATE_CONFLICT_CODE:
                return False
            raise LedgerUnavailableError(f"Ledger rejected update: {data.get('error', 'unknown')}")
        return True

    async def create_job(self, job: VideoJob) -> None:
        data = await self._post_action(
            {
                "action": "queueVideo",
                "photoId": job.id,
                "sessionFolderId": job.session_folder_id,
                "prompt": job.prompt,
                "resolution": job.resolution,
                "model": job.model,
            }
        )
        if data.get("ok") is False:
            raise LedgerUnavailableError(f"Ledger rejected job: {data.get('error', 'unknown')}")


class SupabaseLedger(Ledger):
    """Ledger backed by a Supabase table keyed by job id."""

    def __init__(self, supabase_client: Any, table: str = "video_jobs") -> None:
        """
        Initialize the SupabaseLedger.

        Args:
            supabase_client: Supabase client instance (None when unconfigured)
            table: Name of the jobs table
        """
        self.supabase = supabase_client
        self.table = table

    def missing_settings(self) -> list[str]:
        return [] if self.supabase is not None else ["SUPABASE_URL", "SUPABASE_KEY"]

    async def list_jobs(self, states: Optional[Iterable[str]] = None) -> list[VideoJob]:
        try:
            query = self.supabase.table(self.table).select("*")
            if states is not None:
                query = query.in_("state", list(states))
            result = query.order("created_at").execute()
        except Exception as e:
            raise LedgerUnavailableError(f"Failed to list jobs: {e}")

        jobs: list[VideoJob] = []
        for row in result.data or []:
            try:
                jobs.append(VideoJob.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable job row {row.get('id')!r}: {e}")
        return jobs

    async def update_job_state(
        self,
        job_id: str,
        new_state: str,
        fields: Optional[dict[str, Any]] = None,
        expected_state: Optional[str] = None,
    ) -> bool:
        update_data: dict[str, Any] = {
            **(fields or {}),
            "state": new_state,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            query = self.supabase.table(self.table).update(update_data).eq("id", job_id)
            if expected_state is not None:
                query = query.eq("state", expected_state)
            result = query.execute()
        except Exception as e:
            raise LedgerUnavailableError(f"Failed to update job {job_id}: {e}")

        return bool(result.data)

    async def create_job(self, job: VideoJob) -> None:
        now = datetime.now(timezone.utc).isoformat()
        job_data = {
            **job.model_dump(),
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = self.supabase.table(self.table).upsert(job_data).execute()
        except Exception as e:
            raise LedgerUnavailableError(f"Failed to create job {job.id}: {e}")

        if not result.data:
            raise LedgerUnavailableError(f"Failed to insert job {job.id} into ledger")

        logger.info(f"Created job {job.id}")


# Factory function for creating the configured Ledger
def create_ledger(transport: Optional[httpx.AsyncBaseTransport] = None) -> Ledger:
    """
    Create the Ledger selected by application settings.

    Returns:
        Configured Ledger instance
    """
    from photobooth_video.config import get_settings

    settings = get_settings()

    if settings.ledger_backend == "supabase":
        client = None
        if settings.supabase_url and settings.supabase_key:
            from supabase import create_client

            client = create_client(settings.supabase_url, settings.supabase_key)
        return SupabaseLedger(supabase_client=client, table=settings.supabase_jobs_table)

    return AppsScriptLedger(
        base_url=settings.apps_script_base_url,
        timeout=settings.http_timeout_seconds,
        transport=transport,
    )
