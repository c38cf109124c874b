"""Pytest fixtures for photobooth video tests."""

from typing import Any, Callable, Optional

import httpx
import pytest

from photobooth_video.config import Settings
from photobooth_video.models.job import VideoJob
from photobooth_video.models.status import ArchivalOutcome, ProviderStatus
from photobooth_video.services.ledger import Ledger
from photobooth_video.services.provider import SeedanceClient, SubmissionRequest
from photobooth_video.utils.errors import LedgerUnavailableError, ProviderUnavailableError

ARK_BASE_URL = "https://ark.test/api/v3"
APPS_SCRIPT_URL = "https://script.test/macros/s/abc/exec"


def make_settings(**overrides: Any) -> Settings:
    """Settings with every collaborator configured and no retry delays."""
    values: dict[str, Any] = {
        "ark_api_key": "test-key",
        "ark_base_url": ARK_BASE_URL,
        "apps_script_base_url": APPS_SCRIPT_URL,
        "ledger_backend": "apps_script",
        "max_concurrent": 5,
        "tick_workers": 5,
        "max_retry_attempts": 2,
        "base_delay_seconds": 0.0,
        "max_archive_attempts": 3,
    }
    values.update(overrides)
    return Settings(**values)


class FakeLedger(Ledger):
    """In-memory ledger that honours expected_state like the real backends."""

    def __init__(self, jobs: Optional[list[VideoJob]] = None) -> None:
        self.jobs: dict[str, VideoJob] = {job.id: job for job in jobs or []}
        self.writes: list[tuple[str, str, dict[str, Any], Optional[str]]] = []
        self.created: list[VideoJob] = []
        self.failing_ids: set[str] = set()
        self.list_failures = 0
        self.configured = True

    def missing_settings(self) -> list[str]:
        return [] if self.configured else ["APPS_SCRIPT_BASE_URL"]

    async def list_jobs(self, states=None) -> list[VideoJob]:
        if self.list_failures > 0:
            self.list_failures -= 1
            raise LedgerUnavailableError("ledger down")
        jobs = list(self.jobs.values())
        if states is not None:
            jobs = [job for job in jobs if job.state in set(states)]
        return jobs

    async def update_job_state(self, job_id, new_state, fields=None, expected_state=None) -> bool:
        if job_id in self.failing_ids:
            raise LedgerUnavailableError(f"write failed for {job_id}")
        current = self.jobs.get(job_id)
        if current is None:
            return False
        if expected_state is not None and current.state != expected_state:
            return False
        fields = dict(fields or {})
        self.writes.append((job_id, new_state, fields, expected_state))
        self.jobs[job_id] = current.model_copy(update={"state": new_state, **fields})
        return True

    def add(self, *jobs: VideoJob) -> None:
        for job in jobs:
            self.jobs[job.id] = job

    async def create_job(self, job: VideoJob) -> None:
        self.created.append(job)
        self.jobs[job.id] = job


class FakeProvider:
    """Provider double with scripted statuses and task ids."""

    def __init__(self) -> None:
        self.statuses: dict[str, Any] = {}
        self.submitted: list[SubmissionRequest] = []
        self.fail_submissions = False
        self.next_task_ids: list[str] = []
        self.configured = True

    def missing_settings(self) -> list[str]:
        return [] if self.configured else ["ARK_API_KEY"]

    async def submit(self, request: SubmissionRequest) -> str:
        if self.fail_submissions:
            raise ProviderUnavailableError("provider down")
        self.submitted.append(request)
        if self.next_task_ids:
            return self.next_task_ids.pop(0)
        return f"t-{len(self.submitted)}"

    async def query_status(self, task_id: str) -> ProviderStatus:
        status = self.statuses.get(task_id, ProviderStatus.processing())
        if isinstance(status, Exception):
            raise status
        return status


class FakeArchiver:
    """Archival double returning a scripted outcome."""

    def __init__(self, outcome: Optional[ArchivalOutcome] = None) -> None:
        self.outcome = outcome or ArchivalOutcome.triggered(file_id="drive-file-1")
        self.calls: list[tuple[str, str]] = []

    async def archive(self, job: VideoJob, video_url: str) -> ArchivalOutcome:
        self.calls.append((job.id, video_url))
        return self.outcome


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_archiver() -> FakeArchiver:
    return FakeArchiver()


@pytest.fixture
def make_provider_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], SeedanceClient]:
    """Build a SeedanceClient whose HTTP calls go to the given handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> SeedanceClient:
        return SeedanceClient(
            api_key="test-key",
            base_url=ARK_BASE_URL,
            timeout=5.0,
            transport=httpx.MockTransport(handler),
        )

    return factory


@pytest.fixture
def sample_row() -> dict:
    """A kiosk sheet row for a queued job."""
    return {
        "id": "photo-001",
        "createdAt": "2026-10-18T10:00:00Z",
        "conceptName": "Cyberpunk",
        "videoStatus": "queued",
        "videoTaskId": "",
        "providerUrl": "",
        "videoPrompt": "Slow dolly zoom",
        "videoResolution": "720p",
        "videoModel": "",
        "sessionFolderId": "folder-9",
    }
