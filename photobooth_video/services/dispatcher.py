"""Dispatcher: one stateless pass over the ledger per tick."""

import asyncio
import logging
from typing import Awaitable, Optional

from photobooth_video.config import Settings, get_settings
from photobooth_video.models.job import VideoJob
from photobooth_video.models.status import TickReport
from photobooth_video.services.archive import ArchivalService
from photobooth_video.services.ledger import Ledger
from photobooth_video.services.provider import SeedanceClient, SubmissionRequest
from photobooth_video.services.state_machine import (
    ARCHIVE,
    admit,
    advance,
    apply,
    can_admit,
    needs_archival,
    settle_archival,
)
from photobooth_video.utils.errors import (
    ConfigurationError,
    LedgerUnavailableError,
    PhotoboothVideoError,
    TickInProgressError,
)
from photobooth_video.utils.retry import with_retry

logger = logging.getLogger(__name__)


class Dispatcher:
    """Advances in-flight jobs and admits queued ones under the concurrency cap.

    Every tick re-reads the ledger; nothing but the single-flight lock
    survives between ticks.
    """

    def __init__(
        self,
        ledger: Ledger,
        provider: SeedanceClient,
        archiver: ArchivalService,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize the Dispatcher.

        Args:
            ledger: Job store
            provider: Generation provider client
            archiver: Archival trigger
            settings: Application settings (defaults to the cached settings)
        """
        self.ledger = ledger
        self.provider = provider
        self.archiver = archiver
        self.settings = settings or get_settings()
        self._lock = asyncio.Lock()

    def check_configuration(self) -> None:
        """Raise ConfigurationError if the provider or ledger is unusable."""
        missing = self.provider.missing_settings() + self.ledger.missing_settings()
        if missing:
            raise ConfigurationError(f"Config missing: {', '.join(missing)}")

    def build_submission(self, job: VideoJob) -> SubmissionRequest:
        """Generation parameters for a job, falling back to system defaults."""
        return SubmissionRequest(
            model=job.model or self.settings.seedance_model_id,
            prompt=job.prompt or self.settings.default_video_prompt,
            resolution=job.resolution or self.settings.default_video_resolution,
            source_image_url=self.settings.source_image_url_template.format(
                image_id=job.source_image_id
            ),
        )

    async def tick(self) -> TickReport:
        """
        Run one dispatcher pass.

        Returns:
            TickReport with counts of advanced, started and archived jobs and
            the per-job errors encountered

        Raises:
            ConfigurationError: If provider or ledger settings are missing
            LedgerUnavailableError: If the snapshot cannot be read
            TickInProgressError: If single-flight is on and a tick is running
        """
        if not self.settings.single_flight_ticks:
            return await self._run_tick()

        if self._lock.locked():
            raise TickInProgressError("A tick is already running")
        async with self._lock:
            return await self._run_tick()

    @with_retry(exceptions=(LedgerUnavailableError,))
    async def _fetch_snapshot(self) -> list[VideoJob]:
        return await self.ledger.list_jobs()

    async def _run_tick(self) -> TickReport:
        self.check_configuration()
        report = TickReport()

        jobs = await self._fetch_snapshot(
            retry_attempts=self.settings.max_retry_attempts,
            retry_delay=self.settings.base_delay_seconds,
        )

        processing = [job for job in jobs if job.state == "processing"]
        queued = [job for job in jobs if job.state == "queued"]
        unarchived = [
            job for job in jobs if needs_archival(job, self.settings.max_archive_attempts)
        ]

        semaphore = asyncio.Semaphore(max(1, self.settings.tick_workers))

        # Maintenance: poll in-flight jobs and retry pending archival copies
        await self._run_all(
            semaphore, report, [(job, self._advance_job(job, report)) for job in processing]
        )
        await self._run_all(
            semaphore, report, [(job, self._retry_archival(job, report)) for job in unarchived]
        )

        # Admission: the count comes from the snapshot, stale by design
        active_count = len(processing)
        available_slots = self.settings.max_concurrent - active_count

        if available_slots > 0 and queued:
            admissible: list[VideoJob] = []
            for job in queued:
                if can_admit(job):
                    admissible.append(job)
                else:
                    logger.error(f"Queued job {job.id} has no source image; not admitting")
                    report.errors.append(f"{job.id}: missing source image id")

            to_start = admissible[:available_slots]
            await self._run_all(
                semaphore, report, [(job, self._start_job(job, report)) for job in to_start]
            )
        elif queued:
            logger.info(
                f"{len(queued)} queued, no free slots "
                f"({active_count}/{self.settings.max_concurrent} active)"
            )

        logger.info(
            f"Tick complete: processed={report.processed} started={report.started} "
            f"archived={report.archived} errors={len(report.errors)}"
        )
        return report

    async def _run_all(
        self,
        semaphore: asyncio.Semaphore,
        report: TickReport,
        work: list[tuple[VideoJob, Awaitable[None]]],
    ) -> None:
        async def isolated(job: VideoJob, step: Awaitable[None]) -> None:
            async with semaphore:
                try:
                    await step
                except PhotoboothVideoError as e:
                    logger.warning(f"Job {job.id} skipped this tick: {e}")
                    report.errors.append(f"{job.id}: {e}")
                except Exception as e:
                    logger.exception(f"Unexpected error while handling job {job.id}: {e}")
                    report.errors.append(f"{job.id}: {e}")

        await asyncio.gather(*(isolated(job, step) for job, step in work))

    async def _advance_job(self, job: VideoJob, report: TickReport) -> None:
        if not job.provider_task_id:
            logger.warning(f"Processing job {job.id} has no provider task id; skipping")
            return

        status = await self.provider.query_status(job.provider_task_id)
        if status.detail:
            logger.debug(f"Job {job.id} still processing: {status.detail}")

        transition = advance(job, status)
        if not transition.changed:
            return

        applied = await self.ledger.update_job_state(
            job.id, transition.next_state, transition.updates, expected_state="processing"
        )
        if not applied:
            logger.info(f"Job {job.id} left processing elsewhere; not overwriting")
            return

        report.processed += 1
        logger.info(f"Job {job.id}: processing -> {transition.next_state}")

        if ARCHIVE in transition.effects:
            await self._archive(apply(job, transition), report)

    async def _retry_archival(self, job: VideoJob, report: TickReport) -> None:
        logger.info(
            f"Retrying archival for {job.id} "
            f"(attempt {job.archive_attempts + 1}/{self.settings.max_archive_attempts})"
        )
        await self._archive(job, report)

    async def _archive(self, job: VideoJob, report: TickReport) -> None:
        outcome = await self.archiver.archive(job, job.provider_result_url or "")

        if outcome.kind == "failed":
            report.errors.append(f"{job.id}: archival failed: {outcome.error}")
        elif outcome.kind == "skipped":
            logger.info(f"Archival skipped for {job.id}: {outcome.error}")

        transition = settle_archival(job, outcome)
        if not transition.changed:
            return

        applied = await self.ledger.update_job_state(
            job.id, transition.next_state, transition.updates, expected_state="ready_url"
        )
        if applied and transition.next_state == "done":
            report.archived += 1
            logger.info(f"Job {job.id}: ready_url -> done")

    async def _start_job(self, job: VideoJob, report: TickReport) -> None:
        # A failed submission leaves the job queued for the next tick
        task_id = await self.provider.submit(self.build_submission(job))

        transition = admit(job, task_id)
        applied = await self.ledger.update_job_state(
            job.id, transition.next_state, transition.updates, expected_state="queued"
        )
        if not applied:
            logger.warning(
                f"Job {job.id} was admitted by another tick; provider task {task_id} is orphaned"
            )
            return

        report.started += 1
        logger.info(f"Job {job.id}: queued -> processing (task {task_id})")


def create_dispatcher() -> Dispatcher:
    """
    Create a Dispatcher wired to the configured collaborators.

    Returns:
        Configured Dispatcher instance
    """
    from photobooth_video.services.archive import create_archival_service
    from photobooth_video.services.ledger import create_ledger
    from photobooth_video.services.provider import create_provider_client

    return Dispatcher(
        ledger=create_ledger(),
        provider=create_provider_client(),
        archiver=create_archival_service(),
        settings=get_settings(),
    )
