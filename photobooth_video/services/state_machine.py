"""Pure job lifecycle transitions.

Nothing here performs I/O. Each function maps a job snapshot plus an input
(a provider status, a new task id, an archival outcome) to a Transition that
names the next state, the fields to write and the side effects the dispatcher
must carry out.

    queued -> processing -> ready_url -> done
    queued -> processing -> failed
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from photobooth_video.models.job import STATE_RANK, TERMINAL_STATES, VideoJob
from photobooth_video.models.status import (
    DEFAULT_FAILURE_REASON,
    MISSING_URL_REASON,
    ArchivalOutcome,
    ProviderStatus,
)
from photobooth_video.utils.errors import StateTransitionError

SideEffect = Literal["write_ledger", "archive"]

WRITE_LEDGER: SideEffect = "write_ledger"
ARCHIVE: SideEffect = "archive"


class Transition(BaseModel):
    """Next state for a job and the side effects required to get there."""

    current_state: str
    next_state: str
    updates: dict[str, Any] = Field(default_factory=dict)
    effects: tuple[SideEffect, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.effects)


def is_forward(current_state: str, next_state: str) -> bool:
    """True when moving current_state -> next_state never regresses."""
    if current_state in TERMINAL_STATES:
        return current_state == next_state
    return STATE_RANK[next_state] >= STATE_RANK[current_state]


def _stay(job: VideoJob) -> Transition:
    return Transition(current_state=job.state, next_state=job.state)


def _move(
    job: VideoJob, next_state: str, updates: dict[str, Any], *effects: SideEffect
) -> Transition:
    if not is_forward(job.state, next_state):
        raise StateTransitionError(f"Job {job.id}: {job.state} -> {next_state} regresses")
    return Transition(
        current_state=job.state,
        next_state=next_state,
        updates=updates,
        effects=(WRITE_LEDGER, *effects),
    )


def can_admit(job: VideoJob) -> bool:
    """A queued job may be submitted only when it names its source image."""
    return job.state == "queued" and bool(job.source_image_id)


def advance(job: VideoJob, status: ProviderStatus) -> Transition:
    """
    Apply a provider status to a processing job.

    Jobs in any other state are left where they are.

    Args:
        job: Snapshot of the job
        status: Canonical provider status for the job's task

    Returns:
        Transition for the job
    """
    if job.state != "processing":
        return _stay(job)

    if status.kind == "succeeded":
        if not status.result_url:
            return _move(job, "failed", {"failure_reason": MISSING_URL_REASON})
        return _move(job, "ready_url", {"provider_result_url": status.result_url}, ARCHIVE)

    if status.kind == "failed":
        return _move(job, "failed", {"failure_reason": status.reason or DEFAULT_FAILURE_REASON})

    return _stay(job)


def admit(job: VideoJob, task_id: str) -> Transition:
    """
    Promote a queued job to processing after a successful submission.

    Raises:
        StateTransitionError: If the job is not admissible or task_id is empty
    """
    if not can_admit(job):
        raise StateTransitionError(
            f"Job {job.id} cannot be admitted from {job.state!r} "
            f"(source image: {job.source_image_id!r})"
        )
    if not task_id:
        raise StateTransitionError(f"Job {job.id} cannot enter processing without a task id")
    return _move(job, "processing", {"provider_task_id": task_id})


def needs_archival(job: VideoJob, max_attempts: int) -> bool:
    """ready_url jobs without an archived copy, under the attempt budget."""
    return (
        job.state == "ready_url"
        and not job.archived_file_id
        and bool(job.provider_result_url)
        and job.archive_attempts < max_attempts
    )


def settle_archival(job: VideoJob, outcome: ArchivalOutcome) -> Transition:
    """
    Apply an archival outcome to a ready_url job.

    Triggered archival completes the job. A failure only bumps the attempt
    counter; the provider URL stays playable.
    """
    if job.state != "ready_url":
        return _stay(job)

    if outcome.kind == "triggered":
        updates: dict[str, Any] = {}
        if outcome.file_id:
            updates["archived_file_id"] = outcome.file_id
        return _move(job, "done", updates)

    if outcome.kind == "failed":
        return _move(job, "ready_url", {"archive_attempts": job.archive_attempts + 1})

    return _stay(job)


def apply(job: VideoJob, transition: Transition) -> VideoJob:
    """Return a copy of job with the transition applied."""
    return job.model_copy(update={"state": transition.next_state, **transition.updates})
