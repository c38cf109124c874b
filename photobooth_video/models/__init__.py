"""Pydantic data models for the photobooth video dispatcher."""

from photobooth_video.models.job import (
    JOB_STATES,
    STATE_RANK,
    SUBMITTED_STATES,
    TERMINAL_STATES,
    JobState,
    VideoJob,
    VideoJobRequest,
)
from photobooth_video.models.status import ArchivalOutcome, ProviderStatus, TickReport

__all__ = [
    "JobState",
    "JOB_STATES",
    "STATE_RANK",
    "SUBMITTED_STATES",
    "TERMINAL_STATES",
    "VideoJob",
    "VideoJobRequest",
    "ProviderStatus",
    "ArchivalOutcome",
    "TickReport",
]
