"""Normalized provider and archival outcomes."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

DEFAULT_FAILURE_REASON = "video render failed"
MISSING_URL_REASON = "video url missing from provider response"


class ProviderStatus(BaseModel):
    """Canonical interpretation of a provider task status response."""

    kind: Literal["processing", "succeeded", "failed"]
    result_url: Optional[str] = None
    reason: Optional[str] = None
    # Informational note, e.g. a rate-limit message surfaced for logging
    detail: Optional[str] = None

    @classmethod
    def processing(cls, detail: Optional[str] = None) -> "ProviderStatus":
        return cls(kind="processing", detail=detail)

    @classmethod
    def succeeded(cls, result_url: str) -> "ProviderStatus":
        return cls(kind="succeeded", result_url=result_url)

    @classmethod
    def failed(cls, reason: str) -> "ProviderStatus":
        return cls(kind="failed", reason=reason)


class ArchivalOutcome(BaseModel):
    """Tagged result of triggering the archival collaborator."""

    kind: Literal["triggered", "skipped", "failed"]
    file_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def triggered(cls, file_id: Optional[str] = None) -> "ArchivalOutcome":
        return cls(kind="triggered", file_id=file_id)

    @classmethod
    def skipped(cls, reason: str) -> "ArchivalOutcome":
        return cls(kind="skipped", error=reason)

    @classmethod
    def failed(cls, error: str) -> "ArchivalOutcome":
        return cls(kind="failed", error=error)


class TickReport(BaseModel):
    """Observational summary of one dispatcher tick."""

    processed: int = 0
    started: int = 0
    archived: int = 0
    errors: list[str] = Field(default_factory=list)
