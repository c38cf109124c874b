"""Video job Pydantic models."""

from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

JobState = Literal["idle", "queued", "processing", "ready_url", "done", "failed"]
Resolution = Literal["480p", "720p"]

JOB_STATES: tuple[str, ...] = ("idle", "queued", "processing", "ready_url", "done", "failed")
TERMINAL_STATES: frozenset[str] = frozenset({"done", "failed"})
SUBMITTED_STATES: frozenset[str] = frozenset({"processing", "ready_url", "done", "failed"})

# Position along queued -> processing -> ready_url -> done; failed sits beside done.
STATE_RANK: dict[str, int] = {
    "idle": 0,
    "queued": 1,
    "processing": 2,
    "ready_url": 3,
    "done": 4,
    "failed": 4,
}


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class VideoJob(BaseModel):
    """One photo-to-video request as stored in the ledger.

    Field aliases are the kiosk sheet's column names; snake_case names are
    used by table-backed ledgers.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    state: JobState = Field(default="idle", alias="videoStatus")
    provider_task_id: Optional[str] = Field(default=None, alias="videoTaskId")
    provider_result_url: Optional[str] = Field(default=None, alias="providerUrl")
    archived_file_id: Optional[str] = Field(default=None, alias="videoFileId")
    prompt: Optional[str] = Field(default=None, alias="videoPrompt")
    resolution: Optional[Resolution] = Field(default=None, alias="videoResolution")
    model: Optional[str] = Field(default=None, alias="videoModel")
    source_image_id: Optional[str] = Field(default=None, alias="sourceImageId")
    session_folder_id: Optional[str] = Field(default=None, alias="sessionFolderId")
    failure_reason: Optional[str] = Field(default=None, alias="videoError")
    archive_attempts: int = Field(default=0, ge=0, alias="videoArchiveAttempts")

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, v: Any) -> Any:
        """Missing or blank status means no video was requested."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return "idle"
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("resolution", mode="before")
    @classmethod
    def normalize_resolution(cls, v: Any) -> Any:
        """Unknown resolutions fall back to the system default at submission."""
        if v in ("480p", "720p"):
            return v
        return None

    @field_validator(
        "provider_task_id",
        "provider_result_url",
        "archived_file_id",
        "prompt",
        "model",
        "source_image_id",
        "session_folder_id",
        "failure_reason",
        mode="before",
    )
    @classmethod
    def blank_as_missing(cls, v: Any) -> Any:
        """Spreadsheet cells come back as empty strings."""
        return _blank_to_none(v)

    @field_validator("archive_attempts", mode="before")
    @classmethod
    def blank_attempts(cls, v: Any) -> Any:
        """A hand-edited counter cell must not hide the whole row."""
        if isinstance(v, bool):
            return 0
        if isinstance(v, int):
            return max(v, 0)
        try:
            return max(int(float(str(v).strip())), 0)
        except (TypeError, ValueError, OverflowError):
            return 0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class VideoJobRequest(BaseModel):
    """Intake payload for a new video job."""

    source_image_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sourceImageId", "driveFileId", "source_image_id"),
    )
    session_folder_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sessionFolderId", "session_folder_id"),
    )
    prompt: Optional[str] = None
    resolution: Optional[Resolution] = None
    model: Optional[str] = None
