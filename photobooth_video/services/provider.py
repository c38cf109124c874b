"""Provider client for the Seedance video generation API."""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from photobooth_video.models.status import (
    DEFAULT_FAILURE_REASON,
    MISSING_URL_REASON,
    ProviderStatus,
)
from photobooth_video.utils.errors import ProviderRejectedError, ProviderUnavailableError

logger = logging.getLogger(__name__)

TASKS_PATH = "/contents/generations/tasks"

# Envelope keys that may wrap the real status payload, in priority order.
# The top-level object is the final fallback.
STATUS_ENVELOPE_KEYS: tuple[str, ...] = ("Result", "data")

RESULT_URL_PATHS: tuple[tuple[str, ...], ...] = (
    ("content", "video_url"),
    ("content", "url"),
    ("output", "video_url"),
    ("result", "video_url"),
    ("video_url",),
)

ERROR_MESSAGE_PATHS: tuple[tuple[str, ...], ...] = (
    ("error", "message"),
    ("message",),
    ("ResponseMetadata", "Error", "Message"),
    ("error",),
)

TASK_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("id",),
    ("Result", "id"),
)

STATUS_FIELD_PATHS: tuple[tuple[str, ...], ...] = (
    ("status",),
    ("Status",),
)

SUCCESS_STATUSES = frozenset({"succeeded", "success"})
FAILURE_STATUSES = frozenset({"failed", "error", "canceled"})

TASK_NOT_FOUND_CODE = "TaskNotFound"


class SubmissionRequest(BaseModel):
    """Generation parameters for one provider submission."""

    model: str
    prompt: str
    resolution: str
    source_image_url: str


def dig(payload: Any, path: tuple[str, ...]) -> Any:
    """Walk nested dicts along path; None when any hop is missing."""
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def first_string(payload: Any, paths: tuple[tuple[str, ...], ...]) -> Optional[str]:
    """Apply extraction rules in order and return the first non-empty string."""
    for path in paths:
        value = dig(payload, path)
        if isinstance(value, str) and value.strip():
            return value
    return None


def unwrap_envelope(data: dict[str, Any]) -> dict[str, Any]:
    """Return the status payload, looking through known envelope keys."""
    for key in STATUS_ENVELOPE_KEYS:
        nested = data.get(key)
        if isinstance(nested, dict):
            return nested
    return data


def extract_error_message(data: Any, default: str = DEFAULT_FAILURE_REASON) -> str:
    """Pull a human readable failure reason out of a provider body."""
    return first_string(data, ERROR_MESSAGE_PATHS) or default


def interpret_status_payload(data: dict[str, Any]) -> ProviderStatus:
    """
    Normalize a successful status response into a canonical status.

    Args:
        data: Parsed JSON body of a 2xx status response

    Returns:
        ProviderStatus (processing, succeeded or failed)
    """
    payload = unwrap_envelope(data)
    raw_status = (first_string(payload, STATUS_FIELD_PATHS) or "processing").strip().lower()

    if raw_status in SUCCESS_STATUSES:
        video_url = first_string(payload, RESULT_URL_PATHS)
        if not video_url:
            logger.error(f"Provider reported success without a video url: {payload}")
            return ProviderStatus.failed(MISSING_URL_REASON)
        return ProviderStatus.succeeded(video_url)

    if raw_status in FAILURE_STATUSES:
        return ProviderStatus.failed(extract_error_message(payload))

    return ProviderStatus.processing()


def _parse_json(response: httpx.Response) -> Optional[dict[str, Any]]:
    """Parse a JSON object body, returning None for anything else."""
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


class SeedanceClient:
    """Client for submitting and polling Seedance generation tasks."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 20.0,
        duration_seconds: int = 5,
        audio: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the SeedanceClient.

        Args:
            api_key: Bearer token for the ark data plane
            base_url: API base URL (trailing slash is ignored)
            timeout: Per-request timeout in seconds
            duration_seconds: Clip length requested on submission
            audio: Whether the provider should render audio
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.duration_seconds = duration_seconds
        self.audio = audio
        self._transport = transport

    def missing_settings(self) -> list[str]:
        missing = []
        if not self.api_key:
            missing.append("ARK_API_KEY")
        if not self.base_url:
            missing.append("ARK_BASE_URL")
        return missing

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    def build_payload(self, request: SubmissionRequest) -> dict[str, Any]:
        """
        Construct the provider wire payload for a submission.

        Args:
            request: Generation parameters

        Returns:
            Dictionary payload for the task creation endpoint
        """
        return {
            "model": request.model,
            "content": [
                {"type": "text", "text": request.prompt},
                {"type": "image_url", "image_url": {"url": request.source_image_url}},
            ],
            "parameters": {
                "duration": self.duration_seconds,
                "resolution": request.resolution,
                "audio": self.audio,
            },
        }

    async def submit(self, request: SubmissionRequest) -> str:
        """
        Submit a generation task.

        A failed call must be treated as not submitted; callers retry on a
        later tick rather than assuming a task exists server-side.

        Args:
            request: Generation parameters

        Returns:
            The provider task id

        Raises:
            ProviderUnavailableError: On transport errors, timeouts, non-2xx
                responses or a response without a task id
        """
        payload = self.build_payload(request)

        try:
            async with self._client() as client:
                response = await client.post(f"{self.base_url}{TASKS_PATH}", json=payload)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Submission transport error: {e}")

        data = _parse_json(response)

        if not response.is_success:
            reason = extract_error_message(data, default=response.text[:200] or "no body")
            raise ProviderUnavailableError(
                f"Submission rejected ({response.status_code}): {reason}",
                status_code=response.status_code,
            )

        if data is None:
            raise ProviderUnavailableError(
                "Submission response was not JSON", status_code=response.status_code
            )

        task_id = first_string(data, TASK_ID_PATHS)
        if not task_id:
            raise ProviderUnavailableError(
                "Submission response carried no task id", status_code=response.status_code
            )

        logger.info(f"Submitted generation task {task_id} ({request.model}, {request.resolution})")
        return task_id

    async def query_status(self, task_id: str) -> ProviderStatus:
        """
        Query a task's status and normalize it.

        404 and TaskNotFound are eventual-consistency lag and 429 is
        throttling; both read as still processing.

        Args:
            task_id: Provider task id

        Returns:
            Canonical ProviderStatus

        Raises:
            ProviderUnavailableError: On transport errors, timeouts or an
                unparseable body
            ProviderRejectedError: On a 5xx status with a parseable error body
        """
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}{TASKS_PATH}/{task_id}")
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Status transport error: {e}")

        if response.status_code == 404:
            return ProviderStatus.processing(detail="task propagation")

        data = _parse_json(response)

        if response.status_code == 429:
            detail = extract_error_message(data, default="rate limited")
            logger.warning(f"Provider throttled status query for {task_id}: {detail}")
            return ProviderStatus.processing(detail=detail)

        if data is None:
            raise ProviderUnavailableError(
                f"Unparseable status response ({response.status_code})",
                status_code=response.status_code,
            )

        if not response.is_success:
            if data.get("code") == TASK_NOT_FOUND_CODE:
                return ProviderStatus.processing(detail="task propagation")
            reason = extract_error_message(data, default="Provider Error")
            if response.status_code >= 500:
                raise ProviderRejectedError(response.status_code, reason)
            return ProviderStatus.failed(reason)

        return interpret_status_payload(data)

    async def ping(self) -> tuple[int, Any]:
        """
        Probe the task listing endpoint for connectivity diagnostics.

        Returns:
            Tuple of HTTP status code and parsed body (raw text if not JSON)

        Raises:
            ProviderUnavailableError: On transport errors
        """
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}{TASKS_PATH}", params={"offset": 0, "limit": 1}
                )
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Connectivity probe failed: {e}")

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return response.status_code, body


def create_provider_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> SeedanceClient:
    """
    Create a SeedanceClient instance using application settings.

    Returns:
        Configured SeedanceClient instance
    """
    from photobooth_video.config import get_settings

    settings = get_settings()
    return SeedanceClient(
        api_key=settings.ark_api_key,
        base_url=settings.ark_base_url,
        timeout=settings.http_timeout_seconds,
        duration_seconds=settings.video_duration_seconds,
        audio=settings.video_audio,
        transport=transport,
    )
