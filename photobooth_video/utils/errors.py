"""Custom exception classes for the photobooth video dispatcher."""


class PhotoboothVideoError(Exception):
    """Base exception for all application errors."""

    pass


class ConfigurationError(PhotoboothVideoError):
    """A required endpoint or credential is missing."""

    pass


class JobValidationError(PhotoboothVideoError):
    """Intake request is invalid and was not written to the ledger."""

    pass


class ProviderError(PhotoboothVideoError):
    """Errors from the generation provider."""

    pass


class ProviderUnavailableError(ProviderError):
    """Transport failure, timeout or unparseable provider response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ProviderRejectedError(ProviderError):
    """Provider returned a parseable error body on a failure status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.reason = message
        super().__init__(f"Provider error {status_code}: {message}")


class LedgerUnavailableError(PhotoboothVideoError):
    """Ledger call failed; the affected job is left untouched."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ArchivalError(PhotoboothVideoError):
    """Archival collaborator failed to copy a result."""

    pass


class TickInProgressError(PhotoboothVideoError):
    """Another tick is already running in this process."""

    pass


class StateTransitionError(PhotoboothVideoError):
    """A job transition would break the lifecycle invariants."""

    pass


class MediaProxyError(PhotoboothVideoError):
    """Media proxy rejected the target or the upstream fetch failed."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)
