"""Utility modules for the photobooth video dispatcher."""

from photobooth_video.utils.errors import (
    ArchivalError,
    ConfigurationError,
    JobValidationError,
    LedgerUnavailableError,
    MediaProxyError,
    PhotoboothVideoError,
    ProviderError,
    ProviderRejectedError,
    ProviderUnavailableError,
    StateTransitionError,
    TickInProgressError,
)
from photobooth_video.utils.retry import with_retry

__all__ = [
    "PhotoboothVideoError",
    "ConfigurationError",
    "JobValidationError",
    "ProviderError",
    "ProviderUnavailableError",
    "ProviderRejectedError",
    "LedgerUnavailableError",
    "ArchivalError",
    "TickInProgressError",
    "StateTransitionError",
    "MediaProxyError",
    "with_retry",
]
