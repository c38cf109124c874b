"""FastAPI dependencies for the photobooth video API."""

from functools import lru_cache

from photobooth_video.config import Settings, get_settings
from photobooth_video.services.dispatcher import Dispatcher, create_dispatcher
from photobooth_video.services.ledger import Ledger, create_ledger
from photobooth_video.services.media_proxy import MediaProxy, create_media_proxy
from photobooth_video.services.provider import SeedanceClient, create_provider_client


def get_settings_dep() -> Settings:
    """Dependency for application settings."""
    return get_settings()


def get_ledger_dep() -> Ledger:
    """Dependency for the configured ledger."""
    return create_ledger()


def get_provider_dep() -> SeedanceClient:
    """Dependency for the provider client."""
    return create_provider_client()


def get_media_proxy_dep() -> MediaProxy:
    """Dependency for the media proxy."""
    return create_media_proxy()


@lru_cache
def get_dispatcher_dep() -> Dispatcher:
    """Dependency for the dispatcher; one per process so single-flight holds."""
    return create_dispatcher()
