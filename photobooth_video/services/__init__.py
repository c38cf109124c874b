"""Service layer for the photobooth video dispatcher."""

from photobooth_video.services.archive import ArchivalService, create_archival_service
from photobooth_video.services.dispatcher import Dispatcher, create_dispatcher
from photobooth_video.services.intake import enqueue_video_job
from photobooth_video.services.ledger import (
    AppsScriptLedger,
    Ledger,
    SupabaseLedger,
    create_ledger,
)
from photobooth_video.services.media_proxy import MediaProxy, create_media_proxy
from photobooth_video.services.provider import (
    SeedanceClient,
    SubmissionRequest,
    create_provider_client,
)

__all__ = [
    "ArchivalService",
    "create_archival_service",
    "Dispatcher",
    "create_dispatcher",
    "enqueue_video_job",
    "Ledger",
    "AppsScriptLedger",
    "SupabaseLedger",
    "create_ledger",
    "MediaProxy",
    "create_media_proxy",
    "SeedanceClient",
    "SubmissionRequest",
    "create_provider_client",
]
