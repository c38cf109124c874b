"""Application settings from environment variables."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    # Seedance (BytePlus ark data plane)
    ark_api_key: str = ""
    ark_base_url: str = ""
    seedance_model_id: str = "seedance-1-0-pro-fast-251015"

    # Ledger
    ledger_backend: Literal["apps_script", "supabase"] = "apps_script"
    apps_script_base_url: str = ""
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_jobs_table: str = "video_jobs"

    # Archival (defaults to the Apps Script web app)
    archive_url: str = ""

    # Dispatcher
    max_concurrent: int = 5
    tick_workers: int = 5
    single_flight_ticks: bool = True
    max_archive_attempts: int = 3

    # Configuration
    log_level: str = "INFO"
    http_timeout_seconds: float = 20.0
    max_retry_attempts: int = 3
    base_delay_seconds: float = 1.0

    # Generation defaults
    default_video_prompt: str = "Cinematic slow motion, high quality"
    default_video_resolution: Literal["480p", "720p"] = "480p"
    video_duration_seconds: int = 5
    video_audio: bool = False
    source_image_url_template: str = "https://drive.google.com/uc?export=download&id={image_id}"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def effective_archive_url(self) -> str:
        """Archival endpoint, falling back to the Apps Script web app."""
        return self.archive_url or self.apps_script_base_url


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
