"""
VoiceDesk configuration.

Values come from the environment or a local ``.env`` file; defaults target a
platform running on localhost. Components take an explicit ``Settings`` and
fall back to ``get_settings()``.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """VoiceDesk settings loaded from environment / .env file.

    Each field is read from the upper-cased env var of the same name
    (``SUPABASE_URL``, ``REQUEST_TIMEOUT``, ...).

    Attributes:
        supabase_url: Base URL of the hosted platform project.
        supabase_anon_key: Public API key sent as the ``apikey`` header.
        request_timeout: Upper bound in seconds for every gateway call.
        max_upload_bytes: Largest audio or avatar file accepted for upload.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Hosted platform ---
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = ""

    # --- Gateways ---
    request_timeout: float = 20.0
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MB

    # --- Capture ---
    recording_mime_type: str = "audio/wav"
    recording_sample_rate: int = 16000
    recording_channels: int = 1
    capture_tick_seconds: float = 1.0  # Elapsed counter resolution while recording

    # --- Playback ---
    playback_tick_seconds: float = 0.25  # How often position updates are emitted

    # --- Dashboard ---
    downloads_dir: str = "data/downloads"
    log_level: str = "INFO"

    @property
    def functions_url(self) -> str:
        """Base URL of the edge functions endpoint."""
        return f"{self.supabase_url.rstrip('/')}/functions/v1"

    @property
    def auth_url(self) -> str:
        """Base URL of the auth endpoint."""
        return f"{self.supabase_url.rstrip('/')}/auth/v1"


@lru_cache
def get_settings() -> Settings:
    """Settings loaded once per process."""
    return Settings()
