"""
Pydantic v2 models for data exchanged with the hosted platform, plus the
runtime state records owned by the capture and playback components.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    """The signed-in user as reported by the identity provider."""

    id: str
    email: str | None = None
    access_token: str = Field(default="", repr=False)


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class ProcessingStatus(StrEnum):
    """Backend processing states of a persisted recording."""

    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class PersistedRecording(BaseModel):
    """A durable recording row owned by the platform's ``voice_records`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    profile_id: str
    title: str
    description: str | None = None
    file_url: str | None = None
    file_size: int | None = None
    duration: float | None = None
    transcript: str | None = None
    language: str | None = None
    tags: list[str] | None = None
    is_public: bool = False
    is_processed: bool = False
    processing_status: ProcessingStatus | None = ProcessingStatus.pending
    metadata: dict | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def is_playable(self) -> bool:
        """True when the record carries a durable URL."""
        return bool(self.file_url)


class RecordingFilter(BaseModel):
    """Server-side filters for listing recordings."""

    status: ProcessingStatus | None = None
    query: str | None = None
    limit: int = Field(default=10, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class RecordingPage(BaseModel):
    """One page of recordings plus pagination metadata."""

    records: list[PersistedRecording] = Field(default_factory=list)
    total: int = 0
    limit: int = 10
    offset: int = 0
    has_more: bool = False


class UploadResult(BaseModel):
    """Response of the upload gateway: the created record and its stored file."""

    record: PersistedRecording
    path: str | None = None
    public_url: str
    size: int


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class Profile(BaseModel):
    """A row of the platform's ``profiles`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    updated_at: datetime | None = None
    username: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    website: str | None = None
    phone: str | None = None
    bio: str | None = None
    location: str | None = None
    email_notifications: bool = True
    sms_notifications: bool = False
    marketing_emails: bool = True
    two_factor_auth: bool = False
    login_alerts: bool = True


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


class CaptureState(StrEnum):
    """States of a VoiceCaptureSession."""

    idle = "idle"
    requesting = "requesting"
    recording = "recording"
    stopped = "stopped"
    saving = "saving"


# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------


class PlaybackStatus(StrEnum):
    """States of an AudioPlayback instance."""

    idle = "idle"
    loading = "loading"
    ready = "ready"
    playing = "playing"
    paused = "paused"
    error = "error"


class PlaybackErrorKind(StrEnum):
    """Classification of a load or playback failure."""

    aborted = "aborted"
    network = "network"
    decode = "decode"
    source_invalid = "source_invalid"
    unknown = "unknown"


@dataclass(frozen=True)
class PlaybackError:
    """A classified playback failure shown in the player's error panel."""

    kind: PlaybackErrorKind
    message: str
    detail: str | None = None


@dataclass
class PlaybackState:
    """Observable state of one AudioPlayback instance."""

    source_url: str | None = None
    title: str | None = None
    status: PlaybackStatus = PlaybackStatus.idle
    error: PlaybackError | None = None
    muted: bool = False
    elapsed: float = 0.0
    duration: float = 0.0

    @property
    def loading(self) -> bool:
        return self.status == PlaybackStatus.loading

    @property
    def playing(self) -> bool:
        return self.status == PlaybackStatus.playing

    @property
    def progress(self) -> float:
        """Elapsed time as a fraction of the duration (0.0 when unknown)."""
        if self.duration <= 0:
            return 0.0
        return min(1.0, self.elapsed / self.duration)
