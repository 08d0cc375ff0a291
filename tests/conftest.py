"""Shared pytest fixtures for the VoiceDesk test suite.

Provides in-memory stand-ins for the device and platform ports (microphone,
media element, voice gateway) plus settings and sample audio helpers.
"""

import asyncio
import math
import struct
import uuid
from datetime import UTC, datetime

import pytest

from voicedesk.core.config import Settings
from voicedesk.core.exceptions import NotFoundError, PermissionDeniedError
from voicedesk.core.models import (
    Identity,
    PersistedRecording,
    RecordingFilter,
    RecordingPage,
    UploadResult,
)
from voicedesk.services.audio.clip import PlaybackHandleRegistry
from voicedesk.services.audio.devices import CaptureStream, Microphone
from voicedesk.services.audio.media import MediaElement, MediaErrorCode, MediaPlaybackError
from voicedesk.services.gateways.base import PersistenceGateway, UploadGateway

# ---------------------------------------------------------------------------
# Settings / identity
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        supabase_url="http://platform.test",
        supabase_anon_key="anon-key",
        request_timeout=2.0,
        capture_tick_seconds=0.01,
        downloads_dir=str(tmp_path / "downloads"),
    )


@pytest.fixture
def identity():
    return Identity(id="user-1", email="user@example.com", access_token="token-1")


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    sample_rate = 16000
    frequency = 440.0
    amplitude = 16000  # ~50% of max int16

    samples = []
    for i in range(sample_rate):
        value = int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate))
        samples.append(struct.pack("<h", value))
    return b"".join(samples)


class FakeStream(CaptureStream):
    """CaptureStream that replays preset chunks and then waits for stop()."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        for chunk in chunks:
            self._queue.put_nowait(chunk)
        self._active = True
        self.stop_calls = 0

    async def chunks(self):
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    def stop(self) -> None:
        self.stop_calls += 1
        if self._active:
            self._active = False
            self._queue.put_nowait(None)

    @property
    def active(self) -> bool:
        return self._active


class FakeMicrophone(Microphone):
    """Microphone returning FakeStreams, or raising ``error`` when set."""

    def __init__(self, chunks: list[bytes] | None = None, error: Exception | None = None) -> None:
        self.sample_rate = 16000
        self.channels = 1
        self._chunks = chunks or []
        self.error = error
        self.streams: list[FakeStream] = []

    async def open(self) -> CaptureStream:
        if self.error is not None:
            raise self.error
        stream = FakeStream(self._chunks)
        self.streams.append(stream)
        return stream


@pytest.fixture
def microphone(sample_pcm_bytes):
    return FakeMicrophone([sample_pcm_bytes])


@pytest.fixture
def denied_microphone():
    return FakeMicrophone(error=PermissionDeniedError())


@pytest.fixture
def handles():
    return PlaybackHandleRegistry()


# ---------------------------------------------------------------------------
# Media element
# ---------------------------------------------------------------------------


class FakeMediaElement(MediaElement):
    """MediaElement driven by the test through ``emit_*`` helpers."""

    def __init__(self) -> None:
        super().__init__()
        self.load_calls = 0
        self.released = False
        self.playing = False
        self.play_error: str | None = None
        self._position = 0.0
        self._duration = float("nan")

    def load(self) -> None:
        self.load_calls += 1

    async def play(self) -> None:
        if self.play_error is not None:
            raise MediaPlaybackError(self.play_error)
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    @property
    def current_time(self) -> float:
        return self._position

    @current_time.setter
    def current_time(self, value: float) -> None:
        self._position = value

    @property
    def duration(self) -> float:
        return self._duration

    def release(self) -> None:
        self.released = True
        self.playing = False

    # -- test helpers --

    def emit_loaded(self, duration: float) -> None:
        self._duration = duration
        self.dispatch("loadeddata")

    def emit_time(self, position: float) -> None:
        self._position = position
        self.dispatch("timeupdate")

    def emit_ended(self) -> None:
        self._position = self._duration
        self.playing = False
        self.dispatch("ended")

    def emit_error(self, code: MediaErrorCode | None, message: str = "") -> None:
        self.fail(code, message)


class MediaFactory:
    """Callable factory that remembers every element it created."""

    def __init__(self) -> None:
        self.created: list[FakeMediaElement] = []

    def __call__(self) -> FakeMediaElement:
        element = FakeMediaElement()
        self.created.append(element)
        return element

    @property
    def last(self) -> FakeMediaElement:
        return self.created[-1]


@pytest.fixture
def media_factory():
    return MediaFactory()


# ---------------------------------------------------------------------------
# Gateways
# ---------------------------------------------------------------------------


def make_recording(recording_id: str | None = None, **overrides) -> PersistedRecording:
    """Build a PersistedRecording with sensible defaults."""
    recording_id = recording_id or str(uuid.uuid4())
    data = {
        "id": recording_id,
        "profile_id": "user-1",
        "title": f"Recording {recording_id}",
        "file_url": f"https://storage.test/voice-recordings/{recording_id}.wav",
        "file_size": 1024,
        "duration": 3.0,
        "created_at": datetime.now(UTC),
    }
    data.update(overrides)
    return PersistedRecording(**data)


class InMemoryVoiceGateway(UploadGateway, PersistenceGateway):
    """Upload + persistence gateway backed by a dict."""

    def __init__(self) -> None:
        self.records: dict[str, PersistedRecording] = {}
        self.payloads: dict[str, bytes] = {}
        self.upload_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.uploads: list[dict] = []
        self.list_calls: list[tuple[str, RecordingFilter | None]] = []

    def seed(self, *records: PersistedRecording) -> None:
        for record in records:
            self.records[record.id] = record

    async def upload(
        self,
        file_name,
        payload,
        mime_type,
        title,
        description=None,
        is_public=False,
        duration=None,
    ) -> UploadResult:
        self.uploads.append({"file_name": file_name, "title": title, "duration": duration})
        if self.upload_error is not None:
            raise self.upload_error
        record = make_recording(
            profile_id=file_name.rsplit("-", 1)[0],
            title=title,
            description=description,
            is_public=is_public,
            file_url=f"https://storage.test/voice-recordings/{file_name}",
            file_size=len(payload),
            duration=duration,
        )
        self.records[record.id] = record
        self.payloads[record.id] = payload
        return UploadResult(record=record, path=file_name, public_url=record.file_url, size=len(payload))

    async def list(self, owner_id, filter=None) -> RecordingPage:
        self.list_calls.append((owner_id, filter))
        owned = [r for r in self.records.values() if r.profile_id == owner_id]
        if filter is not None and filter.status is not None:
            owned = [r for r in owned if r.processing_status == filter.status]
        if filter is not None and filter.query:
            owned = [r for r in owned if filter.query.lower() in r.title.lower()]
        owned.sort(key=lambda r: r.created_at, reverse=True)
        return RecordingPage(records=owned, total=len(owned))

    async def get(self, recording_id) -> PersistedRecording:
        try:
            return self.records[recording_id]
        except KeyError:
            raise NotFoundError(f"Voice record not found: {recording_id}") from None

    async def update(self, recording_id, **updates) -> PersistedRecording:
        record = (await self.get(recording_id)).model_copy(update=updates)
        self.records[recording_id] = record
        return record

    async def delete(self, recording_id) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        if self.records.pop(recording_id, None) is None:
            raise NotFoundError(f"Voice record not found: {recording_id}")
        self.payloads.pop(recording_id, None)


@pytest.fixture
def voice_gateway():
    return InMemoryVoiceGateway()


@pytest.fixture
def recording_factory():
    """Return ``make_recording`` for building PersistedRecording rows."""
    return make_recording


@pytest.fixture
def microphone_factory():
    """Return the FakeMicrophone class for tests needing custom chunks or errors."""
    return FakeMicrophone
