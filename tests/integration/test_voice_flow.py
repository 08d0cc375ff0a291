"""End-to-end flow over a simulated platform: sign in, record, save,
retrieve, play back and delete.

The platform's auth endpoint and edge functions are served from memory by
an ``httpx.MockTransport`` handler, so the real gateways, capture session and
library run unmodified.
"""

import asyncio
import json
import re
import uuid
from datetime import UTC, datetime

import httpx
import pytest

from voicedesk.core.exceptions import NotFoundError
from voicedesk.core.models import CaptureState, PlaybackStatus
from voicedesk.core.utils import format_time
from voicedesk.services.audio.capture import VoiceCaptureSession
from voicedesk.services.audio.player import AudioPlayback
from voicedesk.services.gateways import create_gateways
from voicedesk.services.gateways.client import PlatformClient
from voicedesk.services.library import RecordingLibrary

# ---------------------------------------------------------------------------
# Simulated platform
# ---------------------------------------------------------------------------


def _parse_multipart(request: httpx.Request) -> dict[str, bytes]:
    boundary = request.headers["content-type"].split("boundary=")[1].encode()
    fields: dict[str, bytes] = {}
    for part in request.content.split(b"--" + boundary):
        if b"\r\n\r\n" not in part:
            continue
        head, body = part.split(b"\r\n\r\n", 1)
        match = re.search(rb'name="([^"]+)"', head)
        if match:
            fields[match.group(1).decode()] = body.removesuffix(b"\r\n")
    return fields


class FakePlatform:
    """Auth plus the voice-* edge functions backed by dicts."""

    def __init__(self) -> None:
        self.records: dict[str, dict] = {}
        self.blobs: dict[str, bytes] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/auth/v1/token":
            return httpx.Response(
                200,
                json={"access_token": "token-1", "user": {"id": "user-1", "email": "user@example.com"}},
            )
        if path == "/auth/v1/logout":
            return httpx.Response(204)
        if request.headers.get("Authorization") != "Bearer token-1":
            return httpx.Response(401, json={"error": "Unauthorized"})

        function = path.removeprefix("/functions/v1/")
        if function == "voice-upload":
            return self._upload(request)
        body = json.loads(request.content or b"{}")
        if function == "voice-retrieve":
            return self._retrieve(body)
        if function == "voice-delete":
            if self.records.pop(body["id"], None) is None:
                return httpx.Response(404, json={"error": "Voice record not found"})
            return httpx.Response(200, json={"message": "Voice record deleted successfully"})
        return httpx.Response(404, json={"error": "Unknown function"})

    def _upload(self, request: httpx.Request) -> httpx.Response:
        fields = _parse_multipart(request)
        payload = fields["file"]
        name = f"user-1/{uuid.uuid4()}.wav"
        url = f"https://storage.test/voice-recordings/{name}"
        record = {
            "id": str(uuid.uuid4()),
            "profile_id": "user-1",
            "title": fields["title"].decode(),
            "file_url": url,
            "file_size": len(payload),
            "duration": float(fields["duration"]),
            "is_public": fields["is_public"] == b"true",
            "processing_status": "pending",
            "created_at": datetime.now(UTC).isoformat(),
        }
        self.records[record["id"]] = record
        self.blobs[url] = payload
        return httpx.Response(
            200,
            json={"record": record, "file": {"path": name, "publicUrl": url, "size": len(payload)}},
        )

    def _retrieve(self, body: dict) -> httpx.Response:
        if "id" in body:
            record = self.records.get(body["id"])
            if record is None:
                return httpx.Response(404, json={"error": "Voice record not found"})
            return httpx.Response(200, json={"record": record})
        owned = [r for r in self.records.values() if r["profile_id"] == body["profileId"]]
        owned.sort(key=lambda r: r["created_at"], reverse=True)
        return httpx.Response(
            200,
            json={
                "records": owned,
                "pagination": {"total": len(owned), "limit": body["limit"], "offset": 0, "hasMore": False},
            },
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
async def gateways(settings, platform):
    http = httpx.AsyncClient(base_url=settings.supabase_url, transport=httpx.MockTransport(platform))
    instance = create_gateways(settings, client=PlatformClient(settings, http=http))
    yield instance
    await instance.aclose()


@pytest.fixture
async def app(gateways, microphone, media_factory, handles, settings):
    """Library and capture session wired to identity changes as the UI does."""
    library = RecordingLibrary(
        gateways.voice, lambda: AudioPlayback(media_factory), settings=settings
    )
    session = VoiceCaptureSession(
        microphone, gateways.voice, library, None, handles, settings
    )

    async def on_identity(identity):
        session.on_identity_changed(identity)
        await library.on_identity_changed(identity)

    gateways.identity.subscribe(on_identity)
    await gateways.identity.sign_in("user@example.com", "secret")
    yield library, session
    await session.close()
    library.close()


async def _record_seconds(session: VoiceCaptureSession, seconds: int):
    await session.start()
    async with asyncio.timeout(2):
        while session.elapsed < seconds:
            await asyncio.sleep(0.005)
    return await session.stop()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestVoiceFlow:
    async def test_record_save_and_list(self, app, gateways):
        """Record 3s, save as "Test": the library shows it first with ~3s duration."""
        library, session = app

        clip = await _record_seconds(session, 3)
        assert abs(clip.duration_seconds - 3) <= 1
        assert format_time(clip.duration_seconds) in ("0:02", "0:03", "0:04")

        record = await session.save("Test")

        assert session.state == CaptureState.idle
        assert library.records[0].id == record.id
        assert library.records[0].title == "Test"
        assert library.records[0].duration == pytest.approx(3, abs=1)

        stored = await gateways.voice.get(record.id)
        assert stored.file_size == clip.size
        assert stored.duration == pytest.approx(clip.duration_seconds, abs=1)

    async def test_saved_record_survives_refresh(self, app):
        library, session = app
        await _record_seconds(session, 1)
        record = await session.save("Standup")

        await library.refresh()

        assert [r.id for r in library.records] == [record.id]

    async def test_play_then_delete(self, app, media_factory, platform):
        library, session = app
        await _record_seconds(session, 1)
        record = await session.save("Clip")

        player = library.select_for_playback(record.id)
        media_factory.last.emit_loaded(1.0)
        assert player.state.status == PlaybackStatus.ready

        await library.delete(record.id)

        assert library.records == []
        assert library.player is None
        assert record.id not in platform.records

    async def test_delete_unknown_surfaces_not_found(self, app, platform):
        library, session = app
        await _record_seconds(session, 1)
        record = await session.save("Clip")
        platform.records.clear()

        with pytest.raises(NotFoundError):
            await library.delete(record.id)

        assert [r.id for r in library.records] == [record.id]
        assert "not found" in library.error.lower()

    async def test_sign_out_clears_library(self, app, gateways):
        library, session = app
        await _record_seconds(session, 1)
        await session.save("Clip")

        await gateways.identity.sign_out()

        assert library.records == []
        assert session.identity is None
