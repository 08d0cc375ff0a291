"""Unit tests for SoundFileMediaElement loading and error codes.

Only the fetch/decode path is exercised; audio output needs a real device.
"""

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest

from voicedesk.services.audio.clip import PlaybackHandleRegistry, encode_wav
from voicedesk.core.models import PlaybackErrorKind, PlaybackStatus
from voicedesk.services.audio.media import MediaErrorCode, SoundFileMediaElement
from voicedesk.services.audio.player import AudioPlayback


class Events:
    """Collects dispatched events and lets tests await the first one."""

    def __init__(self, element) -> None:
        self.seen: list[str] = []
        self._fired = asyncio.Event()
        for name in ("loadeddata", "error", "ended"):
            element.add_event_listener(name, self._record(name))

    def _record(self, name):
        def listener() -> None:
            self.seen.append(name)
            self._fired.set()

        return listener

    async def wait(self) -> list[str]:
        async with asyncio.timeout(2):
            await self._fired.wait()
        return self.seen


async def _load(element: SoundFileMediaElement, src: str) -> list[str]:
    events = Events(element)
    element.src = src
    element.load()
    return await events.wait()


class TestLocalHandles:
    async def test_loads_wav_from_handle(self, sample_pcm_bytes, handles):
        handle = handles.allocate(encode_wav([sample_pcm_bytes], 16000), "audio/wav")
        element = SoundFileMediaElement(handles=handles)

        assert await _load(element, handle) == ["loadeddata"]
        assert element.duration == pytest.approx(1.0)
        assert element.current_time == 0.0
        element.release()

    async def test_revoked_handle_is_unsupported_source(self, handles):
        handle = handles.allocate(b"RIFF", "audio/wav")
        handles.revoke(handle)
        element = SoundFileMediaElement(handles=handles)

        assert await _load(element, handle) == ["error"]
        assert element.error.code == MediaErrorCode.SRC_NOT_SUPPORTED

    async def test_garbage_payload_is_decode_error(self, handles):
        handle = handles.allocate(b"definitely not audio", "audio/wav")
        element = SoundFileMediaElement(handles=handles)

        assert await _load(element, handle) == ["error"]
        assert element.error.code == MediaErrorCode.DECODE


class TestRemoteSources:
    async def test_http_404_is_unsupported_source(self):
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(404))
        ) as http:
            element = SoundFileMediaElement(http=http)
            assert await _load(element, "https://storage.test/missing.wav") == ["error"]

        assert element.error.code == MediaErrorCode.SRC_NOT_SUPPORTED

    async def test_connection_failure_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            element = SoundFileMediaElement(http=http)
            assert await _load(element, "https://storage.test/a.wav") == ["error"]

        assert element.error.code == MediaErrorCode.NETWORK

    async def test_redirect_loop_is_network_error(self):
        def handler(request):
            return httpx.Response(302, headers={"location": str(request.url)})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            element = SoundFileMediaElement(http=http)
            assert await _load(element, "https://storage.test/loop.wav") == ["error"]

        assert element.error.code == MediaErrorCode.NETWORK

    async def test_redirect_loop_leaves_player_in_error(self):
        def handler(request):
            return httpx.Response(302, headers={"location": str(request.url)})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            player = AudioPlayback(lambda: SoundFileMediaElement(http=http), http=http)
            player.bind("https://storage.test/loop.wav", "Loop")
            async with asyncio.timeout(2):
                while player.state.status == PlaybackStatus.loading:
                    await asyncio.sleep(0.01)

            assert player.state.status == PlaybackStatus.error
            assert player.state.error.kind == PlaybackErrorKind.network
            player.close()

    async def test_unexpected_fetch_failure_still_reports_error(self):
        handles = MagicMock()
        handles.resolve.side_effect = RuntimeError("registry closed")
        element = SoundFileMediaElement(handles=handles)
        handle = PlaybackHandleRegistry().allocate(b"x", "audio/wav")

        assert await _load(element, handle) == ["error"]
        assert element.error.code is None
        assert element.error.message == "registry closed"

    async def test_remote_wav(self, sample_pcm_bytes):
        payload = encode_wav([sample_pcm_bytes], 16000)
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=payload))
        ) as http:
            element = SoundFileMediaElement(http=http)
            assert await _load(element, "https://storage.test/a.wav") == ["loadeddata"]

        assert element.duration == pytest.approx(1.0)

    async def test_seek_before_load_is_ignored(self):
        element = SoundFileMediaElement(handles=PlaybackHandleRegistry())
        element.current_time = 5.0
        assert element.current_time == 0.0


class TestListeners:
    def test_unknown_event_rejected(self):
        element = SoundFileMediaElement()
        with pytest.raises(ValueError):
            element.add_event_listener("canplay", lambda: None)

    def test_remove_listener(self):
        element = SoundFileMediaElement()

        def listener() -> None:
            pass

        element.add_event_listener("ended", listener)
        element.remove_event_listener("ended", listener)
        element.remove_event_listener("ended", listener)
        assert element.listener_count() == 0
