"""
Background event loop and per-session service wiring for the Streamlit UI.

Streamlit re-executes the page script on every interaction, so the asyncio
core (capture ticks, playback timers, HTTP clients) lives on a dedicated
event-loop thread that survives reruns. Page code calls into it through
``LoopRunner.run`` / ``LoopRunner.call``.
"""

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

import streamlit as st

from voicedesk.core.config import Settings, get_settings
from voicedesk.core.models import Identity
from voicedesk.services.audio.capture import VoiceCaptureSession
from voicedesk.services.audio.clip import PlaybackHandleRegistry
from voicedesk.services.audio.devices import SoundDeviceMicrophone
from voicedesk.services.audio.media import SoundFileMediaElement
from voicedesk.services.audio.player import AudioPlayback
from voicedesk.services.gateways import Gateways, create_gateways
from voicedesk.services.library import RecordingLibrary

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LoopRunner:
    """Runs one asyncio event loop on a daemon thread."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._serve, name="voicedesk-loop", daemon=True
        )
        self._thread.start()

    def _serve(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run ``coro`` on the loop thread and block for its result."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout)

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a synchronous callable on the loop thread (it may schedule tasks)."""

        async def _invoke() -> T:
            return fn(*args, **kwargs)

        return self.run(_invoke())

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)


@dataclass
class AppServices:
    """Everything one browser session talks to."""

    runner: LoopRunner
    settings: Settings
    gateways: Gateways
    handles: PlaybackHandleRegistry
    library: RecordingLibrary
    capture: VoiceCaptureSession

    @property
    def identity(self) -> Identity | None:
        return self.gateways.identity.current

    def new_player(self) -> AudioPlayback:
        """A standalone player (used for the unsaved-clip preview)."""
        return self.runner.call(_player_factory(self.settings, self.handles))


def _player_factory(
    settings: Settings, handles: PlaybackHandleRegistry
) -> Callable[[], AudioPlayback]:
    def factory() -> AudioPlayback:
        return AudioPlayback(
            media_factory=lambda: SoundFileMediaElement(
                handles=handles,
                tick_seconds=settings.playback_tick_seconds,
                timeout=settings.request_timeout,
            ),
            probe_timeout=settings.request_timeout,
        )

    return factory


async def _build(runner: LoopRunner, settings: Settings) -> AppServices:
    gateways = create_gateways(settings)
    handles = PlaybackHandleRegistry()
    library = RecordingLibrary(
        gateways.voice,
        _player_factory(settings, handles),
        identity=gateways.identity.current,
        settings=settings,
    )
    capture = VoiceCaptureSession(
        microphone=SoundDeviceMicrophone(
            sample_rate=settings.recording_sample_rate,
            channels=settings.recording_channels,
        ),
        uploader=gateways.voice,
        library=library,
        identity=gateways.identity.current,
        handles=handles,
        settings=settings,
    )

    async def _identity_changed(identity: Identity | None) -> None:
        capture.on_identity_changed(identity)
        await library.on_identity_changed(identity)

    gateways.identity.subscribe(_identity_changed)
    return AppServices(
        runner=runner,
        settings=settings,
        gateways=gateways,
        handles=handles,
        library=library,
        capture=capture,
    )


def get_services() -> AppServices:
    """Return the services of the current Streamlit session, creating them once."""
    services = st.session_state.get("_services")
    if services is None:
        settings = get_settings()
        runner = LoopRunner()
        services = runner.run(_build(runner, settings))
        st.session_state._services = services
        logger.info("Session services ready (platform=%s)", settings.supabase_url)
    return services
