"""Resilient single-source audio player.

``AudioPlayback`` binds one source URL (remote durable URL or local
``blob:`` handle) to a ``MediaElement`` and tracks a ``PlaybackState``:

    loading -> ready <-> {playing, paused}
    loading | play attempt -> error -> (retry) -> loading

Every ``bind()`` returns a disposer; the binding is also torn down when the
source changes, on ``retry()`` and on ``close()``, whatever state it is in.
"""

import asyncio
import dataclasses
import logging
import math
from collections.abc import Callable

import httpx

from voicedesk.core.exceptions import InvalidStateError
from voicedesk.core.models import (
    PlaybackError,
    PlaybackErrorKind,
    PlaybackState,
    PlaybackStatus,
)
from voicedesk.core.utils import clamp
from voicedesk.services.audio.clip import PlaybackHandleRegistry
from voicedesk.services.audio.media import (
    MediaElement,
    MediaError,
    MediaErrorCode,
    MediaPlaybackError,
)

logger = logging.getLogger(__name__)

NO_SOURCE_MESSAGE = "No audio URL provided"

_TRANSPORT_STATES = (PlaybackStatus.ready, PlaybackStatus.playing, PlaybackStatus.paused)


def classify_media_error(error: MediaError | None) -> PlaybackError:
    """Map a media element error to a user-facing PlaybackError."""
    if error is None:
        return PlaybackError(PlaybackErrorKind.unknown, "Failed to load audio")
    if error.code == MediaErrorCode.ABORTED:
        return PlaybackError(PlaybackErrorKind.aborted, "Audio playback was aborted")
    if error.code == MediaErrorCode.NETWORK:
        return PlaybackError(
            PlaybackErrorKind.network,
            "Network error occurred while loading audio",
            "Please check your internet connection",
        )
    if error.code == MediaErrorCode.DECODE:
        return PlaybackError(
            PlaybackErrorKind.decode,
            "Audio format is not supported",
            "The audio file may be corrupted or in an unsupported format",
        )
    if error.code == MediaErrorCode.SRC_NOT_SUPPORTED:
        return PlaybackError(
            PlaybackErrorKind.source_invalid,
            "Audio source is not supported",
            "The audio URL may be invalid or the file may not exist",
        )
    return PlaybackError(
        PlaybackErrorKind.unknown,
        f"Error loading audio: {error.message or 'Unknown error'}",
    )


class AudioPlayback:
    """Transport controls and error reporting for one audio source at a time.

    Args:
        media_factory: Creates a fresh MediaElement for every binding.
        http: Optional shared client for the existence probe.
        probe_timeout: Timeout in seconds for the existence probe.
    """

    def __init__(
        self,
        media_factory: Callable[[], MediaElement],
        http: httpx.AsyncClient | None = None,
        probe_timeout: float = 20.0,
    ) -> None:
        self._media_factory = media_factory
        self._http = http
        self._probe_timeout = probe_timeout
        self.state = PlaybackState()
        self._element: MediaElement | None = None
        self._handlers: dict[str, Callable[[], None]] = {}
        self._probe_task: asyncio.Task | None = None
        self._generation = 0

    @property
    def element(self) -> MediaElement | None:
        return self._element

    # -- binding --

    def bind(self, source_url: str | None, title: str | None = None) -> Callable[[], None]:
        """Attach ``source_url`` and start loading it.

        Returns:
            A disposer that releases this binding (no-op once superseded).
        """
        self._teardown()
        self._generation += 1
        generation = self._generation
        self.state = PlaybackState(source_url=source_url or None, title=title)

        def dispose() -> None:
            if self._generation == generation:
                self.close()

        if not source_url:
            logger.warning("Playback bound without a source URL")
            self.state.status = PlaybackStatus.error
            self.state.error = PlaybackError(PlaybackErrorKind.source_invalid, NO_SOURCE_MESSAGE)
            return dispose

        self.state.status = PlaybackStatus.loading
        element = self._media_factory()
        self._handlers = {
            "loadeddata": self._on_loaded,
            "timeupdate": self._on_time_update,
            "ended": self._on_ended,
            "error": self._on_error,
        }
        for event, handler in self._handlers.items():
            element.add_event_listener(event, handler)
        self._element = element

        element.src = source_url
        element.load()
        logger.debug("Loading audio source %s", source_url)
        return dispose

    def retry(self) -> Callable[[], None]:
        """Re-bind the same source after an error."""
        if self.state.status != PlaybackStatus.error:
            raise InvalidStateError("retry", self.state.status.value)
        logger.info("Retrying audio source %s", self.state.source_url)
        return self.bind(self.state.source_url, self.state.title)

    def close(self) -> None:
        """Release the current binding unconditionally."""
        self._teardown()
        self._generation += 1
        self.state.status = PlaybackStatus.idle

    def _teardown(self) -> None:
        if self._probe_task is not None:
            if not self._probe_task.done():
                self._probe_task.cancel()
            self._probe_task = None
        element, self._element = self._element, None
        if element is None:
            return
        for event, handler in self._handlers.items():
            element.remove_event_listener(event, handler)
        self._handlers = {}
        element.release()

    async def settle(self) -> None:
        """Wait for a pending existence probe to finish."""
        task = self._probe_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    # -- transport --

    async def toggle_play(self) -> None:
        """Play when paused/ready, pause when playing."""
        if self.state.status not in _TRANSPORT_STATES or self._element is None:
            raise InvalidStateError("toggle playback", self.state.status.value)

        if self.state.status == PlaybackStatus.playing:
            self._element.pause()
            self.state.status = PlaybackStatus.paused
            return

        try:
            await self._element.play()
        except MediaPlaybackError as exc:
            logger.error("Error playing audio %s: %s", self.state.source_url, exc)
            self.state.status = PlaybackStatus.error
            self.state.error = PlaybackError(
                PlaybackErrorKind.unknown,
                "Failed to play audio",
                str(exc) or "Unknown playback error",
            )
            return
        # An error event may have fired while play() was pending
        if self.state.status != PlaybackStatus.error:
            self.state.status = PlaybackStatus.playing

    def toggle_mute(self) -> bool:
        """Flip mute without touching play/pause. Returns the new mute flag."""
        muted = not self.state.muted
        if self._element is not None:
            self._element.muted = muted
        self.state.muted = muted
        return muted

    def seek(self, fraction: float) -> float:
        """Jump to ``fraction`` of the duration (clamped to 0..1).

        Returns:
            The new elapsed time in seconds.
        """
        if self.state.status not in _TRANSPORT_STATES or self._element is None:
            raise InvalidStateError("seek", self.state.status.value)
        position = clamp(fraction) * self.state.duration
        self._element.current_time = position
        self.state.elapsed = position
        return position

    # -- media events --

    def _on_loaded(self) -> None:
        duration = self._element.duration if self._element is not None else 0.0
        self.state.duration = 0.0 if math.isnan(duration) else duration
        self.state.elapsed = 0.0
        self.state.status = PlaybackStatus.ready
        logger.debug("Audio ready (%.2fs): %s", self.state.duration, self.state.source_url)

    def _on_time_update(self) -> None:
        if self._element is not None:
            self.state.elapsed = self._element.current_time

    def _on_ended(self) -> None:
        self.state.status = PlaybackStatus.paused
        self.state.elapsed = 0.0
        if self._element is not None:
            self._element.current_time = 0.0

    def _on_error(self) -> None:
        media_error = self._element.error if self._element is not None else None
        error = classify_media_error(media_error)
        logger.error(
            "Audio error for %s: %s (%s)",
            self.state.source_url,
            error.message,
            media_error,
        )
        self.state.status = PlaybackStatus.error
        self.state.error = error

        url = self.state.source_url
        if url and not PlaybackHandleRegistry.is_handle(url):
            self._probe_task = asyncio.get_running_loop().create_task(
                self._probe(url, self._generation)
            )

    async def _probe(self, url: str, generation: int) -> None:
        """HEAD the source to enrich the error detail. Never changes the message."""
        try:
            if self._http is not None:
                resp = await self._http.head(url, timeout=self._probe_timeout)
            else:
                async with httpx.AsyncClient(timeout=self._probe_timeout) as client:
                    resp = await client.head(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            detail = f"Network error: {exc}"
        else:
            if not resp.is_success:
                detail = f"Server returned {resp.status_code}: {resp.reason_phrase}"
            elif "audio" not in resp.headers.get("content-type", ""):
                detail = "URL does not point to an audio file"
            else:
                detail = None

        if generation != self._generation or self.state.error is None:
            return
        if detail is not None:
            self.state.error = dataclasses.replace(self.state.error, detail=detail)
