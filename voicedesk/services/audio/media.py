"""Media elements: the playback resource an AudioPlayback binds to.

``MediaElement`` mirrors the small slice of an HTML audio element the player
relies on: a ``src``, ``load()``, ``play()``/``pause()``, a seekable
``current_time``, ``duration``, ``muted``, and the ``loadeddata``,
``timeupdate``, ``ended`` and ``error`` events.
"""

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum

import httpx
import numpy as np
import soundfile as sf

from voicedesk.services.audio.clip import PlaybackHandleRegistry

logger = logging.getLogger(__name__)

MEDIA_EVENTS = ("loadeddata", "timeupdate", "ended", "error")

Listener = Callable[[], None]


class MediaErrorCode(IntEnum):
    """Standard media error codes."""

    ABORTED = 1
    NETWORK = 2
    DECODE = 3
    SRC_NOT_SUPPORTED = 4


@dataclass(frozen=True)
class MediaError:
    """Error attached to a media element after an ``error`` event."""

    code: int | None
    message: str = ""


class MediaPlaybackError(Exception):
    """Raised by ``MediaElement.play()`` when playback cannot start."""


class MediaElement(ABC):
    """Base class with listener bookkeeping shared by all media elements."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self.src: str | None = None
        self.error: MediaError | None = None
        self.muted: bool = False

    # -- events --

    def add_event_listener(self, event: str, listener: Listener) -> None:
        if event not in MEDIA_EVENTS:
            raise ValueError(f"Unknown media event: {event}")
        self._listeners[event].append(listener)

    def remove_event_listener(self, event: str, listener: Listener) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._listeners[event])
        return sum(len(items) for items in self._listeners.values())

    def dispatch(self, event: str) -> None:
        """Invoke the listeners registered for ``event``."""
        for listener in list(self._listeners[event]):
            listener()

    def fail(self, code: MediaErrorCode | None, message: str = "") -> None:
        """Record ``error`` and dispatch the ``error`` event."""
        self.error = MediaError(code=code, message=message)
        self.dispatch("error")

    # -- transport --

    @abstractmethod
    def load(self) -> None:
        """Start loading ``src``; completion is signalled through events."""

    @abstractmethod
    async def play(self) -> None:
        """Start or resume playback.

        Raises:
            MediaPlaybackError: Playback could not start.
        """

    @abstractmethod
    def pause(self) -> None:
        """Pause playback, keeping the position."""

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Playback position in seconds."""

    @current_time.setter
    @abstractmethod
    def current_time(self, value: float) -> None: ...

    @property
    @abstractmethod
    def duration(self) -> float:
        """Duration in seconds, NaN until metadata is loaded."""

    @abstractmethod
    def release(self) -> None:
        """Stop playback, cancel pending loads and free the decoded media."""


class SoundFileMediaElement(MediaElement):
    """Host media element: fetches with httpx, decodes with soundfile and
    plays through a sounddevice output stream.

    Args:
        handles: Registry used to resolve ``blob:`` playback handles.
        http: Optional shared ``httpx.AsyncClient``.
        tick_seconds: Interval between ``timeupdate`` events while playing.
        timeout: Timeout for fetching remote sources.
    """

    def __init__(
        self,
        handles: PlaybackHandleRegistry | None = None,
        http: httpx.AsyncClient | None = None,
        tick_seconds: float = 0.25,
        timeout: float = 20.0,
    ) -> None:
        super().__init__()
        self._handles = handles
        self._http = http
        self._tick = tick_seconds
        self._timeout = timeout
        self._data: np.ndarray | None = None
        self._rate = 0
        self._frame = 0
        self._load_task: asyncio.Task | None = None
        self._ticker: asyncio.Task | None = None
        self._output = None

    # -- loading --

    def load(self) -> None:
        self._cancel_load()
        self.pause()
        self.error = None
        self._data = None
        self._frame = 0
        self._load_task = asyncio.get_running_loop().create_task(self._load())

    async def _load(self) -> None:
        src = self.src
        try:
            payload = await self._fetch(src)
        except asyncio.CancelledError:
            raise
        except httpx.HTTPStatusError as exc:
            logger.warning("Media source %s returned %s", src, exc.response.status_code)
            self.fail(MediaErrorCode.SRC_NOT_SUPPORTED, f"HTTP {exc.response.status_code}")
            return
        except httpx.TransportError as exc:
            logger.warning("Network error loading %s: %s", src, exc)
            self.fail(MediaErrorCode.NETWORK, str(exc))
            return
        except httpx.InvalidURL as exc:
            self.fail(MediaErrorCode.SRC_NOT_SUPPORTED, str(exc))
            return
        except httpx.HTTPError as exc:
            # redirect loops, content decoding failures
            logger.warning("Could not fetch %s: %s", src, exc)
            self.fail(MediaErrorCode.NETWORK, str(exc))
            return
        except LookupError as exc:
            self.fail(MediaErrorCode.SRC_NOT_SUPPORTED, str(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected error loading %s", src)
            self.fail(None, str(exc))
            return

        try:
            data, rate = sf.read(io.BytesIO(payload), dtype="float32", always_2d=True)
        except (sf.LibsndfileError, RuntimeError, TypeError) as exc:
            logger.warning("Could not decode %s: %s", src, exc)
            self.fail(MediaErrorCode.DECODE, str(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected error decoding %s", src)
            self.fail(None, str(exc))
            return

        self._data = data
        self._rate = rate
        self.dispatch("loadeddata")

    async def _fetch(self, src: str | None) -> bytes:
        if not src:
            raise LookupError("Empty source")
        if PlaybackHandleRegistry.is_handle(src):
            resolved = self._handles.resolve(src) if self._handles else None
            if resolved is None:
                raise LookupError("Playback handle has been revoked")
            return resolved[0]

        if self._http is not None:
            resp = await self._http.get(src, timeout=self._timeout, follow_redirects=True)
            resp.raise_for_status()
            return resp.content
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            resp = await client.get(src)
            resp.raise_for_status()
            return resp.content

    def _cancel_load(self) -> None:
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._load_task = None

    # -- transport --

    async def play(self) -> None:
        if self._data is None:
            raise MediaPlaybackError("No media loaded")
        if self._output is not None:
            return
        try:
            import sounddevice as sd
        except OSError as exc:
            raise MediaPlaybackError(f"Audio output unavailable: {exc}") from exc

        if self._frame >= len(self._data):
            self._frame = 0
        try:
            self._output = sd.OutputStream(
                samplerate=self._rate,
                channels=self._data.shape[1],
                dtype="float32",
                callback=self._fill,
            )
            self._output.start()
        except sd.PortAudioError as exc:
            self._output = None
            raise MediaPlaybackError(str(exc)) from exc
        self._ticker = asyncio.get_running_loop().create_task(self._tick_loop())

    def _fill(self, outdata, frames: int, time_info, status) -> None:  # noqa: ANN001
        data = self._data
        if data is None:
            outdata.fill(0)
            return
        start = self._frame
        end = min(start + frames, len(data))
        count = end - start
        if self.muted:
            outdata.fill(0)
        else:
            outdata[:count] = data[start:end]
            outdata[count:] = 0
        self._frame = end

    async def _tick_loop(self) -> None:
        while self._output is not None:
            await asyncio.sleep(self._tick)
            self.dispatch("timeupdate")
            if self._data is not None and self._frame >= len(self._data):
                self._stop_output()
                self.dispatch("ended")
                return

    def pause(self) -> None:
        self._stop_output()
        if self._ticker is not None:
            if not self._ticker.done() and self._ticker is not asyncio.current_task():
                self._ticker.cancel()
            self._ticker = None

    def _stop_output(self) -> None:
        if self._output is not None:
            output, self._output = self._output, None
            output.stop()
            output.close()

    @property
    def current_time(self) -> float:
        if not self._rate:
            return 0.0
        return self._frame / self._rate

    @current_time.setter
    def current_time(self, value: float) -> None:
        if self._data is None or not self._rate:
            return
        self._frame = max(0, min(len(self._data), int(value * self._rate)))

    @property
    def duration(self) -> float:
        if self._data is None or not self._rate:
            return float("nan")
        return len(self._data) / self._rate

    def release(self) -> None:
        self.pause()
        self._cancel_load()
        self._data = None
        self._frame = 0
