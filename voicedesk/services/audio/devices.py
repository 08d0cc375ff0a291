"""Microphone capture devices.

``Microphone.open()`` acquires the device and returns a ``CaptureStream``
that yields raw int16 PCM blocks until ``stop()`` is called. Stopping a
stream releases every underlying device track immediately.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from voicedesk.core.exceptions import DeviceError, PermissionDeniedError

logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("permission", "denied", "not authorized", "not permitted")


class CaptureStream(ABC):
    """An open microphone stream."""

    @abstractmethod
    def chunks(self) -> AsyncIterator[bytes]:
        """Yield captured PCM blocks; the iterator ends once the stream stops."""

    @abstractmethod
    def stop(self) -> None:
        """Stop all tracks and release the device. Must be idempotent."""

    @property
    @abstractmethod
    def active(self) -> bool:
        """True while the device is held."""


class Microphone(ABC):
    """Interface for anything that can hand out a CaptureStream."""

    sample_rate: int
    channels: int

    @abstractmethod
    async def open(self) -> CaptureStream:
        """Acquire the device.

        Raises:
            PermissionDeniedError: Access was refused.
            DeviceError: The device is missing or failed to start.
        """


class SoundDeviceStream(CaptureStream):
    """CaptureStream backed by a ``sounddevice.InputStream``.

    The PortAudio callback runs on its own thread; blocks are handed to the
    event loop with ``call_soon_threadsafe``.
    """

    def __init__(self, stream, loop: asyncio.AbstractEventLoop) -> None:  # noqa: ANN001
        self._stream = stream
        self._loop = loop
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._active = True

    def callback(self, indata, frames: int, time_info, status) -> None:  # noqa: ANN001
        if status:
            logger.warning("Capture stream status: %s", status)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, bytes(indata))

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            # Blocks already scheduled by the callback are queued ahead of the sentinel
            self._loop.call_soon(self._queue.put_nowait, None)
        logger.info("Microphone released")

    @property
    def active(self) -> bool:
        return self._active


class SoundDeviceMicrophone(Microphone):
    """Default host microphone using sounddevice (PortAudio).

    Args:
        sample_rate: Capture rate in Hz.
        channels: Number of input channels.
        device: Optional sounddevice device index or name.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1, device=None) -> None:  # noqa: ANN001
        self.sample_rate = sample_rate
        self.channels = channels
        self._device = device

    async def open(self) -> CaptureStream:
        try:
            import sounddevice as sd
        except OSError as exc:
            # PortAudio shared library missing
            raise DeviceError(f"Audio subsystem unavailable: {exc}") from exc

        loop = asyncio.get_running_loop()
        holder: dict = {}

        def _callback(indata, frames, time_info, status) -> None:  # noqa: ANN001
            holder["stream"].callback(indata, frames, time_info, status)

        try:
            raw = sd.RawInputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self._device,
                callback=_callback,
            )
            stream = SoundDeviceStream(raw, loop)
            holder["stream"] = stream
            raw.start()
        except sd.PortAudioError as exc:
            message = str(exc)
            if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
                raise PermissionDeniedError() from exc
            raise DeviceError(f"Could not open microphone: {message}") from exc
        except ValueError as exc:
            # unknown device name/index or unsupported settings
            raise DeviceError(f"Could not open microphone: {exc}") from exc

        logger.info(
            "Microphone opened (rate=%s, channels=%s)", self.sample_rate, self.channels
        )
        return stream
