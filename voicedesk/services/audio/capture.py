"""Voice capture session: microphone → in-memory clip → upload.

One session drives the recorder widget. It owns the open CaptureStream, the
elapsed-seconds ticker and the pending clip, and hands a saved clip to the
recording library before ``save()`` returns.
"""

import asyncio
import contextlib
import logging

from voicedesk.core.config import Settings, get_settings
from voicedesk.core.exceptions import ForbiddenError, InvalidStateError, VoiceDeskError
from voicedesk.core.models import CaptureState, Identity, PersistedRecording
from voicedesk.core.utils import unique_file_name
from voicedesk.services.audio.clip import PlaybackHandleRegistry, RecordingClip, encode_wav
from voicedesk.services.audio.devices import CaptureStream, Microphone
from voicedesk.services.gateways.base import UploadGateway
from voicedesk.services.library import RecordingLibrary

logger = logging.getLogger(__name__)


class VoiceCaptureSession:
    """Records one clip at a time and persists it on demand.

    Args:
        microphone: Device used by ``start()``.
        uploader: Gateway that stores the clip and returns its record.
        library: Library that receives saved records (newest first).
        identity: Signed-in identity; saving requires one.
        handles: Registry issuing preview handles for pending clips.
        settings: Optional Settings instance (defaults to get_settings()).
        tick_seconds: Override for the elapsed-time tick interval.
    """

    def __init__(
        self,
        microphone: Microphone,
        uploader: UploadGateway,
        library: RecordingLibrary,
        identity: Identity | None,
        handles: PlaybackHandleRegistry,
        settings: Settings | None = None,
        tick_seconds: float | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._microphone = microphone
        self._uploader = uploader
        self._library = library
        self._handles = handles
        self._tick_seconds = tick_seconds or self._settings.capture_tick_seconds
        self.identity = identity

        self.state = CaptureState.idle
        self.elapsed = 0
        self.clip: RecordingClip | None = None
        self.error: str | None = None

        self._stream: CaptureStream | None = None
        self._chunks: list[bytes] = []
        self._pump_task: asyncio.Task | None = None
        self._tick_task: asyncio.Task | None = None
        self._closed = False

    @property
    def recording(self) -> bool:
        return self.state == CaptureState.recording

    @property
    def preview_url(self) -> str | None:
        return self.clip.handle if self.clip else None

    # -- capture --

    async def start(self) -> None:
        """Open the microphone and begin recording.

        Raises:
            InvalidStateError: A capture, save or pending clip is in progress.
            PermissionDeniedError: Microphone access was refused.
            DeviceError: The device could not be opened.
        """
        if self.state != CaptureState.idle:
            raise InvalidStateError("start recording", self.state.value)

        self.state = CaptureState.requesting
        self.error = None
        try:
            stream = await self._microphone.open()
        except VoiceDeskError as exc:
            self.state = CaptureState.idle
            self.error = exc.detail
            logger.error("Error accessing microphone: %s", exc.detail)
            raise
        except Exception as exc:
            self.state = CaptureState.idle
            self.error = f"Could not open microphone: {exc}"
            logger.exception("Unexpected error opening microphone")
            raise

        if self._closed:
            stream.stop()
            self.state = CaptureState.idle
            return

        self._stream = stream
        self._chunks = []
        self.elapsed = 0
        self.state = CaptureState.recording
        self._pump_task = asyncio.create_task(self._pump(stream))
        self._tick_task = asyncio.create_task(self._tick())
        logger.info("Recording started")

    async def _pump(self, stream: CaptureStream) -> None:
        async for chunk in stream.chunks():
            self._chunks.append(chunk)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self._tick_seconds)
            self.elapsed += 1

    async def stop(self) -> RecordingClip:
        """Stop recording and assemble the pending clip.

        Returns:
            The new clip, with a live preview handle.
        """
        if self.state != CaptureState.recording:
            raise InvalidStateError("stop recording", self.state.value)

        stream = self._stream
        self._stream = None
        if stream is not None:
            stream.stop()
        await self._cancel(self._tick_task)
        self._tick_task = None

        if self._pump_task is not None:
            try:
                await self._pump_task
            except Exception:
                logger.exception("Capture stream failed while draining")
            self._pump_task = None

        payload = encode_wav(
            self._chunks, self._microphone.sample_rate, self._microphone.channels
        )
        self._chunks = []
        mime_type = self._settings.recording_mime_type
        clip = RecordingClip(payload=payload, mime_type=mime_type, duration_seconds=self.elapsed)
        clip.handle = self._handles.allocate(payload, mime_type)
        self.clip = clip
        self.state = CaptureState.stopped
        logger.info("Recording stopped (%ss, %d bytes)", clip.duration_seconds, clip.size)
        return clip

    def discard(self) -> None:
        """Drop the pending clip and return to idle."""
        if self.state in (CaptureState.saving, CaptureState.recording, CaptureState.requesting):
            raise InvalidStateError("discard", self.state.value)
        self._release_clip()
        self.elapsed = 0
        self.error = None
        self.state = CaptureState.idle

    # -- persistence --

    def default_title(self) -> str:
        return f"Recording {len(self._library.records) + 1}"

    async def save(
        self,
        title: str | None = None,
        description: str | None = None,
        is_public: bool = False,
    ) -> PersistedRecording:
        """Upload the pending clip and add it to the library.

        The clip is kept on failure so the user can retry.

        Raises:
            InvalidStateError: Nothing to save or a save is already running.
            ForbiddenError: No identity is signed in.
            UploadFailedError: The upload was rejected.
        """
        if self.state == CaptureState.saving:
            raise InvalidStateError("save", "saving")
        if self.state != CaptureState.stopped or self.clip is None:
            raise InvalidStateError("save", "no recording is pending")
        if self.identity is None:
            raise ForbiddenError("Sign in to save recordings")

        clip = self.clip
        title = (title or "").strip() or self.default_title()
        self.state = CaptureState.saving
        self.error = None
        try:
            result = await self._uploader.upload(
                file_name=unique_file_name(self.identity.id),
                payload=clip.payload,
                mime_type=clip.mime_type,
                title=title,
                description=description,
                is_public=is_public,
                duration=clip.duration_seconds,
            )
            self._library.add(result.record)
        except VoiceDeskError as exc:
            self.state = CaptureState.stopped
            self.error = exc.detail
            logger.error("Error saving recording: %s", exc.detail)
            raise
        except Exception as exc:
            self.state = CaptureState.stopped
            self.error = f"Failed to save recording: {exc}"
            logger.exception("Unexpected error saving recording")
            raise

        self._release_clip()
        self.elapsed = 0
        self.state = CaptureState.idle
        logger.info("Saved recording %s (%s)", result.record.id, title)
        return result.record

    # -- lifecycle --

    def on_identity_changed(self, identity: Identity | None) -> None:
        self.identity = identity

    async def close(self) -> None:
        """Release the device, cancel timers and revoke the preview handle."""
        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            self._stream.stop()
            self._stream = None
        await self._cancel(self._tick_task)
        await self._cancel(self._pump_task)
        self._tick_task = None
        self._pump_task = None
        self._chunks = []
        self._release_clip()
        self.state = CaptureState.idle

    def _release_clip(self) -> None:
        if self.clip is not None and self.clip.handle:
            self._handles.revoke(self.clip.handle)
        self.clip = None

    @staticmethod
    async def _cancel(task: asyncio.Task | None) -> None:
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
