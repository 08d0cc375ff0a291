"""In-memory recording clips and their revocable playback handles.

A handle (``blob:voicedesk/<uuid>``) lets a clip be previewed by the media
element without uploading it first. Handles stay valid until revoked; the
capture session revokes them when a clip is discarded, saved, or replaced.
"""

import io
import logging
import uuid
from dataclasses import dataclass

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)

HANDLE_PREFIX = "blob:voicedesk/"


class PlaybackHandleRegistry:
    """Allocates and revokes playback handles for in-memory audio payloads."""

    def __init__(self) -> None:
        self._payloads: dict[str, tuple[bytes, str]] = {}

    def allocate(self, payload: bytes, mime_type: str) -> str:
        """Register ``payload`` and return a new handle for it."""
        handle = f"{HANDLE_PREFIX}{uuid.uuid4()}"
        self._payloads[handle] = (payload, mime_type)
        logger.debug("Allocated playback handle %s (%d bytes)", handle, len(payload))
        return handle

    def resolve(self, handle: str) -> tuple[bytes, str] | None:
        """Return ``(payload, mime_type)`` for a live handle, else None."""
        return self._payloads.get(handle)

    def revoke(self, handle: str) -> None:
        """Release a handle. Revoking an unknown handle is a no-op."""
        if self._payloads.pop(handle, None) is not None:
            logger.debug("Revoked playback handle %s", handle)

    def __contains__(self, handle: str) -> bool:
        return handle in self._payloads

    def __len__(self) -> int:
        return len(self._payloads)

    @staticmethod
    def is_handle(url: str | None) -> bool:
        return bool(url) and url.startswith(HANDLE_PREFIX)


@dataclass
class RecordingClip:
    """A captured, not-yet-persisted recording."""

    payload: bytes
    mime_type: str
    duration_seconds: int
    handle: str | None = None

    @property
    def size(self) -> int:
        return len(self.payload)


def encode_wav(chunks: list[bytes], sample_rate: int, channels: int = 1) -> bytes:
    """Concatenate raw int16 PCM chunks into a single WAV container.

    Args:
        chunks: Captured PCM blocks in arrival order.
        sample_rate: Sample rate the blocks were captured at.
        channels: Interleaved channel count.

    Returns:
        WAV file bytes (16-bit PCM). An empty capture yields a valid,
        zero-length WAV file.
    """
    pcm = b"".join(chunks)
    frame_size = 2 * channels
    usable = len(pcm) - (len(pcm) % frame_size)
    samples = np.frombuffer(pcm[:usable], dtype=np.int16).reshape(-1, channels)

    buffer = io.BytesIO()
    sf.write(buffer, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()
