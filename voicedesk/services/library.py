"""Saved-recordings library for the signed-in identity.

Holds the list shown in the dashboard and the single expanded player.
Selecting an entry closes the previously expanded player before a new one
is bound, so at most one ``AudioPlayback`` is alive at a time.
"""

import logging
from collections.abc import Callable
from pathlib import Path

import httpx

from voicedesk.core.config import Settings, get_settings
from voicedesk.core.exceptions import (
    BackendError,
    BackendUnavailableError,
    InvalidStateError,
    NotFoundError,
    RequestTimeoutError,
    VoiceDeskError,
)
from voicedesk.core.models import (
    Identity,
    PersistedRecording,
    ProcessingStatus,
    RecordingFilter,
)
from voicedesk.core.utils import safe_file_stem
from voicedesk.services.audio.player import AudioPlayback
from voicedesk.services.gateways.base import PersistenceGateway

logger = logging.getLogger(__name__)


class RecordingLibrary:
    """Recordings of one identity plus the "one expanded player" selector.

    Args:
        gateway: Persistence gateway used for listing and deletion.
        player_factory: Builds a fresh AudioPlayback for each selection.
        identity: The identity whose recordings are listed (None when signed out).
        http: Optional shared client for downloads.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        player_factory: Callable[[], AudioPlayback],
        identity: Identity | None = None,
        http: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._gateway = gateway
        self._player_factory = player_factory
        self._http = http
        self._settings = settings or get_settings()
        self.identity = identity
        self.records: list[PersistedRecording] = []
        self.total = 0
        self.filter = RecordingFilter()
        self.expanded_id: str | None = None
        self.player: AudioPlayback | None = None
        self.error: str | None = None
        self._deleting: set[str] = set()

    # -- listing --

    async def refresh(
        self,
        status: ProcessingStatus | None = None,
        query: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[PersistedRecording]:
        """Reload the list from the gateway with server-side filters."""
        self.filter = RecordingFilter(
            status=status,
            query=query or None,
            limit=limit or self.filter.limit,
            offset=offset,
        )
        if self.identity is None:
            self.records = []
            self.total = 0
            return self.records

        try:
            page = await self._gateway.list(self.identity.id, self.filter)
        except VoiceDeskError as exc:
            logger.error("Failed to load recordings for %s: %s", self.identity.id, exc.detail)
            self.error = f"Failed to load your voice recordings: {exc.detail}"
            raise

        playable = [r for r in page.records if r.is_playable]
        if len(playable) != len(page.records):
            logger.warning("Skipped %d recordings without a file URL", len(page.records) - len(playable))
        self.records = playable
        self.total = page.total
        self.error = None

        if self.expanded_id is not None and self.find(self.expanded_id) is None:
            self._collapse()
        return self.records

    def add(self, record: PersistedRecording) -> None:
        """Prepend a freshly saved recording (newest first)."""
        if not record.is_playable:
            raise BackendError(f"Recording {record.id} has no file URL")
        existing = self.find(record.id) is not None
        self.records = [record] + [r for r in self.records if r.id != record.id]
        if not existing:
            self.total += 1

    def find(self, recording_id: str) -> PersistedRecording | None:
        return next((r for r in self.records if r.id == recording_id), None)

    # -- playback selection --

    def select_for_playback(self, recording_id: str) -> AudioPlayback | None:
        """Toggle the expanded player for ``recording_id``.

        Returns:
            The newly bound player, or None when the selection collapsed.
        """
        if self.expanded_id == recording_id:
            self._collapse()
            return None

        record = self.find(recording_id)
        if record is None:
            raise NotFoundError(f"Recording not found: {recording_id}")

        self._collapse()
        player = self._player_factory()
        player.bind(record.file_url, record.title)
        self.player = player
        self.expanded_id = recording_id
        return player

    def _collapse(self) -> None:
        if self.player is not None:
            self.player.close()
        self.player = None
        self.expanded_id = None

    # -- deletion --

    def is_deleting(self, recording_id: str) -> bool:
        return recording_id in self._deleting

    async def delete(self, recording_id: str) -> None:
        """Delete through the gateway; the entry is removed only on success."""
        if recording_id in self._deleting:
            raise InvalidStateError("delete", "a delete is in flight")

        self._deleting.add(recording_id)
        try:
            await self._gateway.delete(recording_id)
        except VoiceDeskError as exc:
            logger.error("Error deleting recording %s: %s", recording_id, exc.detail)
            if isinstance(exc, NotFoundError):
                self.error = f"Recording not found: {exc.detail}"
            else:
                self.error = f"Failed to delete recording: {exc.detail}"
            raise
        finally:
            self._deleting.discard(recording_id)

        if self.expanded_id == recording_id:
            self._collapse()
        before = len(self.records)
        self.records = [r for r in self.records if r.id != recording_id]
        self.total = max(0, self.total - (before - len(self.records)))
        self.error = None

    # -- download --

    async def download(self, recording_id: str, directory: str | Path | None = None) -> Path:
        """Save the recording's audio file under ``directory``.

        Returns:
            Path of the written file (``<title>-<id>.wav``).
        """
        record = self.find(recording_id)
        if record is None:
            raise NotFoundError(f"Recording not found: {recording_id}")

        target_dir = Path(directory or self._settings.downloads_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{safe_file_stem(record.title)}-{safe_file_stem(record.id)}.wav"

        try:
            if self._http is not None:
                await self._stream_to(self._http, record.file_url, target)
            else:
                async with httpx.AsyncClient(
                    timeout=self._settings.request_timeout, follow_redirects=True
                ) as client:
                    await self._stream_to(client, record.file_url, target)
        except httpx.TimeoutException:
            target.unlink(missing_ok=True)
            raise RequestTimeoutError() from None
        except httpx.HTTPStatusError as exc:
            target.unlink(missing_ok=True)
            if exc.response.status_code == 404:
                raise NotFoundError(f"Audio file not found: {record.file_url}") from None
            raise BackendUnavailableError(
                f"Download failed with status {exc.response.status_code}"
            ) from None
        except httpx.HTTPError as exc:
            target.unlink(missing_ok=True)
            raise BackendUnavailableError(f"Network error: {exc}") from None

        logger.info("Downloaded recording %s to %s", recording_id, target)
        return target

    @staticmethod
    async def _stream_to(client: httpx.AsyncClient, url: str, target: Path) -> None:
        async with client.stream("GET", url) as resp:
            resp.raise_for_status()
            with target.open("wb") as fh:
                async for chunk in resp.aiter_bytes():
                    fh.write(chunk)

    # -- lifecycle --

    async def on_identity_changed(self, identity: Identity | None) -> None:
        """Re-scope the library to ``identity`` (None when signed out)."""
        if identity is not None and self.identity is not None and identity.id == self.identity.id:
            self.identity = identity
            return
        self._collapse()
        self.identity = identity
        self.records = []
        self.total = 0
        self.error = None
        if identity is not None:
            await self.refresh()

    def close(self) -> None:
        self._collapse()
