"""
Voice record gateway backed by the platform's ``voice-*`` edge functions.

Implements both the upload and persistence contracts:

* ``voice-upload``: multipart upload, stores the blob and creates the row
* ``voice-retrieve``: single record by id, or a filtered page per profile
* ``voice-update``: patch editable fields
* ``voice-delete``: delete the row and its stored blob
"""

import logging

from pydantic import ValidationError

from voicedesk.core.config import Settings, get_settings
from voicedesk.core.exceptions import (
    BackendError,
    NotFoundError,
    UploadFailedError,
    VoiceDeskError,
)
from voicedesk.core.models import (
    PersistedRecording,
    RecordingFilter,
    RecordingPage,
    UploadResult,
)
from voicedesk.services.gateways.base import PersistenceGateway, UploadGateway
from voicedesk.services.gateways.client import PlatformClient, retry_transient

logger = logging.getLogger(__name__)


def _to_recording(record: dict) -> PersistedRecording:
    try:
        return PersistedRecording.model_validate(record)
    except ValidationError as exc:
        logger.error("Malformed voice record from backend: %s", exc)
        raise BackendError("Received a malformed voice record") from exc


class VoiceRecordGateway(UploadGateway, PersistenceGateway):
    """Voice recordings stored on the hosted platform.

    Args:
        client: Shared platform client (carries the signed-in access token).
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(self, client: PlatformClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()

    # -- upload --

    def validate_upload(self, payload: bytes, mime_type: str, title: str) -> None:
        """Reject uploads the backend would refuse anyway.

        Raises:
            UploadFailedError: Missing title, empty or oversized file, or a
                non-audio MIME type.
        """
        if not title or not title.strip():
            raise UploadFailedError("Title is required")
        if not payload:
            raise UploadFailedError("No file provided")
        if len(payload) > self._settings.max_upload_bytes:
            limit_mb = self._settings.max_upload_bytes / (1024 * 1024)
            raise UploadFailedError(f"File is larger than {limit_mb:.0f}MB")
        if not mime_type.startswith("audio/"):
            raise UploadFailedError(f"Unsupported file type: {mime_type}")

    async def upload(
        self,
        file_name: str,
        payload: bytes,
        mime_type: str,
        title: str,
        description: str | None = None,
        is_public: bool = False,
        duration: float | None = None,
    ) -> UploadResult:
        self.validate_upload(payload, mime_type, title)

        form: dict[str, str] = {"title": title.strip(), "is_public": str(is_public).lower()}
        if description:
            form["description"] = description
        if duration is not None:
            form["duration"] = str(duration)

        try:
            data = await self._client.invoke(
                "voice-upload",
                data=form,
                files={"file": (file_name, payload, mime_type)},
            )
        except VoiceDeskError as exc:
            logger.error("Upload of %s failed: %s", file_name, exc.detail)
            raise UploadFailedError(exc.detail) from exc

        record = data.get("record")
        file_info = data.get("file") or {}
        if not record:
            raise UploadFailedError("Upload response did not include a record")

        try:
            recording = _to_recording(record)
        except BackendError as exc:
            raise UploadFailedError(exc.detail) from exc
        public_url = file_info.get("publicUrl") or recording.file_url
        if not public_url:
            raise UploadFailedError("Upload response did not include a file URL")
        size = file_info.get("size") or len(payload)
        if not recording.file_url or recording.file_size is None:
            recording = recording.model_copy(
                update={
                    "file_url": recording.file_url or public_url,
                    "file_size": recording.file_size or size,
                }
            )

        logger.info("Uploaded %s as recording %s (%d bytes)", file_name, recording.id, len(payload))
        return UploadResult(
            record=recording,
            path=file_info.get("path"),
            public_url=public_url,
            size=size,
        )

    # -- persistence --

    @retry_transient
    async def list(self, owner_id: str, filter: RecordingFilter | None = None) -> RecordingPage:
        filter = filter or RecordingFilter()
        body: dict = {"profileId": owner_id, "limit": filter.limit, "offset": filter.offset}
        if filter.status is not None:
            body["status"] = filter.status.value
        if filter.query:
            body["query"] = filter.query

        data = await self._client.invoke("voice-retrieve", json=body)
        pagination = data.get("pagination") or {}
        records = [_to_recording(r) for r in data.get("records") or []]
        return RecordingPage(
            records=records,
            total=pagination.get("total") or 0,
            limit=pagination.get("limit", filter.limit),
            offset=pagination.get("offset", filter.offset),
            has_more=bool(pagination.get("hasMore", False)),
        )

    @retry_transient
    async def get(self, recording_id: str) -> PersistedRecording:
        data = await self._client.invoke("voice-retrieve", json={"id": recording_id})
        record = data.get("record")
        if not record:
            raise NotFoundError(f"Voice record not found: {recording_id}")
        return _to_recording(record)

    async def update(self, recording_id: str, **updates) -> PersistedRecording:
        data = await self._client.invoke(
            "voice-update", method="PUT", json={"id": recording_id, "updates": updates}
        )
        record = data.get("record")
        if not record:
            raise NotFoundError(f"Voice record not found: {recording_id}")
        return _to_recording(record)

    async def delete(self, recording_id: str) -> None:
        await self._client.invoke("voice-delete", method="DELETE", json={"id": recording_id})
        logger.info("Deleted recording %s", recording_id)
