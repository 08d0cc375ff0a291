"""
Profile gateway backed by the platform's profile edge functions.

Avatar removal always deletes the stored blob (``delete-avatar``) and clears
the profile reference in the same call; there is no reference-only variant.
"""

import logging

from pydantic import ValidationError

from voicedesk.core.config import Settings, get_settings
from voicedesk.core.exceptions import BackendError, NotFoundError, UploadFailedError, VoiceDeskError
from voicedesk.core.models import Profile
from voicedesk.services.gateways.client import PlatformClient, retry_transient

logger = logging.getLogger(__name__)


class ProfileGateway:
    """Read and update the signed-in user's profile.

    Args:
        client: Shared platform client.
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(self, client: PlatformClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()

    @staticmethod
    def _profile(data: dict) -> Profile:
        profile = data.get("profile")
        if not profile:
            raise NotFoundError("Profile not found")
        try:
            return Profile.model_validate(profile)
        except ValidationError as exc:
            logger.error("Malformed profile from backend: %s", exc)
            raise BackendError("Received a malformed profile") from exc

    @retry_transient
    async def get(self, user_id: str) -> Profile:
        return self._profile(await self._client.invoke("get-profile", json={"userId": user_id}))

    async def update(self, user_id: str, **updates) -> Profile:
        if not updates:
            raise BackendError("Profile updates are required")
        data = await self._client.invoke(
            "update-profile", json={"userId": user_id, "updates": updates}
        )
        return self._profile(data)

    async def update_notifications(self, user_id: str, **preferences: bool) -> Profile:
        """Update any of email/sms/marketing notifications and login alerts."""
        if not preferences:
            raise BackendError("At least one notification preference is required")
        data = await self._client.invoke(
            "update-notifications", json={"userId": user_id, **preferences}
        )
        return self._profile(data)

    async def upload_avatar(self, file_name: str, payload: bytes, mime_type: str) -> Profile:
        """Store a new profile picture and point the profile at it.

        Raises:
            UploadFailedError: Empty, oversized, or non-image file, or a
                storage failure.
        """
        if not payload:
            raise UploadFailedError("No file provided")
        if len(payload) > self._settings.max_upload_bytes:
            limit_mb = self._settings.max_upload_bytes / (1024 * 1024)
            raise UploadFailedError(f"File is larger than {limit_mb:.0f}MB")
        if not mime_type.startswith("image/"):
            raise UploadFailedError(f"Unsupported file type: {mime_type}")

        try:
            data = await self._client.invoke(
                "upload-avatar", files={"avatar": (file_name, payload, mime_type)}
            )
        except VoiceDeskError as exc:
            logger.error("Avatar upload failed: %s", exc.detail)
            raise UploadFailedError(exc.detail) from exc
        return self._profile(data)

    async def remove_avatar(self, profile: Profile) -> Profile:
        """Delete the stored avatar blob and clear ``avatar_url``."""
        if not profile.avatar_url:
            return profile
        await self._client.invoke("delete-avatar", json={"avatarUrl": profile.avatar_url})
        logger.info("Removed avatar for profile %s", profile.id)
        return profile.model_copy(update={"avatar_url": None})
