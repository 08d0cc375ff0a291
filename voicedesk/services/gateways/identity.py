"""
Identity provider backed by the platform's auth endpoints.

Components never read a global "current user"; they receive an identity
explicitly or subscribe to changes through ``IdentityProvider.subscribe``.
"""

import logging

from voicedesk.core.exceptions import BackendError, VoiceDeskError
from voicedesk.core.models import Identity
from voicedesk.services.gateways.base import IdentityProvider
from voicedesk.services.gateways.client import PlatformClient

logger = logging.getLogger(__name__)


def _identity_from_session(body: dict) -> Identity:
    user = body.get("user") or {}
    if not user.get("id"):
        raise BackendError("Auth response did not include a user")
    return Identity(id=user["id"], email=user.get("email"), access_token=body.get("access_token", ""))


class PlatformIdentityProvider(IdentityProvider):
    """Email/password sign-in against ``/auth/v1``.

    Args:
        client: Platform client; its access token is set on sign-in and
            cleared on sign-out.
    """

    def __init__(self, client: PlatformClient) -> None:
        super().__init__()
        self._client = client
        self._identity: Identity | None = None

    @property
    def current(self) -> Identity | None:
        return self._identity

    async def sign_in(self, email: str, password: str) -> Identity:
        resp = await self._client.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        identity = _identity_from_session(resp.json())
        await self._set(identity)
        logger.info("Signed in as %s", identity.email or identity.id)
        return identity

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> Identity | None:
        """Register a new account.

        Returns:
            The new identity when the platform signs the user in right away,
            or None when email confirmation is required first.
        """
        body: dict = {"email": email, "password": password}
        if full_name:
            body["data"] = {"full_name": full_name}
        resp = await self._client.request("POST", "/auth/v1/signup", json=body)
        data = resp.json()
        if not data.get("access_token"):
            logger.info("Sign-up for %s awaits email confirmation", email)
            return None
        identity = _identity_from_session(data)
        await self._set(identity)
        return identity

    async def send_password_reset(self, email: str) -> None:
        """Ask the platform to email a password recovery link."""
        await self._client.request("POST", "/auth/v1/recover", json={"email": email})

    async def sign_out(self) -> None:
        if self._identity is None:
            return
        try:
            await self._client.request("POST", "/auth/v1/logout")
        except VoiceDeskError:
            # The local session ends regardless; the token simply expires server-side
            logger.exception("Remote sign-out failed")
        finally:
            await self._set(None)
        logger.info("Signed out")

    async def _set(self, identity: Identity | None) -> None:
        self._identity = identity
        self._client.access_token = identity.access_token if identity else None
        await self._notify(identity)
