"""
Gateways to the hosted platform.

Factory function wiring one shared PlatformClient into every gateway.
"""

from dataclasses import dataclass

from voicedesk.core.config import Settings, get_settings

from .base import IdentityProvider, PersistenceGateway, UploadGateway
from .client import PlatformClient
from .identity import PlatformIdentityProvider
from .profile import ProfileGateway
from .voice import VoiceRecordGateway

__all__ = [
    "Gateways",
    "IdentityProvider",
    "PersistenceGateway",
    "PlatformClient",
    "PlatformIdentityProvider",
    "ProfileGateway",
    "UploadGateway",
    "VoiceRecordGateway",
    "create_gateways",
]


@dataclass
class Gateways:
    """All platform gateways sharing one client."""

    client: PlatformClient
    identity: PlatformIdentityProvider
    voice: VoiceRecordGateway
    profiles: ProfileGateway

    async def aclose(self) -> None:
        await self.client.aclose()


def create_gateways(settings: Settings | None = None, client: PlatformClient | None = None) -> Gateways:
    """Build the gateways for ``settings`` (defaults to get_settings())."""
    settings = settings or get_settings()
    client = client or PlatformClient(settings)
    return Gateways(
        client=client,
        identity=PlatformIdentityProvider(client),
        voice=VoiceRecordGateway(client, settings),
        profiles=ProfileGateway(client, settings),
    )
