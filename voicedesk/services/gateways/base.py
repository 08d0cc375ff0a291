"""
Abstract gateway interfaces.

The capture session and the library depend only on these contracts; the
hosted-platform clients in this package implement them, and tests swap in
in-memory fakes.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from voicedesk.core.models import (
    Identity,
    PersistedRecording,
    RecordingFilter,
    RecordingPage,
    UploadResult,
)

IdentityListener = Callable[[Identity | None], Awaitable[None] | None]


class UploadGateway(ABC):
    """Stores a raw audio file and creates its recording row."""

    @abstractmethod
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
        """Upload ``payload`` and return the persisted record.

        Raises:
            UploadFailedError: Local validation or storage failure.
        """


class PersistenceGateway(ABC):
    """Recording metadata owned by the platform."""

    @abstractmethod
    async def list(self, owner_id: str, filter: RecordingFilter | None = None) -> RecordingPage:
        """List recordings of ``owner_id``, newest first, filtered server-side."""

    @abstractmethod
    async def get(self, recording_id: str) -> PersistedRecording:
        """Fetch one recording.

        Raises:
            NotFoundError: Unknown id.
            ForbiddenError: Not owned by (or shared with) the caller.
        """

    @abstractmethod
    async def update(self, recording_id: str, **updates) -> PersistedRecording:
        """Patch editable fields (title, description, tags, ...)."""

    @abstractmethod
    async def delete(self, recording_id: str) -> None:
        """Delete the row and its stored audio blob."""


class IdentityProvider(ABC):
    """Sign-in state of the dashboard user."""

    def __init__(self) -> None:
        self._listeners: list[IdentityListener] = []

    @property
    @abstractmethod
    def current(self) -> Identity | None:
        """The signed-in identity, or None."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """Authenticate and notify subscribers."""

    @abstractmethod
    async def sign_out(self) -> None:
        """End the session and notify subscribers."""

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Register ``listener`` for identity changes.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, identity: Identity | None) -> None:
        for listener in list(self._listeners):
            result = listener(identity)
            if result is not None:
                await result
