"""
VoiceDesk exception hierarchy.

All application-specific exceptions inherit from VoiceDeskError so the
dashboard can surface any of them through one notification path.
Playback failures are not raised; they live in ``PlaybackState.error``.
"""

from datetime import UTC, datetime


class VoiceDeskError(Exception):
    """Base exception for all VoiceDesk errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "VOICEDESK_ERROR",
    ) -> None:
        self.detail = detail
        self.code = code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


class PermissionDeniedError(VoiceDeskError):
    """Raised when the user (or OS) refuses microphone access."""

    def __init__(
        self, detail: str = "Could not access microphone. Please check permissions."
    ) -> None:
        super().__init__(detail=detail, code="PERMISSION_DENIED")


class DeviceError(VoiceDeskError):
    """Raised when the capture device cannot be opened or fails mid-stream."""

    def __init__(self, detail: str = "Microphone is unavailable") -> None:
        super().__init__(detail=detail, code="DEVICE_ERROR")


class InvalidStateError(VoiceDeskError):
    """Raised when an operation is not valid in the component's current state."""

    def __init__(self, operation: str, state: str) -> None:
        self.operation = operation
        self.state = state
        super().__init__(
            detail=f"Cannot {operation} while {state}",
            code="INVALID_STATE",
        )


# ---------------------------------------------------------------------------
# Gateways
# ---------------------------------------------------------------------------


class UploadFailedError(VoiceDeskError):
    """Raised when an upload is rejected locally or by the storage backend."""

    def __init__(self, reason: str = "Upload failed") -> None:
        self.reason = reason
        super().__init__(detail=reason, code="UPLOAD_FAILED")


class NotFoundError(VoiceDeskError):
    """Raised when the backend reports that a resource does not exist."""

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(detail=detail, code="NOT_FOUND")


class ForbiddenError(VoiceDeskError):
    """Raised when the current identity may not access a resource."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(detail=detail, code="FORBIDDEN")


class BackendError(VoiceDeskError):
    """Raised when the backend rejects a request (validation, bad input)."""

    def __init__(self, detail: str = "Backend request failed", code: str = "BACKEND_ERROR") -> None:
        super().__init__(detail=detail, code=code)


class BackendUnavailableError(BackendError):
    """Raised when the backend cannot be reached or fails internally."""

    def __init__(self, detail: str = "Backend is unavailable") -> None:
        super().__init__(detail=detail, code="BACKEND_UNAVAILABLE")


class RequestTimeoutError(BackendUnavailableError):
    """Raised when a gateway call exceeds the configured timeout."""

    def __init__(self, detail: str = "Request timed out") -> None:
        super().__init__(detail=detail)
        self.code = "REQUEST_TIMEOUT"
