"""
Asynchronous HTTP client for the hosted platform (auth + edge functions).

Wraps ``httpx.AsyncClient`` and converts every transport or HTTP failure
into a ``VoiceDeskError`` subclass with a user-friendly message. Each call
is bounded by ``Settings.request_timeout`` end to end.
"""

import asyncio
import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from voicedesk.core.config import Settings, get_settings
from voicedesk.core.exceptions import (
    BackendError,
    BackendUnavailableError,
    ForbiddenError,
    NotFoundError,
    RequestTimeoutError,
)

logger = logging.getLogger(__name__)

# Idempotent reads only; uploads, updates and deletes are never repeated
retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=(
        retry_if_exception_type(BackendUnavailableError)
        & retry_if_not_exception_type(RequestTimeoutError)
    ),
    reraise=True,
)


def _error_detail(response: httpx.Response) -> str:
    """Extract a human-readable message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return response.text or response.reason_phrase


class PlatformClient:
    """Thin async wrapper around httpx for the hosted platform.

    Args:
        settings: Optional Settings instance (defaults to get_settings()).
        http: Optional pre-built ``httpx.AsyncClient`` (tests inject one
            backed by ``httpx.MockTransport``).
    """

    def __init__(self, settings: Settings | None = None, http: httpx.AsyncClient | None = None) -> None:
        self._settings = settings or get_settings()
        self._timeout = self._settings.request_timeout
        self._http = http or httpx.AsyncClient(
            base_url=self._settings.supabase_url.rstrip("/"),
            timeout=self._timeout,
        )
        self.access_token: str | None = None

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    def _headers(self) -> dict[str, str]:
        token = self.access_token or self._settings.supabase_anon_key
        headers = {"apikey": self._settings.supabase_anon_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with error mapping and a total timeout.

        Args:
            method: HTTP method name ("GET", "POST", "PUT", "DELETE").
            path: Path relative to the platform base URL.
            **kwargs: Passed through to httpx (json, data, files, params).

        Returns:
            The httpx Response with a successful status code.

        Raises:
            RequestTimeoutError: The call exceeded ``request_timeout``.
            BackendUnavailableError: Connection failure or 5xx response.
            NotFoundError: 404 response.
            ForbiddenError: 401 / 403 response.
            BackendError: Any other non-success response.
        """
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            async with asyncio.timeout(self._timeout):
                resp = await self._http.request(method, path, headers=headers, **kwargs)
            resp.raise_for_status()
            return resp
        except (TimeoutError, httpx.TimeoutException):
            logger.warning("%s %s timed out after %.1fs", method, path, self._timeout)
            raise RequestTimeoutError() from None
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = _error_detail(exc.response)
            logger.warning("%s %s failed with %s: %s", method, path, status, detail)
            if status == 404:
                raise NotFoundError(detail) from None
            if status in (401, 403):
                raise ForbiddenError(detail) from None
            if status >= 500:
                raise BackendUnavailableError(detail) from None
            raise BackendError(detail) from None
        except httpx.HTTPError as exc:
            logger.warning("%s %s network error: %s", method, path, exc)
            raise BackendUnavailableError(f"Network error: {exc}") from None

    async def invoke(self, function: str, method: str = "POST", **kwargs) -> dict:
        """Call an edge function and return its JSON body.

        Raises:
            BackendError: The function answered with a body that is not JSON.
        """
        resp = await self.request(method, f"/functions/v1/{function}", **kwargs)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            logger.warning("%s returned a non-JSON body", function)
            raise BackendError(f"Invalid response from {function}") from None

    async def aclose(self) -> None:
        await self._http.aclose()
