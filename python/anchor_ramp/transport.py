"""JSON-over-HTTP client shared by the provider adapters."""

import logging
from typing import Any

import httpx

from .constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from .errors import NotFoundError, TransportError

logger = logging.getLogger(__name__)


def _error_details(response: httpx.Response, label: str) -> tuple[str, str | None, Any]:
    """Pull ``(message, code, body)`` out of a provider error response.

    Providers answer ``{"error": {"code", "message"}}``, ``{"error": "..."}``
    or ``{"message": "..."}``; anything else falls back to the raw text.
    """
    text = response.text
    try:
        body = response.json()
    except ValueError:
        body = None

    message, code = "", None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message") or ""
            code = error.get("code") or None
        elif isinstance(error, str):
            message = error
        if not message and isinstance(body.get("message"), str):
            message = body["message"]
    return message or text or f"{label} API error: {response.status_code}", code, body


class AnchorHttpClient:
    """Sends authenticated JSON requests to one provider.

    Non-2xx responses raise :class:`TransportError` carrying the provider's
    message, code and status verbatim; 404 raises :class:`NotFoundError`.
    """

    def __init__(
        self,
        label: str,
        base_url: str,
        headers: dict[str, str],
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self.label = label
        self.base_url = base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json", **headers}
        self._client = client
        self._timeout = timeout

    def url(self, path: str) -> str:
        # Presigned URLs come back absolute.
        if path.startswith(("https://", "http://")):
            return path
        return f"{self.base_url}{path}"

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = self._headers
        if kwargs.get("files"):
            # httpx sets the multipart boundary itself
            headers = {k: v for k, v in headers.items() if k != "Content-Type"}
        if self._client is not None:
            return await self._client.request(method, url, headers=headers, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, headers=headers, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` if empty).

        ``files`` and ``data`` send a multipart form instead of JSON.
        """
        url = self.url(path)
        logger.debug("[%s] %s %s", self.label, method, url)

        kwargs: dict[str, Any] = {"params": params}
        if files is not None:
            kwargs.update(files=files, data=data)
        else:
            kwargs["json"] = json

        try:
            response = await self._send(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("[%s] %s %s failed: %s", self.label, method, url, e)
            raise TransportError(
                f"{self.label} request failed: {e}", code="NETWORK_ERROR"
            ) from e

        if response.is_error:
            message, code, body = _error_details(response, self.label)
            logger.warning("[%s] Error %s: %s", self.label, response.status_code, message)
            error_cls = NotFoundError if response.status_code == 404 else TransportError
            raise error_cls(message, code=code, status_code=response.status_code, details=body)

        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def upload(
        self, path: str, files: dict[str, Any], data: dict[str, Any] | None = None
    ) -> Any:
        return await self.request("POST", path, files=files, data=data)
