"""HTTP client for the marketplace REST API."""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from auth.session import SessionStore

logger = logging.getLogger(__name__)

STREAM_DATA_PREFIX = "data:"
STREAM_DONE = "[DONE]"


class ApiError(Exception):
    """
    The single error type surfaced by REST calls.

    Network failures and server-reported failures are both reported
    through this type; only the message text tells them apart.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_message(response: httpx.Response) -> str:
    """
    Extract a human-readable message from a failed response.

    Precedence: JSON `message`, JSON `error`, plain-text body, then
    "Error <status>: <reason>".
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    elif body is None:
        text = response.text.strip()
        if text:
            return text

    return f"Error {response.status_code}: {response.reason_phrase}"


def unwrap_list(data: Any, key: str) -> list:
    """
    Return the list carried by a list endpoint.

    Endpoints answer either with a bare array or an envelope such as
    {"projects": [...]}; anything else is treated as empty.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    return []


class ApiClient:
    """
    Thin async wrapper over httpx that every resource client goes through.

    Attaches the bearer credential from the session store on every call,
    logs requests and responses, and converts every failure to ApiError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session_store: SessionStore,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_store = session_store
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    def auth_headers(self) -> dict[str, str]:
        """Credential header for the current session, if any."""
        session = self.session_store.load()
        if session and session.token:
            return {"Authorization": f"Bearer {session.token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send a JSON request and return the parsed body.

        Returns:
            Parsed JSON, or None for empty responses

        Raises:
            ApiError: On network failure or non-2xx status
        """
        headers = self.auth_headers()
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s", method, path)
        try:
            response = await self._http.request(
                method,
                path,
                json=json_body,
                params=params,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(str(e) or e.__class__.__name__) from e

        return self._handle_response(method, path, response)

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def upload(
        self,
        path: str,
        *,
        files: dict[str, tuple[str, bytes, str]],
        data: dict[str, str] | None = None,
    ) -> Any:
        """
        Send a multipart upload.

        Only the credential header is set; httpx supplies the multipart
        content type and boundary.
        """
        logger.debug("POST %s (multipart, %d file(s))", path, len(files))
        try:
            response = await self._http.post(
                path,
                files=files,
                data=data,
                headers=self.auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.warning("Upload to %s failed: %s", path, e)
            raise ApiError(str(e) or e.__class__.__name__) from e

        return self._handle_response("POST", path, response)

    async def stream_events(
        self,
        path: str,
        *,
        json_body: Any,
        on_chunk: Callable[[dict], Awaitable[None] | None],
    ) -> int:
        """
        POST and decode a server-sent event stream incrementally.

        Each `data:` line carrying a JSON object is passed to `on_chunk`.
        A `[DONE]` line ends the stream without invoking the callback.
        Malformed chunks are logged and skipped.

        Returns:
            Number of chunks delivered

        Raises:
            ApiError: On network failure, non-2xx status, or an `error`
                payload sent by the server mid-stream
        """
        headers = self.auth_headers()
        headers["Content-Type"] = "application/json"
        headers["Accept"] = "text/event-stream"

        delivered = 0
        logger.debug("POST %s (stream)", path)
        try:
            async with self._http.stream("POST", path, json=json_body, headers=headers) as response:
                if response.is_error:
                    await response.aread()
                    message = error_message(response)
                    logger.warning("POST %s -> %s: %s", path, response.status_code, message)
                    raise ApiError(message, response.status_code)

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line.startswith(STREAM_DATA_PREFIX):
                        continue

                    data = line[len(STREAM_DATA_PREFIX):].strip()
                    if data == STREAM_DONE:
                        break

                    try:
                        chunk = json.loads(data)
                    except ValueError:
                        logger.warning("Skipping malformed stream chunk: %r", data[:200])
                        continue
                    if not isinstance(chunk, dict):
                        logger.warning("Skipping non-object stream chunk: %r", data[:200])
                        continue
                    if chunk.get("error"):
                        raise ApiError(str(chunk["error"]), response.status_code)

                    result = on_chunk(chunk)
                    if result is not None:
                        await result
                    delivered += 1
        except httpx.HTTPError as e:
            logger.warning("Stream from %s failed: %s", path, e)
            raise ApiError(str(e) or e.__class__.__name__) from e

        return delivered

    def _handle_response(self, method: str, path: str, response: httpx.Response) -> Any:
        if response.is_error:
            message = error_message(response)
            logger.warning("%s %s -> %s: %s", method, path, response.status_code, message)
            raise ApiError(message, response.status_code)

        logger.debug("%s %s -> %s", method, path, response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON in response from {path}", response.status_code) from e

    async def aclose(self) -> None:
        await self._http.aclose()
