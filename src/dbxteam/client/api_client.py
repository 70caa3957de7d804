"""Synchronous Dropbox API client with bearer auth, retry, and error mapping.

:class:`DropboxClient` wraps :class:`httpx.Client` for the Dropbox RPC-style
endpoints, which are all ``POST`` requests with a JSON (or empty) body. It
layers on:

- **Bearer auth** -- ``Authorization: Bearer <token>`` on every call.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- non-2xx responses become typed
  :class:`~dbxteam.exceptions.DbxTeamError` subclasses.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from dbxteam.exceptions import (
    ApiError,
    AuthError,
    ConnectionError_,
    NotFoundError,
    ServerError,
)
from dbxteam.models import RequestConfig
from dbxteam.output import get_output


class DropboxClient:
    """Blocking client for Dropbox API calls.

    Must be used as a context manager so that the underlying connection
    pool is opened and closed.

    Args:
        config: Timeouts and retry settings.
        transport: Optional httpx transport, used by tests.

    Example::

        with DropboxClient() as client:
            info = client.post_json(TEAM_INFO_URL, None, access_token)
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> DropboxClient:
        self._client = httpx.Client(
            timeout=httpx.Timeout(
                self._config.timeout, connect=self._config.connect_timeout
            ),
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def post_json(
        self,
        url: str,
        body: Optional[dict[str, Any]],
        access_token: str,
    ) -> dict[str, Any]:
        """POST *body* as JSON to *url* and return the decoded JSON object.

        When *body* is ``None`` the request is sent with no body and no
        ``Content-Type``, which is what argument-less Dropbox endpoints
        such as ``team/get_info`` expect.

        Args:
            url: Full endpoint URL.
            body: JSON-serialisable request arguments, or ``None``.
            access_token: OAuth2 bearer token.

        Returns:
            The decoded JSON object (an empty dict for an empty body).

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ApiError: On any other 4xx.
            ServerError: On 5xx after all retries are exhausted, or when the
                body is not a JSON object.
            ConnectionError_: On network / timeout errors after all retries.
        """
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        response = self._execute_with_retry(url, headers, body)
        self._map_response_error(response)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON from {url}: {exc}") from exc
        if not isinstance(data, dict):
            raise ServerError(f"Unexpected response from {url}: expected a JSON object")
        return data

    def _execute_with_retry(
        self,
        url: str,
        headers: dict[str, str],
        body: Optional[dict[str, Any]],
    ) -> httpx.Response:
        """Send the request, retrying 5xx and network errors with backoff."""
        assert self._client is not None, "Client not initialised -- use as context manager"

        max_retries = self._config.max_retries
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                if body is None:
                    response = self._client.post(url, headers=headers)
                else:
                    response = self._client.post(url, headers=headers, json=body)

                if response.status_code >= 500 and attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Server error {response.status_code}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        msg = _error_message(response)
        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        if status >= 500:
            raise ServerError(full_msg)
        raise ApiError(full_msg)


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of a Dropbox error body.

    Dropbox answers RPC errors with ``{"error_summary": ..., "error": {...}}``
    and some auth failures with plain text.
    """
    try:
        detail = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""

    if isinstance(detail, dict):
        for key in ("error_summary", "message", "error_description", "error"):
            value = detail.get(key)
            if isinstance(value, str) and value:
                return value
        return str(detail.get("error") or "")
    return str(detail)
