"""Local HTTP listener that captures the OAuth redirect.

:class:`RedirectListener` binds a loopback port, serves a single route and
waits for the browser to be redirected there after the user approves (or
denies) the app. The first qualifying request resolves a
:class:`RendezvousCell`; the command that started the listener blocks in
:meth:`RedirectListener.wait_for_outcome` until that happens or a deadline
passes.

Wire contract of the route:

====================================  =====================================
Request                               Response
====================================  =====================================
``GET <path>?code=<value>``           ``200 text/html`` confirmation page
``GET <path>?error=<value>``          ``400 text/plain`` authorization error
``GET <path>`` (neither parameter)    ``400 text/plain`` ``Missing code``
any other method on ``<path>``        ``405 text/plain``
handler failure (bad encoding, ...)   ``500 text/plain``
any other path                        ``404 text/plain``
====================================  =====================================

When a request carries both ``code`` and ``error``, ``code`` wins.

Typical usage::

    with RedirectListener(ListenerConfig(port=45678, path="/callback")) as listener:
        webbrowser.open(auth_url)
        code = listener.wait_for_outcome(timeout=120)

See Also:
    :class:`dbxteam.auth.flow.AuthorizationFlow` for the timeout and
    manual-entry fallback policy built on top of this module.
"""

from __future__ import annotations

import logging
import re
import socket
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

from dbxteam.exceptions import (
    AuthorizationDeniedError,
    CallbackInternalError,
    CallbackTimeoutError,
    ListenerBindError,
)
from dbxteam.models import CallbackOutcome, ListenerConfig, OutcomeKind

logger = logging.getLogger(__name__)

SUCCESS_PAGE = (
    "<html><body><h3>Authorization complete</h3>"
    "<p>You can close this window and return to the terminal.</p></body></html>"
)

_HTML = "text/html; charset=utf-8"
_PLAIN = "text/plain; charset=utf-8"

# "%" not followed by two hex digits.
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Upper bound on request bodies drained before answering 405.
_MAX_DRAIN_BYTES = 64 * 1024
_SOCKET_TIMEOUT = 5.0


class QueryDecodeError(ValueError):
    """Raised when a query string contains a malformed percent-escape."""


def parse_query(raw_query: str) -> dict[str, list[str]]:
    """Parse a raw query string into a mapping of name to values.

    Keys and values are percent-decoded (``+`` decodes to a space) as
    UTF-8. Repeated keys keep every value in arrival order, and a pair
    without ``=`` maps to an empty string.

    Args:
        raw_query: The query string without the leading ``?``.

    Returns:
        A dict mapping each parameter name to its list of values.

    Raises:
        QueryDecodeError: If an escape is not ``%`` followed by two hex
            digits, or the decoded bytes are not valid UTF-8.

    Example::

        >>> parse_query("code=a&code=b&state=x%2Fy")
        {'code': ['a', 'b'], 'state': ['x/y']}
    """
    if not raw_query:
        return {}

    bad = _BAD_ESCAPE.search(raw_query)
    if bad is not None:
        raise QueryDecodeError(
            f"Malformed percent-escape at position {bad.start()} of query string"
        )

    try:
        pairs = parse_qsl(raw_query, keep_blank_values=True, errors="strict")
    except UnicodeDecodeError as exc:
        raise QueryDecodeError(f"Query string is not valid UTF-8: {exc}") from exc

    params: dict[str, list[str]] = {}
    for key, value in pairs:
        params.setdefault(key, []).append(value)
    return params


class RendezvousCell:
    """Single-assignment slot shared by the handler threads and one waiter.

    :meth:`offer` is atomic: of any number of concurrent offers exactly one
    succeeds, and every later offer is discarded. :meth:`wait` may be called
    any number of times; once the cell is resolved it returns immediately.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._resolved = threading.Event()
        self._outcome: Optional[CallbackOutcome] = None

    @property
    def outcome(self) -> Optional[CallbackOutcome]:
        """The resolved outcome, or ``None`` while the cell is empty."""
        return self._outcome

    def offer(self, outcome: CallbackOutcome) -> bool:
        """Resolve the cell with *outcome* unless it is already resolved.

        Returns:
            ``True`` if this call resolved the cell, ``False`` if it was a
            no-op.
        """
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
        self._resolved.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[CallbackOutcome]:
        """Block until the cell is resolved or *timeout* seconds elapse.

        Returns:
            The outcome, or ``None`` on timeout.
        """
        if self._resolved.wait(timeout):
            return self._outcome
        return None


class _CallbackHTTPServer(ThreadingHTTPServer):
    """Threaded server carrying the route and cell its handlers write to."""

    daemon_threads = True
    allow_reuse_port = False

    def __init__(
        self,
        server_address: tuple[str, int],
        route_path: str,
        cell: RendezvousCell,
    ) -> None:
        self.route_path = route_path
        self.cell = cell
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, _CallbackHandler)

    def handle_error(self, request: Any, client_address: Any) -> None:  # noqa: ANN401
        exc = sys.exc_info()[1]
        if isinstance(exc, (ConnectionError, socket.timeout)):
            logger.debug("Connection from %s dropped: %r", client_address, exc)
            return
        logger.exception("Error while serving callback request from %s", client_address)


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackHTTPServer
    server_version = "dbxteam-callback"
    # Per-connection socket timeout, seconds.
    timeout = _SOCKET_TIMEOUT

    def do_GET(self) -> None:
        url = urlsplit(self.path)
        if url.path != self.server.route_path:
            self._send(404, "Not found", _PLAIN)
            return

        try:
            status, body, content_type = self._resolve(url.query)
        except Exception as exc:
            logger.debug("Callback handler failed: %r", exc)
            self.server.cell.offer(
                CallbackOutcome.internal(f"{type(exc).__name__}: {exc}")
            )
            status, body, content_type = 500, "Internal server error", _PLAIN

        self._send(status, body, content_type)

    def _reject_method(self) -> None:
        self._drain_body()
        if urlsplit(self.path).path != self.server.route_path:
            self._send(404, "Not found", _PLAIN)
            return
        self._send(405, "Method not allowed", _PLAIN, extra_headers={"Allow": "GET"})

    do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = do_HEAD = _reject_method

    def _resolve(self, raw_query: str) -> tuple[int, str, str]:
        """Apply the query to the rendezvous and pick the response."""
        params = parse_query(raw_query)
        cell = self.server.cell

        if "code" in params:
            if cell.offer(CallbackOutcome.code(params["code"][0])):
                logger.debug("Authorization code captured")
            else:
                logger.debug("Outcome already captured; ignoring repeated callback")
            return 200, SUCCESS_PAGE, _HTML

        if "error" in params:
            error = params["error"][0]
            if cell.offer(CallbackOutcome.error(error)):
                logger.debug("Authorization error captured: %s", error)
            return 400, f"Authorization error: {error}", _PLAIN

        return 400, "Missing code", _PLAIN

    def _send(
        self,
        status: int,
        body: str,
        content_type: str,
        extra_headers: Optional[dict[str, str]] = None,
    ) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Cache-Control", "no-store")
        for name, value in (extra_headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(payload)

    def _drain_body(self) -> None:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if length <= 0:
            return
        try:
            self.rfile.read(min(length, _MAX_DRAIN_BYTES))
        except socket.timeout:
            logger.debug(
                "Request body from %s shorter than Content-Length", self.address_string()
            )

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class RedirectListener:
    """Embedded HTTP endpoint that captures one authorization outcome.

    Lifecycle: ``Created -> Started -> Stopped``. The socket is bound in the
    constructor, connections are accepted only after :meth:`start`, and
    :meth:`stop` releases the port. The rendezvous cell resolves
    independently of that lifecycle, at most once.

    One listener serves one authorization attempt; create a new instance
    for every attempt. Used as a context manager, the listener is started
    on entry and always stopped on exit.

    Args:
        config: Host, port, and route path to serve.

    Raises:
        ListenerBindError: If the port cannot be bound.
    """

    def __init__(self, config: ListenerConfig) -> None:
        self._config = config
        self._cell = RendezvousCell()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

        try:
            self._server = _CallbackHTTPServer(
                (config.host, config.port), config.path, self._cell
            )
        except OSError as exc:
            raise ListenerBindError(
                f"Cannot listen on {config.host}:{config.port}: {exc.strerror or exc}"
            ) from exc

        logger.debug("Callback listener bound at %s", self.url)

    def __enter__(self) -> RedirectListener:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    @property
    def config(self) -> ListenerConfig:
        return self._config

    @property
    def url(self) -> str:
        """The URL the listener answers on."""
        return f"http://{self._config.host}:{self._config.port}{self._config.path}"

    @property
    def outcome(self) -> Optional[CallbackOutcome]:
        """The captured outcome, or ``None`` if nothing has arrived yet."""
        return self._cell.outcome

    def start(self) -> None:
        """Start accepting connections on a background daemon thread.

        Raises:
            RuntimeError: If the listener was already started or stopped.
        """
        with self._lock:
            if self._stopped:
                raise RuntimeError("Callback listener has been stopped")
            if self._thread is not None:
                raise RuntimeError("Callback listener is already started")
            self._thread = threading.Thread(
                target=self._server.serve_forever,
                kwargs={"poll_interval": 0.1},
                name=f"dbxteam-callback-{self._config.port}",
                daemon=True,
            )
            self._thread.start()
        logger.debug("Callback listener accepting connections")

    def wait_for_outcome(self, timeout: float) -> str:
        """Block until the redirect arrives or *timeout* seconds elapse.

        Once the outcome is captured, repeated calls return (or raise) the
        same result immediately.

        Args:
            timeout: Maximum number of seconds to wait.

        Returns:
            The authorization code.

        Raises:
            CallbackTimeoutError: If no outcome arrived before the deadline.
                The listener keeps serving until :meth:`stop`.
            AuthorizationDeniedError: If the provider redirected with
                ``error``; the provider text is in ``exc.error``.
            CallbackInternalError: If the handler failed while processing
                the redirect.
        """
        outcome = self._cell.wait(timeout)
        if outcome is None:
            raise CallbackTimeoutError(
                f"Timed out waiting for authorization code via local callback ({timeout:g}s)"
            )
        if outcome.kind is OutcomeKind.CODE:
            return outcome.value
        if outcome.kind is OutcomeKind.ERROR:
            raise AuthorizationDeniedError(outcome.value)
        raise CallbackInternalError(f"Callback handler failed: {outcome.value}")

    def stop(self) -> None:
        """Stop serving and release the port. Safe to call more than once."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            thread = self._thread

        if thread is not None:
            self._server.shutdown()
            thread.join()
        self._server.server_close()
        logger.debug("Callback listener stopped")
