"""Loopback HTTP listener that captures the implicit-grant redirect.

With the implicit grant the identity provider appends the access token to
the redirect URL as a *fragment* (``#access_token=...&scope=...``), and
browsers never send fragments to a server. The listener therefore answers
every request with a small page whose script reads ``window.location.hash``
and POSTs the values back to the same origin as JSON. That second request is
the one carrying the credential.

The listener runs :meth:`http.server.HTTPServer.serve_forever` on a daemon
thread and handles requests one at a time; connections arriving while a
response is being written wait in the listen backlog, so the page's POST and
a stray ``/favicon.ico`` request cannot deadlock each other. A connection
that sends nothing (browsers open speculative ones) is dropped after
:data:`IDLE_CONNECTION_TIMEOUT` seconds so it cannot hold up the POST.

The first well-formed POST body is published into :attr:`CallbackListener.result`,
a :class:`concurrent.futures.Future` that is completed at most once. Bodies
that do not parse into a :class:`~twitchauth.models.Credential` are logged
and ignored, and the listener keeps serving.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future, InvalidStateError
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional

from pydantic import ValidationError

from twitchauth.exceptions import ProtocolError, TransportError
from twitchauth.models import Credential

logger = logging.getLogger(__name__)

IDLE_CONNECTION_TIMEOUT = 2.0

CALLBACK_PAGE = r"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>twitchauth</title>
<script>
if (window.location.hash) {
    var values = window.location.hash.substring(1).split('&').map(function (segment) {
        var value = segment.substring(segment.indexOf('=') + 1);
        try {
            return decodeURIComponent(value.replace(/\+/g, ' '));
        } catch (e) {
            return value;
        }
    });
    var data = { accessToken: values[0], scope: values[1], state: values[2] };
    fetch('/', {
        method: 'POST',
        headers: { 'Content-Type': 'application/json' },
        body: JSON.stringify(data)
    }).then(function () {
        window.close();
    }, function (error) {
        console.log(error);
        window.close();
    });
}
</script>
</head>
<body><p>Authentication received. You can close this window.</p></body>
</html>
"""

_PAGE_BYTES = CALLBACK_PAGE.encode("utf-8")


def parse_callback_body(body: bytes) -> Credential:
    """Turn a POSTed callback body into a :class:`~twitchauth.models.Credential`.

    Args:
        body: Raw request body, expected to be a JSON object with
            ``accessToken``, ``scope``, and ``state`` keys.

    Returns:
        The parsed credential.

    Raises:
        ProtocolError: If the body is empty, not JSON, or lacks a
            non-empty ``accessToken``.
    """
    if not body:
        raise ProtocolError("Empty callback body")
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"Callback body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ProtocolError("Callback body is not a JSON object")
    try:
        return Credential.model_validate(data)
    except ValidationError as exc:
        raise ProtocolError(
            f"Callback body is not a credential: {exc.error_count()} validation error(s)"
        ) from exc


class _CallbackServer(HTTPServer):
    """HTTPServer that carries the listener's result slot."""

    def __init__(self, port: int, result: Future[Credential]) -> None:
        self.result = result
        super().__init__(("", port), _CallbackHandler)

    def publish(self, credential: Credential) -> None:
        """Complete the result slot with *credential* unless already completed."""
        try:
            self.result.set_result(credential)
        except InvalidStateError:
            logger.debug("Ignoring callback: the attempt already has a result")
            return
        logger.debug("Callback credential published")

    def handle_error(self, request: Any, client_address: Any) -> None:  # noqa: ANN401
        # Browser tabs close mid-response; keep serving.
        logger.debug("Error while handling callback from %s", client_address, exc_info=True)


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer
    server_version = "twitchauth"
    # Seconds a connection may stay silent before it is dropped; the accept
    # loop is blocked meanwhile.
    timeout = IDLE_CONNECTION_TIMEOUT

    def do_GET(self) -> None:
        self._discard_body()
        self._respond()

    def do_POST(self) -> None:
        self._capture()
        self._respond()

    def do_HEAD(self) -> None:
        self._respond(include_body=False)

    do_PUT = do_GET
    do_PATCH = do_GET
    do_DELETE = do_GET
    do_OPTIONS = do_GET

    def _capture(self) -> None:
        try:
            credential = parse_callback_body(self._read_body())
        except ProtocolError as exc:
            logger.debug("Discarding callback body: %s", exc)
            return
        self.server.publish(credential)

    def _discard_body(self) -> None:
        # Unread request bytes make close() send RST, which can cost the
        # client its response.
        try:
            self._read_body()
        except ProtocolError as exc:
            logger.debug("Ignoring request body: %s", exc)

    def _read_body(self) -> bytes:
        raw_length = self.headers.get("Content-Length")
        if raw_length is None:
            return b""
        try:
            length = int(raw_length)
        except ValueError:
            raise ProtocolError(f"Invalid Content-Length: {raw_length!r}") from None
        if length <= 0:
            return b""
        return self.rfile.read(length)

    def _respond(self, include_body: bool = True) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(_PAGE_BYTES)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        if include_body:
            self.wfile.write(_PAGE_BYTES)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class CallbackListener:
    """Ephemeral local HTTP endpoint for one authentication attempt.

    Example::

        listener = CallbackListener()
        listener.start(3000)
        try:
            credential = listener.result.result(timeout=10)
        finally:
            listener.stop()

    Args:
        poll_interval: How often, in seconds, the accept loop checks for a
            stop request. Bounds how long :meth:`stop` takes.
    """

    def __init__(self, poll_interval: float = 0.1) -> None:
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._server: Optional[_CallbackServer] = None
        self._thread: Optional[threading.Thread] = None
        self._result: Future[Credential] = Future()

    @property
    def result(self) -> Future[Credential]:
        """Single-assignment slot completed by the first valid callback."""
        return self._result

    @property
    def is_running(self) -> bool:
        """Whether the accept loop is currently serving."""
        return self._server is not None

    @property
    def port(self) -> Optional[int]:
        """The bound port while running (useful after ``start(0)``), else ``None``."""
        server = self._server
        return server.server_address[1] if server is not None else None

    def start(self, port: int) -> None:
        """Bind all interfaces on *port* and serve on a background thread.

        Each call arms a fresh :attr:`result` slot.

        Raises:
            TransportError: If the listener is already running or the port
                cannot be bound.
        """
        with self._lock:
            if self._server is not None:
                raise TransportError("Callback listener is already running")
            result: Future[Credential] = Future()
            try:
                server = _CallbackServer(port, result)
            except (OSError, OverflowError) as exc:
                raise TransportError(
                    f"Cannot bind callback listener to port {port}: {exc}"
                ) from exc
            thread = threading.Thread(
                target=server.serve_forever,
                kwargs={"poll_interval": self._poll_interval},
                name=f"twitchauth-listener-{server.server_address[1]}",
                daemon=True,
            )
            self._result = result
            self._server = server
            self._thread = thread
            thread.start()
        logger.debug("Callback listener started on port %d", server.server_address[1])

    def stop(self) -> None:
        """Stop serving, release the port, and join the background thread.

        Safe to call repeatedly and on a listener that was never started.
        """
        with self._lock:
            server, thread = self._server, self._thread
            self._server = None
            self._thread = None
        if server is None or thread is None:
            return
        server.shutdown()
        server.server_close()
        thread.join()
        logger.debug("Callback listener on port %d stopped", server.server_address[1])

    def __enter__(self) -> CallbackListener:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
