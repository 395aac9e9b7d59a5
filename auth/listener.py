"""Local OAuth callback listener.

A throwaway Flask app served by Werkzeug on a daemon thread, bound to the
host and port of the redirect URI. The browser lands on it after the
consent screen; the first redirect carrying code and state is handed to
the waiting coordinator through a OneShotChannel, then the server is shut
down.
"""

import logging
import threading
from dataclasses import dataclass
from urllib.parse import urlsplit

from flask import Flask, Response, request
from werkzeug.serving import BaseWSGIServer, make_server

from auth.channel import OneShotChannel
from auth.errors import BindError

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}

ACK_BODY = "Thank you, you may now close this window."


@dataclass(frozen=True)
class AuthorizationResult:
    """What the provider's redirect carried back."""

    code: str
    state: str
    error: str = ""


def parse_redirect_uri(redirect_uri: str) -> tuple[str, int, str]:
    """Split a redirect URI into (host, port, path).

    Raises:
        BindError: If the URI is not an http loopback address with an explicit port.
    """
    try:
        parts = urlsplit(redirect_uri)
        port = parts.port
    except ValueError as e:
        raise BindError(f"Invalid redirect URI '{redirect_uri}': {e}", original_error=e)

    if parts.scheme != "http":
        raise BindError(f"Redirect URI must use http, got '{redirect_uri}'")
    if parts.hostname not in LOOPBACK_HOSTS:
        raise BindError(f"Redirect URI host must be a loopback address, got '{parts.hostname}'")
    if port is None:
        raise BindError(f"Redirect URI must include a port, got '{redirect_uri}'")

    return parts.hostname, port, parts.path or "/"


class ListenerHandle:
    """A running callback endpoint. Owns the server socket and serving thread."""

    def __init__(
        self,
        server: BaseWSGIServer,
        thread: threading.Thread,
        channel: OneShotChannel[AuthorizationResult],
        path: str,
    ) -> None:
        self._server = server
        self._thread = thread
        self._lock = threading.Lock()
        self._stopped = False
        self.channel = channel
        self.path = path

    @property
    def host(self) -> str:
        return self._server.server_address[0]

    @property
    def port(self) -> int:
        return self._server.server_port

    @property
    def url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}{self.path}"

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        """Shut the server down and release the socket. Safe to call repeatedly.

        A call that arrives while another is still stopping blocks until the
        socket is closed.
        """
        with self._lock:
            if self._stopped:
                return
            self.channel.close()
            self._server.shutdown()
            self._server.server_close()
            self._thread.join(timeout=5)
            self._stopped = True
        logger.info("Callback listener on port %d stopped", self.port)

    def __enter__(self) -> "ListenerHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()


def _create_app(path: str, expected_state: str | None, deliver) -> Flask:
    """Build the one-route Flask app that receives the redirect."""
    app = Flask(__name__)

    @app.route(path, methods=["GET"])
    def callback() -> Response:
        error = request.args.get("error", "")
        code = request.args.get("code", "")
        state = request.args.get("state", "")

        if not error and not (code and state):
            logger.warning("Callback request without code/state ignored")
            return Response("Missing code or state.", status=400, mimetype="text/plain")
        if expected_state is not None and state != expected_state:
            logger.warning("Callback request with an unknown state ignored")
            return Response("Unknown state.", status=400, mimetype="text/plain")

        deliver(AuthorizationResult(code=code, state=state, error=error))
        return Response(ACK_BODY, mimetype="text/plain")

    return app


class CallbackListener:
    """Starts, awaits and stops single-use callback endpoints."""

    def start(
        self,
        redirect_uri: str,
        channel: OneShotChannel[AuthorizationResult],
        expected_state: str | None = None,
    ) -> ListenerHandle:
        """Bind to the redirect URI's address and start serving in the background.

        Args:
            redirect_uri: The registered redirect URI, e.g. http://localhost:8000/callback.
            channel: Receives the first redirect's AuthorizationResult.
            expected_state: If given, redirects carrying any other state get a 400
                and are not delivered.

        Returns:
            The running ListenerHandle.

        Raises:
            BindError: If the address is invalid or already in use.
        """
        host, port, path = parse_redirect_uri(redirect_uri)

        delivered = threading.Event()

        def deliver(result: AuthorizationResult) -> None:
            # Requests are served one at a time, so check-then-set is safe
            if delivered.is_set():
                logger.info("Ignoring additional callback; result already delivered")
                return
            delivered.set()
            channel.send(result)

        app = _create_app(path, expected_state, deliver)

        # Suppress Werkzeug request logs
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

        try:
            server = make_server(host, port, app, threaded=False)
        except (OSError, SystemExit) as e:
            # Werkzeug calls sys.exit(1) when it cannot bind
            raise BindError(f"Could not listen on {host}:{port}", original_error=e)

        thread = threading.Thread(
            target=server.serve_forever,
            name="callback-listener",
            daemon=True,
        )
        thread.start()

        handle = ListenerHandle(server, thread, channel, path)
        logger.info("Callback listener started on %s", handle.url)
        return handle

    def await_result(self, handle: ListenerHandle, timeout: float | None) -> AuthorizationResult:
        """Block until the redirect arrives, then stop the listener.

        The handle is released on every exit path.

        Raises:
            CallbackTimeout: If no redirect arrived within timeout seconds.
            CallbackCancelled: If the handle was stopped while waiting.
        """
        try:
            return handle.channel.receive(timeout)
        finally:
            self.stop(handle)

    def stop(self, handle: ListenerHandle) -> None:
        handle.stop()
