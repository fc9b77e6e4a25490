"""Authentication coordinator -- the login state machine.

The :class:`AuthenticationCoordinator` owns one application's token slot and
drives implicit-grant logins against it:

1. A valid stored token short-circuits the flow: success is reported at
   once and no listener is started.
2. Otherwise the coordinator moves to ``LISTENING``: it binds a
   :class:`~twitchauth.auth.listener.CallbackListener` on the redirect URL's
   port, opens the authorization URL in the system browser, and waits on a
   background thread for the listener's result slot.
3. The wait is a single blocking ``Future.result(timeout=...)`` against a
   hard deadline. Whichever comes first -- a credential, the deadline, or a
   cancellation -- decides the outcome; the listener is stopped in every case.

Each call to :meth:`~AuthenticationCoordinator.start_authentication_validation`
returns an :class:`AuthenticationSession` handle and reports its outcome
exactly once to every callback registered with
:meth:`~AuthenticationCoordinator.on_authenticated`. Expected failures
(unparsable redirect URL, port in use, timeout, cancellation) are reported as
``False`` rather than raised; the reason is kept on
:attr:`AuthenticationSession.error`.

Callbacks run on the caller's thread when the outcome is known immediately
and on the attempt's background thread otherwise.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from concurrent.futures import CancelledError, Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, Optional
from urllib.parse import urlencode

from twitchauth.auth.credential_store import CredentialStore
from twitchauth.auth.listener import CallbackListener
from twitchauth.exceptions import (
    AuthenticationInProgressError,
    AuthError,
    AuthTimeoutError,
    ConfigError,
    StorageError,
    TransportError,
    TwitchAuthError,
)
from twitchauth.models import (
    DEFAULT_AUTHORIZE_URL,
    DEFAULT_TIMEOUT,
    AuthenticationState,
    ConnectionInformation,
    Credential,
    GlobalConfig,
)

logger = logging.getLogger(__name__)

AuthenticatedCallback = Callable[[bool], None]


def build_authorization_url(
    connection: ConnectionInformation,
    authorize_url: str = DEFAULT_AUTHORIZE_URL,
) -> str:
    """Build the implicit-grant authorization URL for *connection*.

    Args:
        connection: Client id, redirect URL, and scopes for the attempt.
        authorize_url: The identity provider's authorize endpoint.

    Returns:
        ``<authorize_url>?client_id=..&redirect_uri=..&response_type=token&scope=..``
        with query values URL-encoded, followed by ``&state=..`` when the
        connection carries a state value.
    """
    params: dict[str, str] = {
        "client_id": connection.client_id,
        "redirect_uri": connection.redirect_url,
        "response_type": "token",
        "scope": connection.scope,
    }
    if connection.state:
        params["state"] = connection.state
    return f"{authorize_url}?{urlencode(params)}"


class AuthenticationSession:
    """Handle for a single authentication attempt.

    Created by :meth:`AuthenticationCoordinator.start_authentication_validation`;
    not meant to be constructed directly. The session holds the attempt's
    state, its listener, and its outcome.
    """

    def __init__(
        self,
        connection: ConnectionInformation,
        authorization_url: str,
        lock: threading.RLock,
    ) -> None:
        self.connection = connection
        self.authorization_url = authorization_url
        self._lock = lock
        self._state = AuthenticationState.IDLE
        self._listener: Optional[CallbackListener] = None
        self._cancelled = False
        self._persisted = False
        self._error: Optional[TwitchAuthError] = None
        self._outcome: Future[bool] = Future()
        self._notified = threading.Event()
        self._notifier: Optional[threading.Thread] = None

    @property
    def state(self) -> AuthenticationState:
        """``LISTENING`` while waiting, then ``AUTHENTICATED`` or ``FAILED``."""
        return self._state

    @property
    def done(self) -> bool:
        """Whether the outcome has been reported."""
        return self._outcome.done()

    @property
    def success(self) -> Optional[bool]:
        """The reported outcome, or ``None`` while still pending."""
        return self._outcome.result() if self._outcome.done() else None

    @property
    def error(self) -> Optional[TwitchAuthError]:
        """Why the attempt failed, or ``None`` if it succeeded or is pending."""
        return self._error

    @property
    def cancelled(self) -> bool:
        """Whether :meth:`cancel` was called before the credential was stored."""
        return self._cancelled

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the outcome is reported and return it.

        Returns once the ``on_authenticated`` callbacks have run. A callback
        may call this on its own session; it then returns without waiting
        for the remaining callbacks.

        Raises:
            TimeoutError: If *timeout* elapses first. The attempt itself
                keeps running.
        """
        try:
            outcome = self._outcome.result(timeout=timeout)
        except FuturesTimeoutError:
            raise TimeoutError("Authentication attempt still in progress") from None
        if threading.current_thread() is not self._notifier:
            self._notified.wait()
        return outcome

    def cancel(self) -> bool:
        """Abandon the attempt; it then reports ``False``.

        Returns:
            ``True`` if the cancellation took effect, ``False`` if the
            attempt had already finished or already stored its credential.
        """
        with self._lock:
            if self.done or self._persisted:
                return False
            self._cancelled = True
            if self._listener is not None:
                self._listener.result.cancel()
            return True


class AuthenticationCoordinator:
    """Drive implicit-grant logins and own the stored token for one application.

    Args:
        app_name: Application identity that scopes the stored token key.
        authorize_url: The identity provider's authorize endpoint.
        timeout: Seconds to wait for a valid callback once listening.
        store: Credential store to use instead of the default one for
            *app_name*.
        opener: Callable that opens a URL in the browser. Defaults to
            :func:`webbrowser.open`.
        listener_factory: Callable returning a fresh
            :class:`~twitchauth.auth.listener.CallbackListener`.

    Example::

        coordinator = AuthenticationCoordinator(app_name="my-overlay")
        coordinator.on_authenticated(lambda ok: print("authenticated:", ok))
        session = coordinator.start_authentication_validation(
            ConnectionInformation.create("client-id", ["chat:read"], "http://localhost:3000")
        )
        session.wait()
    """

    def __init__(
        self,
        app_name: str = "twitchauth",
        authorize_url: str = DEFAULT_AUTHORIZE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        store: Optional[CredentialStore] = None,
        opener: Optional[Callable[[str], object]] = None,
        listener_factory: Callable[[], CallbackListener] = CallbackListener,
    ) -> None:
        self._store = store if store is not None else CredentialStore(app_name)
        self._authorize_url = authorize_url
        self._timeout = timeout
        self._opener = opener
        self._listener_factory = listener_factory
        self._lock = threading.RLock()
        self._state = AuthenticationState.IDLE
        self._session: Optional[AuthenticationSession] = None
        self._callbacks: list[AuthenticatedCallback] = []

    @classmethod
    def from_config(cls, config: GlobalConfig, **kwargs: object) -> AuthenticationCoordinator:
        """Create a coordinator from resolved :class:`~twitchauth.models.GlobalConfig`."""
        return cls(
            app_name=config.app_name,
            authorize_url=config.authorize_url,
            timeout=config.timeout,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def state(self) -> AuthenticationState:
        """``LISTENING`` while an attempt is in flight, otherwise ``IDLE``."""
        return self._state

    @property
    def store(self) -> CredentialStore:
        return self._store

    # ------------------------------------------------------------------
    # Notification channel
    # ------------------------------------------------------------------

    def on_authenticated(self, callback: AuthenticatedCallback) -> None:
        """Register *callback* to receive every attempt's outcome."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: AuthenticatedCallback) -> None:
        """Unregister *callback*. No-op if it was never registered."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _notify(self, success: bool) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(success)
            except Exception:
                logger.exception("on_authenticated callback %r failed", callback)

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------

    def has_token(self) -> bool:
        """Return ``True`` if anything is stored under the token key."""
        return self._store.has()

    def is_authenticated(self) -> bool:
        """Return ``True`` if a stored token exists and deserialises."""
        return self._store.get() is not None

    def get_token(self) -> str:
        """Return the stored access token, or ``""`` if there is none."""
        if not self._store.has():
            logger.warning(
                "Trying to get an access token from the local storage, but there is none stored."
            )
            return ""
        credential = self._store.get()
        if credential is None:
            logger.warning("The stored access token could not be deserialized.")
            return ""
        return credential.access_token

    def reset(self) -> None:
        """Cancel any pending attempt, clear the stored token, and return to ``IDLE``.

        A cancelled attempt still reports ``False`` to the callbacks, and its
        credential is never written after the reset.
        """
        with self._lock:
            if self._session is not None:
                self._session.cancel()
            self._store.clear()
            self._state = AuthenticationState.IDLE
        logger.info("Authentication reset")

    # ------------------------------------------------------------------
    # Authentication flow
    # ------------------------------------------------------------------

    def build_authorization_url(self, connection: ConnectionInformation) -> str:
        """Return the authorization URL for *connection* on this coordinator's endpoint."""
        return build_authorization_url(connection, self._authorize_url)

    def start_authentication_validation(
        self, connection: ConnectionInformation
    ) -> AuthenticationSession:
        """Start an attempt, or report success at once if a valid token is stored.

        Returns immediately; the outcome is delivered to the
        :meth:`on_authenticated` callbacks and through the returned session.

        Raises:
            AuthenticationInProgressError: If another attempt is still
                listening.
        """
        with self._lock:
            if self._state is AuthenticationState.LISTENING:
                raise AuthenticationInProgressError(
                    "An authentication attempt is already in progress"
                )
            session = AuthenticationSession(
                connection, self.build_authorization_url(connection), self._lock
            )
            self._session = session
            immediate: Optional[bool] = None
            failure: Optional[TwitchAuthError] = None

            if self.is_authenticated():
                logger.info("Valid stored token found; no browser login needed")
                immediate = True
            else:
                try:
                    port = connection.redirect_port()
                    listener = self._listener_factory()
                    listener.start(port)
                except (ConfigError, TransportError) as exc:
                    logger.error("Cannot start authentication: %s", exc)
                    immediate = False
                    failure = exc
                else:
                    session._listener = listener
                    session._state = AuthenticationState.LISTENING
                    self._state = AuthenticationState.LISTENING

        if immediate is not None:
            self._finish(session, immediate, failure)
            return session

        thread = threading.Thread(
            target=self._wait_for_callback,
            args=(session, listener),
            name="twitchauth-attempt",
            daemon=True,
        )
        thread.start()
        self._open_browser(session.authorization_url)
        return session

    def authenticate(self, connection: ConnectionInformation) -> bool:
        """Run :meth:`start_authentication_validation` and block for the outcome."""
        return self.start_authentication_validation(connection).wait()

    def _open_browser(self, url: str) -> None:
        opener = self._opener or webbrowser.open
        logger.debug("Opening %s", url)
        try:
            opened = opener(url)
        except Exception as exc:
            logger.warning("Could not open a browser (%s); visit %s to continue", exc, url)
            return
        if opened is False:
            logger.warning("Could not open a browser; visit %s to continue", url)

    def _wait_for_callback(
        self, session: AuthenticationSession, listener: CallbackListener
    ) -> None:
        failure: Optional[TwitchAuthError] = None
        try:
            credential = listener.result.result(timeout=self._timeout)
        except FuturesTimeoutError:
            logger.error("Authentication attempt timed out after %.1f seconds", self._timeout)
            failure = AuthTimeoutError(
                f"No authorization callback received within {self._timeout:g} seconds"
            )
        except CancelledError:
            logger.info("Authentication attempt cancelled")
            failure = AuthError("Authentication attempt was cancelled")
        else:
            failure = self._persist(session, credential)
        finally:
            listener.stop()
        self._finish(session, failure is None, failure)

    def _persist(
        self, session: AuthenticationSession, credential: Credential
    ) -> Optional[TwitchAuthError]:
        with self._lock:
            if session.cancelled:
                logger.info("Discarding credential for a cancelled attempt")
                return AuthError("Authentication attempt was cancelled")
            try:
                self._store.set(credential)
            except OSError as exc:
                logger.error("Could not store access token: %s", exc)
                return StorageError(f"Could not store access token: {exc}")
            session._persisted = True
        return None

    def _finish(
        self,
        session: AuthenticationSession,
        success: bool,
        failure: Optional[TwitchAuthError] = None,
    ) -> None:
        with self._lock:
            session._error = failure
            session._state = (
                AuthenticationState.AUTHENTICATED if success else AuthenticationState.FAILED
            )
            if self._session is session:
                self._state = AuthenticationState.IDLE
        session._notifier = threading.current_thread()
        session._outcome.set_result(success)
        try:
            self._notify(success)
        finally:
            session._notified.set()
