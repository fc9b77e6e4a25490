"""Exception hierarchy for twitchauth.

All exceptions inherit from :class:`TwitchAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`twitchauth.exit_codes`.
The top-level error handler in :func:`twitchauth.app.main` catches
``TwitchAuthError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Inside the authentication core most of these never reach the caller: the
coordinator folds configuration, transport, and timeout failures into a
``False`` on its notification channel, and the listener discards protocol
errors. They still exist as types so that each failure mode is logged and
tested under its own name.

Subclass hierarchy::

    TwitchAuthError (exit 1)
    +-- InvalidUsageError              (exit 2)
    +-- ConfigError                    (exit 1)
    +-- AuthError                      (exit 3)
    |   +-- AuthTimeoutError           (exit 3)
    |   +-- AuthenticationInProgressError (exit 3)
    +-- TransportError                 (exit 6)
    +-- ProtocolError                  (exit 1)
    +-- StorageError                   (exit 1)
"""

from twitchauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_TRANSPORT_ERROR,
)


class TwitchAuthError(Exception):
    """Base exception for all twitchauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`twitchauth.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(TwitchAuthError):
    """Raised for invalid CLI arguments (e.g. an empty scope selection)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(TwitchAuthError):
    """Raised for configuration problems (unparsable redirect URL, bad config file, bad credential source)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(TwitchAuthError):
    """Raised when authentication fails or no credential is available."""

    exit_code = EXIT_AUTH_FAILURE


class AuthTimeoutError(AuthError):
    """Raised when no valid callback arrives before the attempt's deadline."""


class AuthenticationInProgressError(AuthError):
    """Raised when an attempt is started while another one is still listening."""


class TransportError(TwitchAuthError):
    """Raised when the callback listener cannot bind its port."""

    exit_code = EXIT_TRANSPORT_ERROR


class ProtocolError(TwitchAuthError):
    """Raised when a callback body cannot be turned into a credential."""


class StorageError(TwitchAuthError):
    """Raised when a stored credential exists but cannot be deserialised."""
