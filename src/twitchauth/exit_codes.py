"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~twitchauth.exceptions.TwitchAuthError` subclass.
Shell wrappers can inspect the exit code to find out why a login failed
without parsing stderr.

Example::

    $ twitchauth login --scope chat:read
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- no valid callback before the timeout
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed or no credential is stored."""

EXIT_TRANSPORT_ERROR = 6
"""The local callback listener could not bind its port."""
