"""Loopback implicit-grant authentication for twitchauth.

This package holds the authentication core:

- :class:`CredentialStore` -- single-slot persistent token storage scoped by
  application identity.
- :class:`CallbackListener` -- short-lived local HTTP endpoint that serves
  the fragment-replay page and captures the posted credential.
- :class:`AuthenticationCoordinator` -- the state machine that ties the two
  together with the system browser and a bounded wait.
- :class:`AuthenticationSession` -- handle for one in-flight attempt.

Typical usage::

    from twitchauth.auth import AuthenticationCoordinator
    from twitchauth.models import ConnectionInformation

    coordinator = AuthenticationCoordinator()
    if coordinator.authenticate(ConnectionInformation.create("client-id", ["chat:read"])):
        token = coordinator.get_token()
"""

from twitchauth.auth.coordinator import (
    AuthenticationCoordinator,
    AuthenticationSession,
    build_authorization_url,
)
from twitchauth.auth.credential_store import CredentialStore, token_key
from twitchauth.auth.listener import CALLBACK_PAGE, CallbackListener

__all__ = [
    "AuthenticationCoordinator",
    "AuthenticationSession",
    "CALLBACK_PAGE",
    "CallbackListener",
    "CredentialStore",
    "build_authorization_url",
    "token_key",
]
