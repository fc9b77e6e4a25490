"""Canonical Pydantic models shared across all twitchauth modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Authentication values** -- created per login attempt and never mutated:
    :class:`ConnectionInformation`, :class:`Credential`,
    :class:`AuthenticationState`, and the :class:`Scope` identifiers.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`OutputConfig` and :class:`GlobalConfig`.

All models use Pydantic v2. The authentication values are ``frozen`` so an
attempt cannot change its connection details or its result after creation.
"""

from __future__ import annotations

import enum
from typing import Iterable, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from twitchauth.exceptions import ConfigError

DEFAULT_AUTHORIZE_URL = "https://id.twitch.tv/oauth2/authorize"
DEFAULT_REDIRECT_URL = "http://localhost"
DEFAULT_TIMEOUT = 10.0

_DEFAULT_PORTS = {"http": 80, "https": 443}


# --- Authentication values ---


class Scope(str, enum.Enum):
    """Well-known Twitch permission identifiers.

    Any string is accepted where a scope is expected; these are the ones the
    CLI offers by name. See https://dev.twitch.tv/docs/authentication/scopes/
    for the full list.
    """

    CHANNEL_MANAGE_REDEMPTIONS = "channel:manage:redemptions"
    CHANNEL_MANAGE_POLLS = "channel:manage:polls"
    CHAT_READ = "chat:read"
    CHAT_EDIT = "chat:edit"
    USER_READ_SUBSCRIPTIONS = "user:read:subscriptions"


class AuthenticationState(str, enum.Enum):
    """Lifecycle of a single authentication attempt.

    ``IDLE -> LISTENING -> AUTHENTICATED | FAILED``. The two terminal values
    are reported once through the notification channel, after which the
    coordinator is ``IDLE`` again.
    """

    IDLE = "idle"
    LISTENING = "listening"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


def scopes_as_string(scopes: Iterable[str]) -> str:
    """Join permission identifiers the way the authorization request expects.

    Args:
        scopes: Scope identifiers (plain strings or :class:`Scope` members).

    Returns:
        The identifiers separated by single spaces.
    """
    return " ".join(s.value if isinstance(s, Scope) else str(s) for s in scopes)


class ConnectionInformation(BaseModel):
    """Everything needed to start one authentication attempt.

    Example::

        info = ConnectionInformation.create(
            "abc123", [Scope.CHAT_READ, Scope.CHAT_EDIT], "http://localhost:3000"
        )
        assert info.scope == "chat:read chat:edit"
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(description="Application client id issued by Twitch")
    redirect_url: str = Field(
        default=DEFAULT_REDIRECT_URL,
        description="Loopback redirect URL registered for the application",
    )
    scope: str = Field(description="Space-joined permission identifiers")
    state: Optional[str] = Field(
        default=None,
        description="Optional anti-forgery value sent with the authorization request",
    )

    @classmethod
    def create(
        cls,
        client_id: str,
        scopes: Iterable[str],
        redirect_url: str = DEFAULT_REDIRECT_URL,
        state: Optional[str] = None,
    ) -> ConnectionInformation:
        """Build connection information from a list of scopes."""
        return cls(
            client_id=client_id,
            redirect_url=redirect_url,
            scope=scopes_as_string(scopes),
            state=state,
        )

    def redirect_port(self) -> int:
        """Return the TCP port the callback listener must bind.

        The port is taken from :attr:`redirect_url`; when the URL carries no
        explicit port the scheme default (80 for http, 443 for https) is used.

        Raises:
            ConfigError: If the redirect URL is not an absolute http(s) URL
                or its port is not a valid number.
        """
        parsed = urlparse(self.redirect_url)
        if parsed.scheme not in _DEFAULT_PORTS or not parsed.hostname:
            raise ConfigError(
                f"Redirect URL must be an absolute http(s) URL: {self.redirect_url!r}"
            )
        try:
            port = parsed.port
        except ValueError as exc:
            raise ConfigError(
                f"Invalid port in redirect URL {self.redirect_url!r}: {exc}"
            ) from exc
        return port if port is not None else _DEFAULT_PORTS[parsed.scheme]


class Credential(BaseModel):
    """The token, granted scope, and state returned by the identity provider.

    Serialised with camelCase keys (``accessToken``, ``scope``, ``state``),
    the same shape the callback page posts back to the listener. An empty
    access token is rejected so that a stored credential always means a
    usable one.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="accessToken", min_length=1)
    scope: str = ""
    state: str = ""

    def to_json(self) -> str:
        """Serialise to the camelCase JSON form used on disk and on the wire."""
        return self.model_dump_json(by_alias=True)


# --- Configuration models ---


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Record format used when neither --json nor --plain is given"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/twitchauth/config.json``.

    Loaded and saved by :func:`~twitchauth.config.load_global_config` and
    :func:`~twitchauth.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by environment variables or
    CLI flags. See :func:`~twitchauth.config.resolve_config`.
    """

    app_name: str = Field(
        default="twitchauth",
        description="Application identity used to scope the stored token key",
    )
    authorize_url: str = DEFAULT_AUTHORIZE_URL
    redirect_url: str = DEFAULT_REDIRECT_URL
    timeout: float = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Seconds to wait for the callback"
    )
    client_id_source: Optional[str] = Field(
        default=None, description="Client id source: env:VAR, file:/path, prompt"
    )
    scopes: list[str] = Field(default_factory=list)
    output: OutputConfig = Field(default_factory=OutputConfig)
