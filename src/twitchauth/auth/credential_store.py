"""Persistent single-slot token store scoped per application.

Stores the credential in ``~/.local/share/twitchauth/credentials/<key>.json``
(XDG) or the platform-equivalent directory, where ``<key>`` is
``<app_name>__Auth__OAuthToken``. There is exactly one slot per application
identity; whether that file exists is the only thing that decides whether a
token "is stored".

Writes go through :func:`~twitchauth.config.atomic_write` with ``0o600``
permissions so that tokens are never world-readable, even momentarily.
Reads never raise: a file that cannot be parsed into a
:class:`~twitchauth.models.Credential` is logged and treated as absent.

See Also:
    :class:`~twitchauth.auth.coordinator.AuthenticationCoordinator` -- the
    only writer of the store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from twitchauth.config import atomic_write, get_credentials_dir
from twitchauth.exceptions import StorageError
from twitchauth.models import Credential

logger = logging.getLogger(__name__)

_KEY_SUFFIX = "__Auth__OAuthToken"


def token_key(app_name: str) -> str:
    """Return the storage key for *app_name*'s access token."""
    return f"{app_name}{_KEY_SUFFIX}"


class CredentialStore:
    """Read/write the stored credential for one application.

    Args:
        app_name: Application identity used to derive the storage key.

    Example::

        store = CredentialStore("my-overlay")
        store.set(Credential(access_token="tok123", scope="chat:read"))
        assert store.get().access_token == "tok123"
    """

    def __init__(self, app_name: str = "twitchauth") -> None:
        self._key = token_key(app_name)
        self._path = get_credentials_dir() / f"{self._key}.json"

    @property
    def key(self) -> str:
        """The application-scoped storage key."""
        return self._key

    @property
    def path(self) -> Path:
        """The filesystem path backing the slot."""
        return self._path

    def has(self) -> bool:
        """Return ``True`` if a value exists under the key, valid or not."""
        return self._path.is_file()

    def get(self) -> Optional[Credential]:
        """Load the stored credential.

        Returns:
            The deserialised :class:`~twitchauth.models.Credential`, or
            ``None`` if nothing is stored or the stored value is unreadable.
        """
        if not self.has():
            return None
        try:
            return self._read()
        except StorageError as exc:
            logger.warning("Ignoring stored token: %s", exc)
            return None

    def _read(self) -> Credential:
        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Cannot read {self._path}: {exc}") from exc
        try:
            return Credential.model_validate_json(text)
        except ValidationError as exc:
            raise StorageError(
                f"Could not deserialize token stored at {self._path}: "
                f"{exc.error_count()} validation error(s)"
            ) from exc

    def set(self, credential: Credential) -> None:
        """Persist *credential*, replacing any previous value.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        atomic_write(self._path, credential.to_json() + "\n", mode=0o600)
        logger.debug("Stored token under %s", self._key)

    def clear(self) -> None:
        """Delete the stored credential. No-op when nothing is stored."""
        self._path.unlink(missing_ok=True)
