"""Where twitchauth keeps its files, and how a login's settings are resolved.

* **Directories** -- :func:`get_config_dir` holds ``config.json``;
  :func:`get_data_dir` holds crash logs and, under ``credentials/``, the
  stored tokens. Linux and BSD follow ``XDG_CONFIG_HOME`` /
  ``XDG_DATA_HOME``; other platforms use ``~/.twitchauth``.
* **Defaults file** -- :func:`load_global_config` / :func:`save_global_config`
  read and write the user's :class:`~twitchauth.models.GlobalConfig`.
* **Effective settings** -- :func:`resolve_config` layers CLI flags over
  ``TWITCHAUTH_*`` variables over the defaults file.
* **Client id** -- :func:`resolve_client_id` turns a source descriptor
  (``env:``, ``file:``, ``prompt`` or a literal id) into the id itself.

Both the defaults file and the token files are replaced with
:func:`atomic_write`, so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional

from twitchauth.exceptions import ConfigError
from twitchauth.models import GlobalConfig

_APP_NAME = "twitchauth"
_CONFIG_FILENAME = "config.json"

ENV_CLIENT_ID = "TWITCHAUTH_CLIENT_ID"
ENV_REDIRECT_URL = "TWITCHAUTH_REDIRECT_URL"
ENV_TIMEOUT = "TWITCHAUTH_TIMEOUT"
ENV_APP_NAME = "TWITCHAUTH_APP_NAME"


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(xdg_var: str, xdg_default: str, fallback: str) -> Path:
    """Return (and create) twitchauth's directory of one kind.

    *xdg_default* is relative to ``$HOME`` and used when *xdg_var* is unset;
    *fallback* is relative to ``~/.twitchauth`` on non-XDG platforms.
    """
    if _is_xdg_platform():
        root = os.environ.get(xdg_var) or str(Path.home() / xdg_default)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / fallback
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/twitchauth`` (default ``~/.config/twitchauth``), or ``~/.twitchauth``."""
    return _app_dir("XDG_CONFIG_HOME", ".config", "")


def get_data_dir() -> Path:
    """``$XDG_DATA_HOME/twitchauth`` (default ``~/.local/share/twitchauth``), or ``~/.twitchauth/data``."""
    return _app_dir("XDG_DATA_HOME", ".local/share", "data")


def get_credentials_dir() -> Path:
    """Directory holding one JSON file per application's token slot."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* in a single rename.

    The text goes to a sibling temp file first, is fsync'd, and is then moved
    over *path* with :func:`os.replace`. Readers see either the old content
    or the new content, never a mix. The temp file is removed if anything
    fails, including ``KeyboardInterrupt``.

    Args:
        path: Destination file. Missing parent directories are created.
        data: UTF-8 text to write.
        mode: Permission bits for the new file, e.g. ``0o600`` for tokens.
            They are set before the content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if mode is not None:
            os.chmod(tmp_name, mode)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


# --- Defaults file ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Read the defaults file, or return built-in defaults if there is none.

    Raises:
        ConfigError: If the file is not valid JSON or does not validate as
            :class:`~twitchauth.models.GlobalConfig`.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    atomic_write(_global_config_path(), config.model_dump_json(indent=2) + "\n")


# --- Effective settings ---


def resolve_config(
    cli_client_id: Optional[str] = None,
    cli_redirect_url: Optional[str] = None,
    cli_timeout: Optional[float] = None,
    cli_scopes: Optional[list[str]] = None,
) -> GlobalConfig:
    """Resolve the settings for one login attempt.

    CLI flags win over environment variables, which win over the defaults
    file. ``TWITCHAUTH_CLIENT_ID`` holds the id itself and is recorded as
    the source ``env:TWITCHAUTH_CLIENT_ID``; ``cli_client_id`` is a source
    descriptor (see :func:`resolve_client_id`). An empty ``cli_scopes`` list
    keeps the configured scopes.

    Returns:
        A new :class:`~twitchauth.models.GlobalConfig`. The file on disk is
        left untouched.

    Raises:
        ConfigError: If the defaults file is invalid, ``TWITCHAUTH_TIMEOUT``
            is not a number, or the merged settings fail validation.
    """
    config = load_global_config()
    overrides: dict[str, object] = {}

    env = os.environ
    if env.get(ENV_CLIENT_ID):
        overrides["client_id_source"] = f"env:{ENV_CLIENT_ID}"
    if env.get(ENV_REDIRECT_URL):
        overrides["redirect_url"] = env[ENV_REDIRECT_URL]
    if env.get(ENV_APP_NAME):
        overrides["app_name"] = env[ENV_APP_NAME]
    if env.get(ENV_TIMEOUT):
        try:
            overrides["timeout"] = float(env[ENV_TIMEOUT])
        except ValueError:
            raise ConfigError(
                f"{ENV_TIMEOUT} must be a number of seconds, got: {env[ENV_TIMEOUT]}"
            ) from None

    flags = {
        "client_id_source": cli_client_id,
        "redirect_url": cli_redirect_url,
        "timeout": cli_timeout,
        "scopes": list(cli_scopes) if cli_scopes else None,
    }
    overrides.update({key: value for key, value in flags.items() if value is not None})

    if not overrides:
        return config
    try:
        return GlobalConfig.model_validate({**config.model_dump(), **overrides})
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# --- Client id ---


def resolve_client_id(source: str) -> str:
    """Return the client id named by *source*.

    ``env:VAR`` reads an environment variable, ``file:PATH`` reads a file
    (surrounding whitespace stripped), ``prompt`` asks on the terminal, and
    anything else is taken as the id itself.

    Raises:
        ConfigError: If the variable or file is missing, or ``prompt`` is
            used without a terminal.
    """
    kind, _, rest = source.partition(":")

    if kind == "env" and rest:
        value = os.environ.get(rest)
        if value is None:
            raise ConfigError(f"Environment variable '{rest}' is not set (source: {source})")
        return value

    if kind == "file" and rest:
        path = Path(rest).expanduser()
        if not path.is_file():
            raise ConfigError(f"Client id file not found: {path}")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read client id file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for the client id: stdin is not a terminal")
        return getpass.getpass("Twitch client id: ")

    if not source:
        raise ConfigError("Empty client id source")
    return source
