"""Config commands -- inspect and change the login defaults.

``twitchauth config`` edits the user's
:class:`~twitchauth.models.GlobalConfig`: the client id source, scopes,
redirect URL, timeout, the application identity that names the token slot,
and the default output format. ``login`` and ``url`` fall back to these
values when a flag or ``TWITCHAUTH_*`` variable does not override them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import typer

from twitchauth.exit_codes import EXIT_INVALID_USAGE
from twitchauth.output import error, info, print_record, success

if TYPE_CHECKING:
    from twitchauth.models import GlobalConfig


config_app = typer.Typer(no_args_is_help=True)


def _load_or_exit() -> GlobalConfig:
    from twitchauth.config import load_global_config
    from twitchauth.exceptions import ConfigError

    try:
        return load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _usage_error(message: str) -> typer.Exit:
    error(message)
    return typer.Exit(code=EXIT_INVALID_USAGE)


def _parse_value(key: str, current: Any, value: str) -> Any:
    """Read *value* the way ``config show --plain`` prints the setting."""
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            raise _usage_error(f"Expected a number for {key}, got: {value}") from None
    return value


@config_app.command("show")
def config_show() -> None:
    """Show the saved defaults.

    Example::

        twitchauth config show
        twitchauth --json config show
    """
    from twitchauth.config import get_config_dir

    config = _load_or_exit()
    info(f"Config directory: {get_config_dir()}")
    print_record(config.model_dump(mode="json"), title="Configuration")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Setting name as shown by 'config show', e.g. 'output.format'."
    ),
    value: str = typer.Argument(help="New value; comma-separated for scopes."),
) -> None:
    """Change one saved default.

    ``scopes`` takes a comma-separated list and ``timeout`` a number of
    seconds; other settings are text. The result must still validate as
    :class:`~twitchauth.models.GlobalConfig` before it is saved.

    Raises:
        typer.Exit: With code 2 for an unknown key, a whole section, or a
            value that does not validate.

    Example::

        twitchauth config set client_id_source env:TWITCH_CLIENT_ID
        twitchauth config set scopes chat:read,chat:edit
        twitchauth config set timeout 30
    """
    from pydantic import ValidationError

    from twitchauth.config import save_global_config
    from twitchauth.models import GlobalConfig

    data = _load_or_exit().model_dump(mode="json")
    *sections, name = key.split(".")
    section: Any = data
    for part in sections:
        section = section.get(part) if isinstance(section, dict) else None
    if not isinstance(section, dict) or name not in section:
        raise _usage_error(f"Unknown config key: {key}")
    if isinstance(section[name], dict):
        first = next(iter(section[name]), "")
        raise _usage_error(f"{key} is a section; set one of its keys, e.g. {key}.{first}")

    section[name] = _parse_value(key, section[name], value)
    try:
        updated = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise _usage_error(f"Invalid value for {key}: {exc.errors()[0]['msg']}") from None

    save_global_config(updated)
    success(f"Set {key} = {value}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Restore the built-in defaults.

    Asks first unless ``--force`` is active. The stored access token stays;
    ``twitchauth logout`` removes it.

    Example::

        twitchauth --force config reset
    """
    from twitchauth.config import save_global_config
    from twitchauth.models import GlobalConfig

    if not (ctx.obj or {}).get("force", False):
        if not typer.confirm("Restore the default configuration?"):
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration restored to defaults.")
