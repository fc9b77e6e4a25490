"""Auth commands -- log in through the browser and manage the stored token.

These commands are registered directly on the root app. Each one builds an
:class:`~twitchauth.auth.AuthenticationCoordinator` from the resolved
configuration (CLI flags > ``TWITCHAUTH_*`` env vars > config file), so the
token slot they act on is always the one for the configured ``app_name``.

Typical workflow::

    twitchauth login --client-id env:TWITCH_CLIENT_ID --scope chat:read
    TOKEN=$(twitchauth token)
    twitchauth --force logout
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

import typer

from twitchauth.exit_codes import EXIT_AUTH_FAILURE
from twitchauth.output import error, info, print_data, print_record, success, suggest

if TYPE_CHECKING:
    from twitchauth.auth import AuthenticationCoordinator
    from twitchauth.models import ConnectionInformation, GlobalConfig


_CLIENT_ID_HELP = "Client id source: env:VAR, file:/path, prompt, or the id itself."
_SCOPE_HELP = "Permission to request (repeatable), e.g. chat:read."


def _build_connection(
    client_id: Optional[str],
    scopes: Optional[List[str]],
    redirect_url: Optional[str],
    timeout: Optional[float],
    state: Optional[str],
) -> tuple[GlobalConfig, ConnectionInformation]:
    """Resolve configuration and turn it into connection information.

    Returns:
        ``(config, connection)``.

    Raises:
        typer.Exit: With the error's exit code if the configuration is
            invalid, no client id is configured, or no scope was selected.
    """
    from twitchauth.config import resolve_client_id, resolve_config
    from twitchauth.exceptions import ConfigError, InvalidUsageError, TwitchAuthError
    from twitchauth.models import ConnectionInformation

    hint: Optional[str] = None
    try:
        config = resolve_config(
            cli_client_id=client_id,
            cli_redirect_url=redirect_url,
            cli_timeout=timeout,
            cli_scopes=scopes,
        )
        if not config.client_id_source:
            hint = "Pass --client-id or set TWITCHAUTH_CLIENT_ID."
            raise ConfigError("No client id configured.")
        if not config.scopes:
            hint = "Pass --scope, e.g. --scope chat:read"
            raise InvalidUsageError("At least one scope is required.")
        resolved_id = resolve_client_id(config.client_id_source)
        connection = ConnectionInformation.create(
            resolved_id, config.scopes, config.redirect_url, state
        )
    except TwitchAuthError as exc:
        error(str(exc))
        if hint:
            suggest(hint)
        raise typer.Exit(code=exc.exit_code) from None
    return config, connection


def _coordinator() -> AuthenticationCoordinator:
    """Build a coordinator for the configured application identity."""
    from twitchauth.auth import AuthenticationCoordinator
    from twitchauth.config import resolve_config
    from twitchauth.exceptions import ConfigError

    try:
        config = resolve_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    return AuthenticationCoordinator.from_config(config)


def login_command(
    client_id: Optional[str] = typer.Option(None, "--client-id", "-c", help=_CLIENT_ID_HELP),
    scope: Optional[List[str]] = typer.Option(None, "--scope", "-s", help=_SCOPE_HELP),
    redirect_url: Optional[str] = typer.Option(
        None, "--redirect-url", help="Loopback redirect URL registered for the app."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for the browser callback."
    ),
    state: Optional[str] = typer.Option(
        None, "--state", help="Anti-forgery value sent with the authorization request."
    ),
) -> None:
    """Log in through the browser and store the access token.

    If a valid token is already stored the command succeeds without opening
    a browser. Otherwise a local listener is started on the redirect URL's
    port, the authorization page is opened, and the command waits for the
    callback.

    Raises:
        typer.Exit: With code 2 for an empty scope selection, code 3 if the
            login times out or is rejected, code 6 if the redirect port is
            in use.

    Example::

        twitchauth login -c env:TWITCH_CLIENT_ID -s chat:read -s chat:edit
        twitchauth login --redirect-url http://localhost:3000 --timeout 60
    """
    from twitchauth.auth import AuthenticationCoordinator
    from twitchauth.exceptions import AuthError

    config, connection = _build_connection(client_id, scope, redirect_url, timeout, state)
    coordinator = AuthenticationCoordinator.from_config(config)

    if not coordinator.is_authenticated():
        info("Opening your browser to authorize the application...")
        info(f"If nothing opens, visit: {coordinator.build_authorization_url(connection)}")

    session = coordinator.start_authentication_validation(connection)
    try:
        authenticated = session.wait()
    finally:
        # Ctrl-C reaches here as SystemExit from the SIGINT handler.
        if not session.done:
            session.cancel()

    if not authenticated:
        failure = session.error or AuthError("Authentication failed.")
        error(str(failure))
        suggest(f"Retry: twitchauth login (waited up to {config.timeout:g}s)")
        raise typer.Exit(code=failure.exit_code)

    success(f'Authenticated as "{config.app_name}".')
    suggest("Print the token: twitchauth token")


def status_command() -> None:
    """Show whether an access token is stored for the configured application.

    Example::

        twitchauth status
        twitchauth status --json
    """
    coordinator = _coordinator()
    store = coordinator.store
    credential = store.get()

    data = {
        "key": store.key,
        "authenticated": credential is not None,
        "scope": credential.scope if credential else "",
        "path": str(store.path),
    }
    print_record(data, title="Stored Token")

    if credential is None:
        suggest("Log in: twitchauth login")


def token_command() -> None:
    """Print the stored access token to stdout.

    Raises:
        typer.Exit: With code 3 if no usable token is stored.

    Example::

        TOKEN=$(twitchauth token)
    """
    coordinator = _coordinator()
    if not coordinator.is_authenticated():
        error("No access token stored.")
        suggest("Log in first: twitchauth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    print_data(coordinator.get_token())


def logout_command(ctx: typer.Context) -> None:
    """Remove the stored access token.

    Asks for confirmation unless ``--force`` is active.

    Example::

        twitchauth logout
        twitchauth --force logout
    """
    coordinator = _coordinator()
    if not coordinator.has_token():
        info("No access token stored.")
        return

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Remove the stored access token?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    coordinator.reset()
    success("Stored access token removed.")


def url_command(
    client_id: Optional[str] = typer.Option(None, "--client-id", "-c", help=_CLIENT_ID_HELP),
    scope: Optional[List[str]] = typer.Option(None, "--scope", "-s", help=_SCOPE_HELP),
    redirect_url: Optional[str] = typer.Option(
        None, "--redirect-url", help="Loopback redirect URL registered for the app."
    ),
    state: Optional[str] = typer.Option(
        None, "--state", help="Anti-forgery value sent with the authorization request."
    ),
) -> None:
    """Print the authorization URL without starting a login.

    Example::

        twitchauth url -c abc123 -s chat:read
    """
    from twitchauth.auth import build_authorization_url

    config, connection = _build_connection(client_id, scope, redirect_url, None, state)
    print_data(build_authorization_url(connection, config.authorize_url))
