"""twitchauth -- loopback OAuth2 implicit-grant login for Twitch applications.

This package opens the user's browser on the identity provider's
authorization page, captures the redirect on a short-lived local HTTP
listener, and persists the resulting access token so that API clients can
pick it up later.

Typical workflow::

    twitchauth login --client-id env:TWITCH_CLIENT_ID --scope chat:read
    twitchauth token                  # print the stored access token

Or from Python::

    from twitchauth.auth import AuthenticationCoordinator
    from twitchauth.models import ConnectionInformation, Scope

    coordinator = AuthenticationCoordinator()
    coordinator.on_authenticated(lambda ok: print("authenticated:", ok))
    coordinator.start_authentication_validation(
        ConnectionInformation.create("my-client-id", [Scope.CHAT_READ])
    )

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
