"""Flow commands -- drive the authorization round trip from a shell.

The two phases of the flow run in separate processes: ``authorize`` builds
the request, prints its correlation id and URL, and exits; ``resume`` picks
the pending call up from the session store once the redirect is known.

Typical workflow::

    oauthbridge authorize --options google.json
    oauthbridge resume 3f9a... "myapp:/#access_token=...&state=..."
    oauthbridge status
    oauthbridge logout
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer

from oauthbridge.call import PluginCall
from oauthbridge.exceptions import BridgeError
from oauthbridge.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE
from oauthbridge.output import error, format_response, info, print_table, success, suggest


def _resolve_settings(overrides: Optional[dict[str, Any]] = None):
    from oauthbridge.config import resolve_settings

    try:
        return resolve_settings(overrides)
    except BridgeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _load_options(options_file: Optional[Path], assignments: Optional[list[str]]) -> dict[str, Any]:
    from oauthbridge.config import load_call_options

    try:
        return load_call_options(options_file, assignments)
    except BridgeError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None


def _open_plugin(settings):
    """Build a plugin with entry-point handlers and a synchronous browser launcher."""
    from oauthbridge.handlers import HandlerRegistry
    from oauthbridge.launcher import BrowserLauncher, NullLauncher
    from oauthbridge.plugin import OAuth2ClientPlugin

    registry = HandlerRegistry()
    registry.discover()
    launcher = BrowserLauncher(background=False) if settings.open_browser else NullLauncher()
    return OAuth2ClientPlugin(settings, handlers=registry, launcher=launcher)


def _finish(call: PluginCall, timeout: Optional[float]) -> Optional[dict[str, Any]]:
    """Wait for *call* to settle; exit with the rejection's code on failure."""
    try:
        return call.result(timeout)
    except TimeoutError:
        error(f"No result within {timeout} seconds.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE) from None
    except BridgeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def authorize_command(
    options_file: Optional[Path] = typer.Option(
        None, "--options", help="JSON file with the call options."
    ),
    option: Optional[list[str]] = typer.Option(
        None, "--option", "-O", help="Call option as KEY=VALUE (dotted keys allowed)."
    ),
    browser: Optional[bool] = typer.Option(
        None, "--browser/--no-browser", help="Open the authorization URL in a browser."
    ),
    timeout: float = typer.Option(
        120.0, "--timeout", help="Seconds to wait for a custom handler."
    ),
) -> None:
    """Start an authorization and print the pending request.

    The correlation id identifies the request for ``oauthbridge resume``.
    When the options name a custom handler, the handler runs instead and
    its token payload is printed.

    Example::

        oauthbridge authorize --options google.json
        oauthbridge authorize -O appId=abc -O android.customScheme=myapp ...
    """
    settings = _resolve_settings({"open_browser": browser})
    options = _load_options(options_file, option)

    with _open_plugin(settings) as plugin:
        call = PluginCall("authenticate", options)
        pending = plugin.authenticate(call)
        if pending is None:
            payload = _finish(call, timeout)
            format_response(payload or {})
            return

    format_response({"correlationId": pending.correlation_id, "url": pending.url})
    if not settings.open_browser:
        info("Open the URL above to authorize.")
    suggest(f"oauthbridge resume {pending.correlation_id} <redirect-url>")


def resume_command(
    correlation_id: str = typer.Argument(help="Correlation id printed by 'authorize'."),
    redirect_url: Optional[str] = typer.Argument(
        None, help="Redirect URL received from the authorization server."
    ),
    cancel: bool = typer.Option(
        False, "--cancel", help="Report that the user dismissed the authorization."
    ),
    timeout: float = typer.Option(
        60.0, "--timeout", help="Seconds to wait for token exchange and resource fetch."
    ),
) -> None:
    """Continue a pending authorization and print the token payload.

    Example::

        oauthbridge resume 3f9a... "myapp:/#access_token=abc&state=xyz"
        oauthbridge resume 3f9a... --cancel
    """
    if cancel == (redirect_url is not None):
        error("Pass either a REDIRECT_URL or --cancel.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    settings = _resolve_settings()
    with _open_plugin(settings) as plugin:
        if cancel:
            call = plugin.handle_cancel(correlation_id)
        else:
            call = plugin.handle_redirect(correlation_id, redirect_url)
        if call is None:
            error(f"No pending authorization with id '{correlation_id}'.")
            suggest("oauthbridge status")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        payload = _finish(call, timeout)

    format_response(payload or {})


def logout_command(
    options_file: Optional[Path] = typer.Option(
        None, "--options", help="JSON file with the call options."
    ),
    option: Optional[list[str]] = typer.Option(
        None, "--option", "-O", help="Call option as KEY=VALUE (dotted keys allowed)."
    ),
    timeout: float = typer.Option(30.0, "--timeout", help="Seconds to wait for the logout."),
) -> None:
    """End the session and erase the persisted namespace.

    Example::

        oauthbridge logout
        oauthbridge logout -O android.customHandlerClass=acme
    """
    settings = _resolve_settings()
    options = _load_options(options_file, option)

    with _open_plugin(settings) as plugin:
        call = PluginCall("logout", options)
        plugin.logout(call)
        _finish(call, timeout)

    success("Logged out.")


def status_command() -> None:
    """Show the persisted session: authorization state and pending requests.

    Tokens are never printed.

    Example::

        oauthbridge status
        oauthbridge --json status
    """
    from oauthbridge.session import SessionStore

    settings = _resolve_settings()
    store = SessionStore(settings.session_namespace)
    snapshot = store.load()
    state = snapshot.auth_state

    info(f"Session file: {store.path}")
    authorized = has_refresh = False
    expires_at = failure = None
    if state is not None:
        authorized = state.is_authorized
        has_refresh = state.refresh_token is not None
        expires_at = state.access_token_expires_at
        failure = state.authorization_failure

    rows = [
        ["namespace", store.namespace],
        ["authorized", str(authorized).lower()],
        ["expires_at", expires_at.isoformat() if expires_at else "-"],
        ["refresh_token", str(has_refresh).lower()],
        ["last_failure", failure.describe() if failure else "-"],
    ]
    print_table(["Key", "Value"], rows, title="Session")

    if snapshot.pending:
        pending_rows = [
            [cid, record.method_name, record.created_at.isoformat()]
            for cid, record in snapshot.pending.items()
        ]
        print_table(["Correlation id", "Method", "Created"], pending_rows, title="Pending")
    else:
        info("No pending authorizations.")
