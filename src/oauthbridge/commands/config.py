"""Config commands -- view and modify global settings.

Provides the ``oauthbridge config`` sub-command group for reading, updating,
and resetting :class:`~oauthbridge.models.BridgeSettings`. Values stored here
are the lowest-precedence layer; ``OAUTHBRIDGE_*`` environment variables
and CLI flags override them.
"""

from __future__ import annotations

import typer

from oauthbridge.exit_codes import EXIT_INVALID_USAGE
from oauthbridge.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)

_NONE_VALUES = ("none", "null", "")


@config_app.command("show")
def config_show() -> None:
    """Show the stored settings.

    Example::

        oauthbridge config show
        oauthbridge --json config show
    """
    from oauthbridge.config import get_config_dir, load_settings

    info(f"Config directory: {get_config_dir()}")
    format_response(load_settings().model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting name, e.g. 'code_flow'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a single setting.

    Booleans accept ``true``/``1``/``yes``; timeouts accept a number or
    ``none``. The result is validated before it is saved.

    Example::

        oauthbridge config set code_flow pkce
        oauthbridge config set token_timeout 10
        oauthbridge config set distinguish_cancel true
    """
    from oauthbridge.config import load_settings, save_settings
    from oauthbridge.models import BridgeSettings

    data = load_settings().model_dump(mode="json")
    if key not in BridgeSettings.model_fields:
        error(f"Unknown setting: {key}")
        info("Available: " + ", ".join(BridgeSettings.model_fields))
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    current = data[key]
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    elif key.endswith("_timeout") and value.lower() in _NONE_VALUES:
        coerced = None
    else:
        coerced = value

    data[key] = coerced
    try:
        settings = BridgeSettings.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_settings(settings)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset settings to defaults. Asks for confirmation unless ``--force``.

    Example::

        oauthbridge --force config reset
    """
    from oauthbridge.config import save_settings
    from oauthbridge.models import BridgeSettings

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all settings to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_settings(BridgeSettings())
    success("Settings reset to defaults.")
