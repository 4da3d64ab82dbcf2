"""Config commands -- view and modify the vimeonet configuration.

Provides the ``vimeonet config`` sub-command group for reading, updating
and resetting the configuration file
(:class:`~vimeonet.models.ClientConfig`) in the vimeonet config directory.
"""

from __future__ import annotations

from typing import Any

import typer

from vimeonet.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_NULL_VALUES = ("none", "null", "")


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Environment overrides (``VIMEONET_BASE_URL`` and friends) are applied,
    so this is what ``vimeonet request`` will use.

    Example::

        vimeonet config show
        vimeonet --json config show
    """
    from vimeonet.config import config_path, resolve_config
    from vimeonet.exceptions import ConfigError

    try:
        config = resolve_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config file: {config_path()}")
    format_response(config.model_dump(mode="json"))


def _coerce(key: str, current: Any, value: str) -> Any:
    """Convert *value* to the type of the field's *current* value."""
    if value.lower() in _NULL_VALUES and current is None:
        return None
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if value.lower() in _NULL_VALUES:
        return None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g., 'cache.ttl_seconds')."),
    value: str = typer.Argument(help="Value to set; 'none' clears an optional key."),
) -> None:
    """Set a configuration value.

    The value is coerced to the existing field's type and the result is
    validated against :class:`~vimeonet.models.ClientConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key is unknown, the value cannot be
            coerced, or validation fails.

    Example::

        vimeonet config set access_token_source env:VIMEO_TOKEN
        vimeonet config set request.retry_attempts 3
        vimeonet config set cache.ttl_seconds 600
    """
    from pydantic import ValidationError

    from vimeonet.config import load_config, save_config
    from vimeonet.exceptions import ConfigError
    from vimeonet.models import ClientConfig

    try:
        config = load_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = ClientConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Reset the configuration to defaults.

    Example::

        vimeonet config reset --yes
    """
    from vimeonet.config import save_config
    from vimeonet.models import ClientConfig

    if not yes and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_config(ClientConfig())
    success("Configuration reset to defaults.")
