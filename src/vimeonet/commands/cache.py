"""Cache commands -- inspect and clear the response cache.

The ``vimeonet cache`` group operates on the same
:class:`~vimeonet.cache.ResponseCache` directory the request engine uses.
Only the disk layer outlives a process, so ``stats`` reports the
persisted entries.
"""

from __future__ import annotations

from typing import Optional

import typer

from vimeonet.output import error, print_data, print_mapping, success

cache_app = typer.Typer(no_args_is_help=True)


def _open_cache():  # noqa: ANN202
    """Open the configured response cache, exiting with a message on failure."""
    from vimeonet.cache import ResponseCache
    from vimeonet.config import get_cache_dir, resolve_config
    from vimeonet.exceptions import VimeoNetError

    try:
        config = resolve_config()
        return ResponseCache(config.cache, config.cache.directory or get_cache_dir())
    except VimeoNetError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@cache_app.command("stats")
def cache_stats() -> None:
    """Show entry counts, location and TTL of the response cache.

    Example::

        vimeonet cache stats
        vimeonet --json cache stats
    """
    cache = _open_cache()
    try:
        print_mapping(cache.stats(), title="Response cache")
    finally:
        cache.close()


@cache_app.command("clear")
def cache_clear() -> None:
    """Remove every cached response."""
    cache = _open_cache()
    try:
        cache.clear()
    finally:
        cache.close()
    success("Response cache cleared.")


@cache_app.command("remove")
def cache_remove(
    key: str = typer.Argument(help="Cache key, as printed by 'vimeonet cache key'."),
) -> None:
    """Remove the cached response stored under KEY."""
    cache = _open_cache()
    try:
        cache.remove_response(key)
    finally:
        cache.close()
    success(f"Removed {key}.")


@cache_app.command("key")
def cache_key(
    path: str = typer.Argument(help="API path, e.g. /me/videos."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Request parameter as key=value (repeatable)."
    ),
) -> None:
    """Print the cache key a request for PATH with the given parameters uses.

    Example::

        vimeonet cache key /me/videos -p page=2
    """
    from vimeonet.client import make_cache_key
    from vimeonet.commands.request import parse_params

    parameters = parse_params(param)
    print_data(make_cache_key(path, parameters or None))
