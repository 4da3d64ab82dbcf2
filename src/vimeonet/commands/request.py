"""The ``vimeonet request`` command -- execute one API request.

Builds a :class:`~vimeonet.client.request.Request` from the command line,
runs it through a :class:`~vimeonet.client.VimeoClient` and prints the
mapped data on stdout. Pagination details go to stderr so that piped
output stays machine-readable.

Example::

    vimeonet request /me/videos -p per_page=5 --key-path data
    vimeonet request /me/videos --cached
    vimeonet request /videos/123 -X DELETE
    vimeonet request /me/videos --pages 3 --retries 3 --retry-delay 0.5
"""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from vimeonet.output import debug, error, format_response, info, success, warning


def parse_params(values: Optional[list[str]]) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values are decoded as JSON when possible.

    ``per_page=10`` yields an integer, ``filter=featured`` a string.

    Raises:
        typer.BadParameter: If a pair has no ``=``.
    """
    params: dict[str, Any] = {}
    for item in values or []:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got: {item}")
        try:
            params[key] = json.loads(raw)
        except json.JSONDecodeError:
            params[key] = raw
    return params


def wait_timeout(request_timeout: float, attempts: int, retry_delay: float) -> float:
    """Longest time one page may take across every attempt of its retry chain.

    Each attempt gets twice the HTTP timeout, and the backoff delays double
    from *retry_delay* between attempts.
    """
    backoff = retry_delay * (2 ** (attempts - 1) - 1)
    return 2 * request_timeout * attempts + backoff


def create_client(base_url: Optional[str] = None):  # noqa: ANN201
    """Build a :class:`~vimeonet.client.VimeoClient` from the resolved configuration.

    The bearer token named by ``access_token_source`` is installed, and
    client-wide notifications are reported as warnings on stderr.

    Raises:
        ConfigError: If the configuration or the credential source is invalid.
    """
    from vimeonet.client import VimeoClient
    from vimeonet.config import resolve_access_token, resolve_config
    from vimeonet.notifications import Notification

    config = resolve_config(cli_base_url=base_url)
    client = VimeoClient(config)
    client.notifications.subscribe(
        Notification.SERVICE_UNAVAILABLE,
        lambda payload: warning("The Vimeo API is unavailable (HTTP 503)."),
    )
    client.notifications.subscribe(
        Notification.INVALID_TOKEN,
        lambda payload: warning("The access token was rejected; update access_token_source."),
    )
    token = resolve_access_token(config)
    if token:
        client.set_access_token(token)
    return client


def request_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="API path, e.g. /me/videos."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Request parameter as key=value (repeatable)."
    ),
    key_path: str = typer.Option(
        "", "--key-path", "-k", help="Dotted path of the data to print, e.g. 'data'."
    ),
    cached: bool = typer.Option(
        False, "--cached", help="Serve from the response cache only; never hit the network."
    ),
    cache_response: bool = typer.Option(
        False, "--cache-response", help="Store the response in the cache."
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries", min=1, help="Total attempts (default from config)."
    ),
    retry_delay: Optional[float] = typer.Option(
        None, "--retry-delay", min=0.0, help="Delay before the first retry in seconds."
    ),
    pages: int = typer.Option(1, "--pages", min=1, help="Follow next-page links up to N pages."),
) -> None:
    """Execute an API request and print the result.

    Exits with the failing error's exit code (see :mod:`vimeonet.exit_codes`).
    """
    from vimeonet.client import NO_RETRY, Method, MultipleAttempts, NoContent, Request, Typed
    from vimeonet.exceptions import VimeoNetError

    try:
        http_method = Method(method.upper())
    except ValueError:
        error(f"Unsupported HTTP method: {method}")
        raise typer.Exit(code=2) from None

    parameters = parse_params(param)
    base_url = ctx.obj.get("base_url") if ctx.obj else None

    try:
        client = create_client(base_url)
    except VimeoNetError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    with client:
        attempts = retries or client.config.request.retry_attempts
        delay = retry_delay if retry_delay is not None else client.config.request.retry_initial_delay
        request = Request(
            path,
            expects=NoContent() if http_method == Method.DELETE else Typed(Any),
            method=http_method,
            parameters=parameters or None,
            model_key_path=key_path,
            use_cache=cached,
            cache_response=cache_response,
            retry_policy=MultipleAttempts(attempts, delay) if attempts > 1 else NO_RETRY,
        )
        debug(f"{request.method.value} {request.path} (cache key {request.cache_key})")

        try:
            timeout = wait_timeout(client.config.request.timeout, attempts, delay)
            for response in client.pages(request, limit=pages, timeout=timeout):
                if response.is_cached_response:
                    debug("Served from cache")
                if response.model is not None:
                    format_response(response.model)
                elif response.raw_json:
                    format_response(dict(response.raw_json))
                else:
                    success("Done (no content).")
                if response.is_paginated:
                    info(
                        f"Page {response.page} · {response.items_per_page} per page "
                        f"· {response.total_count} total"
                    )
        except VimeoNetError as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
        except TimeoutError as exc:
            error(str(exc))
            raise typer.Exit(code=1) from None
