"""vimeonet -- a request engine and command line client for the Vimeo API.

The library executes API requests on background threads and reports
each outcome to a completion callback. Requests may be served from a
two-layer response cache, retried with exponential backoff, and mapped
onto :mod:`pydantic` models. Paginated responses carry ready-made
requests for their neighbouring pages. Failures that concern the whole
application, such as an outage or a revoked token, are broadcast to
observers.

Typical use::

    vimeonet config set access_token_source env:VIMEO_TOKEN
    vimeonet request /me/videos -p per_page=10 --pages 2

Modules:
    client: Request engine, transport and model mapping.
    cache: Memory and disk response cache.
    notifications: Client-wide event broadcasting.
    models: Pydantic configuration models.
    config: XDG-aware configuration loading and credential resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    app: Typer application and CLI entry point.
"""

__version__ = "0.1.0"
