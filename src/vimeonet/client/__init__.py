"""Request execution for the Vimeo API.

The package is layered bottom-up:

* :mod:`~vimeonet.client.request` -- immutable :class:`Request`
  descriptions with their retry policy and cache key.
* :mod:`~vimeonet.client.response` -- :class:`Response` with pagination
  and the per-attempt :class:`Result`.
* :mod:`~vimeonet.client.transport` -- the :class:`HTTPExecutor`
  protocol and its :mod:`httpx` implementation.
* :mod:`~vimeonet.client.mapper` -- raw JSON to typed models via
  :mod:`pydantic`.
* :mod:`~vimeonet.client.classification` -- which failures concern the
  whole application.
* :mod:`~vimeonet.client.engine` -- :class:`VimeoClient`, which ties the
  layers together with the response cache and the notification center.

Example::

    from vimeonet.client import MultipleAttempts, Request, Typed, VimeoClient

    with VimeoClient() as client:
        response = client.fetch(
            Request(
                "/me/videos",
                expects=Typed(list[Video]),
                model_key_path="data",
                retry_policy=MultipleAttempts(3, initial_delay=0.5),
            )
        )
"""

from vimeonet.client.engine import RequestToken, VimeoClient
from vimeonet.client.mapper import ModelMapper, PydanticModelMapper
from vimeonet.client.request import (
    NO_RETRY,
    Method,
    MultipleAttempts,
    NoContent,
    NoRetry,
    Request,
    Typed,
    make_cache_key,
)
from vimeonet.client.response import Response, Result
from vimeonet.client.scheduling import InlineExecutor, RetryScheduler
from vimeonet.client.transport import HTTPExecutor, HttpxExecutor, Task

__all__ = [
    "VimeoClient",
    "RequestToken",
    "Request",
    "Method",
    "Typed",
    "NoContent",
    "NoRetry",
    "MultipleAttempts",
    "NO_RETRY",
    "make_cache_key",
    "Response",
    "Result",
    "ModelMapper",
    "PydanticModelMapper",
    "HTTPExecutor",
    "HttpxExecutor",
    "Task",
    "InlineExecutor",
    "RetryScheduler",
]
