"""Responses and completion results.

A :class:`Response` is the value handed to a caller on success: the
mapped model, the raw JSON it came from, whether it was served from the
cache, and pagination metadata. Paginated endpoints answer with a
``paging`` section::

    {
        "total": 100, "page": 1, "per_page": 20,
        "paging": {
            "next": "/videos?page=2", "previous": null,
            "first": "/videos?page=1", "last": "/videos?page=5"
        },
        "data": [...]
    }

Each link becomes a ready-to-execute :class:`~vimeonet.client.request.Request`
derived from the original one, so following a page is just another call
to :meth:`~vimeonet.client.VimeoClient.request`.

Completion callbacks receive a :class:`Result`, which holds either a
response or the error of that attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Mapping, Optional

from vimeonet.client.request import ModelT, Request

PAGING_KEY = "paging"
TOTAL_KEY = "total"
PAGE_KEY = "page"
PER_PAGE_KEY = "per_page"
NEXT_KEY = "next"
PREVIOUS_KEY = "previous"
FIRST_KEY = "first"
LAST_KEY = "last"


@dataclass(frozen=True)
class Response(Generic[ModelT]):
    """Successful outcome of a request.

    Pagination fields are either all populated (the raw response had a
    ``paging`` section) or all ``None``. Individual link requests are
    ``None`` when the server sent no link, e.g. ``previous_page_request``
    on the first page.
    """

    model: ModelT
    raw_json: Mapping[str, Any]
    is_cached_response: bool = False
    total_count: Optional[int] = None
    page: Optional[int] = None
    items_per_page: Optional[int] = None
    next_page_request: Optional[Request[ModelT]] = None
    previous_page_request: Optional[Request[ModelT]] = None
    first_page_request: Optional[Request[ModelT]] = None
    last_page_request: Optional[Request[ModelT]] = None

    @property
    def is_paginated(self) -> bool:
        return self.total_count is not None

    @classmethod
    def from_raw(
        cls,
        model: ModelT,
        raw_json: Mapping[str, Any],
        request: Request[ModelT],
        is_cached_response: bool = False,
    ) -> Response[ModelT]:
        """Build a response, extracting pagination from *raw_json* when present."""
        paging = raw_json.get(PAGING_KEY)
        if not isinstance(paging, Mapping):
            return cls(model=model, raw_json=raw_json, is_cached_response=is_cached_response)

        def page_request(key: str) -> Optional[Request[ModelT]]:
            link = paging.get(key)
            if isinstance(link, str):
                return request.associated_page_request(link)
            return None

        return cls(
            model=model,
            raw_json=raw_json,
            is_cached_response=is_cached_response,
            total_count=_int_value(raw_json, TOTAL_KEY),
            page=_int_value(raw_json, PAGE_KEY),
            items_per_page=_int_value(raw_json, PER_PAGE_KEY),
            next_page_request=page_request(NEXT_KEY),
            previous_page_request=page_request(PREVIOUS_KEY),
            first_page_request=page_request(FIRST_KEY),
            last_page_request=page_request(LAST_KEY),
        )


def _int_value(raw_json: Mapping[str, Any], key: str) -> int:
    """Read a paging counter, defaulting to 0 when it is missing or not an int.

    Only called once a ``paging`` section is present, so a paginated
    response always has integer counters and ``is_paginated`` stays true
    even when the server omits ``total``, ``page`` or ``per_page``.
    """
    value = raw_json.get(key)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


@dataclass(frozen=True)
class Result(Generic[ModelT]):
    """Outcome of one attempt, as delivered to a completion callback."""

    response: Optional[Response[ModelT]] = None
    error: Optional[Exception] = None

    @classmethod
    def success(cls, response: Response[ModelT]) -> Result[ModelT]:
        return cls(response=response)

    @classmethod
    def failure(cls, error: Exception) -> Result[ModelT]:
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    def unwrap(self) -> Response[ModelT]:
        """Return the response, or raise the attempt's error."""
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response
