"""Declarative request descriptions.

A :class:`Request` says everything the engine needs to perform one API
call: the HTTP method and path, its parameters, what model the response
should be mapped to, how the cache is used, and how failures are
retried. Requests are frozen; the engine derives new values instead of
mutating them, both when retrying (:meth:`Request.retry_request`) and
when following a pagination link (:meth:`Request.associated_page_request`).

Example::

    from vimeonet.client import MultipleAttempts, Request, Typed

    videos = Request(
        path="/me/videos",
        expects=Typed(list[Video]),
        parameters={"per_page": 20},
        model_key_path="data",
        cache_response=True,
        retry_policy=MultipleAttempts(attempts_remaining=3, initial_delay=1.0),
    )
"""

from __future__ import annotations

import dataclasses
import enum
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, Optional, Sequence, TypeVar, Union

ModelT = TypeVar("ModelT")

Parameters = Optional[Union[Mapping[str, Any], Sequence[Any]]]


class Method(str, enum.Enum):
    """HTTP methods available for requests."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


# --- Retry policies ---


@dataclass(frozen=True)
class NoRetry:
    """A failed attempt is reported and never repeated."""

    @property
    def attempts_remaining(self) -> int:
        return 1

    @property
    def should_retry(self) -> bool:
        return False


@dataclass(frozen=True)
class MultipleAttempts:
    """Repeat a failed attempt with exponential backoff.

    Attributes:
        attempts_remaining: Attempts left, including the current one.
            A retry is scheduled only while this is greater than 1.
        initial_delay: Seconds to wait before the next attempt. Each retry
            doubles it.
    """

    attempts_remaining: int
    initial_delay: float

    def __post_init__(self) -> None:
        if self.attempts_remaining < 1:
            raise ValueError(f"attempts_remaining must be at least 1, got {self.attempts_remaining}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must not be negative, got {self.initial_delay}")

    @property
    def should_retry(self) -> bool:
        return self.attempts_remaining > 1

    def next_attempt(self) -> MultipleAttempts:
        """Policy for the following attempt: one fewer attempt, twice the delay."""
        return MultipleAttempts(
            attempts_remaining=self.attempts_remaining - 1,
            initial_delay=self.initial_delay * 2,
        )


RetryPolicy = Union[NoRetry, MultipleAttempts]

NO_RETRY = NoRetry()


# --- Expected result ---


@dataclass(frozen=True)
class Typed(Generic[ModelT]):
    """The response is mapped to ``model_type`` by the model mapper.

    ``model_type`` may be a pydantic model, a builtin such as ``dict`` or
    a parametrised type such as ``list[Video]``.
    """

    model_type: Any


@dataclass(frozen=True)
class NoContent:
    """The endpoint signals success with an empty or non-object body.

    The response model is always ``None``.
    """


Expectation = Union[Typed[Any], NoContent]


def make_cache_key(path: str, parameters: Parameters = None) -> str:
    """Stable cache key for *path* and *parameters*.

    Mapping parameters are serialised with sorted keys, so the key does not
    depend on insertion order.
    """
    parts = [path]
    if parameters:
        parts.append(json.dumps(parameters, sort_keys=True, default=str))
    raw = "|".join(parts)
    return hashlib.sha256(raw.encode()).hexdigest()


@dataclass(frozen=True)
class Request(Generic[ModelT]):
    """Immutable description of one API call.

    Attributes:
        path: Path relative to the client's base URL, or an absolute URL.
        expects: :class:`Typed` model to map the response to, or
            :class:`NoContent`.
        method: HTTP method. Plain strings are accepted and normalised.
        parameters: Query parameters for GET and DELETE, the JSON body for
            POST, PUT and PATCH. A sequence is sent as a JSON array body.
        model_key_path: Dotted path to the object to map, e.g. ``"data"``
            or ``"metadata.connections"``. Empty maps the whole response.
        use_cache: Serve the request from the response cache only. A miss
            is reported as
            :class:`~vimeonet.exceptions.CachedResponseNotFoundError`; the
            network is never consulted.
        cache_response: Store the raw response after it mapped successfully.
        retry_policy: :class:`NoRetry` or :class:`MultipleAttempts`.
        cache_key: Cache identity. Derived from ``path`` and ``parameters``
            when left empty.
    """

    path: str
    expects: Expectation = field(default_factory=lambda: Typed(dict))
    method: Method = Method.GET
    parameters: Parameters = None
    model_key_path: str = ""
    use_cache: bool = False
    cache_response: bool = False
    retry_policy: RetryPolicy = NO_RETRY
    cache_key: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.method, Method):
            object.__setattr__(self, "method", Method(str(self.method).upper()))
        if not self.cache_key:
            object.__setattr__(self, "cache_key", make_cache_key(self.path, self.parameters))

    @property
    def expects_content(self) -> bool:
        return not isinstance(self.expects, NoContent)

    def retry_request(self) -> Request[ModelT]:
        """Copy of this request for the next attempt of its retry chain.

        Raises:
            ValueError: If the retry policy does not allow another attempt.
        """
        policy = self.retry_policy
        if not isinstance(policy, MultipleAttempts) or not policy.should_retry:
            raise ValueError(f"Request for {self.path} has no attempts left to retry")
        return dataclasses.replace(self, retry_policy=policy.next_attempt())

    def associated_page_request(self, new_path: str) -> Request[ModelT]:
        """Copy of this request pointed at a pagination link.

        Paging links carry their own query string, so the original
        parameters are dropped and the cache key is derived again from the
        new path. Method, expected model, key path, cache and retry
        policies are kept.
        """
        return dataclasses.replace(self, path=new_path, parameters=None, cache_key="")
