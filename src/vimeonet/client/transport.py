"""HTTP executor: the transport the request engine dispatches through.

The engine talks to the network only through the :class:`HTTPExecutor`
protocol. ``perform`` starts a request and returns a :class:`Task`
handle; exactly one of the two callbacks is later invoked, from a
transport thread:

* ``success(task, body)`` -- ``body`` is the decoded JSON value, raw
  ``bytes`` for a non-JSON body, or ``None`` for an empty one.
* ``failure(task, error)`` -- ``error`` is a
  :class:`~vimeonet.exceptions.TransportError`; a cancelled task reports
  :class:`~vimeonet.exceptions.RequestCancelledError`, and parameters that
  cannot be encoded report :class:`~vimeonet.exceptions.RequestMalformedError`.

:class:`HttpxExecutor` implements the protocol on top of
:class:`httpx.Client`, running each request on a small thread pool. It
owns the headers shared by all requests: the versioned ``Accept`` header
and, once the client is authenticated, ``Authorization: Bearer <token>``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Mapping, Optional, Protocol

import httpx

from vimeonet.client.request import Method, Parameters
from vimeonet.exceptions import RequestCancelledError, RequestMalformedError, TransportError
from vimeonet.models import ClientConfig

logger = logging.getLogger(__name__)


class Task:
    """Handle to one in-flight HTTP request.

    Cancellation is best effort: a request that already reached the server
    is not aborted, but its outcome is reported as a cancellation.

    Attributes:
        method: HTTP method of the request.
        path: Request path or URL.
        request_headers: Headers sent with the request, including the
            ``Authorization`` header when one was set.
    """

    def __init__(self, method: Method, path: str, request_headers: Mapping[str, str]) -> None:
        self.method = method
        self.path = path
        self.request_headers = dict(request_headers)
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def __repr__(self) -> str:
        return f"Task({self.method.value} {self.path}, cancelled={self.cancelled})"


SuccessCallback = Callable[[Task, Any], None]
FailureCallback = Callable[[Optional[Task], Exception], None]


class HTTPExecutor(Protocol):
    """Transport contract consumed by :class:`~vimeonet.client.VimeoClient`."""

    def perform(
        self,
        method: Method,
        path: str,
        parameters: Parameters,
        headers: Optional[Mapping[str, str]],
        success: SuccessCallback,
        failure: FailureCallback,
    ) -> Optional[Task]:
        """Start a request, returning its task or ``None`` if it cannot be issued."""
        ...

    def set_bearer_token(self, token: Optional[str]) -> None:
        """Send ``Authorization: Bearer <token>`` with later requests; ``None`` clears it."""
        ...

    def close(self) -> None:
        ...


class HttpxExecutor:
    """:class:`HTTPExecutor` backed by :class:`httpx.Client` and a thread pool.

    Args:
        config: Client configuration (base URL, timeouts, headers).
        client: Optional pre-built :class:`httpx.Client`, e.g. one with a
            mock transport in tests. Its ``base_url`` is used as is.
        pool: Optional executor the blocking HTTP calls run on. Defaults to
            a thread pool sized by ``config.request.max_connections``.
    """

    def __init__(
        self,
        config: ClientConfig,
        client: Optional[httpx.Client] = None,
        pool: Optional[Executor] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=config.base_url,
            timeout=config.request.timeout,
            verify=config.request.verify_ssl,
            follow_redirects=True,
        )
        self._owns_pool = pool is None
        self._pool = pool or ThreadPoolExecutor(
            max_workers=config.request.max_connections,
            thread_name_prefix="vimeonet-http",
        )
        self._lock = threading.Lock()
        self._headers: dict[str, str] = {"Accept": config.accept_header}
        if config.user_agent:
            self._headers["User-Agent"] = config.user_agent

    @property
    def headers(self) -> dict[str, str]:
        """Copy of the headers sent with every request."""
        with self._lock:
            return dict(self._headers)

    def set_bearer_token(self, token: Optional[str]) -> None:
        with self._lock:
            if token:
                self._headers["Authorization"] = f"Bearer {token}"
            else:
                self._headers.pop("Authorization", None)

    def perform(
        self,
        method: Method,
        path: str,
        parameters: Parameters,
        headers: Optional[Mapping[str, str]],
        success: SuccessCallback,
        failure: FailureCallback,
    ) -> Optional[Task]:
        merged_headers = self.headers
        merged_headers.update(headers or {})
        task = Task(method, path, merged_headers)
        try:
            self._pool.submit(self._run, task, parameters, success, failure)
        except RuntimeError as exc:
            logger.error("Cannot dispatch %s %s: %s", method.value, path, exc)
            return None
        return task

    def close(self) -> None:
        """Stop the thread pool and close the underlying HTTP client."""
        if self._owns_pool:
            self._pool.shutdown(wait=False)
        if self._owns_client:
            self._client.close()

    def _run(
        self,
        task: Task,
        parameters: Parameters,
        success: SuccessCallback,
        failure: FailureCallback,
    ) -> None:
        try:
            self._execute(task, parameters, success, failure)
        except Exception:
            logger.exception("Callback for %s %s raised", task.method.value, task.path)

    def _execute(
        self,
        task: Task,
        parameters: Parameters,
        success: SuccessCallback,
        failure: FailureCallback,
    ) -> None:
        if task.cancelled:
            failure(task, _cancelled(task))
            return

        logger.debug("%s %s", task.method.value, task.path)
        try:
            request = self._client.build_request(
                task.method.value,
                task.path,
                headers=task.request_headers,
                **_encode_parameters(task.method, parameters),
            )
        except (TypeError, ValueError, httpx.InvalidURL) as exc:
            failure(
                task,
                RequestMalformedError(f"Cannot encode {task.method.value} {task.path}: {exc}"),
            )
            return

        try:
            response = self._client.send(request)
        except Exception as exc:
            if task.cancelled:
                failure(task, _cancelled(task))
                return
            if not isinstance(exc, httpx.HTTPError):
                logger.exception("Unexpected error during %s %s", task.method.value, task.path)
            failure(
                task,
                TransportError(
                    f"{task.method.value} {task.path} failed: {exc}",
                    request_headers=task.request_headers,
                ),
            )
            return

        if task.cancelled:
            failure(task, _cancelled(task))
            return

        body = decode_body(response)
        if response.is_error:
            failure(
                task,
                TransportError(
                    _error_message(response.status_code, body),
                    status_code=response.status_code,
                    response_headers=dict(response.headers),
                    response_body=body,
                    request_headers=task.request_headers,
                ),
            )
            return

        success(task, body)


def decode_body(response: httpx.Response) -> Any:
    """Decode a response body: JSON when possible, raw bytes otherwise, ``None`` if empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.content


def _encode_parameters(method: Method, parameters: Parameters) -> dict[str, Any]:
    """Map request parameters onto httpx keyword arguments.

    Mappings become the query string for GET and DELETE and the JSON body
    otherwise. Positional sequences are always sent as a JSON array.
    """
    if parameters is None:
        return {}
    if isinstance(parameters, Mapping):
        if method in (Method.GET, Method.DELETE):
            return {"params": dict(parameters)}
        return {"json": dict(parameters)}
    return {"json": list(parameters)}


def _error_message(status_code: int, body: Any) -> str:
    prefix = f"HTTP {status_code}"
    if isinstance(body, Mapping):
        detail = body.get("error") or body.get("developer_message") or body.get("message")
        if detail:
            return f"{prefix}: {detail}"
    return prefix


def _cancelled(task: Task) -> RequestCancelledError:
    return RequestCancelledError(
        f"{task.method.value} {task.path} was cancelled",
        request_headers=task.request_headers,
    )
