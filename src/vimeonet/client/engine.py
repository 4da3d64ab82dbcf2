"""The request engine.

:class:`VimeoClient` turns a :class:`~vimeonet.client.request.Request`
into a result. For each request it:

- **Dispatches** -- to the response cache when ``use_cache`` is set,
  otherwise to the HTTP executor. The two paths never mix: a cache miss
  is reported as an error, not followed by a network call.
- **Interprets success** -- maps the raw body with the model mapper,
  extracts pagination, stores the raw body in the cache once mapping has
  succeeded, and delivers the :class:`~vimeonet.client.response.Response`.
  A body that no longer maps evicts its cache entry.
- **Interprets failure** -- drops cancellations silently, posts a
  client-wide notification for service outages and rejected tokens, and
  schedules the next attempt when the retry policy allows one.
- **Delivers results** -- every attempt reports exactly one
  :class:`~vimeonet.client.response.Result` on the completion queue. With
  a retry policy, a caller may therefore see a failure followed by a later
  result for the same logical request. A retry that will never run, because
  the client closed first, ends its chain with a
  :class:`~vimeonet.exceptions.RetryAbortedError`.

Nothing blocks the calling thread: cache reads and response handling run
on a worker pool, HTTP calls on the executor's pool, and retry delays on
timer threads.

Example::

    center = NotificationCenter()
    with VimeoClient(config, notifications=center) as client:
        token = client.request(
            Request("/videos", parameters={"page": 1}, model_key_path="data"),
            completion=lambda result: print(result.unwrap().total_count),
        )
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional

from vimeonet.cache import ResponseCache
from vimeonet.client.classification import bearer_token, classify_error, is_cancellation
from vimeonet.client.mapper import ModelMapper, PydanticModelMapper
from vimeonet.client.request import ModelT, MultipleAttempts, Request
from vimeonet.client.response import Response, Result
from vimeonet.client.scheduling import InlineExecutor, RetryScheduler
from vimeonet.client.transport import HTTPExecutor, HttpxExecutor, Task
from vimeonet.config import get_cache_dir
from vimeonet.exceptions import (
    CacheError,
    CachedResponseNotFoundError,
    ErrorCode,
    InvalidResponseError,
    MappingError,
    RequestMalformedError,
    RetryAbortedError,
    UndefinedError,
)
from vimeonet.models import ClientConfig
from vimeonet.notifications import Notification, NotificationCenter

logger = logging.getLogger(__name__)

Completion = Callable[[Result[Any]], None]


@dataclass(frozen=True)
class RequestToken:
    """Handle to a dispatched request.

    Attributes:
        path: Path of the request.
        task: The in-flight HTTP task, or ``None`` for cache-served
            requests and requests that could not be dispatched.
    """

    path: Optional[str]
    task: Optional[Task] = None

    def cancel(self) -> None:
        """Cancel the in-flight attempt. A no-op for cache-served requests.

        A retry that was already scheduled for an earlier failure of the
        same logical request is not affected.
        """
        if self.task is not None:
            self.task.cancel()


class VimeoClient:
    """Executes requests against the API with caching, retry and pagination.

    All collaborators are injectable; anything not supplied is built from
    *config*.

    Args:
        config: Client configuration. Defaults to :class:`ClientConfig()`.
        executor: HTTP transport. Defaults to :class:`HttpxExecutor`.
        cache: Response cache. Defaults to a :class:`ResponseCache` in the
            configured cache directory.
        mapper: Model mapper. Defaults to :class:`PydanticModelMapper`.
        notifications: Center receiving client-wide events. Defaults to a
            private center, reachable as :attr:`notifications`.
        worker: Executor running cache reads and response interpretation.
        completion_queue: Default executor completion callbacks run on.
            Defaults to a single dedicated thread, so callbacks never run
            concurrently with each other.
        scheduler: Timer service for retry delays.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        executor: Optional[HTTPExecutor] = None,
        cache: Optional[ResponseCache] = None,
        mapper: Optional[ModelMapper] = None,
        notifications: Optional[NotificationCenter] = None,
        worker: Optional[Executor] = None,
        completion_queue: Optional[Executor] = None,
        scheduler: Optional[RetryScheduler] = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._executor = executor or HttpxExecutor(self._config)
        self._cache = cache or ResponseCache(
            self._config.cache, self._config.cache.directory or get_cache_dir()
        )
        self._mapper = mapper or PydanticModelMapper()
        self._notifications = notifications or NotificationCenter()
        self._owned_pools: list[Executor] = []
        self._worker = worker or self._own(
            ThreadPoolExecutor(
                max_workers=self._config.worker_threads,
                thread_name_prefix="vimeonet-worker",
            )
        )
        self._completion_queue = completion_queue or self._own(
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="vimeonet-completion")
        )
        self._scheduler = scheduler or RetryScheduler()
        self._token_lock = threading.Lock()
        self._access_token: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def __enter__(self) -> VimeoClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Cancel pending retries and release pools, transport and cache."""
        self._scheduler.cancel_all()
        self._executor.close()
        for pool in self._owned_pools:
            pool.shutdown(wait=False)
        self._cache.close()

    def _own(self, pool: Executor) -> Executor:
        self._owned_pools.append(pool)
        return pool

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    @property
    def access_token(self) -> Optional[str]:
        with self._token_lock:
            return self._access_token

    def set_access_token(self, token: Optional[str]) -> None:
        """Authenticate later requests with *token*; ``None`` clears the account.

        Posts :attr:`Notification.AUTHENTICATED_ACCOUNT_DID_CHANGE` when the
        token actually changes.
        """
        with self._token_lock:
            previous = self._access_token
            self._access_token = token
        self._executor.set_bearer_token(token)
        if token != previous:
            self._notifications.post(
                Notification.AUTHENTICATED_ACCOUNT_DID_CHANGE,
                {"token": token, "previous_token": previous},
            )

    # ------------------------------------------------------------------ #
    # Request dispatch
    # ------------------------------------------------------------------ #

    def request(
        self,
        request: Request[ModelT],
        completion: Completion,
        completion_queue: Optional[Executor] = None,
    ) -> RequestToken:
        """Execute *request* and report each attempt's result to *completion*.

        Args:
            request: What to execute.
            completion: Called once per attempt with a :class:`Result`.
            completion_queue: Executor *completion* runs on. Defaults to the
                client's completion queue.

        Returns:
            A token for the dispatched attempt.
        """
        queue = completion_queue or self._completion_queue

        if request.use_cache:
            self._worker.submit(self._fetch_cached, request, queue, completion)
            return RequestToken(path=request.path)

        def on_success(task: Task, body: Any) -> None:
            self._worker.submit(self._handle_success, request, task, body, False, queue, completion)

        def on_failure(task: Optional[Task], error: Exception) -> None:
            self._worker.submit(self._handle_failure, request, task, error, queue, completion)

        task = self._executor.perform(
            request.method, request.path, request.parameters, None, on_success, on_failure
        )
        if task is None:
            description = f"HTTP executor did not return a task for {request.method.value} {request.path}"
            logger.critical(description)
            self._handle_failure(request, None, RequestMalformedError(description), queue, completion)
            return RequestToken(path=request.path)

        return RequestToken(path=request.path, task=task)

    def fetch(self, request: Request[ModelT], timeout: Optional[float] = None) -> Response[ModelT]:
        """Execute *request* and block until it has a final outcome.

        Waits through every attempt the retry policy allows. Closing the
        client while a retry is pending ends the wait with
        :class:`~vimeonet.exceptions.RetryAbortedError`.

        Returns:
            The first successful response.

        Raises:
            ClientError: The error of the last attempt.
            TimeoutError: If no final outcome arrived within *timeout* seconds.
        """
        waiter = _FinalResult(attempts=1 if request.use_cache else request.retry_policy.attempts_remaining)
        self.request(request, waiter, completion_queue=_INLINE)
        return waiter.wait(timeout, request.path)

    def pages(
        self,
        request: Request[ModelT],
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[Response[ModelT]]:
        """Yield responses for *request* and each following page.

        Stops after the last page (no ``next`` link) or after *limit* pages.
        """
        current: Optional[Request[ModelT]] = request
        count = 0
        while current is not None and (limit is None or count < limit):
            response = self.fetch(current, timeout=timeout)
            yield response
            count += 1
            current = response.next_page_request

    # ------------------------------------------------------------------ #
    # Cache management
    # ------------------------------------------------------------------ #

    def remove_cached_response(self, key: str) -> None:
        """Remove the cached response stored under *key*."""
        self._cache.remove_response(key)

    def remove_cached_response_for_request(self, request: Request[Any]) -> None:
        self._cache.remove_response(request.cache_key)

    def remove_all_cached_responses(self) -> None:
        """Clear every cached response."""
        self._cache.clear()

    # ------------------------------------------------------------------ #
    # Completion handlers
    # ------------------------------------------------------------------ #

    def _fetch_cached(self, request: Request[ModelT], queue: Executor, completion: Completion) -> None:
        try:
            raw = self._cache.response_for_key(request.cache_key)
        except CacheError as exc:
            self._report_without_retry(request, exc, queue, completion)
            return

        if raw is None:
            logger.debug("Cache miss for %s", request.path)
            error = CachedResponseNotFoundError(f"Cached response not found for {request.path}")
            self._report_without_retry(request, error, queue, completion)
            return

        logger.debug("Cache hit for %s", request.path)
        self._handle_success(request, None, raw, True, queue, completion)

    def _handle_success(
        self,
        request: Request[ModelT],
        task: Optional[Task],
        body: Any,
        is_cached_response: bool,
        queue: Executor,
        completion: Completion,
    ) -> None:
        if not isinstance(body, Mapping):
            if not request.expects_content:
                response: Response[Any] = Response(
                    model=None, raw_json={}, is_cached_response=is_cached_response
                )
                self._deliver(queue, completion, Result.success(response))
                return
            description = (
                f"{request.method.value} {request.path} returned "
                f"{type(body).__name__} where a JSON object was expected"
            )
            logger.error(description)
            self._handle_failure(request, task, InvalidResponseError(description), queue, completion)
            return

        try:
            model = self._map(request, body)
        except MappingError as exc:
            logger.warning("Mapping failed for %s: %s", request.path, exc)
            try:
                self._cache.remove_response(request.cache_key)
            except CacheError:
                logger.exception("Cannot evict unmappable cache entry %s", request.cache_key)
            self._handle_failure(request, task, exc, queue, completion)
            return

        response = Response.from_raw(model, body, request, is_cached_response=is_cached_response)

        # Stored only after mapping succeeded, so an unmappable body never lands in the cache.
        if request.cache_response:
            try:
                self._cache.set_response(request.cache_key, body)
            except CacheError:
                logger.exception("Cannot cache response for %s", request.path)

        self._deliver(queue, completion, Result.success(response))

    def _handle_failure(
        self,
        request: Request[ModelT],
        task: Optional[Task],
        error: Optional[Exception],
        queue: Executor,
        completion: Completion,
    ) -> None:
        if error is None:
            error = UndefinedError("Undefined error")

        if is_cancellation(error):
            logger.debug("Request for %s cancelled", request.path)
            return

        self._notify(error, task)
        self._deliver(queue, completion, Result.failure(error))

        policy = request.retry_policy
        if isinstance(policy, MultipleAttempts) and policy.should_retry:
            retry_request = request.retry_request()
            logger.info(
                "Retrying %s %s in %.1fs (%d attempt(s) left): %s",
                request.method.value,
                request.path,
                policy.initial_delay,
                policy.attempts_remaining - 1,
                error,
            )

            def abandon(reason: str) -> None:
                aborted = RetryAbortedError(
                    f"Retry of {request.method.value} {request.path} abandoned: {reason}"
                )
                self._deliver(queue, completion, Result.failure(aborted))

            self._scheduler.schedule(
                policy.initial_delay,
                self.request,
                retry_request,
                completion,
                queue,
                on_drop=abandon,
            )

    def _report_without_retry(
        self,
        request: Request[ModelT],
        error: Exception,
        queue: Executor,
        completion: Completion,
    ) -> None:
        self._notify(error, None)
        self._deliver(queue, completion, Result.failure(error))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _map(self, request: Request[ModelT], body: Mapping[str, Any]) -> Any:
        if not request.expects_content:
            return None
        return self._mapper.map(body, request.model_key_path, request.expects.model_type)

    def _notify(self, error: Exception, task: Optional[Task]) -> None:
        code = classify_error(error)
        if code is ErrorCode.SERVICE_UNAVAILABLE:
            self._notifications.post(Notification.SERVICE_UNAVAILABLE)
        elif code is ErrorCode.INVALID_TOKEN:
            headers = task.request_headers if task is not None else getattr(error, "request_headers", None)
            self._notifications.post(Notification.INVALID_TOKEN, bearer_token(headers))

    def _deliver(self, queue: Executor, completion: Completion, result: Result[Any]) -> None:
        queue.submit(_run_completion, completion, result)


def _run_completion(completion: Completion, result: Result[Any]) -> None:
    try:
        completion(result)
    except Exception:
        logger.exception("Completion callback raised")


_INLINE = InlineExecutor()


class _FinalResult:
    """Completion that waits for a request's final outcome across retries."""

    def __init__(self, attempts: int) -> None:
        self._remaining = attempts
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._result: Optional[Result[Any]] = None

    def __call__(self, result: Result[Any]) -> None:
        with self._lock:
            if self._done.is_set():
                return
            self._remaining -= 1
            if (
                result.is_success
                or self._remaining <= 0
                or isinstance(result.error, RetryAbortedError)
            ):
                self._result = result
                self._done.set()

    def wait(self, timeout: Optional[float], path: str) -> Response[Any]:
        if not self._done.wait(timeout):
            raise TimeoutError(f"No final result for {path} within {timeout}s")
        assert self._result is not None
        return self._result.unwrap()
