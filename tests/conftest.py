"""Shared test fixtures for vimeonet.

Provides isolated config environments, output state management and the
deterministic building blocks the engine tests are assembled from: a
scripted HTTP executor, an inline worker and a recording retry scheduler.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import pytest

from vimeonet.cache import ResponseCache
from vimeonet.client import InlineExecutor, Method, Task, VimeoClient
from vimeonet.exceptions import RequestCancelledError
from vimeonet.models import CacheConfig, ClientConfig
from vimeonet.notifications import NotificationCenter
from vimeonet.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager keeps references to sys.stdout/sys.stderr. When
    Typer's CliRunner swaps those streams and the test finishes, the
    references go stale, so a fresh manager is created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config and cache directories at *tmp_path*.

    Clears the ``VIMEONET_*`` environment so a developer's settings never
    leak into the tests.
    """
    monkeypatch.setattr("vimeonet.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    for var in ("VIMEONET_BASE_URL", "VIMEONET_ACCESS_TOKEN", "VIMEONET_CACHE_DIR"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless OutputManager."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    return output


# ---------------------------------------------------------------------------
# Engine building blocks
# ---------------------------------------------------------------------------


class FakeExecutor:
    """HTTP executor double that answers from a script of outcomes.

    Each outcome is either an exception (reported through ``failure``)
    or a body (reported through ``success``). Outcomes are consumed in
    order; the last one repeats. Calls are recorded in :attr:`calls`.
    """

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes) or [{}]
        self.calls: list[dict[str, Any]] = []
        self.tasks: list[Task] = []
        self.headers: dict[str, str] = {}
        self.refuse = False
        self.defer = False
        self.pending: list[Callable[[], None]] = []
        self.closed = False

    def perform(
        self,
        method: Method,
        path: str,
        parameters: Any,
        headers: Optional[Mapping[str, str]],
        success: Callable[[Task, Any], None],
        failure: Callable[[Optional[Task], Exception], None],
    ) -> Optional[Task]:
        self.calls.append({"method": method, "path": path, "parameters": parameters})
        if self.refuse:
            return None
        task = Task(method, path, {**self.headers, **(headers or {})})
        self.tasks.append(task)
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]

        def complete() -> None:
            if task.cancelled:
                failure(task, RequestCancelledError(f"{method.value} {path} was cancelled"))
            elif isinstance(outcome, Exception):
                failure(task, outcome)
            else:
                success(task, outcome)

        if self.defer:
            self.pending.append(complete)
        else:
            complete()
        return task

    def set_bearer_token(self, token: Optional[str]) -> None:
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        else:
            self.headers.pop("Authorization", None)

    def close(self) -> None:
        self.closed = True


class RecordingScheduler:
    """Retry scheduler double that records delays instead of sleeping.

    Scheduled calls are held until :meth:`run_pending` fires them, so a
    test controls exactly when each retry happens. :meth:`cancel_all`
    reports every held call to its ``on_drop`` callback.
    """

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._queued: list[tuple[Callable[..., Any], tuple[Any, ...], Any]] = []
        self.cancelled = False

    @property
    def pending(self) -> int:
        return len(self._queued)

    def schedule(self, delay: float, fn: Callable[..., Any], *args: Any, on_drop: Any = None) -> None:
        self.delays.append(delay)
        self._queued.append((fn, args, on_drop))

    def run_pending(self) -> None:
        """Fire queued retries, including any they schedule in turn."""
        while self._queued:
            fn, args, _ = self._queued.pop(0)
            fn(*args)

    def cancel_all(self) -> None:
        self.cancelled = True
        queued, self._queued = self._queued, []
        for _, _, on_drop in queued:
            if on_drop is not None:
                on_drop("the client was closed")


@pytest.fixture
def memory_cache() -> ResponseCache:
    cache = ResponseCache(CacheConfig(disk=False))
    yield cache
    cache.close()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def make_client(
    memory_cache: ResponseCache,
    scheduler: RecordingScheduler,
    notifications: NotificationCenter,
) -> Callable[..., VimeoClient]:
    """Factory for a fully synchronous :class:`VimeoClient` around an executor double."""

    def _make(executor: Any, **overrides: Any) -> VimeoClient:
        kwargs: dict[str, Any] = {
            "executor": executor,
            "cache": memory_cache,
            "notifications": notifications,
            "worker": InlineExecutor(),
            "completion_queue": InlineExecutor(),
            "scheduler": scheduler,
        }
        kwargs.update(overrides)
        return VimeoClient(ClientConfig(), **kwargs)

    return _make
