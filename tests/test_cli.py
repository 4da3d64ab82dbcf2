"""Tests for the vimeonet command line.

Commands run through :class:`typer.testing.CliRunner` against an
isolated config directory. The request command talks to an
:class:`httpx.MockTransport` through a client built by the test.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from typer.testing import CliRunner

from vimeonet import __version__
from vimeonet.app import app
from vimeonet.cache import ResponseCache
from vimeonet.client import HttpxExecutor, InlineExecutor, VimeoClient, make_cache_key
from vimeonet.commands.request import wait_timeout
from vimeonet.config import load_config
from vimeonet.models import CacheConfig, ClientConfig


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    """Drop handlers bound to CliRunner's streams once a test is done."""
    yield
    logger = logging.getLogger("vimeonet")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True


@pytest.fixture
def shared_cache() -> ResponseCache:
    cache = ResponseCache(CacheConfig(disk=False))
    yield cache
    cache.close()


@pytest.fixture
def mock_api(
    isolated_config: Path, monkeypatch: pytest.MonkeyPatch, shared_cache: ResponseCache
) -> Callable[[Callable[[httpx.Request], httpx.Response]], list[httpx.Request]]:
    """Route the request command's client through a mock transport.

    Returns a function installing the handler; it returns the list that
    collects every request the handler sees.
    """

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def build(config: ClientConfig) -> VimeoClient:
            http = httpx.Client(base_url=config.base_url, transport=httpx.MockTransport(recording))
            return VimeoClient(
                config,
                executor=HttpxExecutor(config, client=http, pool=InlineExecutor()),
                cache=shared_cache,
                worker=InlineExecutor(),
                completion_queue=InlineExecutor(),
            )

        monkeypatch.setattr("vimeonet.client.VimeoClient", build)
        return seen

    return install


def _page(number: int, last: int = 2) -> dict[str, Any]:
    return {
        "total": 4,
        "page": number,
        "per_page": 2,
        "paging": {
            "next": f"/me/videos?page={number + 1}" if number < last else None,
            "previous": f"/me/videos?page={number - 1}" if number > 1 else None,
            "first": "/me/videos?page=1",
            "last": f"/me/videos?page={last}",
        },
        "data": [{"name": f"video {number}a"}, {"name": f"video {number}b"}],
    }


# ---------------------------------------------------------------------------
# Root options
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"vimeonet {__version__}" in result.output

    def test_no_args_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, [])

        assert "request" in result.output
        assert "cache" in result.output


# ---------------------------------------------------------------------------
# request
# ---------------------------------------------------------------------------


class TestRequestCommand:
    def test_prints_data_at_key_path(self, runner: CliRunner, mock_api) -> None:
        seen = mock_api(lambda request: httpx.Response(200, json=_page(1)))

        result = runner.invoke(
            app, ["--json", "--quiet", "request", "/me/videos", "-p", "per_page=2", "-k", "data"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == _page(1)["data"]
        assert seen[0].url.params["per_page"] == "2"
        assert seen[0].headers["accept"] == "application/vnd.vimeo.*+json;version=3.4"

    def test_follows_pages(self, runner: CliRunner, mock_api) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_page(int(request.url.params.get("page", "1"))))

        seen = mock_api(handler)

        result = runner.invoke(
            app, ["--plain", "--quiet", "request", "/me/videos", "-k", "data", "--pages", "5"]
        )

        assert result.exit_code == 0, result.output
        assert [str(r.url) for r in seen] == [
            "https://api.vimeo.com/me/videos",
            "https://api.vimeo.com/me/videos?page=2",
        ]
        assert "video 2b" in result.output

    def test_bearer_token_from_environment(
        self, runner: CliRunner, mock_api, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("VIMEONET_ACCESS_TOKEN", "env-token")
        seen = mock_api(lambda request: httpx.Response(200, json={"name": "me"}))

        result = runner.invoke(app, ["--quiet", "request", "/me"])

        assert result.exit_code == 0, result.output
        assert seen[0].headers["authorization"] == "Bearer env-token"

    def test_cache_response_then_cached(self, runner: CliRunner, mock_api) -> None:
        seen = mock_api(lambda request: httpx.Response(200, json={"name": "me"}))

        first = runner.invoke(app, ["--json", "--quiet", "request", "/me", "--cache-response"])
        second = runner.invoke(app, ["--json", "--quiet", "request", "/me", "--cached"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert json.loads(second.output) == {"name": "me"}
        assert len(seen) == 1

    def test_cache_miss_exit_code(self, runner: CliRunner, mock_api) -> None:
        seen = mock_api(lambda request: httpx.Response(200, json={}))

        result = runner.invoke(app, ["--no-color", "request", "/me", "--cached"])

        assert result.exit_code == 4
        assert "Cached response not found" in result.output
        assert seen == []

    def test_retries_until_success(self, runner: CliRunner, mock_api) -> None:
        responses = iter([httpx.Response(500), httpx.Response(200, json={"ok": True})])
        seen = mock_api(lambda request: next(responses))

        result = runner.invoke(
            app,
            ["--json", "--quiet", "request", "/me", "--retries", "2", "--retry-delay", "0"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"ok": True}
        assert len(seen) == 2

    def test_invalid_token_warns_and_exits(
        self, runner: CliRunner, mock_api, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("VIMEONET_ACCESS_TOKEN", "stale")
        mock_api(
            lambda request: httpx.Response(
                401, json={"error": "Invalid token"}, headers={"Vimeo-Error-Code": "8000"}
            )
        )

        result = runner.invoke(app, ["--no-color", "request", "/me"])

        assert result.exit_code == 3
        assert "access token was rejected" in result.output
        assert "Invalid token" in result.output

    def test_service_unavailable_exit_code(self, runner: CliRunner, mock_api) -> None:
        mock_api(lambda request: httpx.Response(503))

        result = runner.invoke(app, ["--no-color", "request", "/me"])

        assert result.exit_code == 8
        assert "unavailable" in result.output

    def test_delete_without_content(self, runner: CliRunner, mock_api) -> None:
        seen = mock_api(lambda request: httpx.Response(204))

        result = runner.invoke(app, ["--no-color", "request", "/videos/1", "-X", "delete"])

        assert result.exit_code == 0, result.output
        assert seen[0].method == "DELETE"
        assert "no content" in result.output

    def test_unknown_method(self, runner: CliRunner, mock_api) -> None:
        mock_api(lambda request: httpx.Response(200, json={}))

        result = runner.invoke(app, ["--no-color", "request", "/me", "-X", "TRACE"])

        assert result.exit_code == 2

    def test_malformed_param(self, runner: CliRunner, mock_api) -> None:
        mock_api(lambda request: httpx.Response(200, json={}))

        result = runner.invoke(app, ["request", "/me", "-p", "no-equals-sign"])

        assert result.exit_code == 2

    def test_pages_wait_is_bounded(
        self, runner: CliRunner, mock_api, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        mock_api(lambda request: httpx.Response(200, json={"name": "me"}))
        timeouts: list[Any] = []
        original_pages = VimeoClient.pages

        def recording_pages(self, request, limit=None, timeout=None):
            timeouts.append(timeout)
            return original_pages(self, request, limit=limit, timeout=timeout)

        monkeypatch.setattr(VimeoClient, "pages", recording_pages)

        result = runner.invoke(
            app, ["--quiet", "request", "/me", "--retries", "3", "--retry-delay", "1"]
        )

        assert result.exit_code == 0, result.output
        assert timeouts == [wait_timeout(30.0, 3, 1.0)]


class TestWaitTimeout:
    def test_single_attempt(self) -> None:
        assert wait_timeout(30.0, 1, 5.0) == 60.0

    def test_includes_doubling_backoff(self) -> None:
        # delays 1 + 2 between three attempts
        assert wait_timeout(10.0, 3, 1.0) == 63.0


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


class TestCacheCommands:
    def test_key_matches_request_cache_key(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--quiet", "cache", "key", "/me/videos", "-p", "page=2"])

        assert result.exit_code == 0, result.output
        assert result.output.strip() == make_cache_key("/me/videos", {"page": 2})

    def test_stats_remove_and_clear(self, runner: CliRunner, isolated_config: Path) -> None:
        cache_dir = isolated_config / "cache" / "vimeonet"
        cache = ResponseCache(CacheConfig(), cache_dir)
        cache.set_response("a", {"v": 1})
        cache.set_response("b", {"v": 2})
        cache.close()

        stats = runner.invoke(app, ["--json", "--quiet", "cache", "stats"])
        assert stats.exit_code == 0, stats.output
        assert json.loads(stats.output)["disk_entries"] == 2

        removed = runner.invoke(app, ["--quiet", "cache", "remove", "a"])
        assert removed.exit_code == 0, removed.output
        stats = runner.invoke(app, ["--json", "--quiet", "cache", "stats"])
        assert json.loads(stats.output)["disk_entries"] == 1

        cleared = runner.invoke(app, ["--no-color", "cache", "clear"])
        assert cleared.exit_code == 0, cleared.output
        assert "cleared" in cleared.output
        stats = runner.invoke(app, ["--json", "--quiet", "cache", "stats"])
        assert json.loads(stats.output)["disk_entries"] == 0


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--json", "--quiet", "config", "show"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["base_url"] == "https://api.vimeo.com"

    def test_show_applies_base_url_env(
        self, runner: CliRunner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("VIMEONET_BASE_URL", "https://staging.example.com")

        result = runner.invoke(app, ["--json", "--quiet", "config", "show"])

        assert json.loads(result.output)["base_url"] == "https://staging.example.com"

    def test_set_values(self, runner: CliRunner, isolated_config: Path) -> None:
        for args in (
            ["request.retry_attempts", "3"],
            ["request.retry_initial_delay", "0.5"],
            ["cache.ttl_seconds", "600"],
            ["cache.disk", "false"],
            ["access_token_source", "env:VIMEO_TOKEN"],
        ):
            result = runner.invoke(app, ["--quiet", "config", "set", *args])
            assert result.exit_code == 0, result.output

        config = load_config()
        assert config.request.retry_attempts == 3
        assert config.request.retry_initial_delay == 0.5
        assert config.cache.ttl_seconds == 600
        assert config.cache.disk is False
        assert config.access_token_source == "env:VIMEO_TOKEN"

    def test_set_none_clears_optional(self, runner: CliRunner, isolated_config: Path) -> None:
        runner.invoke(app, ["--quiet", "config", "set", "cache.ttl_seconds", "60"])
        result = runner.invoke(app, ["--quiet", "config", "set", "cache.ttl_seconds", "none"])

        assert result.exit_code == 0, result.output
        assert load_config().cache.ttl_seconds is None

    def test_set_unknown_key(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--no-color", "config", "set", "cache.nope", "1"])

        assert result.exit_code == 2
        assert "Unknown config key" in result.output

    def test_set_invalid_value(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--no-color", "config", "set", "request.retry_attempts", "0"])

        assert result.exit_code == 2

    def test_reset(self, runner: CliRunner, isolated_config: Path) -> None:
        runner.invoke(app, ["--quiet", "config", "set", "worker_threads", "8"])

        result = runner.invoke(app, ["--quiet", "config", "reset", "--yes"])

        assert result.exit_code == 0, result.output
        assert load_config() == ClientConfig()

    def test_reset_declined(self, runner: CliRunner, isolated_config: Path) -> None:
        runner.invoke(app, ["--quiet", "config", "set", "worker_threads", "8"])

        result = runner.invoke(app, ["config", "reset"], input="n\n")

        assert result.exit_code == 0
        assert load_config().worker_threads == 8
