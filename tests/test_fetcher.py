"""Tests for field_scraper.fetcher module."""

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest

from field_scraper.errors import ErrorKind, NetworkError
from field_scraper.fetcher import HttpFetcher, ServerError


class Recorder:
    """Serves queued responses (or raises queued exceptions) and records requests."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("simulated failure", request=request)
        # fresh copy so the last outcome can be served repeatedly
        return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)


def _fetcher(settings, handler, sleeps=None) -> HttpFetcher:
    sleep = sleeps.append if sleeps is not None else (lambda _s: None)
    return HttpFetcher(settings, transport=httpx.MockTransport(handler), sleep=sleep)


class TestSuccessfulFetch:
    def test_returns_body_and_metadata(self, settings):
        handler = Recorder(httpx.Response(200, html="<h1>Hello</h1>", headers={"X-Test": "yes"}))
        result = _fetcher(settings, handler).fetch("https://example.com")

        assert result.ok
        assert result.body == "<h1>Hello</h1>"
        assert result.content == b"<h1>Hello</h1>"
        assert result.status == 200
        assert result.headers["x-test"] == "yes"
        assert result.encoding == "utf-8"
        assert result.attempts == 1
        assert result.response_time_ms >= 0

    def test_sends_user_agent(self, settings):
        handler = Recorder(httpx.Response(200, text="ok"))
        _fetcher(settings, handler).fetch("https://example.com")
        assert handler.requests[0].headers["user-agent"] == "FieldScraper-Test/1.0"
        assert handler.requests[0].method == "GET"

    def test_follows_redirects(self, settings):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://example.com/new"})
            return httpx.Response(200, text="moved here")

        result = _fetcher(settings, handler).fetch("https://example.com/old")
        assert result.ok
        assert result.body == "moved here"
        assert result.final_url == "https://example.com/new"

    def test_decodes_declared_charset(self, settings):
        handler = Recorder(httpx.Response(
            200,
            content="<p>café</p>".encode("latin-1"),
            headers={"Content-Type": "text/html; charset=iso-8859-1"},
        ))
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert result.body == "<p>café</p>"
        assert result.encoding == "iso-8859-1"


class TestRetries:
    def test_retries_server_errors_then_succeeds(self, settings):
        handler = Recorder(httpx.Response(503), httpx.Response(502), httpx.Response(200, text="ok"))
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert result.ok
        assert result.attempts == 3
        assert len(handler.requests) == 3

    def test_retries_connection_errors(self, settings):
        handler = Recorder(httpx.ConnectError, httpx.Response(200, text="ok"))
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert result.ok
        assert result.attempts == 2

    def test_retries_timeouts(self, settings):
        handler = Recorder(httpx.ReadTimeout, httpx.Response(200, text="ok"))
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert result.ok
        assert result.attempts == 2

    def test_gives_up_after_max_retries(self, settings):
        handler = Recorder(httpx.Response(500))
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert not result.ok
        assert result.error.kind is ErrorKind.NETWORK
        assert "Failed to fetch URL after 3 attempts" in result.error.message
        assert "500" in result.error.message
        assert result.attempts == 3
        assert len(handler.requests) == 3

    def test_exponential_backoff(self, settings):
        settings = replace(settings, max_retries=4, retry_base_delay=1.0, max_retry_delay=30.0)
        sleeps: list[float] = []
        handler = Recorder(httpx.ConnectError)
        _fetcher(settings, handler, sleeps).fetch("https://example.com")
        assert sleeps == [1.0, 2.0, 4.0]

    def test_backoff_is_capped(self, settings):
        settings = replace(settings, max_retries=4, retry_base_delay=5.0, max_retry_delay=8.0)
        sleeps: list[float] = []
        _fetcher(settings, Recorder(httpx.ConnectError), sleeps).fetch("https://example.com")
        assert sleeps == [5.0, 8.0, 8.0]

    def test_single_attempt_when_retries_disabled(self, settings):
        settings = replace(settings, max_retries=1)
        handler = Recorder(httpx.ConnectError)
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert "after 1 attempts" in result.error.message
        assert len(handler.requests) == 1


class TestTerminalFailures:
    @pytest.mark.parametrize("status", [400, 403, 404, 410])
    def test_client_errors_are_not_retried(self, settings, status):
        handler = Recorder(httpx.Response(status))
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert not result.ok
        assert f"status {status}" in result.error.message
        assert result.attempts == 1
        assert len(handler.requests) == 1

    def test_redirect_loop(self, settings):
        def handler(request):
            return httpx.Response(302, headers={"Location": str(request.url)})

        result = _fetcher(settings, handler).fetch("https://example.com/loop")
        assert not result.ok
        assert result.error.kind is ErrorKind.NETWORK
        assert "Redirect loop" in result.error.message

    def test_oversize_body_is_not_retried(self, settings):
        settings = replace(settings, max_content_bytes=1000)
        handler = Recorder(httpx.Response(200, content=b"x" * 2000))
        result = _fetcher(settings, handler).fetch("https://example.com")
        assert not result.ok
        assert "too large" in result.error.message
        assert len(handler.requests) == 1

    def test_body_at_limit_is_accepted(self, settings):
        settings = replace(settings, max_content_bytes=1000)
        handler = Recorder(httpx.Response(200, content=b"x" * 1000))
        assert _fetcher(settings, handler).fetch("https://example.com").ok


class TestRedirectTargets:
    @pytest.mark.parametrize("location", [
        "http://169.254.169.254/latest/meta-data/",
        "http://localhost:8080/admin",
        "http://10.0.0.5/",
        "http://[::1]/",
    ])
    def test_redirect_to_blocked_host_is_not_followed(self, settings, location):
        requests = []

        def handler(request):
            requests.append(str(request.url))
            if request.url.host == "example.com":
                return httpx.Response(302, headers={"Location": location})
            return httpx.Response(200, html="<h1>SECRET</h1>")

        result = _fetcher(settings, handler).fetch("https://example.com")

        assert not result.ok
        assert result.error.kind is ErrorKind.SECURITY
        assert "Blocked request to" in result.error.message
        assert requests == ["https://example.com"]
        assert result.attempts == 1

    def test_redirect_to_other_scheme_is_blocked(self, settings):
        def handler(request):
            return httpx.Response(302, headers={"Location": "ftp://example.com/file"})

        result = _fetcher(settings, handler).fetch("https://example.com")
        assert result.error.kind is ErrorKind.SECURITY

    def test_public_redirect_chain_is_followed(self, settings):
        def handler(request):
            if request.url.host == "example.com":
                return httpx.Response(302, headers={"Location": "https://www.example.org/page"})
            return httpx.Response(200, text="landed")

        result = _fetcher(settings, handler).fetch("https://example.com")
        assert result.ok
        assert result.final_url == "https://www.example.org/page"


class TestInvalidUrl:
    def test_idna_failure_is_network_error(self, settings):
        handler = Recorder(httpx.Response(200, text="ok"))
        result = _fetcher(settings, handler).fetch("http://ex\u200bample.com/")
        assert not result.ok
        assert result.error.kind is ErrorKind.NETWORK
        assert handler.requests == []


class TestServerError:
    def test_is_network_error(self):
        assert issubclass(ServerError, NetworkError)
        assert ServerError("x").kind is ErrorKind.NETWORK
