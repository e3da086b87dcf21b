"""Fetch documents over HTTP(S) with size limits and retry/backoff."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from field_scraper.config import Settings
from field_scraper.errors import ErrorKind, NetworkError, ScraperError, SecurityError
from field_scraper.models import Failure, FetchResult
from field_scraper.validator import check_url

logger = logging.getLogger(__name__)


class ServerError(NetworkError):
    """5xx response; worth another attempt."""


RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ServerError,
)


class HttpFetcher:
    """GETs a URL, retrying transient failures with exponential backoff.

    Timeouts, connection errors and 5xx responses are retried up to
    ``settings.max_retries`` total attempts. 4xx responses, redirect loops
    and bodies larger than ``settings.max_content_bytes`` fail immediately.
    Every redirect target goes through the same URL check as the caller's
    URL; a blocked hop fails with a SECURITY error before it is requested.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._sleep = sleep

    def fetch(self, url: str) -> FetchResult:
        start = time.perf_counter()
        attempts = 0

        retryer = Retrying(
            stop=stop_after_attempt(max(1, self.settings.max_retries)),
            wait=wait_exponential(
                multiplier=self.settings.retry_base_delay,
                max=self.settings.max_retry_delay,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            with self._client() as client:
                for attempt in retryer:
                    with attempt:
                        attempts = attempt.retry_state.attempt_number
                        result = self._get_once(client, url)
        except RETRYABLE_ERRORS as exc:
            message = f"Failed to fetch URL after {attempts} attempts: {_describe(exc)}"
            return self._failure(message, attempts, start)
        except httpx.TooManyRedirects as exc:
            return self._failure(f"Redirect loop detected: {exc}", attempts, start)
        except SecurityError as exc:
            return self._failure(str(exc), attempts, start, kind=ErrorKind.SECURITY)
        except (NetworkError, httpx.HTTPError, httpx.InvalidURL) as exc:
            return self._failure(_describe(exc), attempts, start)

        result = result.model_copy(update={"attempts": attempts, "response_time_ms": _elapsed_ms(start)})
        logger.info(
            "Fetched %d bytes from %s (status %s, %d attempt(s), %.0f ms)",
            len(result.content), url, result.status, attempts, result.response_time_ms,
        )
        return result

    def _client(self) -> httpx.Client:
        return httpx.Client(
            headers={"User-Agent": self.settings.user_agent},
            timeout=self.settings.timeout,
            follow_redirects=True,
            max_redirects=self.settings.max_redirects,
            transport=self._transport,
            event_hooks={"request": [_check_target]},
        )

    def _get_once(self, client: httpx.Client, url: str) -> FetchResult:
        limit = self.settings.max_content_bytes
        with client.stream("GET", url) as response:
            status = response.status_code
            if status >= 500:
                raise ServerError(f"HTTP request failed with status {status}: {response.reason_phrase}")
            if not 200 <= status < 300:
                raise NetworkError(f"HTTP request failed with status {status}: {response.reason_phrase}")

            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > limit:
                raise NetworkError(f"Response too large (max {limit} bytes)")

            chunks: list[bytes] = []
            size = 0
            for chunk in response.iter_bytes():
                size += len(chunk)
                if size > limit:
                    raise NetworkError(f"Response too large (max {limit} bytes)")
                chunks.append(chunk)

            content = b"".join(chunks)
            encoding = response.charset_encoding
            return FetchResult(
                content=content,
                body=content.decode(encoding if _known(encoding) else "utf-8", errors="replace"),
                encoding=encoding,
                status=status,
                headers={k.lower(): v for k, v in response.headers.items()},
                final_url=str(response.url),
            )

    def _failure(
        self, message: str, attempts: int, start: float, kind: ErrorKind = ErrorKind.NETWORK
    ) -> FetchResult:
        logger.error("Fetch failed: %s", message)
        return FetchResult(
            error=Failure(kind=kind, message=message),
            attempts=attempts,
            response_time_ms=_elapsed_ms(start),
        )


def _check_target(request: httpx.Request) -> None:
    try:
        check_url(str(request.url))
    except ScraperError as exc:
        raise SecurityError(f"Blocked request to {request.url}: {exc}") from exc


def _known(encoding: Optional[str]) -> bool:
    if not encoding:
        return False
    try:
        "".encode(encoding)
    except LookupError:
        return False
    return True


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
