"""Scrape pipeline: validate -> cache check -> fetch -> parse -> extract -> cache store.

Each stage returns a tagged result (``error`` is ``None`` on success); the
orchestrator composes those results and stops at the first failure. A
failure in either extraction strategy fails the whole request, discarding
whatever the other strategy produced.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any, Optional, Protocol, Union

import httpx

from field_scraper.cache import FingerprintCache, build_store
from field_scraper.config import Settings
from field_scraper.errors import ErrorKind, ScraperError
from field_scraper.extractors import CssSelectorExtractor, MetaTagExtractor
from field_scraper.fetcher import HttpFetcher
from field_scraper.fields import META_PREFIX, normalize_fields
from field_scraper.models import (
    CssField,
    ExtractionResult,
    Failure,
    FetchResult,
    FieldSpec,
    MetaField,
    ParseResult,
    RequestContext,
    ScrapeRequest,
    ScrapeResult,
    UrlCheck,
)
from field_scraper.parser import HtmlParser
from field_scraper.validator import UrlSecurityValidator

logger = logging.getLogger(__name__)


class UrlValidator(Protocol):
    def validate(self, raw_url: Optional[str]) -> UrlCheck: ...


class Fetcher(Protocol):
    def fetch(self, url: str) -> FetchResult: ...


class Parser(Protocol):
    def parse(self, raw_content: Union[str, bytes, None], encoding: Optional[str] = None) -> ParseResult: ...


class Extractor(Protocol):
    def extract(self, document: Any, fields: Sequence[Any]) -> ExtractionResult: ...


class ScrapeOrchestrator:
    def __init__(
        self,
        validator: UrlValidator,
        fetcher: Fetcher,
        parser: Parser,
        css_extractor: Extractor,
        meta_extractor: Extractor,
        cache: FingerprintCache,
    ) -> None:
        self.validator = validator
        self.fetcher = fetcher
        self.parser = parser
        self.css_extractor = css_extractor
        self.meta_extractor = meta_extractor
        self.cache = cache

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> ScrapeOrchestrator:
        """Wire up the default collaborators from configuration."""
        if settings is None:
            settings = Settings.from_env()
        return cls(
            validator=UrlSecurityValidator(),
            fetcher=HttpFetcher(settings, transport=transport),
            parser=HtmlParser(max_content_size=settings.max_content_bytes),
            css_extractor=CssSelectorExtractor(),
            meta_extractor=MetaTagExtractor(),
            cache=FingerprintCache(
                build_store(settings.cache_backend, settings.cache_dir),
                ttl=settings.cache_ttl,
            ),
        )

    def scrape(
        self,
        url: Optional[str],
        fields: Any,
        context: RequestContext | None = None,
        ttl: Optional[float] = None,
    ) -> ScrapeResult:
        """Scrape *fields* from *url*, serving from cache when possible.

        Args:
            url: Page to fetch; must pass SSRF validation.
            fields: FieldSpecs, or any shape accepted by ``normalize_fields``.
            context: Carries the request id used in log lines.
            ttl: Cache lifetime in seconds for this result (default from cache).
        """
        context = context or RequestContext()
        start = time.perf_counter()
        logger.info("Scrape started: url=%s request_id=%s", url, context.request_id)

        result = self._run(url, fields, context, ttl)

        duration = (time.perf_counter() - start) * 1000
        if result.success:
            logger.info(
                "Scrape completed: url=%s cached=%s duration_ms=%.2f request_id=%s",
                url, result.cached, duration, context.request_id,
            )
        else:
            logger.error(
                "Scrape failed: url=%s kind=%s error=%s duration_ms=%.2f request_id=%s",
                url, result.error_kind.value if result.error_kind else None,
                result.error, duration, context.request_id,
            )
        return result

    def invalidate(self, url: str, fields: Any) -> bool:
        """Drop the cached result for this URL and field set."""
        return self.cache.invalidate(url.strip(), normalize_fields(fields))

    def _run(
        self, url: Optional[str], fields: Any, context: RequestContext, ttl: Optional[float]
    ) -> ScrapeResult:
        # Validate
        if url is None or not str(url).strip():
            return _fail(ErrorKind.VALIDATION, "URL is required")
        check = self.validator.validate(url)
        if not check.ok:
            return ScrapeResult.failed(check.error)
        try:
            request = ScrapeRequest(url=check.url or url, fields=normalize_fields(fields))
        except ScraperError as exc:
            return ScrapeResult.failed(Failure.from_exception(exc))
        target, specs = request.url, request.fields
        logger.debug("Scraping %d field(s) from %s request_id=%s", len(specs), target, context.request_id)

        # Cache check
        cached = self.cache.get(target, specs)
        if cached is not None:
            logger.debug("Cache hit for %s", target)
            return cached

        # Fetch
        fetched = self.fetcher.fetch(target)
        if not fetched.ok:
            # a redirect to a blocked host stays a security failure
            kind = ErrorKind.SECURITY if fetched.error.kind is ErrorKind.SECURITY else ErrorKind.NETWORK
            return _fail(kind, fetched.error.message)

        # Parse
        parsed = self.parser.parse(fetched.content or fetched.body, fetched.encoding)
        if not parsed.ok:
            return _fail(ErrorKind.PARSING, f"Failed to parse HTML: {parsed.error.message}")

        # Extract
        extracted = self._extract(parsed.document, specs)
        if not extracted.ok:
            kind = ErrorKind.SECURITY if extracted.error.kind is ErrorKind.SECURITY else ErrorKind.EXTRACTION
            return _fail(kind, extracted.error.message)

        # Cache store
        result = ScrapeResult.succeeded(extracted.data)
        self.cache.set(target, specs, result, ttl)
        return result

    def _extract(self, document: Any, specs: Sequence[FieldSpec]) -> ExtractionResult:
        css_fields, meta_fields = partition_fields(specs)

        data = {}
        if css_fields:
            css = self.css_extractor.extract(document, css_fields)
            if not css.ok:
                return css
            data.update(css.data)
        if meta_fields:
            meta = self.meta_extractor.extract(document, meta_fields)
            if not meta.ok:
                return meta
            data.update(meta.data)
        return ExtractionResult(data=data)


def partition_fields(specs: Sequence[FieldSpec]) -> tuple[list[CssField], list[MetaField]]:
    """Split specs into CSS and meta groups; ``meta:``-named CSS specs count as meta."""
    css_fields: list[CssField] = []
    meta_fields: list[MetaField] = []
    for spec in specs:
        if isinstance(spec, MetaField):
            meta_fields.append(spec)
        elif spec.name.startswith(META_PREFIX):
            meta_fields.append(MetaField(name=spec.name, meta_name=spec.name[len(META_PREFIX):]))
        else:
            css_fields.append(spec)
    return css_fields, meta_fields


def _fail(kind: ErrorKind, message: str) -> ScrapeResult:
    return ScrapeResult.failed(Failure(kind=kind, message=message))


def scrape(url: str, fields: Any, settings: Settings | None = None) -> ScrapeResult:
    """One-shot scrape with default collaborators."""
    return ScrapeOrchestrator.from_settings(settings).scrape(url, fields)
