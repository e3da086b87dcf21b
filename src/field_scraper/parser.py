"""Lenient HTML parsing with encoding recovery."""

from __future__ import annotations

import logging
from typing import Union

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from field_scraper.errors import ScraperError, ValidationError
from field_scraper.models import Failure, ParseResult

logger = logging.getLogger(__name__)

MAX_CONTENT_SIZE = 10 * 1024 * 1024
DEFAULT_ENCODING = "utf-8"

# lxml repairs unclosed tags, mis-nesting and broken attributes instead of raising.
TREE_BUILDER = "lxml"


class HtmlParser:
    def __init__(self, max_content_size: int = MAX_CONTENT_SIZE) -> None:
        self.max_content_size = max_content_size

    def parse(self, raw_content: Union[str, bytes, None], encoding: str | None = None) -> ParseResult:
        try:
            document = parse_html(raw_content, encoding or DEFAULT_ENCODING, self.max_content_size)
        except ScraperError as exc:
            return ParseResult(error=Failure.from_exception(exc))
        return ParseResult(document=document)


def parse_html(
    raw_content: Union[str, bytes, None],
    encoding: str = DEFAULT_ENCODING,
    max_content_size: int = MAX_CONTENT_SIZE,
) -> BeautifulSoup:
    """Parse markup into a queryable tree, raising ValidationError if impossible."""
    if raw_content is None:
        raise ValidationError("HTML content cannot be nil")

    size = len(raw_content) if isinstance(raw_content, bytes) else len(raw_content.encode("utf-8", "replace"))
    if size > max_content_size:
        raise ValidationError(f"HTML content too large (max {max_content_size} bytes)")

    if isinstance(raw_content, bytes):
        text = _decode(raw_content, encoding)
    else:
        text = raw_content
    if not text.strip():
        raise ValidationError("HTML content cannot be empty")

    try:
        return BeautifulSoup(text, TREE_BUILDER)
    except ParserRejectedMarkup as exc:
        raise ValidationError(f"HTML parsing failed: {exc}") from exc
    except (UnicodeError, ValueError) as exc:
        logger.warning("Encoding error during HTML parsing, retrying with cleaned content: %s", exc)

    cleaned = text.encode(DEFAULT_ENCODING, errors="replace").decode(DEFAULT_ENCODING, errors="replace")
    try:
        return BeautifulSoup(cleaned, TREE_BUILDER)
    except (ParserRejectedMarkup, UnicodeError, ValueError) as exc:
        raise ValidationError(f"HTML parsing failed: {exc}") from exc


def _decode(raw: bytes, encoding: str) -> str:
    """Decode strictly, falling back to UTF-8 with invalid sequences replaced."""
    try:
        return raw.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        logger.warning("Encoding error during HTML parsing (%s), retrying with replacement: %s", encoding, exc)
        return raw.decode(DEFAULT_ENCODING, errors="replace")
