"""CSS selector extraction strategy."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any, Optional

import soupsieve
from bs4 import Tag
from soupsieve import SelectorSyntaxError

from field_scraper.errors import ExtractionError, ScraperError, SecurityError, ValidationError
from field_scraper.models import (
    CssField,
    ExtractedField,
    ExtractionResult,
    ExtractionType,
    Failure,
    FieldValue,
)

logger = logging.getLogger(__name__)

MAX_SELECTOR_LENGTH = 1000

# Selectors carrying URL-scheme payloads are refused outright.
SUSPICIOUS_PATTERNS = (
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
)

_WHITESPACE = re.compile(r"\s+")


class CssSelectorExtractor:
    """Reads text, inner HTML or an attribute from elements matched by CSS selectors.

    Every selector is checked and compiled before any field is extracted; a
    single bad selector fails the whole batch. Problems specific to one
    field (such as an attribute extraction without an attribute name) only
    fail that field, which is then left out of ``data``.
    """

    def extract(self, document: Any, fields: Sequence[CssField]) -> ExtractionResult:
        try:
            if document is None:
                raise ValidationError("Document is nil")
            patterns = [compile_selector(field.selector) for field in fields]
        except ScraperError as exc:
            logger.error("CSS extraction aborted: %s", exc)
            return ExtractionResult(error=Failure.from_exception(exc))

        results = [self._extract_field(document, field, pattern) for field, pattern in zip(fields, patterns)]
        data = {result.name: result.value for result in results if result.ok}
        return ExtractionResult(data=data, fields=results)

    def _extract_field(self, document: Any, field: CssField, pattern: soupsieve.SoupSieve) -> ExtractedField:
        if field.type is ExtractionType.ATTRIBUTE and not field.attribute:
            message = "Attribute name required for attribute extraction"
            logger.error("Error extracting field '%s': %s", field.name, message)
            return ExtractedField(name=field.name, error=message)

        value: FieldValue
        if field.multiple:
            value = [read_value(element, field) for element in pattern.select(document)]
        else:
            element = pattern.select_one(document)
            value = read_value(element, field) if element is not None else None
        return ExtractedField(name=field.name, value=value)


def validate_selector(selector: Optional[str]) -> None:
    if selector is None:
        raise ValidationError("Selector cannot be nil")
    if not selector.strip():
        raise ValidationError("Selector cannot be empty")
    if len(selector) > MAX_SELECTOR_LENGTH:
        raise ValidationError(f"Selector too long (max {MAX_SELECTOR_LENGTH} characters)")
    if any(pattern.search(selector) for pattern in SUSPICIOUS_PATTERNS):
        raise SecurityError("Potentially malicious selector detected")


def compile_selector(selector: Optional[str]) -> soupsieve.SoupSieve:
    validate_selector(selector)
    # soupsieve refuses pseudo-elements and at-rules with NotImplementedError
    try:
        return soupsieve.compile(selector)
    except (SelectorSyntaxError, NotImplementedError) as exc:
        raise ExtractionError(f"Invalid CSS selector '{selector}': {exc}") from exc


def read_value(element: Tag, field: CssField) -> Optional[str]:
    if field.type is ExtractionType.HTML:
        return element.decode_contents()
    if field.type is ExtractionType.ATTRIBUTE:
        value = element.get(field.attribute)
        # bs4 splits multi-valued attributes such as class into lists
        if isinstance(value, list):
            return " ".join(value)
        return value
    return clean_text(element.get_text())


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace runs (including NBSP) into single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.replace("\u00a0", " ")).strip()
