"""Meta tag extraction strategy."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Optional

from bs4 import Tag

from field_scraper.errors import ScraperError, ValidationError
from field_scraper.models import ExtractedField, ExtractionResult, Failure, MetaField

logger = logging.getLogger(__name__)

# Lookup order for the meta tag name.
META_ATTRIBUTES = ("name", "property", "http-equiv")


class MetaTagExtractor:
    """Reads attributes (``content`` by default) from <meta> tags.

    Unlike CSS extraction, a meta tag that is not present is left out of
    ``data`` entirely rather than reported as ``None``.
    """

    def extract(self, document: Any, fields: Sequence[MetaField]) -> ExtractionResult:
        try:
            _validate(document, fields)
        except ScraperError as exc:
            logger.error("Meta extraction aborted: %s", exc)
            return ExtractionResult(error=Failure.from_exception(exc))

        metas = document.find_all("meta")
        results = []
        for field in fields:
            element = find_meta_element(metas, field.meta_name)
            value = element.get(field.attribute) if element is not None else None
            if isinstance(value, list):
                value = " ".join(value)
            results.append(ExtractedField(name=field.name, value=value))

        data = {result.name: result.value for result in results if result.ok and result.value is not None}
        return ExtractionResult(data=data, fields=results)


def _validate(document: Any, fields: Sequence[MetaField]) -> None:
    if document is None:
        raise ValidationError("Document is nil")
    for field in fields:
        if not field.meta_name or not field.meta_name.strip():
            raise ValidationError("Meta tag name cannot be empty")


def find_meta_element(metas: Sequence[Tag], meta_name: str) -> Optional[Tag]:
    """First meta tag whose name/property/http-equiv equals *meta_name*.

    Each attribute is tried with an exact match, then case-insensitively,
    before moving on to the next attribute.
    """
    wanted = meta_name.lower()
    for attr in META_ATTRIBUTES:
        for meta in metas:
            if meta.get(attr) == meta_name:
                return meta
        for meta in metas:
            candidate = meta.get(attr)
            if isinstance(candidate, str) and candidate.lower() == wanted:
                return meta
    return None
