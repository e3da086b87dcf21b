"""Extraction strategies operating on a parsed document."""

from field_scraper.extractors.css import CssSelectorExtractor
from field_scraper.extractors.meta import MetaTagExtractor

__all__ = ["CssSelectorExtractor", "MetaTagExtractor"]
