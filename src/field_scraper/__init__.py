"""FieldScraper - fetch a page and extract fields with CSS selectors or meta tags."""

__version__ = "0.1.0"

from field_scraper.models import CssField, MetaField, RequestContext, ScrapeResult
from field_scraper.orchestrator import ScrapeOrchestrator, scrape

__all__ = ["CssField", "MetaField", "RequestContext", "ScrapeOrchestrator", "ScrapeResult", "scrape"]
