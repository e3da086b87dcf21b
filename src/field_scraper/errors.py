"""Error taxonomy shared by every stage of the scrape pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    SECURITY = "security"
    NETWORK = "network"
    PARSING = "parsing"
    EXTRACTION = "extraction"


class ScraperError(Exception):
    """Base class for all scrape pipeline failures."""

    kind: ErrorKind = ErrorKind.VALIDATION


class ValidationError(ScraperError):
    """Raised for malformed input: URLs, field specs, document content."""

    kind = ErrorKind.VALIDATION


class SecurityError(ScraperError):
    """Raised when a blocked host, scheme or selector pattern is detected."""

    kind = ErrorKind.SECURITY


class NetworkError(ScraperError):
    """Raised when fetching fails: timeouts, HTTP errors, oversize bodies."""

    kind = ErrorKind.NETWORK


class ParsingError(ScraperError):
    kind = ErrorKind.PARSING


class ExtractionError(ScraperError):
    kind = ErrorKind.EXTRACTION
