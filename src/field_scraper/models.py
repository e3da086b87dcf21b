"""Pydantic models for the scraping pipeline."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from field_scraper.errors import ErrorKind, ScraperError

FieldValue = Union[str, list[Optional[str]], None]


class FieldKind(str, Enum):
    CSS = "css"
    META = "meta"


class ExtractionType(str, Enum):
    TEXT = "text"
    HTML = "html"
    ATTRIBUTE = "attribute"


class CssField(BaseModel):
    """A field read from the elements matched by a CSS selector."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[FieldKind.CSS] = FieldKind.CSS
    name: str = Field(description="Output key in the result map")
    selector: str
    type: ExtractionType = ExtractionType.TEXT
    attribute: Optional[str] = None
    multiple: bool = False


class MetaField(BaseModel):
    """A field read from a <meta> element found by name, property or http-equiv."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[FieldKind.META] = FieldKind.META
    name: str = Field(description="Output key, including any meta: prefix")
    meta_name: str = Field(description="Value looked up in the meta attributes")
    attribute: str = "content"


FieldSpec = Annotated[Union[CssField, MetaField], Field(discriminator="kind")]


class ScrapeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    fields: list[FieldSpec] = Field(default_factory=list)


class RequestContext(BaseModel):
    """Per-request values threaded through the pipeline for log correlation."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: ScraperError) -> Failure:
        return cls(kind=exc.kind, message=str(exc))


class StageResult(BaseModel):
    """Common shape of every pipeline stage's outcome."""

    error: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class UrlCheck(StageResult):
    url: Optional[str] = None


class FetchResult(StageResult):
    content: bytes = b""
    body: str = ""
    encoding: Optional[str] = None
    status: Optional[int] = None
    headers: dict[str, str] = Field(default_factory=dict)
    response_time_ms: float = 0.0
    attempts: int = 0
    final_url: Optional[str] = None


class ParseResult(StageResult):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    document: Any = None


class ExtractedField(BaseModel):
    name: str
    value: FieldValue = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExtractionResult(StageResult):
    data: dict[str, FieldValue] = Field(default_factory=dict)
    fields: list[ExtractedField] = Field(default_factory=list)


class ScrapeResult(BaseModel):
    """Final envelope returned by the orchestrator."""

    success: bool
    data: Optional[dict[str, FieldValue]] = None
    cached: bool = False
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def succeeded(cls, data: dict[str, FieldValue], cached: bool = False) -> ScrapeResult:
        return cls(success=True, data=data, cached=cached)

    @classmethod
    def failed(cls, failure: Failure) -> ScrapeResult:
        return cls(success=False, data=None, cached=False, error=failure.message, error_kind=failure.kind)

    def to_response(self) -> dict[str, Any]:
        """Flat envelope for callers at the transport boundary."""
        if not self.success:
            return {"success": False, "error": self.error}
        return {**(self.data or {}), "cached": self.cached}
