"""Normalize caller-supplied field descriptions into FieldSpec values.

Callers describe fields in several loose shapes::

    "h1"                                          # bare selector, text
    [{"name": "title", "selector": "h1"}]         # list of configs
    {"title": "h1", "price": {"selector": ".p"}}  # name -> selector/config
    [{"name": "description", "type": "meta"}]     # meta tag lookup
    [{"name": "meta:og:title"}]                   # meta tag, prefixed key

Each shape collapses into ``CssField`` / ``MetaField`` instances once, here,
so the rest of the pipeline never inspects raw dicts.
"""

from __future__ import annotations

import json
from typing import Any

from field_scraper.errors import ValidationError
from field_scraper.models import CssField, ExtractionType, FieldSpec, MetaField

META_PREFIX = "meta:"
META_TYPE = "meta"

_CSS_TYPES = {t.value for t in ExtractionType}


def normalize_fields(raw: Any) -> list[FieldSpec]:
    """Turn a JSON string, list or name-keyed map into an ordered list of FieldSpecs."""
    if isinstance(raw, str):
        stripped = raw.strip()
        if stripped.startswith(("[", "{")):
            try:
                raw = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValidationError(f"Invalid fields JSON format: {exc.msg}") from exc
        elif stripped:
            raw = [stripped]

    if not raw:
        raise ValidationError("fields parameter is required")

    if isinstance(raw, dict):
        return [_from_mapping_entry(name, config) for name, config in raw.items()]
    if isinstance(raw, (list, tuple)):
        return _unique([_from_item(item) for item in raw])
    raise ValidationError(f"Invalid fields format: {type(raw).__name__}")


def _unique(specs: list[FieldSpec]) -> list[FieldSpec]:
    # One field per output name within a kind; CSS and meta may share a name.
    seen = set()
    for spec in specs:
        kind = META_TYPE if isinstance(spec, MetaField) or spec.name.startswith(META_PREFIX) else "css"
        if (kind, spec.name) in seen:
            raise ValidationError(f"Duplicate field name '{spec.name}'")
        seen.add((kind, spec.name))
    return specs


def _from_mapping_entry(name: Any, config: Any) -> FieldSpec:
    if isinstance(config, str):
        return _from_dict({"name": str(name), "selector": config})
    if isinstance(config, dict):
        return _from_dict({**config, "name": str(name)})
    raise ValidationError(f"Invalid field config for '{name}': {type(config).__name__}")


def _from_item(item: Any) -> FieldSpec:
    if isinstance(item, (CssField, MetaField)):
        return item
    if isinstance(item, str):
        return _from_dict({"selector": item})
    if isinstance(item, dict):
        return _from_dict(item)
    raise ValidationError(f"Invalid field format: {type(item).__name__}")


def _from_dict(field: dict[str, Any]) -> FieldSpec:
    selector = field.get("selector")
    name = field.get("name") or selector
    field_type = str(field.get("type") or ExtractionType.TEXT.value).lower()

    if is_meta_field(name, field_type):
        return _meta_field(str(name or ""), field.get("attribute"))

    if field_type not in _CSS_TYPES:
        raise ValidationError(f"Unsupported field type '{field_type}' for field '{name}'")
    if selector is None:
        raise ValidationError(f"Field '{name}' requires a selector")

    return CssField(
        name=str(name),
        selector=str(selector),
        type=ExtractionType(field_type),
        attribute=field.get("attribute"),
        multiple=bool(field.get("multiple", False)),
    )


def is_meta_field(name: Any, field_type: str | None) -> bool:
    return field_type == META_TYPE or str(name or "").startswith(META_PREFIX)


def _meta_field(name: str, attribute: Any) -> MetaField:
    meta_name = name[len(META_PREFIX):] if name.startswith(META_PREFIX) else name
    if not meta_name.strip():
        raise ValidationError("Meta tag name cannot be empty")
    return MetaField(name=name, meta_name=meta_name, attribute=attribute or "content")
