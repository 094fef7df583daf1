"""
Extraction of caregiver profile data from a model's structured payload.

Payload → structural check (strict pydantic model generated from the field schema)
→ placeholder stripping → per-field domain rules → minimal delta + touched fields.

Storage form (one text column per field):
  - string fields            → stored as-is
  - string_list / number_map → JSON text
  - placeholders             → never stored
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, create_model

from careprofile.domain import FIELD_NAMES, FIELDS_BY_NAME, PROFILE_FIELDS, has_value
from careprofile.services.validator import validate_field

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when a payload does not match the profile field schema."""

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


@dataclass
class ExtractionResult:
    data: dict[str, Any]
    fields: list[str]
    # field -> reason, for values that passed the shape check but failed a domain rule
    rejected: dict[str, str] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Structural model (generated from PROFILE_FIELDS)
# -----------------------------------------------------------------------------

_PY_TYPE_BY_KIND: dict[str, Any] = {
    "string": str,
    "string_list": list[str],
    "number_map": dict[str, Union[int, float]],
}


class _PayloadBase(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)


CaregiverProfilePayload = create_model(
    "CaregiverProfilePayload",
    __base__=_PayloadBase,
    **{
        f.name: (
            Optional[_PY_TYPE_BY_KIND[f.kind]],
            Field(default=None, validation_alias=AliasChoices(f.name, f.alias)),
        )
        for f in PROFILE_FIELDS
    },
)


def _strip_placeholders(name: str, value: Any) -> Any:
    """Drop placeholder entries inside lists; return None when nothing meaningful is left."""
    if isinstance(value, list):
        value = [v.strip() for v in value if has_value(v)]
    elif isinstance(value, str):
        value = value.strip()
    return value if has_value(value) else None


# -----------------------------------------------------------------------------
# Extract / merge
# -----------------------------------------------------------------------------


def extract_profile_data(raw_data: Any, *, apply_rules: bool = True) -> ExtractionResult:
    """
    Validate a raw payload and return only the fields that carry real values.
    Raises ExtractionError when the payload shape does not match the schema.
    With apply_rules, values failing a domain rule are dropped (reported in rejected).
    """
    if isinstance(raw_data, str):
        try:
            raw_data = json.loads(raw_data)
        except (ValueError, json.JSONDecodeError) as e:
            raise ExtractionError("Extracted data is not valid JSON", str(e)) from e
    if not isinstance(raw_data, dict):
        raise ExtractionError("Extracted data must be a JSON object")

    try:
        validated = CaregiverProfilePayload.model_validate(raw_data)
    except ValidationError as e:
        raise ExtractionError("Unable to validate extracted data", e.errors(include_url=False)) from e

    data: dict[str, Any] = {}
    rejected: dict[str, str] = {}
    for name in FIELD_NAMES:
        value = _strip_placeholders(name, getattr(validated, name))
        if value is None:
            continue
        if apply_rules:
            result = validate_field(name, value)
            if not result.ok:
                rejected[name] = result.error or "invalid"
                continue
            value = result.value
        data[name] = value

    if rejected:
        logger.info("Dropped extracted fields failing validation: %s", rejected)
    return ExtractionResult(data=data, fields=list(data.keys()), rejected=rejected)


def merge_profile_data(existing: Mapping[str, Any], extracted: Mapping[str, Any]) -> dict[str, Any]:
    """Last write wins per field; an absent or placeholder delta value never clears existing data."""
    merged = dict(existing)
    for key, value in extracted.items():
        if has_value(value):
            merged[key] = value
    return merged


def list_touched_fields(profile: Mapping[str, Any]) -> list[str]:
    """Field names currently holding a real value, in schema order."""
    return [name for name in FIELD_NAMES if has_value(profile.get(name))]


# -----------------------------------------------------------------------------
# Storage form
# -----------------------------------------------------------------------------


def to_storage_form(profile: Mapping[str, Any]) -> dict[str, Any]:
    """Serialize lists and maps to JSON text; omit placeholders entirely."""
    out: dict[str, Any] = {}
    for key, value in profile.items():
        if not has_value(value):
            continue
        if isinstance(value, (list, dict)):
            out[key] = json.dumps(value, ensure_ascii=False)
        else:
            out[key] = value
    return out


def _decode_structured(name: str, raw: Any) -> Any:
    kind = FIELDS_BY_NAME[name].kind
    decoded = raw
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except (ValueError, json.JSONDecodeError):
            # Not JSON (legacy row): keep as a raw scalar
            return raw if has_value(raw) else None
    if isinstance(decoded, list):
        items = [v for v in decoded if has_value(v)]
        return items or None
    if isinstance(decoded, dict):
        if kind == "number_map":
            decoded = {
                k: v for k, v in decoded.items()
                if isinstance(v, (int, float)) and not isinstance(v, bool)
            }
        return decoded or None
    if decoded is None:
        return None
    if isinstance(decoded, str):
        return decoded if has_value(decoded) else None
    return raw if has_value(raw) else None


def from_storage_form(db_data: Mapping[str, Any]) -> dict[str, Any]:
    """Inverse of to_storage_form; unknown keys and placeholder values are skipped."""
    data: dict[str, Any] = {}
    for name in FIELD_NAMES:
        raw = db_data.get(name)
        if raw is None:
            continue
        if FIELDS_BY_NAME[name].kind == "string":
            value = raw if has_value(raw) else None
        else:
            value = _decode_structured(name, raw)
        if value is not None:
            data[name] = value
    return data
