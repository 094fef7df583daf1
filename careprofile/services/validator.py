"""
Per-field domain rules for caregiver profile values.

Pure, side-effect-free checks run after the structural (schema shape) check:
- Type check against the field kind declared in careprofile.domain
- Field rules: location length, non-empty language/care-type lists,
  hourly rate range with canonical "$<n>/hour" form, experience bounds,
  http(s) picture URL
Invalid input is an expected outcome: every check returns a ValidationResult
with a human-readable reason instead of raising.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Callable

from careprofile.domain import FieldKind, get_field, has_value

MIN_LOCATION_LENGTH = 2
MIN_HOURLY_RATE = 10
MAX_HOURLY_RATE = 200
MAX_YEARS_OF_EXPERIENCE = 80

_RATE_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_URL_RE = re.compile(r"^https?://.+", re.IGNORECASE)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def accept(cls, value: Any) -> "ValidationResult":
        return cls(ok=True, value=value)

    @classmethod
    def reject(cls, error: str) -> "ValidationResult":
        return cls(ok=False, error=error)


def _kind_of(value: Any) -> FieldKind | None:
    if isinstance(value, str):
        return "string"
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return "string_list"
    if isinstance(value, dict) and all(isinstance(k, str) for k in value):
        return "number_map"
    return None


def _format_number(n: float) -> str:
    """30.0 -> "30", 22.50 -> "22.5"."""
    return f"{n:g}" if n != int(n) else str(int(n))


# -----------------------------------------------------------------------------
# Field rules
# -----------------------------------------------------------------------------


def validate_location(location: str) -> ValidationResult:
    s = (location or "").strip()
    if len(s) < MIN_LOCATION_LENGTH:
        return ValidationResult.reject(f"Location must be at least {MIN_LOCATION_LENGTH} characters")
    return ValidationResult.accept(s)


def validate_hourly_rate(rate: str) -> ValidationResult:
    """Accepts $30, $30/hour, $30/hr, 30 ...; normalizes to "$30/hour"."""
    match = _RATE_NUMBER_RE.search(rate or "")
    if not match:
        return ValidationResult.reject("Hourly rate must be a positive number")
    numeric = float(match.group(0))
    if numeric <= 0 or not math.isfinite(numeric):
        return ValidationResult.reject("Hourly rate must be a positive number")
    if numeric < MIN_HOURLY_RATE or numeric > MAX_HOURLY_RATE:
        return ValidationResult.reject(
            f"Hourly rate must be between ${MIN_HOURLY_RATE} and ${MAX_HOURLY_RATE}"
        )
    return ValidationResult.accept(f"${_format_number(numeric)}/hour")


def _validate_non_empty_list(label: str) -> Callable[[list[str]], ValidationResult]:
    def check(items: list[str]) -> ValidationResult:
        kept = [s.strip() for s in items if has_value(s)]
        if not kept:
            return ValidationResult.reject(f"At least one {label} is required")
        return ValidationResult.accept(kept)
    return check


validate_languages = _validate_non_empty_list("language")
validate_care_types = _validate_non_empty_list("care type")


def validate_years_of_experience(years: dict[str, Any]) -> ValidationResult:
    if not years:
        return ValidationResult.reject("Years of experience needs at least one entry")
    for care_type, n in years.items():
        if isinstance(n, bool) or not isinstance(n, (int, float)) or not math.isfinite(n):
            return ValidationResult.reject(f"Years of experience for '{care_type}' must be a number")
        if n < 0 or n > MAX_YEARS_OF_EXPERIENCE:
            return ValidationResult.reject(
                f"Years of experience for '{care_type}' must be between 0 and {MAX_YEARS_OF_EXPERIENCE}"
            )
    return ValidationResult.accept(dict(years))


def validate_profile_picture_url(url: str) -> ValidationResult:
    s = (url or "").strip()
    if not _URL_RE.match(s):
        return ValidationResult.reject("Profile picture URL must be a valid HTTP(S) URL")
    return ValidationResult.accept(s)


_FIELD_RULES: dict[str, Callable[[Any], ValidationResult]] = {
    "location": validate_location,
    "languages": validate_languages,
    "care_types": validate_care_types,
    "hourly_rate": validate_hourly_rate,
    "years_of_experience": validate_years_of_experience,
    "profile_picture_url": validate_profile_picture_url,
}


def validate_field(field_name: str, value: Any) -> ValidationResult:
    """Type-check value against the field kind, then apply the field's rule (if any)."""
    descriptor = get_field(field_name)
    if descriptor is None:
        return ValidationResult.reject(f"Unknown field: {field_name}")
    if not has_value(value):
        return ValidationResult.reject(f"{field_name} has no value")
    if _kind_of(value) != descriptor.kind:
        return ValidationResult.reject(f"{field_name} must be a {descriptor.kind.replace('_', ' ')}")

    rule = _FIELD_RULES.get(field_name)
    if rule is None:
        if descriptor.kind == "string":
            return ValidationResult.accept(value.strip())
        if descriptor.kind == "string_list":
            return ValidationResult.accept([s.strip() for s in value if has_value(s)])
        return ValidationResult.accept(value)
    return rule(value)
