"""
Caregiver profile field schema.
Single source of truth for prompts, extraction, validation, storage, and API.
"""

from dataclasses import dataclass
from typing import Any, Literal

# -----------------------------------------------------------------------------
# 1. Enums
# -----------------------------------------------------------------------------

FieldKind = Literal["string", "string_list", "number_map"]

FieldPriority = Literal["critical", "high", "optional"]


# -----------------------------------------------------------------------------
# 2. Field descriptors
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    kind: FieldKind
    priority: FieldPriority
    description: str

    @property
    def required(self) -> bool:
        """Required for the profile to count as complete."""
        return self.priority == "critical"

    @property
    def alias(self) -> str:
        """camelCase spelling a model may emit for this field."""
        head, *rest = self.name.split("_")
        return head + "".join(part.capitalize() for part in rest)


PROFILE_FIELDS: tuple[FieldDescriptor, ...] = (
    # Critical
    FieldDescriptor("location", "string", "critical", "Geographic location (city, state, or general area)"),
    FieldDescriptor("languages", "string_list", "critical", "Languages spoken"),
    FieldDescriptor(
        "care_types", "string_list", "critical",
        "Types of care provided (e.g., infant care, toddler care, after-school care)",
    ),
    FieldDescriptor("hourly_rate", "string", "critical", "Hourly rate with currency (e.g., $25/hour)"),
    # High priority
    FieldDescriptor(
        "qualifications", "string_list", "high",
        "Certifications, degrees, training (e.g., CPR, First Aid, CDA)",
    ),
    FieldDescriptor("start_date", "string", "high", "Availability start date"),
    FieldDescriptor("general_availability", "string", "high", "Free-form schedule description"),
    FieldDescriptor(
        "years_of_experience", "number_map", "high",
        'Years of experience by care type (e.g., {"infant": 5, "toddler": 3})',
    ),
    FieldDescriptor("weekly_hours", "string", "high", "Desired hours per week"),
    # Optional
    FieldDescriptor("preferred_age_groups", "string_list", "optional", "Preferred age ranges"),
    FieldDescriptor("responsibilities", "string_list", "optional", "Specific duties willing to do"),
    FieldDescriptor("commute_distance", "string", "optional", "Maximum commute distance"),
    FieldDescriptor("commute_type", "string", "optional", "Transportation method"),
    FieldDescriptor("will_drive_children", "string", "optional", "Willing to drive children (Yes/No/Maybe)"),
    FieldDescriptor("accessibility_needs", "string", "optional", "Any accessibility requirements"),
    FieldDescriptor("dietary_preferences", "string_list", "optional", "Dietary restrictions/preferences"),
    FieldDescriptor("additional_child_rate", "string", "optional", "Rate for additional children"),
    FieldDescriptor("payroll_required", "string", "optional", "Payroll service needed"),
    FieldDescriptor("benefits_required", "string_list", "optional", "Desired benefits"),
    FieldDescriptor("profile_picture_url", "string", "optional", "Profile photo URL"),
)

FIELDS_BY_NAME: dict[str, FieldDescriptor] = {f.name: f for f in PROFILE_FIELDS}
FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in PROFILE_FIELDS)
TOTAL_FIELDS = len(PROFILE_FIELDS)

CRITICAL_FIELDS: tuple[str, ...] = tuple(f.name for f in PROFILE_FIELDS if f.priority == "critical")
HIGH_PRIORITY_FIELDS: tuple[str, ...] = tuple(f.name for f in PROFILE_FIELDS if f.priority == "high")


def list_fields() -> tuple[FieldDescriptor, ...]:
    return PROFILE_FIELDS


def get_field(name: str) -> FieldDescriptor | None:
    return FIELDS_BY_NAME.get(name)


# -----------------------------------------------------------------------------
# 3. "Is this value meaningfully present"
# -----------------------------------------------------------------------------

# Tokens a model (or an old row) uses to say "no value"
PLACEHOLDER_TOKENS = frozenset({
    "null", "none", "n/a", "na", "unknown", "not specified", "not provided",
    "not mentioned", "undefined", "tbd", "-",
})


def has_value(value: Any) -> bool:
    """False for None, blank or sentinel strings, empty maps, and lists with no real entries."""
    if value is None:
        return False
    if isinstance(value, str):
        s = value.strip()
        return bool(s) and s.lower() not in PLACEHOLDER_TOKENS
    if isinstance(value, (list, tuple)):
        return any(has_value(v) for v in value)
    if isinstance(value, dict):
        return len(value) > 0
    return True


# -----------------------------------------------------------------------------
# 4. Tool declaration for the model
# -----------------------------------------------------------------------------

UPDATE_PROFILE_TOOL_NAME = "update_caregiver_profile"

_JSON_SCHEMA_BY_KIND: dict[str, dict] = {
    "string": {"type": "string"},
    "string_list": {"type": "array", "items": {"type": "string"}},
    "number_map": {"type": "object", "additionalProperties": {"type": "number"}},
}


def build_tool_definition() -> dict:
    """OpenAI function-tool declaration generated from PROFILE_FIELDS."""
    properties = {
        f.name: {**_JSON_SCHEMA_BY_KIND[f.kind], "description": f.description}
        for f in PROFILE_FIELDS
    }
    return {
        "type": "function",
        "function": {
            "name": UPDATE_PROFILE_TOOL_NAME,
            "description": (
                "Extract and update caregiver profile information from the conversation. "
                "Call this whenever the user provides information that should be stored in their profile."
            ),
            "parameters": {"type": "object", "properties": properties},
        },
    }
