from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class FieldDescriptorResponse(BaseModel):
    """One profile field as declared by the field schema."""

    name: str
    kind: str  # "string" | "string_list" | "number_map"
    priority: str  # "critical" | "high" | "optional"
    required: bool
    description: str


class ProfileCreatedResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    created_at: Optional[datetime] = None


class ProfileResponse(BaseModel):
    """Profile with decoded field values (placeholders never appear)."""

    id: str
    status: str
    fields: dict[str, Any] = {}
    touched_fields: list[str] = []
    completion_percentage: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
