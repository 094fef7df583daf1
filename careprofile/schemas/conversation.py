from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    profile_id: str
    message: str = Field(min_length=1)


class ConversationTurnResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: datetime
    user_message: str
    agent_response: str
    raw_model_output: str
    extracted_data: Optional[dict[str, Any]] = None
    extracted_fields: Optional[list[str]] = None


class ConversationSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    profile_id: str
    status: str  # "active" | "completed"
    started_at: datetime
    last_updated_at: datetime
    version: int
    turn_count: Optional[int] = None


class ConversationDetailResponse(ConversationSessionResponse):
    turns: list[ConversationTurnResponse] = []


class ConversationStats(BaseModel):
    """Statistics over one session's turn log. Durations in seconds."""

    turn_count: int = 0
    fields_extracted: list[str] = []  # first-seen order
    fields_covered: int = 0
    total_fields: int = 0
    completion_percentage: int = 0
    duration_seconds: float = 0.0
    average_turn_interval_seconds: float = 0.0


class FieldExtractionCount(BaseModel):
    field: str
    count: int


class ExtractionAnalytics(BaseModel):
    """Extraction counts across every session."""

    session_count: int = 0
    turn_count: int = 0
    field_counts: list[FieldExtractionCount] = []  # most extracted first
