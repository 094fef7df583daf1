"""Pydantic request/response schemas."""

from careprofile.schemas.profile import (
    FieldDescriptorResponse,
    ProfileCreatedResponse,
    ProfileResponse,
)
from careprofile.schemas.conversation import (
    ChatRequest,
    ConversationTurnResponse,
    ConversationSessionResponse,
    ConversationDetailResponse,
    ConversationStats,
    FieldExtractionCount,
    ExtractionAnalytics,
)
from careprofile.schemas.events import (
    ContentEvent,
    ExtractionEvent,
    ErrorEvent,
    DoneEvent,
    TurnEvent,
)

__all__ = [
    "FieldDescriptorResponse",
    "ProfileCreatedResponse",
    "ProfileResponse",
    "ChatRequest",
    "ConversationTurnResponse",
    "ConversationSessionResponse",
    "ConversationDetailResponse",
    "ConversationStats",
    "FieldExtractionCount",
    "ExtractionAnalytics",
    "ContentEvent",
    "ExtractionEvent",
    "ErrorEvent",
    "DoneEvent",
    "TurnEvent",
]
