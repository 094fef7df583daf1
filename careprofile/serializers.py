"""Shared model-to-response serializers."""

from careprofile.db.models import CaregiverProfile, ConversationSession, ConversationTurn
from careprofile.domain import FieldDescriptor, TOTAL_FIELDS
from careprofile.schemas import (
    ConversationDetailResponse,
    ConversationSessionResponse,
    ConversationTurnResponse,
    FieldDescriptorResponse,
    ProfileResponse,
)
from careprofile.services.extractor import list_touched_fields
from careprofile.services.profile import completion_percentage, get_profile_fields


def field_descriptor_to_response(field: FieldDescriptor) -> FieldDescriptorResponse:
    return FieldDescriptorResponse(
        name=field.name,
        kind=field.kind,
        priority=field.priority,
        required=field.required,
        description=field.description,
    )


def profile_to_response(profile: CaregiverProfile) -> ProfileResponse:
    """Map CaregiverProfile to ProfileResponse with decoded fields and completion."""
    fields = get_profile_fields(profile)
    touched = list_touched_fields(fields)
    return ProfileResponse(
        id=profile.id,
        status=profile.status,
        fields=fields,
        touched_fields=touched,
        completion_percentage=completion_percentage(len(touched), TOTAL_FIELDS),
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


def turn_to_response(turn: ConversationTurn) -> ConversationTurnResponse:
    return ConversationTurnResponse(
        id=turn.id,
        timestamp=turn.timestamp,
        user_message=turn.user_message,
        agent_response=turn.agent_response,
        raw_model_output=turn.raw_model_output,
        extracted_data=turn.extracted_data if isinstance(turn.extracted_data, dict) else None,
        extracted_fields=turn.extracted_fields if isinstance(turn.extracted_fields, list) else None,
    )


def session_to_response(
    session: ConversationSession,
    turn_count: int | None = None,
) -> ConversationSessionResponse:
    return ConversationSessionResponse(
        id=session.id,
        profile_id=session.profile_id,
        status=session.status,
        started_at=session.started_at,
        last_updated_at=session.last_updated_at,
        version=session.version,
        turn_count=turn_count,
    )


def session_to_detail_response(session: ConversationSession) -> ConversationDetailResponse:
    """Session with its full turn log; turns must already be loaded."""
    turns = [turn_to_response(t) for t in session.turns]
    return ConversationDetailResponse(
        **session_to_response(session, turn_count=len(turns)).model_dump(),
        turns=turns,
    )
