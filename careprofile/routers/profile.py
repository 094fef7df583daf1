from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from careprofile.db.models import CaregiverProfile
from careprofile.dependencies import get_db, get_profile_or_404
from careprofile.domain import list_fields
from careprofile.schemas import (
    ConversationSessionResponse,
    FieldDescriptorResponse,
    ProfileCreatedResponse,
    ProfileResponse,
)
from careprofile.serializers import (
    field_descriptor_to_response,
    profile_to_response,
    session_to_response,
)
from careprofile.services import conversation_service, profile_service

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("", response_model=ProfileCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(db: AsyncSession = Depends(get_db)):
    """Start a new onboarding attempt."""
    profile = await profile_service.create(db)
    return ProfileCreatedResponse.model_validate(profile)


@router.get("/fields", response_model=list[FieldDescriptorResponse])
async def get_fields():
    return [field_descriptor_to_response(f) for f in list_fields()]


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(profile: CaregiverProfile = Depends(get_profile_or_404)):
    return profile_to_response(profile)


@router.get("/{profile_id}/conversations", response_model=list[ConversationSessionResponse])
async def list_profile_conversations(
    profile: CaregiverProfile = Depends(get_profile_or_404),
    db: AsyncSession = Depends(get_db),
):
    rows = await conversation_service.sessions(db, profile.id)
    return [session_to_response(session, turn_count) for session, turn_count in rows]
