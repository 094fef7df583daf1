from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from careprofile.db.models import ConversationSession
from careprofile.dependencies import get_conversation_or_404, get_db
from careprofile.schemas import (
    ConversationDetailResponse,
    ConversationSessionResponse,
    ConversationStats,
    ExtractionAnalytics,
)
from careprofile.serializers import session_to_detail_response, session_to_response
from careprofile.services import conversation_service

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("/analytics", response_model=ExtractionAnalytics)
async def get_extraction_analytics(db: AsyncSession = Depends(get_db)):
    return await conversation_service.analytics(db)


@router.get("/{session_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    session: ConversationSession = Depends(get_conversation_or_404),
    db: AsyncSession = Depends(get_db),
):
    detail = await conversation_service.detail(db, session.id)
    return session_to_detail_response(detail)


@router.get("/{session_id}/stats", response_model=ConversationStats)
async def get_conversation_stats(
    session: ConversationSession = Depends(get_conversation_or_404),
    db: AsyncSession = Depends(get_db),
):
    return await conversation_service.stats(db, session.id)


@router.post("/{session_id}/end", response_model=ConversationSessionResponse)
async def end_conversation(
    session: ConversationSession = Depends(get_conversation_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Mark the conversation completed. Ending a completed conversation is a no-op."""
    ended = await conversation_service.end(db, session.id)
    return session_to_response(ended)
