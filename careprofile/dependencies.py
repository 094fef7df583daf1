from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from careprofile.db.models import CaregiverProfile, ConversationSession
from careprofile.db.session import async_session
from careprofile.providers import ChatConfigError, ChatProvider
from careprofile.providers import get_chat_provider as _build_chat_provider
from careprofile.services.conversation import get_session
from careprofile.services.profile import profile_service


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_chat_provider() -> ChatProvider:
    """Configured chat provider or 503 when none is configured."""
    try:
        return _build_chat_provider()
    except ChatConfigError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )


async def get_profile_or_404(
    profile_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CaregiverProfile:
    """Load profile by id or raise 404. Requires route path param profile_id."""
    profile = await profile_service.get(db, profile_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found",
        )
    return profile


async def get_conversation_or_404(
    session_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ConversationSession:
    """Load conversation session by id or raise 404. Requires route path param session_id."""
    session = await get_session(db, session_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return session
