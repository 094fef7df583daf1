"""
Conversation store: session lifecycle, append-only turn log, bounded history, statistics.

Storage faults (SQLAlchemyError) propagate to the caller; lookups of unknown
sessions raise ConversationNotFoundError.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from careprofile.core.constants import (
    DEFAULT_MAX_HISTORY_TURNS,
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_COMPLETED,
)
from careprofile.db.models import ConversationSession, ConversationTurn, utcnow
from careprofile.domain import FIELDS_BY_NAME, TOTAL_FIELDS
from careprofile.schemas import ConversationStats, ExtractionAnalytics, FieldExtractionCount
from careprofile.services.profile import completion_percentage
from careprofile.utils import as_utc

logger = logging.getLogger(__name__)


class ConversationNotFoundError(Exception):
    """Raised when a conversation session id does not exist."""


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------


async def _find_active_session(db: AsyncSession, profile_id: str) -> ConversationSession | None:
    result = await db.execute(
        select(ConversationSession).where(
            ConversationSession.profile_id == profile_id,
            ConversationSession.status == SESSION_STATUS_ACTIVE,
        )
    )
    return result.scalar_one_or_none()


async def get_or_create_active_session(db: AsyncSession, profile_id: str) -> ConversationSession:
    """
    Return the profile's active session, creating one if none exists.
    The partial unique index on (profile_id) WHERE status='active' arbitrates races:
    the loser of a concurrent insert re-reads the winner's session.
    """
    session = await _find_active_session(db, profile_id)
    if session is not None:
        return session

    session = ConversationSession(
        profile_id=profile_id,
        status=SESSION_STATUS_ACTIVE,
        version=1,
    )
    db.add(session)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent request created the active session; re-load it.
        await db.rollback()
        session = await _find_active_session(db, profile_id)
        if session is None:
            raise
        return session
    logger.info("Conversation session created: session_id=%s profile_id=%s", session.id, profile_id)
    return session


async def get_session(db: AsyncSession, session_id: str) -> ConversationSession | None:
    result = await db.execute(select(ConversationSession).where(ConversationSession.id == session_id))
    return result.scalar_one_or_none()


async def get_session_or_raise(db: AsyncSession, session_id: str) -> ConversationSession:
    session = await get_session(db, session_id)
    if session is None:
        raise ConversationNotFoundError(f"Conversation not found: {session_id}")
    return session


async def get_session_with_turns(db: AsyncSession, session_id: str) -> ConversationSession:
    result = await db.execute(
        select(ConversationSession)
        .where(ConversationSession.id == session_id)
        .options(selectinload(ConversationSession.turns))
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise ConversationNotFoundError(f"Conversation not found: {session_id}")
    return session


async def list_sessions(
    db: AsyncSession,
    profile_id: str | None = None,
) -> list[tuple[ConversationSession, int]]:
    """Sessions (oldest first) with their turn counts; optionally for one profile."""
    turn_counts = (
        select(ConversationTurn.session_id, func.count(ConversationTurn.id).label("turn_count"))
        .group_by(ConversationTurn.session_id)
        .subquery()
    )
    q = (
        select(ConversationSession, func.coalesce(turn_counts.c.turn_count, 0))
        .outerjoin(turn_counts, turn_counts.c.session_id == ConversationSession.id)
        .order_by(ConversationSession.started_at.asc())
    )
    if profile_id is not None:
        q = q.where(ConversationSession.profile_id == profile_id)
    result = await db.execute(q)
    return [(row[0], int(row[1])) for row in result.all()]


async def end_session(db: AsyncSession, session_id: str) -> ConversationSession:
    """Mark the session completed. Ending a completed session is a no-op."""
    session = await get_session_or_raise(db, session_id)
    if session.status != SESSION_STATUS_COMPLETED:
        session.status = SESSION_STATUS_COMPLETED
        session.version = (session.version or 0) + 1
        await db.flush()
        logger.info("Conversation session ended: session_id=%s", session_id)
    return session


# -----------------------------------------------------------------------------
# Turns
# -----------------------------------------------------------------------------


async def append_turn(
    db: AsyncSession,
    session_id: str,
    user_message: str,
    agent_response: str,
    raw_model_output: str,
    extracted_data: dict[str, Any] | None = None,
    extracted_fields: list[str] | None = None,
    timestamp: datetime | None = None,
) -> ConversationTurn:
    """Append one exchange. Never deduplicates; a repeated message is a new turn."""
    session = await get_session_or_raise(db, session_id)
    now = timestamp or utcnow()
    turn = ConversationTurn(
        session_id=session_id,
        timestamp=now,
        user_message=user_message,
        agent_response=agent_response,
        raw_model_output=raw_model_output,
        extracted_data=extracted_data or None,
        extracted_fields=list(extracted_fields) if extracted_fields else None,
    )
    db.add(turn)
    session.last_updated_at = now
    session.version = (session.version or 0) + 1
    await db.flush()
    return turn


async def list_turns(db: AsyncSession, session_id: str) -> list[ConversationTurn]:
    """Full turn log in ascending timestamp order."""
    result = await db.execute(
        select(ConversationTurn)
        .where(ConversationTurn.session_id == session_id)
        .order_by(ConversationTurn.timestamp.asc())
    )
    return list(result.scalars().all())


async def get_bounded_history(
    db: AsyncSession,
    session_id: str,
    max_turns: int = DEFAULT_MAX_HISTORY_TURNS,
) -> list[dict[str, str]]:
    """
    Model context from the most recent max_turns turns, each expanded to a
    user message followed by an assistant message. Older turns stay in storage.
    """
    turns = await list_turns(db, session_id)
    recent = turns[-max_turns:] if max_turns > 0 else []
    messages: list[dict[str, str]] = []
    for turn in recent:
        messages.append({"role": "user", "content": turn.user_message})
        messages.append({"role": "assistant", "content": turn.agent_response})
    return messages


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------


def _turn_fields(turn: ConversationTurn) -> list[str]:
    fields = turn.extracted_fields
    if not isinstance(fields, list):
        return []
    return [f for f in fields if isinstance(f, str)]


async def compute_stats(db: AsyncSession, session_id: str) -> ConversationStats:
    session = await get_session_or_raise(db, session_id)
    turns = await list_turns(db, session_id)

    # dict keeps first-seen order
    seen: dict[str, None] = {}
    for turn in turns:
        for name in _turn_fields(turn):
            seen.setdefault(name, None)
    fields_extracted = list(seen)
    fields_covered = sum(1 for name in fields_extracted if name in FIELDS_BY_NAME)

    started = as_utc(session.started_at)
    last_updated = as_utc(session.last_updated_at)
    duration = (last_updated - started).total_seconds() if started and last_updated else 0.0

    intervals = [
        (as_utc(b.timestamp) - as_utc(a.timestamp)).total_seconds()
        for a, b in zip(turns, turns[1:])
    ]
    average_interval = sum(intervals) / len(intervals) if intervals else 0.0

    return ConversationStats(
        turn_count=len(turns),
        fields_extracted=fields_extracted,
        fields_covered=fields_covered,
        total_fields=TOTAL_FIELDS,
        completion_percentage=completion_percentage(fields_covered, TOTAL_FIELDS),
        duration_seconds=max(duration, 0.0),
        average_turn_interval_seconds=average_interval,
    )


async def compute_extraction_analytics(db: AsyncSession) -> ExtractionAnalytics:
    """Per-field extraction counts across every session, most extracted first."""
    session_count = (await db.execute(select(func.count(ConversationSession.id)))).scalar_one()
    result = await db.execute(select(ConversationTurn.extracted_fields))
    counts: Counter[str] = Counter()
    turn_count = 0
    for (fields,) in result.all():
        turn_count += 1
        if isinstance(fields, list):
            counts.update(f for f in fields if isinstance(f, str))
    return ExtractionAnalytics(
        session_count=session_count,
        turn_count=turn_count,
        field_counts=[FieldExtractionCount(field=f, count=c) for f, c in counts.most_common()],
    )


# -----------------------------------------------------------------------------
# Service facade (for dependency injection)
# -----------------------------------------------------------------------------


class ConversationService:
    """Facade for conversation store operations."""

    @staticmethod
    async def end(db: AsyncSession, session_id: str) -> ConversationSession:
        return await end_session(db, session_id)

    @staticmethod
    async def stats(db: AsyncSession, session_id: str) -> ConversationStats:
        return await compute_stats(db, session_id)

    @staticmethod
    async def detail(db: AsyncSession, session_id: str) -> ConversationSession:
        return await get_session_with_turns(db, session_id)

    @staticmethod
    async def sessions(
        db: AsyncSession, profile_id: str | None = None
    ) -> list[tuple[ConversationSession, int]]:
        return await list_sessions(db, profile_id)

    @staticmethod
    async def analytics(db: AsyncSession) -> ExtractionAnalytics:
        return await compute_extraction_analytics(db)


conversation_service = ConversationService()
