"""
Conversation turn execution.

LOADING_CONTEXT → GENERATING → EXTRACTING → PERSISTING → DONE

- Context: profile lookup, active session (get-or-create), bounded history; committed
  together so a failure here leaves nothing behind.
- Generating: model fragments are forwarded as ContentEvents as they arrive; the
  structured payload is held back.
- Extracting: a rejected payload is logged and the turn continues without a delta.
- Persisting: the profile delta and the turn record are separate commits, both made
  before the extraction and done events; a failed write is logged and never fails
  the turn.

If the caller stops iterating during generation (client disconnect), the model
stream is closed and nothing is written for the abandoned turn.
"""

import json
import logging
from contextlib import aclosing
from enum import Enum
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from careprofile.core import get_settings
from careprofile.prompts import SYSTEM_PROMPT
from careprofile.providers import ChatProvider, ChatServiceError
from careprofile.schemas import ContentEvent, DoneEvent, ErrorEvent, ExtractionEvent, TurnEvent
from careprofile.services.conversation import (
    append_turn,
    end_session,
    get_bounded_history,
    get_or_create_active_session,
)
from careprofile.services.extractor import ExtractionError, extract_profile_data
from careprofile.services.profile import (
    ProfileNotFoundError,
    apply_profile_delta,
    get_profile,
    is_profile_complete,
    mark_profile_completed,
)

logger = logging.getLogger(__name__)

GENERIC_TURN_ERROR = "Unable to process your message. Please try again."


class TurnStage(str, Enum):
    """Turn stage identifiers for logging and error events."""
    LOADING_CONTEXT = "loading_context"
    GENERATING = "generating"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    DONE = "done"


async def _safe_rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback failed")


async def execute_conversation_turn(
    db: AsyncSession,
    profile_id: str,
    user_message: str,
    *,
    chat_provider: ChatProvider,
    max_history_turns: int | None = None,
    system_prompt: str = SYSTEM_PROMPT,
) -> AsyncIterator[TurnEvent]:
    """Run one turn and yield content*, extraction?, then done (or a single error)."""
    if max_history_turns is None:
        max_history_turns = get_settings().max_history_turns

    # 1. Context
    try:
        profile = await get_profile(db, profile_id)
        if profile is None:
            yield ErrorEvent(error="Profile not found", stage=TurnStage.LOADING_CONTEXT.value)
            return
        session = await get_or_create_active_session(db, profile_id)
        session_id = session.id
        history = await get_bounded_history(db, session_id, max_history_turns)
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Loading context failed: profile_id=%s", profile_id)
        await _safe_rollback(db)
        yield ErrorEvent(
            error="Unable to access conversation history",
            stage=TurnStage.LOADING_CONTEXT.value,
        )
        return

    # 2. Generate
    messages = [*history, {"role": "user", "content": user_message}]
    reply_parts: list[str] = []
    extracted_raw = None
    try:
        async with aclosing(chat_provider.stream_reply(messages, system_prompt)) as stream:
            async for chunk in stream:
                if chunk.type == "content" and chunk.content:
                    reply_parts.append(chunk.content)
                    yield ContentEvent(content=chunk.content)
                elif chunk.type == "extraction" and chunk.data is not None:
                    extracted_raw = chunk.data
    except ChatServiceError as e:
        logger.warning("Generation failed: session_id=%s error=%s", session_id, e)
        yield ErrorEvent(error=str(e) or GENERIC_TURN_ERROR, stage=TurnStage.GENERATING.value)
        return
    except Exception:
        logger.exception("Executor streaming error: session_id=%s", session_id)
        yield ErrorEvent(error=GENERIC_TURN_ERROR, stage=TurnStage.GENERATING.value)
        return

    reply = "".join(reply_parts)
    if not reply.strip():
        logger.warning("Empty model reply: session_id=%s", session_id)
        yield ErrorEvent(
            error="No response received from the AI. Please try again.",
            stage=TurnStage.GENERATING.value,
        )
        return

    # 3. Extract
    delta: dict = {}
    fields: list[str] = []
    if extracted_raw is not None:
        try:
            result = extract_profile_data(extracted_raw)
            delta, fields = result.data, result.fields
        except ExtractionError as e:
            logger.warning(
                "Extraction validation failed: session_id=%s error=%s details=%s",
                session_id,
                e.message,
                e.details,
            )

    # 4. Persist (independent writes, all before the extraction/done events)
    profile_updated = False
    profile_complete = False
    if delta:
        try:
            merged = await apply_profile_delta(db, profile_id, delta)
            if is_profile_complete(merged):
                await mark_profile_completed(db, profile)
                profile_complete = True
            await db.commit()
            profile_updated = True
        except (SQLAlchemyError, ProfileNotFoundError):
            logger.exception("Profile update failed: profile_id=%s", profile_id)
            await _safe_rollback(db)
            profile_complete = False

    raw_model_output = json.dumps(
        {"message": reply, "extracted_data": extracted_raw},
        ensure_ascii=False,
        default=str,
    )
    try:
        await append_turn(
            db,
            session_id,
            user_message=user_message,
            agent_response=reply,
            raw_model_output=raw_model_output,
            extracted_data=delta or None,
            extracted_fields=fields or None,
        )
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Saving conversation turn failed: session_id=%s", session_id)
        await _safe_rollback(db)

    if profile_complete:
        try:
            await end_session(db, session_id)
            await db.commit()
        except SQLAlchemyError:
            logger.exception("Ending completed conversation failed: session_id=%s", session_id)
            await _safe_rollback(db)

    # 5. Events
    if profile_updated:
        yield ExtractionEvent(data=delta, fields=fields)
    yield DoneEvent(session_id=session_id, profile_complete=profile_complete)
