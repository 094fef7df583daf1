"""
Onboarding chat over Server-Sent Events.

- POST /chat: runs one conversation turn and streams its events as
  `data: <event json>` lines, terminated by `data: [DONE]`.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from careprofile.core import get_settings, limiter
from careprofile.db.session import async_session
from careprofile.dependencies import get_chat_provider
from careprofile.providers import ChatProvider
from careprofile.schemas import ChatRequest
from careprofile.services import execute_conversation_turn

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def _sse_event(payload: str) -> str:
    return f"data: {payload}\n\n"


async def _stream_turn(profile_id: str, message: str, chat_provider: ChatProvider):
    # The request-scoped session would close before streaming ends; open one per turn.
    async with async_session() as db:
        async for event in execute_conversation_turn(
            db,
            profile_id,
            message,
            chat_provider=chat_provider,
        ):
            yield _sse_event(event.model_dump_json())
    yield _sse_event("[DONE]")


@router.post("/chat")
@limiter.limit(get_settings().chat_rate_limit)
async def chat(
    request: Request,
    body: ChatRequest,
    chat_provider: ChatProvider = Depends(get_chat_provider),
):
    logger.info("Chat turn: profile_id=%s message_len=%d", body.profile_id, len(body.message))
    return StreamingResponse(
        _stream_turn(body.profile_id, body.message, chat_provider),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
