"""
Tests for conversation turn execution: event order, partial failures, completion.
"""

import json

import httpx
from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from careprofile.core.constants import PROFILE_STATUS_COMPLETED, SESSION_STATUS_COMPLETED
from careprofile.db.models import ConversationSession
from careprofile.providers import ChatServiceError
from careprofile.providers.chat import OpenAICompatibleChatProvider
from careprofile.schemas import TurnEvent
from careprofile.services import executor as executor_module
from careprofile.services.conversation import list_sessions, list_turns
from careprofile.services.executor import TurnStage, execute_conversation_turn
from careprofile.services.profile import (
    apply_profile_delta,
    create_profile,
    get_profile_fields,
    get_profile_or_raise,
)


async def run_turn(db, profile_id, message, provider):
    return [
        event
        async for event in execute_conversation_turn(db, profile_id, message, chat_provider=provider)
    ]


async def _new_profile(db, **fields):
    profile = await create_profile(db)
    if fields:
        await apply_profile_delta(db, profile.id, fields)
    await db.commit()
    return profile.id


async def _reload_fields(session_factory, profile_id):
    async with session_factory() as check:
        return get_profile_fields(await get_profile_or_raise(check, profile_id))


async def _all_turns(session_factory, profile_id):
    async with session_factory() as check:
        turns = []
        for session, _ in await list_sessions(check, profile_id):
            turns.extend(await list_turns(check, session.id))
        return turns


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("database is unavailable"))


async def test_turn_event_order_and_persistence(db, session_factory, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(
        reply(
            fragments=["Denver is lovely! ", "What kind of care do you provide?"],
            extraction={"location": "Denver", "languages": ["English"]},
        )
    )

    events = await run_turn(db, profile_id, "I'm in Denver and speak English", provider)

    assert [e.type for e in events] == ["content", "content", "extraction", "done"]
    assert events[2].data == {"location": "Denver", "languages": ["English"]}
    assert events[2].fields == ["location", "languages"]
    assert events[3].profile_complete is False

    assert await _reload_fields(session_factory, profile_id) == {
        "location": "Denver",
        "languages": ["English"],
    }
    turns = await _all_turns(session_factory, profile_id)
    assert len(turns) == 1
    turn = turns[0]
    assert turn.session_id == events[3].session_id
    assert turn.user_message == "I'm in Denver and speak English"
    assert turn.agent_response == "Denver is lovely! What kind of care do you provide?"
    assert turn.extracted_fields == ["location", "languages"]
    raw = json.loads(turn.raw_model_output)
    assert raw["extracted_data"] == {"location": "Denver", "languages": ["English"]}


async def test_events_round_trip_through_turn_event_union(db, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(reply(fragments=["Hi!"], extraction={"location": "Denver"}))

    events = await run_turn(db, profile_id, "I'm in Denver", provider)

    adapter = TypeAdapter(TurnEvent)
    for event in events:
        assert adapter.validate_json(event.model_dump_json()) == event


async def test_history_is_sent_on_next_turn(db, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(
        reply(fragments=["Nice to meet you!"]),
        reply(fragments=["Got it."]),
    )

    first = await run_turn(db, profile_id, "Hi", provider)
    second = await run_turn(db, profile_id, "I do infant care", provider)

    assert first[-1].session_id == second[-1].session_id
    assert provider.calls[0] == [{"role": "user", "content": "Hi"}]
    assert provider.calls[1] == [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Nice to meet you!"},
        {"role": "user", "content": "I do infant care"},
    ]


async def test_rejected_extraction_keeps_profile_and_finishes(db, session_factory, scripted_provider, reply):
    profile_id = await _new_profile(db, years_of_experience={"infant": 5})
    provider = scripted_provider(
        reply(
            fragments=["Could you tell me how many years with each age group?"],
            extraction={"yearsOfExperience": "all the experience"},
        )
    )

    events = await run_turn(db, profile_id, "all the experience", provider)

    assert [e.type for e in events] == ["content", "done"]
    fields = await _reload_fields(session_factory, profile_id)
    assert fields["years_of_experience"] == {"infant": 5}
    turns = await _all_turns(session_factory, profile_id)
    assert len(turns) == 1
    assert turns[0].extracted_fields is None


async def test_unknown_profile_is_an_error(db, scripted_provider):
    provider = scripted_provider()
    events = await run_turn(db, "missing", "hello", provider)
    assert [e.type for e in events] == ["error"]
    assert events[0].stage == TurnStage.LOADING_CONTEXT.value
    assert provider.calls == []


async def test_store_fault_while_loading_context(db, session_factory, scripted_provider, monkeypatch):
    profile_id = await _new_profile(db)

    async def broken_history(*args, **kwargs):
        raise _operational_error()

    monkeypatch.setattr(executor_module, "get_bounded_history", broken_history)
    provider = scripted_provider()

    events = await run_turn(db, profile_id, "hello", provider)

    assert [e.type for e in events] == ["error"]
    assert events[0].error == "Unable to access conversation history"
    assert provider.calls == []
    async with session_factory() as check:
        assert await list_sessions(check, profile_id) == []


async def test_generation_fault_writes_nothing(db, session_factory, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(
        reply(fragments=["Let me "], error=ChatServiceError("Chat service unavailable"))
    )

    events = await run_turn(db, profile_id, "I'm in Denver", provider)

    assert [e.type for e in events] == ["content", "error"]
    assert events[1].error == "Chat service unavailable"
    assert events[1].stage == TurnStage.GENERATING.value
    assert await _all_turns(session_factory, profile_id) == []
    assert await _reload_fields(session_factory, profile_id) == {}


async def test_unexpected_generation_fault_is_reported(db, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(reply(error=KeyError("choices")))

    events = await run_turn(db, profile_id, "hello", provider)

    assert [e.type for e in events] == ["error"]
    assert events[0].stage == TurnStage.GENERATING.value


async def test_empty_reply_is_a_fault(db, session_factory, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(reply(fragments=[], extraction={"location": "Denver"}))

    events = await run_turn(db, profile_id, "I'm in Denver", provider)

    assert [e.type for e in events] == ["error"]
    assert await _reload_fields(session_factory, profile_id) == {}
    assert await _all_turns(session_factory, profile_id) == []


async def test_tool_call_only_answer_streams_follow_up_reply(db, session_factory):
    profile_id = await _new_profile(db)

    def sse(*chunks):
        lines = [f"data: {json.dumps(c)}" for c in chunks] + ["data: [DONE]"]
        return ("\n\n".join(lines) + "\n\n").encode()

    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 1:
            body = sse({"choices": [{"delta": {"content": None, "tool_calls": [
                {"index": 0, "id": "call_1", "function": {
                    "name": "update_caregiver_profile", "arguments": '{"location": "Denver"}'
                }}
            ]}}]})
        else:
            body = sse({"choices": [{"delta": {"content": "Denver is lovely!"}}]})
        return httpx.Response(200, content=body)

    provider = OpenAICompatibleChatProvider(
        base_url="http://llm.test",
        api_key=None,
        model="test-model",
        transport=httpx.MockTransport(handler),
    )

    events = await run_turn(db, profile_id, "I'm in Denver", provider)

    assert [e.type for e in events] == ["content", "extraction", "done"]
    assert events[0].content == "Denver is lovely!"
    assert len(requests) == 2
    assert await _reload_fields(session_factory, profile_id) == {"location": "Denver"}
    turns = await _all_turns(session_factory, profile_id)
    assert turns[0].agent_response == "Denver is lovely!"


async def test_profile_write_failure_still_records_turn(
    db, session_factory, scripted_provider, reply, monkeypatch
):
    profile_id = await _new_profile(db)

    async def broken_apply(*args, **kwargs):
        raise _operational_error()

    monkeypatch.setattr(executor_module, "apply_profile_delta", broken_apply)
    provider = scripted_provider(reply(fragments=["Great!"], extraction={"location": "Denver"}))

    events = await run_turn(db, profile_id, "I'm in Denver", provider)

    assert [e.type for e in events] == ["content", "done"]
    assert await _reload_fields(session_factory, profile_id) == {}
    turns = await _all_turns(session_factory, profile_id)
    assert len(turns) == 1
    assert turns[0].extracted_data == {"location": "Denver"}


async def test_turn_write_failure_keeps_profile_update(
    db, session_factory, scripted_provider, reply, monkeypatch
):
    profile_id = await _new_profile(db)

    async def broken_append(*args, **kwargs):
        raise _operational_error()

    monkeypatch.setattr(executor_module, "append_turn", broken_append)
    provider = scripted_provider(reply(fragments=["Great!"], extraction={"location": "Denver"}))

    events = await run_turn(db, profile_id, "I'm in Denver", provider)

    assert [e.type for e in events] == ["content", "extraction", "done"]
    assert await _reload_fields(session_factory, profile_id) == {"location": "Denver"}
    assert await _all_turns(session_factory, profile_id) == []


async def test_abandoned_turn_writes_nothing(db, session_factory, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(
        reply(fragments=["Denver ", "is ", "lovely!"], extraction={"location": "Denver"})
    )

    stream = execute_conversation_turn(db, profile_id, "I'm in Denver", chat_provider=provider)
    first = await stream.__anext__()
    assert first.type == "content"
    await stream.aclose()

    assert provider.closed == 1
    assert await _reload_fields(session_factory, profile_id) == {}
    assert await _all_turns(session_factory, profile_id) == []


async def test_closing_after_extraction_keeps_turn_record(db, session_factory, scripted_provider, reply):
    profile_id = await _new_profile(db)
    provider = scripted_provider(reply(fragments=["Denver is lovely!"], extraction={"location": "Denver"}))

    stream = execute_conversation_turn(db, profile_id, "I'm in Denver", chat_provider=provider)
    seen = []
    async for event in stream:
        seen.append(event.type)
        if event.type == "extraction":
            break
    await stream.aclose()

    assert seen == ["content", "extraction"]
    assert await _reload_fields(session_factory, profile_id) == {"location": "Denver"}
    turns = await _all_turns(session_factory, profile_id)
    assert len(turns) == 1
    assert turns[0].extracted_fields == ["location"]


async def test_profile_completion_ends_session(db, session_factory, scripted_provider, reply):
    profile_id = await _new_profile(
        db,
        location="Denver",
        languages=["English"],
        care_types=["infant care"],
        hourly_rate="$30/hour",
        qualifications=["CPR"],
        start_date="next Monday",
    )
    provider = scripted_provider(
        reply(fragments=["Thank you, that's everything!"], extraction={"weekly_hours": "30"})
    )

    events = await run_turn(db, profile_id, "About 30 hours a week", provider)

    assert [e.type for e in events] == ["content", "extraction", "done"]
    assert events[-1].profile_complete is True
    async with session_factory() as check:
        profile = await get_profile_or_raise(check, profile_id)
        assert profile.status == PROFILE_STATUS_COMPLETED
        result = await check.execute(
            select(ConversationSession).where(ConversationSession.id == events[-1].session_id)
        )
        session = result.scalar_one()
        assert session.status == SESSION_STATUS_COMPLETED
        assert len(await list_turns(check, session.id)) == 1


async def test_two_high_priority_fields_are_not_enough(db, scripted_provider, reply):
    profile_id = await _new_profile(
        db,
        location="Denver",
        languages=["English"],
        care_types=["infant care"],
        hourly_rate="$30/hour",
        qualifications=["CPR"],
    )
    provider = scripted_provider(reply(fragments=["Noted!"], extraction={"start_date": "June"}))

    events = await run_turn(db, profile_id, "I can start in June", provider)

    assert events[-1].type == "done"
    assert events[-1].profile_complete is False
