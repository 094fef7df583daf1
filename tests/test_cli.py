"""
Tests for the conversation inspector CLI.
"""

import json
from datetime import timedelta

import pytest_asyncio

from careprofile.cli import build_parser, run_command
from careprofile.services.conversation import append_turn, get_or_create_active_session, get_session
from careprofile.services.profile import apply_profile_delta, create_profile
from careprofile.utils import as_utc


@pytest_asyncio.fixture
async def seeded(session_factory):
    async with session_factory() as db:
        profile = await create_profile(db)
        await apply_profile_delta(db, profile.id, {"location": "Denver", "languages": ["English"]})
        session = await get_or_create_active_session(db, profile.id)
        start = as_utc(session.started_at)
        await append_turn(
            db,
            session.id,
            user_message="I'm in Denver and speak English",
            agent_response="Denver is lovely!",
            raw_model_output='{"message": "Denver is lovely!"}',
            extracted_data={"location": "Denver", "languages": ["English"]},
            extracted_fields=["location", "languages"],
            timestamp=start + timedelta(seconds=5),
        )
        await append_turn(
            db,
            session.id,
            user_message="I charge $30/hr",
            agent_response="Thanks!",
            raw_model_output='{"message": "Thanks!"}',
            extracted_data={"hourly_rate": "$30/hour"},
            extracted_fields=["hourly_rate"],
            timestamp=start + timedelta(seconds=15),
        )
        await db.commit()
        return profile.id, session.id


async def _run(session_factory, *argv):
    return await run_command(build_parser().parse_args(list(argv)), session_factory)


async def test_list(session_factory, seeded, capsys):
    profile_id, session_id = seeded
    assert await _run(session_factory, "list") == 0
    out = capsys.readouterr().out
    assert "Total profiles: 1" in out
    assert f"Profile: {profile_id}" in out
    assert "Location: Denver" in out
    assert f"{session_id} (active)" in out
    assert "Turns: 2" in out


async def test_show(session_factory, seeded, capsys):
    _, session_id = seeded
    assert await _run(session_factory, "show", session_id) == 0
    out = capsys.readouterr().out
    assert "--- Turn 1" in out
    assert "User: I'm in Denver and speak English" in out
    assert "Extracted: location, languages" in out
    assert "Agent: Thanks!" in out


async def test_stats(session_factory, seeded, capsys):
    _, session_id = seeded
    assert await _run(session_factory, "stats", session_id) == 0
    out = capsys.readouterr().out
    assert "Turns: 2" in out
    assert "Fields extracted: 3/20" in out
    assert "Completion: 15%" in out
    assert "Avg time between turns: 10.0s" in out
    assert "  - hourly_rate" in out


async def test_export(session_factory, seeded, tmp_path):
    profile_id, session_id = seeded
    target = tmp_path / "export.json"
    assert await _run(session_factory, "export", session_id, "--output", str(target)) == 0
    exported = json.loads(target.read_text(encoding="utf-8"))
    assert exported["conversation"]["id"] == session_id
    assert len(exported["conversation"]["turns"]) == 2
    assert exported["profile"]["id"] == profile_id
    assert exported["profile"]["fields"]["location"] == "Denver"


async def test_end(session_factory, seeded, capsys):
    _, session_id = seeded
    assert await _run(session_factory, "end", session_id) == 0
    assert "marked as completed" in capsys.readouterr().out
    async with session_factory() as db:
        assert (await get_session(db, session_id)).status == "completed"


async def test_analytics(session_factory, seeded, capsys):
    assert await _run(session_factory, "analytics") == 0
    out = capsys.readouterr().out
    assert "Total conversations: 1" in out
    assert "Total turns: 2" in out
    assert "location: 1 times" in out


async def test_unknown_session_exits_nonzero(session_factory, seeded):
    assert await _run(session_factory, "show", "missing") == 1
    assert await _run(session_factory, "stats", "missing") == 1
