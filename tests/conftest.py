"""
PyTest configuration and fixtures.

Each test gets its own SQLite database file (aiosqlite) with the full schema.
"""

from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio

from careprofile.db import Base, make_engine, make_session_factory
from careprofile.providers import ChatProvider, ReplyChunk


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'careprofile.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@dataclass
class ScriptedReply:
    """One model answer: text fragments, then an optional payload or error."""

    fragments: list[str] = field(default_factory=list)
    extraction: Any = None
    error: Exception | None = None


class ScriptedChatProvider(ChatProvider):
    """Plays back scripted replies in order; the last one repeats."""

    def __init__(self, *replies: ScriptedReply):
        self.replies = list(replies) or [ScriptedReply(fragments=["Hello!"])]
        self.calls: list[list[dict[str, str]]] = []
        self.closed = 0

    async def stream_reply(self, messages, system_prompt):
        self.calls.append(list(messages))
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        try:
            for fragment in reply.fragments:
                yield ReplyChunk(type="content", content=fragment)
            if reply.error is not None:
                raise reply.error
            if reply.extraction is not None:
                yield ReplyChunk(type="extraction", data=reply.extraction)
        finally:
            self.closed += 1


@pytest.fixture
def scripted_provider():
    """Factory: scripted_provider(ScriptedReply(...), ...) -> ScriptedChatProvider."""
    return ScriptedChatProvider


@pytest.fixture
def reply():
    return ScriptedReply
