"""
Inspect onboarding conversations stored in the database.

Commands:
  list                    profiles with their conversations and turn counts
  show <session_id>       full turn log
  stats <session_id>      turn count, field coverage, durations
  export <session_id>     session, turns and profile as JSON (--output FILE)
  end <session_id>        mark a conversation completed
  analytics               most extracted fields across all conversations

Uses DATABASE_URL from .env. Run: careprofile-conversations <command> [args]
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careprofile.services import conversation_service, profile_service
from careprofile.services.conversation import ConversationNotFoundError
from careprofile.serializers import profile_to_response, session_to_detail_response

logger = logging.getLogger(__name__)

ANALYTICS_TOP_FIELDS = 10


async def list_conversations(db: AsyncSession) -> int:
    profiles = await profile_service.list_all(db)
    sessions_by_profile: dict[str, list] = {}
    for session, turn_count in await conversation_service.sessions(db):
        sessions_by_profile.setdefault(session.profile_id, []).append((session, turn_count))

    print(f"\nTotal profiles: {len(profiles)}\n")
    for profile in profiles:
        fields = profile_service.fields(profile)
        sessions = sessions_by_profile.get(profile.id, [])
        print(f"Profile: {profile.id}")
        print(f"  Location: {fields.get('location') or 'Not set'}")
        print(f"  Status: {profile.status}")
        print(f"  Conversations: {len(sessions)}")
        for session, turn_count in sessions:
            print(f"    - {session.id} ({session.status})")
            print(f"      Turns: {turn_count}")
            print(f"      Started: {session.started_at.isoformat()}")
        print()
    return 0


async def show_conversation(db: AsyncSession, session_id: str) -> int:
    session = await conversation_service.detail(db, session_id)
    print(f"\nConversation: {session.id}")
    print(f"Profile: {session.profile_id}")
    print(f"Status: {session.status}")
    print(f"Started: {session.started_at.isoformat()}")
    print(f"Turns: {len(session.turns)}\n")
    for i, turn in enumerate(session.turns, start=1):
        print(f"--- Turn {i} ({turn.timestamp.isoformat()}) ---")
        print(f"User: {turn.user_message}")
        print(f"Agent: {turn.agent_response}")
        if turn.extracted_fields:
            print(f"Extracted: {', '.join(turn.extracted_fields)}")
        print()
    return 0


async def show_stats(db: AsyncSession, session_id: str) -> int:
    stats = await conversation_service.stats(db, session_id)
    print("\nConversation Statistics")
    print("-----------------------")
    print(f"Turns: {stats.turn_count}")
    print(f"Fields extracted: {stats.fields_covered}/{stats.total_fields}")
    print(f"Completion: {stats.completion_percentage}%")
    print(f"Duration: {stats.duration_seconds:.1f}s")
    print(f"Avg time between turns: {stats.average_turn_interval_seconds:.1f}s")
    print("\nExtracted fields:")
    for name in stats.fields_extracted:
        print(f"  - {name}")
    return 0


async def export_conversation(db: AsyncSession, session_id: str, output: str | None) -> int:
    session = await conversation_service.detail(db, session_id)
    profile = await profile_service.get(db, session.profile_id)
    payload = {
        "conversation": session_to_detail_response(session).model_dump(mode="json"),
        "profile": profile_to_response(profile).model_dump(mode="json") if profile else None,
    }
    path = Path(output or f"conversation-{session_id}.json")
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Exported to {path}")
    return 0


async def end_conversation(db: AsyncSession, session_id: str) -> int:
    await conversation_service.end(db, session_id)
    await db.commit()
    print("Conversation marked as completed")
    return 0


async def show_analytics(db: AsyncSession) -> int:
    analytics = await conversation_service.analytics(db)
    print("\nExtraction Analytics")
    print("--------------------")
    print(f"Total conversations: {analytics.session_count}")
    print(f"Total turns: {analytics.turn_count}")
    print("\nMost extracted fields:")
    for item in analytics.field_counts[:ANALYTICS_TOP_FIELDS]:
        print(f"  {item.field}: {item.count} times")
    return 0


async def run_command(args: argparse.Namespace, session_factory: async_sessionmaker | None = None) -> int:
    """Dispatch a parsed command; returns the process exit code."""
    if session_factory is None:
        from careprofile.db.session import async_session as session_factory

    async with session_factory() as db:
        try:
            if args.command == "list":
                return await list_conversations(db)
            if args.command == "show":
                return await show_conversation(db, args.session_id)
            if args.command == "stats":
                return await show_stats(db, args.session_id)
            if args.command == "export":
                return await export_conversation(db, args.session_id, args.output)
            if args.command == "end":
                return await end_conversation(db, args.session_id)
            if args.command == "analytics":
                return await show_analytics(db)
        except ConversationNotFoundError:
            logger.error("Conversation not found: %s", args.session_id)
            return 1
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="careprofile-conversations",
        description="Inspect caregiver onboarding conversations.",
    )
    parser.add_argument("--log-level", default="WARNING", choices=("DEBUG", "INFO", "WARNING", "ERROR"))
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List profiles and their conversations")
    for name, help_text in (
        ("show", "Show a conversation's turns"),
        ("stats", "Show conversation statistics"),
        ("end", "Mark a conversation completed"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("session_id")
    export = sub.add_parser("export", help="Export a conversation to JSON")
    export.add_argument("session_id")
    export.add_argument("--output", "-o", default=None, help="Output file (default conversation-<id>.json)")
    sub.add_parser("analytics", help="Show extraction analytics")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    for name in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)

    try:
        code = asyncio.run(run_command(args))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        sys.exit(0)
    sys.exit(code)


if __name__ == "__main__":
    main()
