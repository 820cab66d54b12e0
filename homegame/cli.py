#!/usr/bin/env python3
"""CLI tool for ledger administration."""
import asyncio
import sys
from contextlib import asynccontextmanager
from typing import Optional

from homegame.admin.session_manager import SessionManager
from homegame.admin.standings import calculate_standings, format_standings_table
from homegame.db.connection import db
from homegame.ledger.errors import LedgerError
from homegame.state.profile_store import profile_store
from homegame.state.redis_client import redis_client
from homegame.state.session_store import session_store


@asynccontextmanager
async def connected():
    """Open the stores for one command."""
    await db.connect()
    await redis_client.connect()
    try:
        yield SessionManager(session_store, profile_store)
    finally:
        await redis_client.disconnect()
        await db.disconnect()


async def list_sessions(days: Optional[int] = None):
    """List recent sessions."""
    async with connected() as manager:
        sessions = await manager.recent_sessions(days)

        if not sessions:
            print("No sessions found.")
            return

        print(f"\n{'Name':<30} {'Status':<10} {'Players':>7} {'Buy-ins':>10}  {'ID'}")
        print("-" * 100)
        for s in sessions:
            print(
                f"{s.name:<30} {s.status.value:<10} {s.player_count:>7} "
                f"{s.total_buy_in:>10.2f}  {s.id}"
            )
        print(f"\nTotal: {len(sessions)} sessions")


async def show_session(session_id: str):
    """Show a session's standings."""
    async with connected() as manager:
        session = await manager.load_session(session_id)

        print(f"\nSession: {session.name}")
        print(f"  ID:      {session.id}")
        print(f"  Status:  {session.status.value}")
        print(f"  Started: {session.start_time:%Y-%m-%d %H:%M}")
        if session.end_time:
            print(f"  Ended:   {session.end_time:%Y-%m-%d %H:%M}")
        print()
        print(format_standings_table(calculate_standings(session)))
        if not session.is_balanced:
            print(f"\nWarning: unbalanced by {session.balance_delta:.2f}")


async def show_profile(name: str):
    """Show a player's lifetime record."""
    async with connected() as manager:
        profile = await manager.get_profile(name)

        if not profile:
            print(f"Error: Profile '{name}' not found.")
            sys.exit(1)

        best, worst = profile.best_worst_profit()
        print(f"\nPlayer: {profile.display_name}")
        print(f"  Sessions:  {profile.sessions_played}")
        print(f"  Buy-ins:   {profile.lifetime_buy_in:.2f}")
        print(f"  Cash-outs: {profile.lifetime_cash_out:.2f}")
        print(f"  Profit:    {profile.lifetime_profit:+.2f}")
        print(f"  Average:   {profile.average_profit():+.2f}")
        print(f"  Best:      {best:+.2f}")
        print(f"  Worst:     {worst:+.2f}")


async def repair_profile(name: str):
    """Recompute a profile's totals."""
    async with connected() as manager:
        profile = await manager.repair_profile(name)
        print(
            f"Success: '{profile.name}' repaired "
            f"(buy-ins {profile.lifetime_buy_in:.2f}, cash-outs {profile.lifetime_cash_out:.2f})."
        )


async def repair_all():
    """Recompute every profile's totals."""
    async with connected() as manager:
        repaired, total = await manager.repair_all_profiles()
        print(f"Repaired {repaired}/{total} profiles.")
        if repaired < total:
            sys.exit(1)


async def delete_session(session_id: str):
    """Delete a session."""
    async with connected() as manager:
        await manager.delete_session(session_id)
        print(f"Success: Session '{session_id}' deleted.")


def print_usage():
    """Print usage information."""
    print("""
Home Game Ledger CLI

Usage:
  python -m homegame.cli <command> [args]

Commands:
  sessions [days]              List sessions from the last N days
  show <session_id>            Show a session's standings
  profile <name>               Show a player's lifetime record
  repair <name>                Recompute a player's lifetime totals
  repair-all                   Recompute every player's lifetime totals
  delete-session <session_id>  Delete a session and remove it from profiles

Examples:
  python -m homegame.cli sessions 30
  python -m homegame.cli profile alice
""")


def _require_arg(command: str, label: str) -> str:
    if len(sys.argv) < 3:
        print(f"Error: {label} required.")
        print(f"Usage: python -m homegame.cli {command} <{label.lower().replace(' ', '_')}>")
        sys.exit(1)
    return sys.argv[2]


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()

    try:
        if command == "sessions":
            days = int(sys.argv[2]) if len(sys.argv) > 2 else None
            asyncio.run(list_sessions(days))

        elif command == "show":
            asyncio.run(show_session(_require_arg(command, "Session ID")))

        elif command == "profile":
            asyncio.run(show_profile(_require_arg(command, "Name")))

        elif command == "repair":
            asyncio.run(repair_profile(_require_arg(command, "Name")))

        elif command == "repair-all":
            asyncio.run(repair_all())

        elif command == "delete-session":
            asyncio.run(delete_session(_require_arg(command, "Session ID")))

        elif command in ("help", "-h", "--help"):
            print_usage()

        else:
            print(f"Unknown command: {command}")
            print_usage()
            sys.exit(1)
    except LedgerError as e:
        print(f"Error: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
