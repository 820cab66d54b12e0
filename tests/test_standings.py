"""Tests for standings and player statistics."""
import pytest
from datetime import datetime, timedelta, timezone

from homegame.admin.standings import PlayerStanding, calculate_standings, format_standings_table
from homegame.admin.stats import player_session_stats
from homegame.ledger.session_ledger import SessionLedger


def played_session(results: dict[str, tuple[float, float]], ended: bool = True, days_ago: int = 0) -> SessionLedger:
    """Build a session from {name: (buy_in, final_stack)}."""
    start = datetime.now(timezone.utc) - timedelta(days=days_ago)
    session = SessionLedger(start_time=start)
    session.mark_persisted()
    for name, (buy_in, final_stack) in results.items():
        session.add_player(name, buy_in)
        session.set_final_stack(name, final_stack)
    if ended:
        session.end_session(start + timedelta(hours=4))
    return session


class TestStandings:
    """Test standings calculation and formatting."""

    def test_standing_to_dict(self):
        standing = PlayerStanding("alice", 100, 0, 150, 150, 50)

        data = standing.to_dict()

        assert data["player"] == "alice"
        assert data["buy_ins"] == 100
        assert data["final_stack"] == 150
        assert data["net"] == 50

    def test_sorted_by_net(self):
        session = played_session({"Bob": (100, 40), "Alice": (100, 160)})

        standings = calculate_standings(session)

        assert [s.player for s in standings] == ["Alice", "Bob"]
        assert standings[0].net == 60
        assert standings[1].net == -60

    def test_format_standings_table_empty(self):
        """Test formatting empty standings."""
        assert format_standings_table([]) == "No transactions recorded."

    def test_format_standings_table(self):
        """Test formatting standings as table."""
        standings = [
            PlayerStanding("alice", 100, 0, 150, 150, 50),
            PlayerStanding("bob", 100, 0, 40, 40, -60),
        ]

        result = format_standings_table(standings)

        assert "alice" in result
        assert "bob" in result
        assert "+50.00" in result
        assert "-60.00" in result


class TestPlayerSessionStats:
    """Test statistics across sessions."""

    def test_stats(self):
        sessions = [
            played_session({"Alice": (100, 160), "Bob": (100, 40)}, days_ago=1),
            played_session({"Alice": (100, 70), "Bob": (100, 130)}, days_ago=8),
            played_session({"Alice": (50, 50)}, ended=False),
        ]

        stats = player_session_stats(sessions, "alice")

        assert stats.total_sessions == 3
        assert stats.completed_sessions == 2
        assert stats.active_sessions == 1
        assert stats.total_buy_ins == 200
        assert stats.average_profit == pytest.approx(15)
        assert stats.best_session == 60
        assert stats.worst_session == -30
        assert stats.last_played == sessions[0].end_time

    def test_player_without_sessions(self):
        stats = player_session_stats([played_session({"Bob": (100, 100)})], "Alice")

        assert stats.total_sessions == 0
        assert not stats.has_played
        assert stats.to_dict()["last_played"] is None
