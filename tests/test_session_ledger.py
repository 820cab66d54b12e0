"""Tests for session ledgers."""
import pytest
from datetime import datetime, timedelta, timezone

from homegame.ledger.errors import (
    InvalidAmountError,
    PlayerNotFoundError,
    SessionNotActiveError,
)
from homegame.ledger.session_ledger import SessionLedger, SessionStatus, default_session_name


@pytest.fixture
def session():
    session = SessionLedger(name="Friday Game", hosted_by="Dana")
    session.mark_persisted()
    return session


class TestLifecycle:
    """Test draft/active/completed transitions."""

    def test_default_name(self):
        """Test the generated session name."""
        assert default_session_name(datetime(2025, 10, 18, 20, 30)) == "Saturday Oct 18 at 20:30"

    def test_new_session_is_draft(self):
        """Test a session starts as a draft with a generated name."""
        session = SessionLedger()
        assert session.status == SessionStatus.DRAFT
        assert session.name
        assert not session.is_completed

    def test_persisted_session_is_active(self, session):
        assert session.status == SessionStatus.ACTIVE
        assert session.is_active

    def test_end_session(self, session):
        """Test ending sets the end time once."""
        end = datetime.now(timezone.utc)

        assert session.end_session(end) is True
        assert session.end_session(end + timedelta(hours=1)) is False

        assert session.status == SessionStatus.COMPLETED
        assert session.end_time == end

    def test_duration_uses_end_time(self):
        start = datetime(2024, 3, 1, 20, 0, tzinfo=timezone.utc)
        session = SessionLedger(start_time=start)
        session.end_session(start + timedelta(hours=4))

        assert session.duration == timedelta(hours=4)

    def test_rename(self, session):
        session.rename("  Saturday Game ")
        assert session.name == "Saturday Game"
        with pytest.raises(ValueError):
            session.rename("   ")


class TestPlayers:
    """Test adding and finding players."""

    def test_add_player(self, session):
        """Test the first buy-in creates the player."""
        player = session.add_player("Bob", 100)

        assert session.player_count == 1
        assert player.total_buy_in == 100
        assert player.history[0].note == "Initial buy-in"

    def test_repeat_buy_in_is_case_insensitive(self, session):
        """Test buying in again under a different case reuses the player."""
        session.add_player("Bob", 100)
        player = session.add_player("bob", 50)

        assert session.player_count == 1
        assert player.player_name == "Bob"
        assert player.total_buy_in == 150
        assert player.history[1].note == "Additional buy-in"

    def test_invalid_buy_in_creates_nothing(self, session):
        """Test a rejected first buy-in does not add the player."""
        with pytest.raises(InvalidAmountError):
            session.add_player("Bob", 0)
        with pytest.raises(InvalidAmountError):
            session.add_player("Bob", float("nan"))
        assert session.player_count == 0

    def test_empty_name_rejected(self, session):
        with pytest.raises(ValueError):
            session.add_player("  ", 100)

    def test_unknown_player(self, session):
        """Test operations on unknown players raise PlayerNotFoundError."""
        with pytest.raises(PlayerNotFoundError):
            session.add_cash_out("Nobody", 10)
        with pytest.raises(LookupError):
            session.set_final_stack("Nobody", 10)

    def test_remove_player(self, session):
        session.add_player("Bob", 100)
        session.add_player("Carol", 100)

        removed = session.remove_player("BOB")

        assert removed.player_name == "Bob"
        assert [p.player_name for p in session.players] == ["Carol"]
        assert session.total_buy_in == 100


class TestBalance:
    """Test conservation of chips across the session."""

    def test_balanced_session(self, session):
        """Test chips bought in equal chips on the table."""
        session.add_player("Bob", 100)
        session.add_player("Carol", 100)
        session.set_final_stack("Bob", 150)
        session.set_final_stack("Carol", 50)

        assert session.total_buy_in == 200
        assert session.total_current_stacks == 200
        assert session.is_balanced
        assert sum(r.profit for r in session.results()) == 0

    def test_unbalanced_session(self, session):
        """Test a missing chip count shows up in the balance delta."""
        session.add_player("Bob", 100)
        session.add_player("Carol", 100)
        session.set_final_stack("Bob", 150)
        session.set_final_stack("Carol", 20)

        assert session.balance_delta == pytest.approx(30)
        assert not session.is_balanced

    def test_totals_sum_players(self, session):
        session.add_player("Bob", 100)
        session.add_player("Carol", 60)
        session.add_cash_out("Carol", 25)

        assert session.total_buy_in == 160
        assert session.total_cash_out == 25
        assert session.total_final_stacks == 0


class TestCompletedSession:
    """Test a completed session rejects edits."""

    def test_mutations_rejected(self, session):
        player = session.add_player("Bob", 100)
        tx_id = player.history[0].id
        session.end_session()

        with pytest.raises(SessionNotActiveError):
            session.add_player("Bob", 50)
        with pytest.raises(SessionNotActiveError):
            session.add_player("Carol", 50)
        with pytest.raises(SessionNotActiveError):
            session.add_cash_out("Bob", 10)
        with pytest.raises(SessionNotActiveError):
            session.set_final_stack("Bob", 10)
        with pytest.raises(SessionNotActiveError):
            session.remove_transaction("Bob", tx_id)
        with pytest.raises(SessionNotActiveError):
            session.remove_player("Bob")

        assert session.total_buy_in == 100

    def test_repair_allowed_after_completion(self, session):
        """Test drift can still be repaired on a completed session."""
        player = session.add_player("Bob", 100)
        session.end_session()
        player._total_buy_in = 10

        assert len(session.validate_integrity()) == 1
        assert session.repair_integrity() == ["Bob"]
        assert session.validate_integrity() == []


class TestSerialization:
    """Test document round trips."""

    def test_round_trip(self, session):
        """Test a stored session reloads as persisted with all players."""
        session.add_player("Bob", 100)
        session.add_player("Carol", 50)
        session.add_cash_out("Bob", 30)
        session.set_final_stack("Carol", 80)
        session.end_session()

        restored = SessionLedger.from_dict(session.to_dict())

        assert restored.id == session.id
        assert restored.name == "Friday Game"
        assert restored.hosted_by == "Dana"
        assert restored.status == SessionStatus.COMPLETED
        assert restored.end_time == session.end_time
        assert restored.total_buy_in == 150
        assert restored.get_player("carol").final_stack == 80
        assert restored.validate_integrity() == []

    def test_loaded_session_is_never_draft(self):
        draft = SessionLedger()
        restored = SessionLedger.from_dict(draft.to_dict())
        assert restored.status == SessionStatus.ACTIVE


class TestScenarios:
    """Test the reference settlement scenarios."""

    def test_bob_and_carol_balanced(self, session):
        """Test two 50 buy-ins ending at 30 and 70 balance."""
        session.add_player("Bob", 50)
        session.add_player("Carol", 50)
        session.set_final_stack("Bob", 30)
        session.set_final_stack("Carol", 70)
        session.end_session()

        assert session.total_buy_in == 100
        assert session.total_current_stacks == 100
        assert session.is_balanced
