"""Tests for player profiles and the profile reconciler."""
import pytest
from datetime import datetime, timedelta, timezone

from homegame.ledger.errors import PersistenceFailureError
from homegame.ledger.player_ledger import PlayerSessionResult
from homegame.profiles.profile import RECENT_SESSIONS_CAPACITY, PlayerProfile, SessionSummary
from homegame.profiles.reconciler import ProfileReconciler, SessionMetadata


T0 = datetime(2024, 3, 1, 20, 0, tzinfo=timezone.utc)


def summary(session_id: str, buy_in: float = 100, cash_out: float = 100, days: int = 0) -> SessionSummary:
    return SessionSummary(
        session_id=session_id,
        session_name=f"Game {session_id}",
        session_date=T0 + timedelta(days=days),
        buy_in=buy_in,
        cash_out=cash_out,
    )


def result(buy_in: float, cash_out: float, final_stack: float = 0) -> PlayerSessionResult:
    return PlayerSessionResult(
        player_name="Alice",
        profile_id="Alice",
        buy_in=buy_in,
        cash_out=cash_out,
        final_stack=final_stack,
        transaction_count=2,
    )


def metadata(name: str = "Friday Game") -> SessionMetadata:
    return SessionMetadata(session_name=name, session_date=T0, duration_seconds=3600, player_count=4)


class TestPlayerProfile:
    """Test profile bookkeeping and analytics."""

    def test_recent_sessions_bounded(self):
        """Test the display list keeps only the latest sessions."""
        profile = PlayerProfile(name="Alice")
        for i in range(RECENT_SESSIONS_CAPACITY + 2):
            profile.record_recent(summary(f"s{i}", days=i))

        ids = [s.session_id for s in profile.recent_sessions]
        assert len(ids) == RECENT_SESSIONS_CAPACITY
        assert ids[0] == "s2"
        assert ids[-1] == f"s{RECENT_SESSIONS_CAPACITY + 1}"

    def test_record_recent_replaces_same_session(self):
        profile = PlayerProfile(name="Alice")
        profile.record_recent(summary("s1", cash_out=50))
        profile.record_recent(summary("s1", cash_out=80))

        assert len(profile.recent_sessions) == 1
        assert profile.recent_sessions[0].cash_out == 80

    def test_recalculate_uses_every_finalized_session(self):
        """Test totals come from the full finalized record, not the display list."""
        profile = PlayerProfile(name="Alice")
        for i in range(RECENT_SESSIONS_CAPACITY + 5):
            s = summary(f"s{i}", buy_in=10, cash_out=20, days=i)
            profile.finalized_sessions[s.session_id] = s
            profile.record_recent(s)

        profile.recalculate_lifetime_totals()

        assert profile.lifetime_buy_in == 150
        assert profile.lifetime_cash_out == 300

    def test_analytics(self):
        profile = PlayerProfile(name="Alice", nickname="Ace")
        for s in (summary("a", 100, 160), summary("b", 100, 40, days=1)):
            profile.finalized_sessions[s.session_id] = s
            profile.record_recent(s)
        profile.recalculate_lifetime_totals()

        assert profile.display_name == "Alice (Ace)"
        assert profile.lifetime_profit == 0
        assert profile.average_profit() == 0
        assert profile.best_worst_profit() == (60, -60)
        assert profile.recent_profit_trend() == [60, -60]

    def test_round_trip(self):
        profile = PlayerProfile(name="Alice", email="alice@example.com")
        s = summary("s1", 100, 150)
        profile.finalized_sessions["s1"] = s
        profile.record_recent(s)
        profile.recalculate_lifetime_totals()

        restored = PlayerProfile.from_dict(profile.to_dict())

        assert restored.key == "alice"
        assert restored.email == "alice@example.com"
        assert restored.lifetime_cash_out == 150
        assert restored.is_finalized("s1")
        assert restored.recent_sessions[0].profit == 50


class TestUpsertSessionReference:
    """Test provisional snapshots of sessions in play."""

    @pytest.mark.asyncio
    async def test_upsert_never_touches_lifetime_totals(self, profile_store):
        """Test repeated syncs only refresh the snapshot."""
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")

        first = await reconciler.upsert_session_reference(profile, "s1", result(100, 0), metadata())
        second = await reconciler.upsert_session_reference(profile, "s1", result(150, 30), metadata())

        assert first.created
        assert second.buy_in == 50
        assert second.cash_out == 30
        assert profile.lifetime_buy_in == 0
        assert profile.lifetime_cash_out == 0
        assert profile.session_references["s1"].buy_in == 150

    @pytest.mark.asyncio
    async def test_unchanged_snapshot_skips_write(self, profile_store):
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")

        await reconciler.upsert_session_reference(profile, "s1", result(100, 0), metadata())
        saves = profile_store.save_count
        delta = await reconciler.upsert_session_reference(profile, "s1", result(100, 0), metadata())

        assert delta.is_zero
        assert profile_store.save_count == saves

    @pytest.mark.asyncio
    async def test_finalized_session_ignored(self, profile_store):
        """Test a late sync cannot reopen a finalized session."""
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")
        await reconciler.finalize(profile, "s1", 100, 150, metadata())

        delta = await reconciler.upsert_session_reference(profile, "s1", result(200, 0), metadata())

        assert delta is None
        assert "s1" not in profile.session_references

    @pytest.mark.asyncio
    async def test_drop_session_reference(self, profile_store):
        """Test a left session's snapshot can be forgotten."""
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")
        await reconciler.upsert_session_reference(profile, "s1", result(100, 0), metadata())

        assert await reconciler.drop_session_reference(profile, "s1") is True

        assert profile.session_references == {}
        stored = await profile_store.get_profile("Alice")
        assert stored.session_references == {}
        assert stored.sessions_played == 0

        saves = profile_store.save_count
        assert await reconciler.drop_session_reference(profile, "s1") is False
        assert profile_store.save_count == saves


class TestFinalize:
    """Test folding sessions into lifetime totals."""

    @pytest.mark.asyncio
    async def test_finalize_applies_once(self, profile_store):
        """Test replaying finalize does not double count."""
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")
        await reconciler.upsert_session_reference(profile, "s1", result(100, 0), metadata())

        assert await reconciler.finalize(profile, "s1", 100, 150, metadata()) is True
        assert await reconciler.finalize(profile, "s1", 100, 150, metadata()) is False

        assert profile.lifetime_buy_in == 100
        assert profile.lifetime_cash_out == 150
        assert profile.session_references == {}
        assert len(profile.recent_sessions) == 1
        assert profile.last_played_at is not None

        stored = await profile_store.get_profile("alice")
        assert stored.lifetime_cash_out == 150

    @pytest.mark.asyncio
    async def test_finalize_result_counts_final_stack(self, profile_store):
        """Test chips still on the table count as cashed out."""
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")

        await reconciler.finalize_result(profile, "s1", result(100, 30, final_stack=90), metadata())

        assert profile.lifetime_cash_out == 120
        assert profile.finalized_sessions["s1"].profit == 20

    @pytest.mark.asyncio
    async def test_failed_write_rolls_back(self, profile_store):
        """Test a failed save leaves the profile as it was, and a retry applies once."""
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")
        profile_store.failing_names.add("alice")

        with pytest.raises(PersistenceFailureError):
            await reconciler.finalize(profile, "s1", 100, 150, metadata())

        assert profile.lifetime_buy_in == 0
        assert not profile.is_finalized("s1")
        assert profile.recent_sessions == []

        profile_store.failing_names.clear()
        assert await reconciler.finalize(profile, "s1", 100, 150, metadata()) is True
        assert profile.lifetime_buy_in == 100


class TestDeleteAndRepair:
    """Test removing sessions and rebuilding profiles."""

    @pytest.mark.asyncio
    async def test_delete_session_recomputes(self, profile_store):
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")
        await reconciler.finalize(profile, "s1", 100, 150, metadata("One"))
        await reconciler.finalize(profile, "s2", 50, 0, metadata("Two"))

        assert await reconciler.delete_session(profile, "s2") is True

        assert profile.lifetime_buy_in == 100
        assert profile.lifetime_cash_out == 150
        assert [s.session_id for s in profile.recent_sessions] == ["s1"]

    @pytest.mark.asyncio
    async def test_delete_unknown_session(self, profile_store):
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")

        assert await reconciler.delete_session(profile, "missing") is False
        assert profile_store.save_count == 0

    @pytest.mark.asyncio
    async def test_repair_profile(self, profile_store):
        """Test corrupted totals are rebuilt from finalized sessions."""
        reconciler = ProfileReconciler(profile_store)
        profile = await reconciler.load_profile("Alice")
        await reconciler.finalize(profile, "s1", 100, 150, metadata())
        profile.lifetime_buy_in = 5000
        profile.recent_sessions = []

        await reconciler.repair_profile(profile)

        assert profile.lifetime_buy_in == 100
        assert [s.session_id for s in profile.recent_sessions] == ["s1"]
