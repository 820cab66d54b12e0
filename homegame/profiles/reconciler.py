"""Folds session results into player profiles.

Sessions are synced to player profiles many times while they are being
played, but each session must reach a profile's lifetime totals exactly once.
Two operations keep those concerns apart:

* ``upsert_session_reference`` keeps a provisional ``{buy_in, cash_out}``
  snapshot current and never touches lifetime totals.
* ``finalize`` applies the session to lifetime totals and records it as
  finalized, guarded so a replay is a no-op.

Every operation mutates the in-memory profile, then writes it with a single
``save_profile`` call. If that write fails the profile is rolled back to its
previous state and ``PersistenceFailureError`` propagates, so the caller can
retry the whole call: a retry after a failed write starts from clean state,
and a retry after a successful write hits the finalized guard.
"""
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Callable, Optional, TYPE_CHECKING

from homegame.ledger.errors import PersistenceFailureError
from homegame.ledger.player_ledger import EPSILON, PlayerSessionResult
from homegame.profiles.profile import PlayerProfile, SessionReference, SessionSummary
from homegame.utils.logger import get_logger

if TYPE_CHECKING:
    from homegame.ledger.session_ledger import SessionLedger
    from homegame.state.profile_store import ProfileStore

logger = get_logger(__name__)


@dataclass
class SessionMetadata:
    """Session details copied into profile records."""
    session_name: str
    session_date: datetime
    duration_seconds: float = 0.0
    player_count: int = 0

    @classmethod
    def from_session(cls, session: "SessionLedger") -> "SessionMetadata":
        return cls(
            session_name=session.name,
            session_date=session.start_time,
            duration_seconds=session.duration.total_seconds(),
            player_count=session.player_count,
        )


@dataclass
class SnapshotDelta:
    """Change between two provisional snapshots of the same session."""
    session_id: str
    buy_in: float
    cash_out: float
    created: bool = False

    @property
    def is_zero(self) -> bool:
        return abs(self.buy_in) < EPSILON and abs(self.cash_out) < EPSILON


def _restore(profile: PlayerProfile, snapshot: dict) -> None:
    """Put a profile back to a previously captured state, in place."""
    previous = PlayerProfile.from_dict(snapshot)
    for f in fields(PlayerProfile):
        setattr(profile, f.name, getattr(previous, f.name))


class ProfileReconciler:
    """Applies session results to durable player profiles."""

    def __init__(self, store: "ProfileStore"):
        """Initialize reconciler.

        Args:
            store: Profile collaborator providing get_profile/save_profile.
        """
        self.store = store

    async def load_profile(self, player_name: str) -> PlayerProfile:
        """Get a player's profile, creating an unsaved one for new players."""
        profile = await self.store.get_profile(player_name)
        if profile is None:
            logger.info(f"No profile for {player_name}, starting a new one")
            profile = PlayerProfile(name=player_name)
        return profile

    async def _commit(self, profile: PlayerProfile, mutate: Callable[[PlayerProfile], None]) -> None:
        """Apply a mutation and persist it, rolling back if the write fails."""
        snapshot = profile.to_dict()
        mutate(profile)
        try:
            await self.store.save_profile(profile)
        except PersistenceFailureError:
            _restore(profile, snapshot)
            logger.warning(f"Profile write for {profile.name} failed, local changes rolled back")
            raise

    async def upsert_session_reference(
        self,
        profile: PlayerProfile,
        session_id: str,
        snapshot: PlayerSessionResult,
        metadata: SessionMetadata,
    ) -> Optional[SnapshotDelta]:
        """Record or refresh the provisional snapshot of a session in play.

        Safe to call any number of times. Lifetime totals are never touched.

        Args:
            profile: Profile to update.
            session_id: Session being played.
            snapshot: Current player result for that session.
            metadata: Session name/date for display.

        Returns:
            The change since the last snapshot, or None if the session was
            already finalized for this profile.
        """
        if profile.is_finalized(session_id):
            logger.debug(f"Session {session_id} already finalized for {profile.name}, skipping sync")
            return None

        existing = profile.session_references.get(session_id)
        if existing is None:
            delta = SnapshotDelta(session_id, snapshot.buy_in, snapshot.cash_out, created=True)
        else:
            delta = SnapshotDelta(
                session_id,
                snapshot.buy_in - existing.buy_in,
                snapshot.cash_out - existing.cash_out,
            )
            if delta.is_zero and existing.session_name == metadata.session_name:
                return delta

        def apply(p: PlayerProfile) -> None:
            p.session_references[session_id] = SessionReference(
                session_id=session_id,
                session_name=metadata.session_name,
                session_date=metadata.session_date,
                buy_in=snapshot.buy_in,
                cash_out=snapshot.cash_out,
            )

        await self._commit(profile, apply)

        if delta.created:
            logger.info(f"Added session reference for {profile.name}: {metadata.session_name}")
        else:
            logger.info(
                f"Updated session reference for {profile.name}: {metadata.session_name} "
                f"(change: buy-in {delta.buy_in:+.2f}, cash-out {delta.cash_out:+.2f})"
            )
        return delta

    async def drop_session_reference(self, profile: PlayerProfile, session_id: str) -> bool:
        """Forget the provisional snapshot of a session the player left.

        Returns:
            True if a reference was removed.
        """
        if session_id not in profile.session_references:
            return False

        def apply(p: PlayerProfile) -> None:
            p.session_references.pop(session_id, None)

        await self._commit(profile, apply)
        logger.info(f"Dropped session reference {session_id} from {profile.name}'s profile")
        return True

    async def finalize(
        self,
        profile: PlayerProfile,
        session_id: str,
        total_buy_ins: float,
        total_cash_outs: float,
        metadata: SessionMetadata,
    ) -> bool:
        """Fold a completed session into the profile's lifetime totals.

        Args:
            profile: Profile to update.
            session_id: Completed session.
            total_buy_ins: Player's buy-ins for the session.
            total_cash_outs: Everything the player took off the table
                (cash-outs plus final stack).
            metadata: Session name/date/duration/player count.

        Returns:
            True if applied, False if the session was already finalized.

        Raises:
            PersistenceFailureError: If the profile could not be saved; the
                profile is left as it was and the call can be retried.
        """
        if profile.is_finalized(session_id):
            logger.info(f"Session {session_id} already finalized for {profile.name}, nothing to do")
            return False

        summary = SessionSummary(
            session_id=session_id,
            session_name=metadata.session_name,
            session_date=metadata.session_date,
            buy_in=total_buy_ins,
            cash_out=total_cash_outs,
            duration_seconds=metadata.duration_seconds,
            player_count=metadata.player_count,
        )

        def apply(p: PlayerProfile) -> None:
            p.record_recent(summary)
            p.lifetime_buy_in += total_buy_ins
            p.lifetime_cash_out += total_cash_outs
            p.finalized_sessions[session_id] = summary
            p.session_references.pop(session_id, None)
            p.last_played_at = datetime.now(timezone.utc)

        await self._commit(profile, apply)
        logger.info(
            f"Finalized session {metadata.session_name} for {profile.name}: "
            f"buy-in ${total_buy_ins:.2f}, cash-out ${total_cash_outs:.2f}"
        )
        return True

    async def finalize_result(
        self,
        profile: PlayerProfile,
        session_id: str,
        result: PlayerSessionResult,
        metadata: SessionMetadata,
    ) -> bool:
        """Finalize from a player's session result snapshot."""
        return await self.finalize(profile, session_id, result.buy_in, result.chips_out, metadata)

    async def delete_session(self, profile: PlayerProfile, session_id: str) -> bool:
        """Remove a session's effect from a profile.

        Lifetime totals are recomputed from the remaining finalized sessions.

        Returns:
            True if the profile referenced the session.
        """
        if not profile.has_participated(session_id):
            return False

        def apply(p: PlayerProfile) -> None:
            p.finalized_sessions.pop(session_id, None)
            p.session_references.pop(session_id, None)
            p.recent_sessions = [s for s in p.recent_sessions if s.session_id != session_id]
            p.recalculate_lifetime_totals()

        await self._commit(profile, apply)
        logger.info(f"Removed session {session_id} from {profile.name}'s profile")
        return True

    async def repair_profile(self, profile: PlayerProfile) -> PlayerProfile:
        """Rebuild a profile's derived data from its finalized sessions.

        Recomputes lifetime totals, drops provisional references for sessions
        that were finalized, and rebuilds the recent list from the finalized
        record.
        """
        def apply(p: PlayerProfile) -> None:
            for session_id in list(p.session_references):
                if session_id in p.finalized_sessions:
                    del p.session_references[session_id]
            ordered = sorted(p.finalized_sessions.values(), key=lambda s: s.session_date)
            p.recent_sessions = []
            for summary in ordered:
                p.record_recent(summary)
            p.recalculate_lifetime_totals()

        await self._commit(profile, apply)
        logger.info(
            f"Repaired profile for {profile.name}: sessions={len(profile.finalized_sessions)}, "
            f"buy-ins=${profile.lifetime_buy_in:.2f}, cash-outs=${profile.lifetime_cash_out:.2f}"
        )
        return profile
