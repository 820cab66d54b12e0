"""Session management for the host running a game."""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from homegame.admin.standings import PlayerStanding, calculate_standings
from homegame.admin.stats import PlayerSessionStats, player_session_stats
from homegame.ledger.errors import (
    NoActiveSessionError,
    PersistenceFailureError,
    PlayerNotFoundError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from homegame.ledger.player_ledger import PlayerLedger
from homegame.ledger.session_ledger import SessionLedger, SessionStatus
from homegame.ledger.transaction import Transaction
from homegame.profiles.profile import PlayerProfile
from homegame.profiles.reconciler import ProfileReconciler, SessionMetadata
from homegame.state.profile_store import ProfileStore
from homegame.state.session_store import SessionStore
from homegame.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class FinalizeReport:
    """Outcome of folding a completed session into player profiles."""
    session_id: str
    finalized: list[str] = field(default_factory=list)
    already_finalized: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "session_id": self.session_id,
            "finalized": self.finalized,
            "already_finalized": self.already_finalized,
            "failed": self.failed,
            "complete": self.complete,
        }


class SessionManager:
    """Drives one session at a time: edits, saves, ending and profile sync.

    Ledger edits are synchronous and in memory. Saves, ending and deletes go
    through one lock, so writes for the session never overlap.
    """

    def __init__(self, session_store: SessionStore, profile_store: ProfileStore):
        """Initialize session manager.

        Args:
            session_store: Persistence collaborator for session documents.
            profile_store: Profile collaborator for player profiles.
        """
        self.session_store = session_store
        self.profile_store = profile_store
        self.reconciler = ProfileReconciler(profile_store)
        self.current: Optional[SessionLedger] = None
        self._write_lock = asyncio.Lock()
        # Players removed from the current session whose profiles may still
        # hold a provisional reference to it.
        self._removed_players: dict[str, str] = {}

    @property
    def session(self) -> SessionLedger:
        """The loaded session, raise if there is none."""
        if self.current is None:
            raise NoActiveSessionError()
        return self.current

    # ---- Lifecycle ----

    def create_draft(
        self,
        name: Optional[str] = None,
        hosted_by: str = "",
        notes: str = "",
    ) -> SessionLedger:
        """Start configuring a new session.

        The draft is not stored and not visible anywhere until promoted.
        """
        self.current = SessionLedger(name=name, hosted_by=hosted_by, notes=notes)
        self._removed_players = {}
        logger.info(f"Created session draft: {self.current.name}")
        return self.current

    async def promote(self) -> SessionLedger:
        """Persist the draft, making it an active, listed session.

        Raises:
            PersistenceFailureError: If the first save failed; the session
                stays a draft and promote can be retried.
        """
        session = self.session
        if session.status != SessionStatus.DRAFT:
            return session

        async with self._write_lock:
            await self.session_store.save(session)
            session.mark_persisted()
            logger.info(f"Promoted session {session.name} ({session.id}) to active")
            await self._sync_profiles(session)
        return session

    async def load_session(self, session_id: str) -> SessionLedger:
        """Load a stored session and make it the current one.

        Raises:
            SessionNotFoundError: If the store has no such session.
        """
        session = await self.session_store.load(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        drifts = session.validate_integrity()
        if drifts:
            logger.warning(f"Session {session.name} loaded with {len(drifts)} drifted player totals")

        self.current = session
        self._removed_players = {}
        for player in session.players:
            await self._attach_profile(player)
        logger.info(f"Loaded session: {session.name}")
        return session

    def close_session(self) -> None:
        """Forget the current session without saving."""
        self.current = None
        self._removed_players = {}

    def rename_session(self, name: str) -> SessionLedger:
        session = self.session
        session.rename(name)
        logger.info(f"Renamed session {session.id} to: {session.name}")
        return session

    # ---- Ledger edits ----

    async def add_player(
        self,
        name: str,
        buy_in_amount: float,
        note: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> PlayerLedger:
        """Buy a player in (new player or additional buy-in)."""
        session = self.session
        is_new = session.get_player(name) is None
        player = session.add_player(name, buy_in_amount, timestamp=timestamp, note=note)
        self._removed_players.pop(player.player_name.lower(), None)

        if is_new:
            await self._attach_profile(player)
            logger.info(f"Added new player {player.player_name} with buy-in ${buy_in_amount:.2f}")
        else:
            logger.info(
                f"Added ${buy_in_amount:.2f} buy-in for {player.player_name} "
                f"(total now: ${player.total_buy_in:.2f})"
            )
            if player.final_stack is not None:
                logger.info(
                    f"Increased {player.player_name}'s final stack to ${player.final_stack:.2f} "
                    f"after buying back in"
                )
        return player

    def remove_player(self, name: str) -> PlayerLedger:
        player = self.session.remove_player(name)
        if self.session.status != SessionStatus.DRAFT:
            self._removed_players[player.player_name.lower()] = player.player_name
        logger.info(f"Removed player {player.player_name} from session")
        return player

    def add_cash_out(
        self,
        name: str,
        amount: float,
        note: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Transaction:
        transaction = self.session.add_cash_out(name, amount, timestamp=timestamp, note=note)
        player = self.session.require_player(name)
        logger.info(
            f"Added cash-out for {player.player_name}: ${amount:.2f} "
            f"(total now: ${player.total_cash_out:.2f})"
        )
        return transaction

    def set_final_stack(self, name: str, amount: float) -> PlayerLedger:
        player = self.session.set_final_stack(name, amount)
        logger.info(f"Set final stack for {player.player_name}: ${amount:.2f} (cleared cash-out total)")
        return player

    def remove_transaction(self, name: str, transaction_id: str) -> bool:
        """Remove one transaction; False if the player has no such id."""
        removed = self.session.remove_transaction(name, transaction_id)
        if removed:
            logger.info(f"Removed transaction {transaction_id} for {name}")
        else:
            logger.warning(f"Transaction {transaction_id} not found for {name}")
        return removed

    def repair_session(self) -> list[str]:
        """Rebuild drifted player totals from their transactions."""
        repaired = self.session.repair_integrity()
        if repaired:
            logger.info(f"Rebuilt totals from transactions for: {', '.join(repaired)}")
        return repaired

    def standings(self) -> list[PlayerStanding]:
        return calculate_standings(self.session)

    # ---- Persistence ----

    async def save(self) -> bool:
        """Persist the current session and sync provisional profile data.

        Raises:
            SessionNotActiveError: If the session is still a draft.
            PersistenceFailureError: If the session write failed.
        """
        session = self.session
        if session.status == SessionStatus.DRAFT:
            raise SessionNotActiveError(session.id, "Session is a draft; promote it before saving")

        async with self._write_lock:
            await self.session_store.save(session)
            logger.info(f"Saved session: {session.name} ({session.status.value})")
            await self._drop_removed_references(session)
            if session.status == SessionStatus.ACTIVE:
                await self._sync_profiles(session)
        return True

    async def end_session(self, now: Optional[datetime] = None) -> FinalizeReport:
        """Complete the session, save it and finalize every player's profile.

        Calling it again after a partial failure is safe: the session end
        time is kept and already finalized profiles are skipped.

        Raises:
            SessionNotActiveError: If the session is still a draft.
            PersistenceFailureError: If the session write failed.
        """
        session = self.session
        if session.status == SessionStatus.DRAFT:
            raise SessionNotActiveError(session.id, "Session is a draft; promote it before ending")

        async with self._write_lock:
            if session.end_session(now):
                logger.info(f"Ending session {session.name}")
            if not session.is_balanced:
                logger.warning(
                    f"Session {session.name} ended unbalanced by ${session.balance_delta:.2f}"
                )
            await self.session_store.save(session)
            await self._drop_removed_references(session)
            report = await self._finalize_players(session)

        if report.complete:
            logger.info(f"Ended session {session.name}, {len(report.finalized)} profiles finalized")
        else:
            logger.error(
                f"Ended session {session.name} but finalization failed for: "
                f"{', '.join(report.failed)}"
            )
        return report

    async def finalize_session(self) -> FinalizeReport:
        """Retry profile finalization for the completed current session."""
        session = self.session
        if not session.is_completed:
            raise SessionNotActiveError(session.id, "Session has not ended yet")
        async with self._write_lock:
            await self._drop_removed_references(session)
            return await self._finalize_players(session)

    async def delete_session(self, session_id: str) -> bool:
        """Delete a stored session and remove it from player profiles.

        Raises:
            SessionNotFoundError: If the store has no such session.
        """
        async with self._write_lock:
            session = await self.session_store.load(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            await self.session_store.delete(session_id)
            for player in session.players:
                profile = await self.profile_store.get_profile(player.player_name)
                if profile is not None:
                    await self.reconciler.delete_session(profile, session_id)

        if self.current is not None and self.current.id == session_id:
            self.current = None
            self._removed_players = {}
        logger.info(f"Deleted session {session.name} ({session_id})")
        return True

    async def recent_sessions(self, days: Optional[int] = None) -> list[SessionLedger]:
        return await self.session_store.load_recent_sessions(days)

    # ---- Profiles ----

    async def get_profile(self, player_name: str) -> Optional[PlayerProfile]:
        return await self.profile_store.get_profile(player_name)

    async def player_stats(self, player_name: str, days: Optional[int] = None) -> PlayerSessionStats:
        sessions = await self.session_store.load_recent_sessions(days)
        return player_session_stats(sessions, player_name)

    async def repair_profile(self, player_name: str) -> PlayerProfile:
        """Recompute a profile's totals from its finalized sessions.

        Raises:
            PlayerNotFoundError: If no profile exists for the name.
        """
        profile = await self.profile_store.get_profile(player_name)
        if profile is None:
            raise PlayerNotFoundError(player_name)
        return await self.reconciler.repair_profile(profile)

    async def repair_all_profiles(self) -> tuple[int, int]:
        """Repair every stored profile.

        Returns:
            Tuple of (repaired, total).
        """
        profiles = await self.profile_store.list_profiles()
        repaired = 0
        for profile in profiles:
            try:
                await self.reconciler.repair_profile(profile)
                repaired += 1
            except PersistenceFailureError as e:
                logger.error(f"Failed to repair profile for {profile.name}: {e}")
        logger.info(f"Repaired {repaired}/{len(profiles)} profiles")
        return repaired, len(profiles)

    # ---- Internals ----

    async def _attach_profile(self, player: PlayerLedger) -> None:
        """Link the player's profile for display; never written through this path."""
        try:
            player.profile = await self.profile_store.get_profile(player.player_name)
        except PersistenceFailureError as e:
            logger.warning(f"Could not load profile for {player.player_name}: {e}")
            return
        if player.profile is None:
            logger.debug(f"No profile yet for {player.player_name}")

    async def _sync_profiles(self, session: SessionLedger) -> list[str]:
        """Refresh provisional session references on every player's profile.

        Failures are logged and left for the next save to retry.

        Returns:
            Names of players whose profile could not be synced.
        """
        metadata = SessionMetadata.from_session(session)
        failed = []
        for player in session.players:
            try:
                profile = await self.reconciler.load_profile(player.player_name)
                await self.reconciler.upsert_session_reference(
                    profile, session.id, player.session_result(), metadata
                )
            except PersistenceFailureError as e:
                logger.warning(f"Profile sync for {player.player_name} deferred: {e}")
                failed.append(player.player_name)
        return failed

    async def _drop_removed_references(self, session: SessionLedger) -> None:
        """Clear provisional references left on profiles of removed players.

        Names whose profile write fails stay queued for the next save.
        """
        for key, player_name in list(self._removed_players.items()):
            try:
                profile = await self.profile_store.get_profile(player_name)
                if profile is not None:
                    await self.reconciler.drop_session_reference(profile, session.id)
            except PersistenceFailureError as e:
                logger.warning(f"Could not clear session reference for {player_name}: {e}")
                continue
            del self._removed_players[key]

    async def _finalize_players(self, session: SessionLedger) -> FinalizeReport:
        metadata = SessionMetadata.from_session(session)
        report = FinalizeReport(session_id=session.id)
        for player in session.players:
            try:
                profile = await self.reconciler.load_profile(player.player_name)
                applied = await self.reconciler.finalize_result(
                    profile, session.id, player.session_result(), metadata
                )
            except PersistenceFailureError as e:
                logger.error(f"Finalization failed for {player.player_name}: {e}")
                report.failed[player.player_name] = e.message
                continue
            if applied:
                report.finalized.append(player.player_name)
            else:
                report.already_finalized.append(player.player_name)
        return report
