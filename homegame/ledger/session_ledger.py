"""Session-level ledger: players, lifecycle and balance."""
import math
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from homegame.ledger.errors import (
    InvalidAmountError,
    IntegrityDriftError,
    PlayerNotFoundError,
    SessionNotActiveError,
)
from homegame.ledger.player_ledger import EPSILON, PlayerLedger, PlayerSessionResult
from homegame.ledger.transaction import Transaction


class SessionStatus(str, Enum):
    """Session lifecycle states."""
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


def default_session_name(now: Optional[datetime] = None) -> str:
    """Generate a name like 'Saturday Oct 18 at 20:30'."""
    now = now or datetime.now()
    return f"{now:%A} {now:%b %d} at {now:%H:%M}"


class SessionLedger:
    """A poker session's full state.

    Lifecycle is DRAFT -> ACTIVE -> COMPLETED. A draft becomes active the
    first time it is persisted; setting the end time completes it.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        hosted_by: str = "",
        notes: str = "",
        session_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
    ):
        now = datetime.now(timezone.utc)
        self.id = session_id or str(uuid.uuid4())
        self.name = name or default_session_name()
        self.hosted_by = hosted_by
        self.notes = notes
        self.start_time = start_time or now
        self.end_time: Optional[datetime] = None
        self.created_at = now
        self.updated_at = now
        self.persisted = False
        self._players: list[PlayerLedger] = []

    # ---- Lifecycle ----

    @property
    def status(self) -> SessionStatus:
        if self.end_time is not None:
            return SessionStatus.COMPLETED
        if not self.persisted:
            return SessionStatus.DRAFT
        return SessionStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None

    @property
    def duration(self) -> timedelta:
        end = self.end_time or datetime.now(timezone.utc)
        return end - self.start_time

    def mark_persisted(self) -> None:
        """Promote a draft once the store has accepted it."""
        self.persisted = True

    def end_session(self, now: Optional[datetime] = None) -> bool:
        """Complete the session.

        Returns:
            True on the transition, False if the session had already ended.
        """
        if self.end_time is not None:
            return False
        self.end_time = now or datetime.now(timezone.utc)
        self.updated_at = self.end_time
        return True

    def rename(self, name: str) -> None:
        name = name.strip()
        if not name:
            raise ValueError("Session name cannot be empty")
        self.name = name
        self._touch()

    # ---- Players ----

    @property
    def players(self) -> tuple[PlayerLedger, ...]:
        return tuple(self._players)

    @property
    def player_count(self) -> int:
        return len(self._players)

    def get_player(self, name: str) -> Optional[PlayerLedger]:
        """Find a player by case-insensitive name."""
        key = name.strip().lower()
        for player in self._players:
            if player.player_name.lower() == key:
                return player
        return None

    def require_player(self, name: str) -> PlayerLedger:
        player = self.get_player(name)
        if player is None:
            raise PlayerNotFoundError(name)
        return player

    def add_player(
        self,
        name: str,
        buy_in_amount: float,
        timestamp: Optional[datetime] = None,
        note: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> PlayerLedger:
        """Buy a player into the session.

        An existing player (matched case-insensitively) buys in again;
        otherwise a new player ledger is created with this first buy-in.

        Returns:
            The player's ledger.

        Raises:
            InvalidAmountError: If buy_in_amount is not a positive finite number.
            SessionNotActiveError: If the session is completed.
        """
        self._ensure_editable()
        name = name.strip()
        if not name:
            raise ValueError("Player name cannot be empty")
        if not math.isfinite(buy_in_amount) or buy_in_amount <= 0:
            raise InvalidAmountError(buy_in_amount)

        player = self.get_player(name)
        if player is None:
            player = PlayerLedger(name, session_id=self.id, profile_id=profile_id)
            player.add_buy_in(buy_in_amount, timestamp, note or "Initial buy-in")
            self._players.append(player)
        else:
            player.add_buy_in(buy_in_amount, timestamp, note or "Additional buy-in")
        self._touch()
        return player

    def remove_player(self, name: str) -> PlayerLedger:
        """Remove a player and all their transactions.

        Returns:
            The removed ledger.
        """
        self._ensure_editable()
        player = self.require_player(name)
        self._players.remove(player)
        self._touch()
        return player

    def add_cash_out(
        self,
        name: str,
        amount: float,
        timestamp: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        self._ensure_editable()
        transaction = self.require_player(name).add_cash_out(amount, timestamp, note or "Cash-out")
        self._touch()
        return transaction

    def set_final_stack(self, name: str, amount: float, timestamp: Optional[datetime] = None) -> PlayerLedger:
        self._ensure_editable()
        player = self.require_player(name)
        player.set_final_stack(amount, timestamp)
        self._touch()
        return player

    def remove_transaction(self, name: str, transaction_id: str) -> bool:
        self._ensure_editable()
        removed = self.require_player(name).remove_transaction(transaction_id)
        if removed:
            self._touch()
        return removed

    # ---- Aggregates ----

    @property
    def total_buy_in(self) -> float:
        return sum(p.total_buy_in for p in self._players)

    @property
    def total_cash_out(self) -> float:
        return sum(p.total_cash_out for p in self._players)

    @property
    def total_final_stacks(self) -> float:
        return sum(p.final_stack or 0.0 for p in self._players)

    @property
    def total_current_stacks(self) -> float:
        return sum(p.current_stack for p in self._players)

    @property
    def balance_delta(self) -> float:
        """Chips bought in that are not accounted for by current stacks."""
        return self.total_buy_in - self.total_current_stacks

    @property
    def is_balanced(self) -> bool:
        return abs(self.balance_delta) < EPSILON

    def results(self) -> list[PlayerSessionResult]:
        return [p.session_result() for p in self._players]

    # ---- Integrity ----

    def validate_integrity(self) -> list[IntegrityDriftError]:
        """Check every player's cached totals.

        Returns:
            One drift entry per player whose totals disagree with history.
        """
        drifts = []
        for player in self._players:
            if not player.validate_integrity():
                drifts.append(player.integrity_drift())
        return drifts

    def repair_integrity(self) -> list[str]:
        """Rebuild drifted totals from transactions.

        Applies to completed sessions too; this is an operator repair, not an
        edit.

        Returns:
            Names of the players whose totals were rebuilt.
        """
        repaired = []
        for player in self._players:
            if player.integrity_drift() is not None:
                player.recalculate_totals()
                repaired.append(player.player_name)
        if repaired:
            self._touch()
        return repaired

    def _ensure_editable(self) -> None:
        if self.is_completed:
            raise SessionNotActiveError(self.id)

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    # ---- Serialization ----

    def to_dict(self) -> dict:
        """Convert to a storable document (session -> players -> transactions)."""
        return {
            "id": self.id,
            "name": self.name,
            "notes": self.notes,
            "hosted_by": self.hosted_by,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "total_buy_in": self.total_buy_in,
            "total_cash_out": self.total_cash_out,
            "players": [p.to_dict() for p in self._players],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionLedger":
        """Create from a stored document.

        Anything loaded from the store has been persisted, so it is never a
        draft.
        """
        session = cls(
            name=data["name"],
            hosted_by=data.get("hosted_by", ""),
            notes=data.get("notes", ""),
            session_id=data["id"],
            start_time=datetime.fromisoformat(data["start_time"]),
        )
        if data.get("end_time"):
            session.end_time = datetime.fromisoformat(data["end_time"])
        session.created_at = datetime.fromisoformat(data["created_at"])
        session.updated_at = datetime.fromisoformat(data["updated_at"])
        session._players = [PlayerLedger.from_dict(p) for p in data.get("players", [])]
        session.persisted = True
        return session
