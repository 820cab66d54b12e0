"""Per-player running state within a single session."""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, TYPE_CHECKING

from homegame.ledger.errors import InvalidAmountError, IntegrityDriftError
from homegame.ledger.transaction import Transaction, TransactionType
from homegame.utils.logger import get_logger

if TYPE_CHECKING:
    from homegame.profiles.profile import PlayerProfile

logger = get_logger(__name__)

# Tolerance for money comparisons (one cent)
EPSILON = 0.01

NO_RECENT_ACTIVITY = "• No recent activity"


@dataclass
class PlayerSessionResult:
    """Snapshot of a player's session, consumed by the profile reconciler."""
    player_name: str
    profile_id: str
    buy_in: float
    cash_out: float
    final_stack: float
    transaction_count: int
    first_buy_in_time: Optional[datetime] = None
    last_activity_time: Optional[datetime] = None

    @property
    def profit(self) -> float:
        return (self.final_stack + self.cash_out) - self.buy_in

    @property
    def chips_out(self) -> float:
        """Everything that left the table for this player."""
        return self.cash_out + self.final_stack


@dataclass
class BuyInPoint:
    """A point on a player's cumulative buy-in graph."""
    timestamp: datetime
    amount: float


class PlayerLedger:
    """One player's transactions and totals for a session.

    Totals are cached and kept in step with the history by the mutation
    methods. Cash-outs that a final-stack declaration absorbed stay in the
    history but are tracked as superseded, so they no longer count towards
    ``total_cash_out``.
    """

    def __init__(
        self,
        player_name: str,
        session_id: str,
        profile_id: Optional[str] = None,
    ):
        """Initialize an empty ledger.

        Args:
            player_name: Display name, unique within the session.
            session_id: Owning session id, stamped on every transaction.
            profile_id: Link to the external player profile (defaults to name).
        """
        self.player_name = player_name
        self.session_id = session_id
        self.profile_id = profile_id or player_name
        self.final_stack: Optional[float] = None
        self.first_buy_in_time: Optional[datetime] = None
        self.last_activity_time: Optional[datetime] = None
        # Read-only reference for display, never serialized
        self.profile: Optional["PlayerProfile"] = None
        self._history: list[Transaction] = []
        self._superseded_ids: set[str] = set()
        self._total_buy_in = 0.0
        self._total_cash_out = 0.0
        self._recent_activity: tuple[str, ...] = (NO_RECENT_ACTIVITY,)

    # ---- Derived values ----

    @property
    def history(self) -> tuple[Transaction, ...]:
        """Transactions in the order they were recorded."""
        return tuple(self._history)

    @property
    def superseded_cash_out_ids(self) -> frozenset[str]:
        return frozenset(self._superseded_ids)

    @property
    def total_buy_in(self) -> float:
        return self._total_buy_in

    @property
    def total_cash_out(self) -> float:
        return self._total_cash_out

    @property
    def current_stack(self) -> float:
        """Final stack once declared, otherwise chips bought minus chips cashed."""
        if self.final_stack is not None:
            return self.final_stack
        return self._total_buy_in - self._total_cash_out

    @property
    def profit(self) -> float:
        return (self.current_stack + self._total_cash_out) - self._total_buy_in

    @property
    def has_left(self) -> bool:
        return self.final_stack is not None

    @property
    def buy_in_transactions(self) -> list[Transaction]:
        return [t for t in self._history if t.is_buy_in]

    @property
    def cash_out_transactions(self) -> list[Transaction]:
        return [t for t in self._history if t.is_cash_out]

    @property
    def recent_activity(self) -> tuple[str, ...]:
        """Up to two display lines for the most recent transactions."""
        return self._recent_activity

    def computed_totals(self) -> tuple[float, float]:
        """Sum buy-ins and live cash-outs straight from the history.

        Returns:
            Tuple of (buy_in, cash_out).
        """
        buy_in = sum(t.amount for t in self._history if t.is_buy_in)
        cash_out = sum(
            t.amount for t in self._history
            if t.is_cash_out and t.id not in self._superseded_ids
        )
        return buy_in, cash_out

    # ---- Mutations ----

    def add_buy_in(
        self,
        amount: float,
        timestamp: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        """Record chips brought to the table.

        A player who already declared a final stack is buying back in, so the
        final stack grows by the same amount.

        Args:
            amount: Chip amount (positive).
            timestamp: When it happened (defaults to now).
            note: Optional note.

        Returns:
            The recorded transaction.

        Raises:
            InvalidAmountError: If amount is not a positive finite number.
        """
        transaction = Transaction(
            type=TransactionType.BUY_IN,
            amount=amount,
            session_id=self.session_id,
            timestamp=timestamp or datetime.now(timezone.utc),
            note=note,
        )
        self._history.append(transaction)
        self._total_buy_in += amount
        if self.final_stack is not None:
            self.final_stack += amount
        if self.first_buy_in_time is None:
            self.first_buy_in_time = transaction.timestamp
        self._touch(transaction.timestamp)
        return transaction

    def add_cash_out(
        self,
        amount: float,
        timestamp: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> Transaction:
        """Record chips taken off the table.

        Chips available on the table are not checked here; corrective and
        out-of-band entries must still be recordable.

        Args:
            amount: Chip amount (positive).
            timestamp: When it happened (defaults to now).
            note: Optional note.

        Returns:
            The recorded transaction.

        Raises:
            InvalidAmountError: If amount is not a positive finite number.
        """
        transaction = Transaction(
            type=TransactionType.CASH_OUT,
            amount=amount,
            session_id=self.session_id,
            timestamp=timestamp or datetime.now(timezone.utc),
            note=note,
        )
        self._history.append(transaction)
        self._total_cash_out += amount
        if self.final_stack is not None:
            self.final_stack -= amount
        self._touch(transaction.timestamp)
        return transaction

    def set_final_stack(self, amount: float, timestamp: Optional[datetime] = None) -> None:
        """Declare the chips the player left the table with.

        The final stack replaces earlier partial cash-outs as the settlement
        figure: they are marked superseded and the cash-out total drops to 0.

        Raises:
            InvalidAmountError: If amount is negative or not finite.
        """
        if not math.isfinite(amount):
            raise InvalidAmountError(amount, f"Final stack must be a finite amount (got {amount})")
        if amount < 0:
            raise InvalidAmountError(amount, f"Final stack cannot be negative (got {amount})")

        self.final_stack = amount
        self._superseded_ids.update(t.id for t in self._history if t.is_cash_out)
        self._total_cash_out = 0.0
        self._touch(timestamp or datetime.now(timezone.utc))

    def remove_transaction(self, transaction_id: str) -> bool:
        """Remove a transaction (for corrections).

        Totals are rebuilt from the remaining history rather than adjusted by
        subtraction.

        Returns:
            True if removed, False if the id is unknown.
        """
        for index, transaction in enumerate(self._history):
            if transaction.id == transaction_id:
                del self._history[index]
                self._superseded_ids.discard(transaction_id)
                self.recalculate_totals()
                self._refresh_recent_activity()
                return True
        return False

    def recalculate_totals(self) -> None:
        """Rebuild the cached totals from the transaction history."""
        self._total_buy_in, self._total_cash_out = self.computed_totals()

    # ---- Integrity ----

    def integrity_drift(self) -> Optional[IntegrityDriftError]:
        """Compare cached totals with the history.

        Returns:
            The drift description, or None when the totals agree.
        """
        buy_in, cash_out = self.computed_totals()
        if (
            abs(self._total_buy_in - buy_in) < EPSILON
            and abs(self._total_cash_out - cash_out) < EPSILON
        ):
            return None
        return IntegrityDriftError(
            self.player_name,
            cached_buy_in=self._total_buy_in,
            cached_cash_out=self._total_cash_out,
            computed_buy_in=buy_in,
            computed_cash_out=cash_out,
        )

    def validate_integrity(self) -> bool:
        """Check the cached totals against the history.

        Returns:
            True if they agree within one cent.
        """
        drift = self.integrity_drift()
        if drift is not None:
            logger.warning(f"Transaction integrity check failed - {drift.message}")
            return False
        return True

    # ---- Reporting ----

    def session_result(self) -> PlayerSessionResult:
        """Snapshot used when reconciling into the player's profile."""
        return PlayerSessionResult(
            player_name=self.player_name,
            profile_id=self.profile_id,
            buy_in=self._total_buy_in,
            cash_out=self._total_cash_out,
            final_stack=self.current_stack,
            transaction_count=len(self._history),
            first_buy_in_time=self.first_buy_in_time,
            last_activity_time=self.last_activity_time,
        )

    def buy_in_timeline(self) -> list[BuyInPoint]:
        """Cumulative buy-in amounts in time order, for graphing."""
        points = []
        running = 0.0
        for transaction in sorted(self.buy_in_transactions, key=lambda t: t.timestamp):
            running += transaction.amount
            points.append(BuyInPoint(timestamp=transaction.timestamp, amount=running))
        return points

    def _touch(self, timestamp: datetime) -> None:
        self.last_activity_time = timestamp
        self._refresh_recent_activity()

    def _refresh_recent_activity(self) -> None:
        recent = sorted(self._history, key=lambda t: t.timestamp, reverse=True)[:2]
        if not recent:
            self._recent_activity = (NO_RECENT_ACTIVITY,)
        else:
            self._recent_activity = tuple(t.describe() for t in recent)

    # ---- Serialization ----

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "player_name": self.player_name,
            "profile_id": self.profile_id,
            "session_id": self.session_id,
            "final_stack": self.final_stack,
            "total_buy_in": self._total_buy_in,
            "total_cash_out": self._total_cash_out,
            "first_buy_in_time": self.first_buy_in_time.isoformat() if self.first_buy_in_time else None,
            "last_activity_time": self.last_activity_time.isoformat() if self.last_activity_time else None,
            "superseded_cash_out_ids": sorted(self._superseded_ids),
            "history": [t.to_dict() for t in self._history],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerLedger":
        """Create from dictionary.

        Cached totals are restored as stored, not recomputed, so drift that
        was persisted stays visible to ``validate_integrity``.
        """
        ledger = cls(
            player_name=data["player_name"],
            session_id=data["session_id"],
            profile_id=data.get("profile_id"),
        )
        ledger._history = [Transaction.from_dict(t) for t in data.get("history", [])]
        ledger._superseded_ids = set(data.get("superseded_cash_out_ids", []))
        ledger.final_stack = data.get("final_stack")

        computed_buy_in, computed_cash_out = ledger.computed_totals()
        ledger._total_buy_in = data.get("total_buy_in", computed_buy_in)
        ledger._total_cash_out = data.get("total_cash_out", computed_cash_out)

        if data.get("first_buy_in_time"):
            ledger.first_buy_in_time = datetime.fromisoformat(data["first_buy_in_time"])
        if data.get("last_activity_time"):
            ledger.last_activity_time = datetime.fromisoformat(data["last_activity_time"])
        ledger._refresh_recent_activity()
        return ledger
