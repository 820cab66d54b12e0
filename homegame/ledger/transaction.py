"""Chip transaction records."""
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from homegame.ledger.errors import InvalidAmountError


class TransactionType(str, Enum):
    """Types of chip transactions."""
    BUY_IN = "buy_in"
    CASH_OUT = "cash_out"


def new_transaction_id() -> str:
    """Generate an opaque unique transaction id."""
    return str(uuid.uuid4())


@dataclass(frozen=True, eq=False)
class Transaction:
    """A single buy-in or cash-out for one player in one session."""
    type: TransactionType
    amount: float
    session_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    note: Optional[str] = None
    id: str = field(default_factory=new_transaction_id)

    def __post_init__(self):
        if not math.isfinite(self.amount) or self.amount <= 0:
            raise InvalidAmountError(self.amount)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_buy_in(self) -> bool:
        return self.type == TransactionType.BUY_IN

    @property
    def is_cash_out(self) -> bool:
        return self.type == TransactionType.CASH_OUT

    def describe(self) -> str:
        """One-line description used by the recent activity display."""
        label = "Buy-in" if self.is_buy_in else "Cash-out"
        return f"• {label} ${self.amount:.2f} at {self.timestamp:%H:%M}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type.value,
            "amount": self.amount,
            "note": self.note,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            type=TransactionType(data["type"]),
            amount=data["amount"],
            note=data.get("note"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
