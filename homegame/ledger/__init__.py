"""Session ledger: transactions, per-player ledgers and sessions."""
from .errors import (
    IntegrityDriftError,
    InvalidAmountError,
    LedgerError,
    NoActiveSessionError,
    PersistenceFailureError,
    PlayerNotFoundError,
    SessionNotActiveError,
    SessionNotFoundError,
    TransactionNotFoundError,
)
from .player_ledger import EPSILON, PlayerLedger, PlayerSessionResult
from .session_ledger import SessionLedger, SessionStatus
from .transaction import Transaction, TransactionType

__all__ = [
    "EPSILON",
    "IntegrityDriftError",
    "InvalidAmountError",
    "LedgerError",
    "NoActiveSessionError",
    "PersistenceFailureError",
    "PlayerLedger",
    "PlayerNotFoundError",
    "PlayerSessionResult",
    "SessionLedger",
    "SessionNotActiveError",
    "SessionNotFoundError",
    "SessionStatus",
    "Transaction",
    "TransactionNotFoundError",
    "TransactionType",
]
