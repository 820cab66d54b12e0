"""Ledger error taxonomy.

Every failure the ledger can report derives from ``LedgerError`` and carries a
stable ``code`` plus the HTTP status the API layer answers with.
"""
from typing import Optional


class LedgerError(Exception):
    """Base ledger error."""

    code: str = "LEDGER_ERROR"
    http_status: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidAmountError(LedgerError, ValueError):
    """Non-positive buy-in/cash-out amount or negative final stack."""

    code = "INVALID_AMOUNT"
    http_status = 422

    def __init__(self, amount: float, message: Optional[str] = None):
        self.amount = amount
        super().__init__(message or f"Amount must be a positive number (got {amount})")


class PlayerNotFoundError(LedgerError, LookupError):
    """Operation on a player name that is not part of the session."""

    code = "PLAYER_NOT_FOUND"
    http_status = 404

    def __init__(self, player_name: str):
        self.player_name = player_name
        super().__init__(f"Player '{player_name}' not found in session")


class SessionNotActiveError(LedgerError):
    """Mutation attempted on a session that no longer accepts edits."""

    code = "SESSION_NOT_ACTIVE"
    http_status = 409

    def __init__(self, session_id: str, message: Optional[str] = None):
        self.session_id = session_id
        super().__init__(message or f"Session {session_id} is completed")


class NoActiveSessionError(LedgerError):
    """Manager call made while no session is loaded."""

    code = "NO_ACTIVE_SESSION"
    http_status = 409

    def __init__(self):
        super().__init__("No session is loaded")


class SessionNotFoundError(LedgerError, LookupError):
    """Session id unknown to the session store."""

    code = "SESSION_NOT_FOUND"
    http_status = 404

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class PersistenceFailureError(LedgerError):
    """The remote store rejected or could not complete a write or read.

    Recoverable by retrying the whole operation.
    """

    code = "PERSISTENCE_FAILURE"
    http_status = 503


class IntegrityDriftError(LedgerError):
    """Cached totals disagree with totals recomputed from transactions.

    Reported as a value by the validation routines, never raised by them.
    """

    code = "INTEGRITY_DRIFT"
    http_status = 409

    def __init__(
        self,
        player_name: str,
        cached_buy_in: float,
        cached_cash_out: float,
        computed_buy_in: float,
        computed_cash_out: float,
    ):
        self.player_name = player_name
        self.cached_buy_in = cached_buy_in
        self.cached_cash_out = cached_cash_out
        self.computed_buy_in = computed_buy_in
        self.computed_cash_out = computed_cash_out
        super().__init__(
            f"Totals drifted for {player_name}: "
            f"stored buy-in={cached_buy_in:.2f} cash-out={cached_cash_out:.2f}, "
            f"computed buy-in={computed_buy_in:.2f} cash-out={computed_cash_out:.2f}"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "player": self.player_name,
            "cached_buy_in": self.cached_buy_in,
            "cached_cash_out": self.cached_cash_out,
            "computed_buy_in": self.computed_buy_in,
            "computed_cash_out": self.computed_cash_out,
        }


class TransactionNotFoundError(LedgerError, LookupError):
    """Transaction id not in the player's history."""

    code = "TRANSACTION_NOT_FOUND"
    http_status = 404

    def __init__(self, player_name: str, transaction_id: str):
        self.player_name = player_name
        self.transaction_id = transaction_id
        super().__init__(f"Transaction '{transaction_id}' not found for {player_name}")
