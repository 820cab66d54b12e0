"""Protocol module for the ledger HTTP API."""
from .messages import (
    BuyInRequest,
    CashOutRequest,
    ErrorMessage,
    FinalStackRequest,
    SessionResponse,
)
from .views import profile_view, session_view

__all__ = [
    "BuyInRequest",
    "CashOutRequest",
    "ErrorMessage",
    "FinalStackRequest",
    "SessionResponse",
    "profile_view",
    "session_view",
]
