"""Pydantic schemas for the ledger HTTP API."""
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field


# ============= Requests =============

class CreateSessionRequest(BaseModel):
    """Start a draft session."""
    name: Optional[str] = None
    hosted_by: str = ""
    notes: str = ""


class RenameSessionRequest(BaseModel):
    name: str = Field(min_length=1)


class BuyInRequest(BaseModel):
    """Add a player or record an additional buy-in."""
    player: str = Field(min_length=1)
    amount: float = Field(gt=0, allow_inf_nan=False)
    note: Optional[str] = None


class CashOutRequest(BaseModel):
    """Record a partial or full cash-out."""
    amount: float = Field(gt=0, allow_inf_nan=False)
    note: Optional[str] = None


class FinalStackRequest(BaseModel):
    """Declare the chips a player left the table with."""
    amount: float = Field(ge=0, allow_inf_nan=False)


# ============= Responses =============

class ErrorMessage(BaseModel):
    """Error response."""
    type: Literal["error"] = "error"
    message: str
    code: Optional[str] = None


class TransactionItem(BaseModel):
    id: str
    type: str
    amount: float
    timestamp: datetime
    note: Optional[str] = None
    superseded: bool = False


class PlayerItem(BaseModel):
    """A player's row in the session view."""
    player: str
    total_buy_in: float
    total_cash_out: float
    final_stack: Optional[float] = None
    current_stack: float
    profit: float
    has_left: bool
    recent_activity: list[str]
    lifetime_profit: Optional[float] = None
    transactions: list[TransactionItem]


class SessionResponse(BaseModel):
    """Full session view."""
    session_id: str
    name: str
    hosted_by: str
    notes: str
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: float
    total_buy_in: float
    total_cash_out: float
    total_current_stacks: float
    balance_delta: float
    is_balanced: bool
    players: list[PlayerItem]


class SessionListItem(BaseModel):
    session_id: str
    name: str
    status: str
    start_time: datetime
    end_time: Optional[datetime] = None
    player_count: int
    total_buy_in: float
    is_balanced: bool


class SessionListResponse(BaseModel):
    days: int
    sessions: list[SessionListItem]


class StandingItem(BaseModel):
    player: str
    buy_ins: float
    cash_outs: float
    final_stack: Optional[float] = None
    current_stack: float
    net: float


class StandingsResponse(BaseModel):
    session_id: str
    is_balanced: bool
    players: list[StandingItem]


class FinalizeResponse(BaseModel):
    """Result of ending a session or retrying finalization."""
    session_id: str
    finalized: list[str]
    already_finalized: list[str]
    failed: dict[str, str]
    complete: bool


class RepairResponse(BaseModel):
    session_id: str
    repaired: list[str]


class ProfileResponse(BaseModel):
    """A player's lifetime record."""
    name: str
    display_name: str
    lifetime_buy_in: float
    lifetime_cash_out: float
    lifetime_profit: float
    sessions_played: int
    average_profit: float
    best_session: float
    worst_session: float
    last_played_at: Optional[datetime] = None
    recent_profit_trend: list[float]
    sessions: list[dict]


class PlayerStatsResponse(BaseModel):
    player: str
    total_sessions: int
    completed_sessions: int
    active_sessions: int
    total_buy_ins: float
    total_cash_outs: float
    average_profit: float
    best_session: float
    worst_session: float
    last_played: Optional[datetime] = None
