"""Durable player profiles and their session records."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

# Recent-session display history size
RECENT_SESSIONS_CAPACITY = 10


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class SessionSummary:
    """A finalized session's contribution to a player's lifetime totals."""
    session_id: str
    session_name: str
    session_date: datetime
    buy_in: float
    cash_out: float
    duration_seconds: float = 0.0
    player_count: int = 0

    @property
    def profit(self) -> float:
        return self.cash_out - self.buy_in

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "session_id": self.session_id,
            "session_name": self.session_name,
            "session_date": self.session_date.isoformat(),
            "buy_in": self.buy_in,
            "cash_out": self.cash_out,
            "duration_seconds": self.duration_seconds,
            "player_count": self.player_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionSummary":
        """Create from dictionary."""
        return cls(
            session_id=data["session_id"],
            session_name=data.get("session_name", ""),
            session_date=datetime.fromisoformat(data["session_date"]),
            buy_in=data["buy_in"],
            cash_out=data["cash_out"],
            duration_seconds=data.get("duration_seconds", 0.0),
            player_count=data.get("player_count", 0),
        )


@dataclass
class SessionReference:
    """Provisional snapshot of a session that is still being played."""
    session_id: str
    session_name: str
    session_date: datetime
    buy_in: float
    cash_out: float
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "session_id": self.session_id,
            "session_name": self.session_name,
            "session_date": self.session_date.isoformat(),
            "buy_in": self.buy_in,
            "cash_out": self.cash_out,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionReference":
        """Create from dictionary."""
        return cls(
            session_id=data["session_id"],
            session_name=data.get("session_name", ""),
            session_date=datetime.fromisoformat(data["session_date"]),
            buy_in=data["buy_in"],
            cash_out=data["cash_out"],
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass
class PlayerProfile:
    """A player's lifetime record across sessions.

    ``finalized_sessions`` holds every session folded into the lifetime
    totals and is the source the totals are recomputed from.
    ``session_references`` tracks sessions still in play; ``recent_sessions``
    is a bounded display list of the latest finalized sessions.
    """
    name: str
    nickname: str = ""
    email: str = ""
    notes: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_played_at: Optional[datetime] = None
    lifetime_buy_in: float = 0.0
    lifetime_cash_out: float = 0.0
    finalized_sessions: dict[str, SessionSummary] = field(default_factory=dict)
    session_references: dict[str, SessionReference] = field(default_factory=dict)
    recent_sessions: list[SessionSummary] = field(default_factory=list)

    @property
    def key(self) -> str:
        """Store key; names are matched case-insensitively."""
        return self.name.strip().lower()

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.nickname})" if self.nickname else self.name

    @property
    def lifetime_profit(self) -> float:
        return self.lifetime_cash_out - self.lifetime_buy_in

    @property
    def sessions_played(self) -> int:
        return len(set(self.finalized_sessions) | set(self.session_references))

    def is_finalized(self, session_id: str) -> bool:
        return session_id in self.finalized_sessions

    def has_participated(self, session_id: str) -> bool:
        return session_id in self.finalized_sessions or session_id in self.session_references

    def record_recent(self, summary: SessionSummary) -> None:
        """Append to the display history, evicting the oldest past capacity."""
        self.recent_sessions = [s for s in self.recent_sessions if s.session_id != summary.session_id]
        self.recent_sessions.append(summary)
        if len(self.recent_sessions) > RECENT_SESSIONS_CAPACITY:
            del self.recent_sessions[:len(self.recent_sessions) - RECENT_SESSIONS_CAPACITY]

    def recalculate_lifetime_totals(self) -> None:
        """Recompute lifetime totals from every finalized session."""
        self.lifetime_buy_in = sum(s.buy_in for s in self.finalized_sessions.values())
        self.lifetime_cash_out = sum(s.cash_out for s in self.finalized_sessions.values())

    # ---- Analytics ----

    def recent_profit_trend(self, count: int = RECENT_SESSIONS_CAPACITY) -> list[float]:
        """Profits of the latest sessions, oldest first."""
        ordered = sorted(self.recent_sessions, key=lambda s: s.session_date)
        return [s.profit for s in ordered[-count:]]

    def average_profit(self) -> float:
        if not self.finalized_sessions:
            return 0.0
        return self.lifetime_profit / len(self.finalized_sessions)

    def best_worst_profit(self) -> tuple[float, float]:
        if not self.finalized_sessions:
            return 0.0, 0.0
        profits = [s.profit for s in self.finalized_sessions.values()]
        return max(profits), min(profits)

    def display_sessions(self) -> list[dict]:
        """Sessions in play followed by recent finalized ones, newest first."""
        rows = [
            {**ref.to_dict(), "finalized": False}
            for ref in self.session_references.values()
            if ref.session_id not in self.finalized_sessions
        ]
        rows.sort(key=lambda r: r["session_date"], reverse=True)
        for summary in reversed(self.recent_sessions):
            rows.append({**summary.to_dict(), "finalized": True, "profit": summary.profit})
        return rows

    # ---- Serialization ----

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "name": self.name,
            "nickname": self.nickname,
            "email": self.email,
            "notes": self.notes,
            "created_at": _format_time(self.created_at),
            "last_played_at": _format_time(self.last_played_at),
            "lifetime_buy_in": self.lifetime_buy_in,
            "lifetime_cash_out": self.lifetime_cash_out,
            "finalized_sessions": [s.to_dict() for s in self.finalized_sessions.values()],
            "session_references": [r.to_dict() for r in self.session_references.values()],
            "recent_sessions": [s.to_dict() for s in self.recent_sessions],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerProfile":
        """Create from dictionary."""
        finalized = [SessionSummary.from_dict(s) for s in data.get("finalized_sessions", [])]
        references = [SessionReference.from_dict(r) for r in data.get("session_references", [])]
        return cls(
            name=data["name"],
            nickname=data.get("nickname", ""),
            email=data.get("email", ""),
            notes=data.get("notes", ""),
            created_at=_parse_time(data.get("created_at")) or datetime.now(timezone.utc),
            last_played_at=_parse_time(data.get("last_played_at")),
            lifetime_buy_in=data.get("lifetime_buy_in", 0.0),
            lifetime_cash_out=data.get("lifetime_cash_out", 0.0),
            finalized_sessions={s.session_id: s for s in finalized},
            session_references={r.session_id: r for r in references},
            recent_sessions=[SessionSummary.from_dict(s) for s in data.get("recent_sessions", [])],
        )
