"""Per-player statistics across stored sessions."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from homegame.ledger.session_ledger import SessionLedger


@dataclass
class PlayerSessionStats:
    """A player's record over a set of sessions.

    Money totals and profit figures only count completed sessions.
    """
    player_name: str
    total_sessions: int = 0
    completed_sessions: int = 0
    active_sessions: int = 0
    total_buy_ins: float = 0.0
    total_cash_outs: float = 0.0
    average_profit: float = 0.0
    best_session: float = 0.0
    worst_session: float = 0.0
    last_played: Optional[datetime] = None

    @property
    def has_played(self) -> bool:
        return self.last_played is not None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "player": self.player_name,
            "total_sessions": self.total_sessions,
            "completed_sessions": self.completed_sessions,
            "active_sessions": self.active_sessions,
            "total_buy_ins": self.total_buy_ins,
            "total_cash_outs": self.total_cash_outs,
            "average_profit": self.average_profit,
            "best_session": self.best_session,
            "worst_session": self.worst_session,
            "last_played": self.last_played.isoformat() if self.last_played else None,
        }


def sessions_for_player(sessions: list[SessionLedger], player_name: str) -> list[SessionLedger]:
    """Sessions the player took part in (case-insensitive name match)."""
    return [s for s in sessions if s.get_player(player_name) is not None]


def player_session_stats(sessions: list[SessionLedger], player_name: str) -> PlayerSessionStats:
    """Summarize a player's results over the given sessions."""
    played = sessions_for_player(sessions, player_name)
    completed = [s for s in played if s.is_completed]

    stats = PlayerSessionStats(
        player_name=player_name,
        total_sessions=len(played),
        completed_sessions=len(completed),
        active_sessions=len(played) - len(completed),
    )
    if not completed:
        return stats

    ledgers = [s.get_player(player_name) for s in completed]
    profits = [p.profit for p in ledgers]
    stats.total_buy_ins = sum(p.total_buy_in for p in ledgers)
    stats.total_cash_outs = sum(p.total_cash_out for p in ledgers)
    stats.average_profit = sum(profits) / len(profits)
    stats.best_session = max(profits)
    stats.worst_session = min(profits)
    stats.last_played = max(s.end_time for s in completed)
    return stats
