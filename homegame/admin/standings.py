"""Calculate player standings (+/-)."""
from dataclasses import dataclass
from typing import Optional

from homegame.ledger.session_ledger import SessionLedger


@dataclass
class PlayerStanding:
    """A player's standing in the session."""
    player: str
    buy_ins: float
    cash_outs: float
    final_stack: Optional[float]
    current_stack: float
    net: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "player": self.player,
            "buy_ins": self.buy_ins,
            "cash_outs": self.cash_outs,
            "final_stack": self.final_stack,
            "current_stack": self.current_stack,
            "net": self.net,
        }


def calculate_standings(session: SessionLedger) -> list[PlayerStanding]:
    """Calculate standings for all players in a session.

    Args:
        session: The session ledger.

    Returns:
        List of player standings sorted by net (descending).
    """
    standings = [
        PlayerStanding(
            player=p.player_name,
            buy_ins=p.total_buy_in,
            cash_outs=p.total_cash_out,
            final_stack=p.final_stack,
            current_stack=p.current_stack,
            net=p.profit,
        )
        for p in session.players
    ]
    standings.sort(key=lambda s: s.net, reverse=True)
    return standings


def _money(value: float) -> str:
    return f"{value:.2f}"


def format_standings_table(standings: list[PlayerStanding]) -> str:
    """Format standings as a text table.

    Args:
        standings: List of player standings.

    Returns:
        Formatted table string.
    """
    if not standings:
        return "No transactions recorded."

    lines = [
        "| Player     | Buy-ins  | Cash-outs | Stack    | Net (+/-) |",
        "|------------|----------|-----------|----------|-----------|",
    ]

    for s in standings:
        net_str = f"+{_money(s.net)}" if s.net >= 0 else _money(s.net)
        lines.append(
            f"| {s.player:<10} | {_money(s.buy_ins):>8} | {_money(s.cash_outs):>9} "
            f"| {_money(s.current_stack):>8} | {net_str:>9} |"
        )

    return "\n".join(lines)
