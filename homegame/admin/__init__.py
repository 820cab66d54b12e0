"""Host-facing session management, standings and statistics."""
from .session_manager import FinalizeReport, SessionManager
from .standings import PlayerStanding, calculate_standings, format_standings_table

__all__ = [
    "FinalizeReport",
    "PlayerStanding",
    "SessionManager",
    "calculate_standings",
    "format_standings_table",
]
