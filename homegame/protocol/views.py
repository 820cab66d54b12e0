"""Build API responses from ledger and profile objects."""
from homegame.ledger.player_ledger import PlayerLedger
from homegame.ledger.session_ledger import SessionLedger
from homegame.profiles.profile import PlayerProfile
from homegame.protocol.messages import (
    PlayerItem,
    ProfileResponse,
    SessionListItem,
    SessionResponse,
    TransactionItem,
)


def player_view(player: PlayerLedger) -> PlayerItem:
    superseded = player.superseded_cash_out_ids
    return PlayerItem(
        player=player.player_name,
        total_buy_in=player.total_buy_in,
        total_cash_out=player.total_cash_out,
        final_stack=player.final_stack,
        current_stack=player.current_stack,
        profit=player.profit,
        has_left=player.has_left,
        recent_activity=list(player.recent_activity),
        lifetime_profit=player.profile.lifetime_profit if player.profile else None,
        transactions=[
            TransactionItem(
                id=t.id,
                type=t.type.value,
                amount=t.amount,
                timestamp=t.timestamp,
                note=t.note,
                superseded=t.id in superseded,
            )
            for t in player.history
        ],
    )


def session_view(session: SessionLedger) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        name=session.name,
        hosted_by=session.hosted_by,
        notes=session.notes,
        status=session.status.value,
        start_time=session.start_time,
        end_time=session.end_time,
        duration_seconds=session.duration.total_seconds(),
        total_buy_in=session.total_buy_in,
        total_cash_out=session.total_cash_out,
        total_current_stacks=session.total_current_stacks,
        balance_delta=session.balance_delta,
        is_balanced=session.is_balanced,
        players=[player_view(p) for p in session.players],
    )


def session_list_item(session: SessionLedger) -> SessionListItem:
    return SessionListItem(
        session_id=session.id,
        name=session.name,
        status=session.status.value,
        start_time=session.start_time,
        end_time=session.end_time,
        player_count=session.player_count,
        total_buy_in=session.total_buy_in,
        is_balanced=session.is_balanced,
    )


def profile_view(profile: PlayerProfile) -> ProfileResponse:
    best, worst = profile.best_worst_profit()
    return ProfileResponse(
        name=profile.name,
        display_name=profile.display_name,
        lifetime_buy_in=profile.lifetime_buy_in,
        lifetime_cash_out=profile.lifetime_cash_out,
        lifetime_profit=profile.lifetime_profit,
        sessions_played=profile.sessions_played,
        average_profit=profile.average_profit(),
        best_session=best,
        worst_session=worst,
        last_played_at=profile.last_played_at,
        recent_profit_trend=profile.recent_profit_trend(),
        sessions=profile.display_sessions(),
    )
