"""Main FastAPI server for the session ledger."""
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from homegame.config import config
from homegame.db.connection import db
from homegame.db.models import init_db
from homegame.state.redis_client import redis_client
from homegame.state.session_store import session_store
from homegame.state.profile_store import profile_store
from homegame.admin.session_manager import SessionManager
from homegame.ledger.errors import LedgerError, PlayerNotFoundError, TransactionNotFoundError
from homegame.protocol.messages import (
    BuyInRequest,
    CashOutRequest,
    CreateSessionRequest,
    ErrorMessage,
    FinalStackRequest,
    FinalizeResponse,
    PlayerStatsResponse,
    ProfileResponse,
    RenameSessionRequest,
    RepairResponse,
    SessionListResponse,
    SessionResponse,
    StandingItem,
    StandingsResponse,
    TransactionItem,
)
from homegame.protocol.views import profile_view, session_list_item, session_view
from homegame.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


# Global manager instance
manager = SessionManager(session_store, profile_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging(config.log_level)
    await db.connect()
    await redis_client.connect()
    await init_db()
    logger.info("Ledger server initialized")
    yield
    await redis_client.disconnect()
    await db.disconnect()
    logger.info("Ledger server shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Home Game Ledger",
    description="Buy-in, cash-out and settlement tracking for home poker games",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware - allow local development
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorMessage(message=exc.message, code=exc.code).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    amount_error = any(tuple(error.get("loc", ()))[-1:] == ("amount",) for error in errors)
    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in errors
    )
    return JSONResponse(
        status_code=422,
        content=ErrorMessage(
            message=message or "Invalid request",
            code="INVALID_AMOUNT" if amount_error else "INVALID_REQUEST",
        ).model_dump(),
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content=ErrorMessage(message=str(exc), code="INVALID_REQUEST").model_dump(),
    )


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    database = await db.ping()
    cache = await redis_client.ping()
    return {
        "status": "healthy" if database else "degraded",
        "database": database,
        "cache": cache,
    }


# Current session
@app.post("/api/sessions", response_model=SessionResponse)
async def create_session(request: CreateSessionRequest):
    """Start a draft session (not stored until promoted)."""
    session = manager.create_draft(request.name, request.hosted_by, request.notes)
    return session_view(session)


@app.get("/api/session", response_model=SessionResponse)
async def current_session():
    """Get the current session."""
    return session_view(manager.session)


@app.patch("/api/session", response_model=SessionResponse)
async def rename_session(request: RenameSessionRequest):
    return session_view(manager.rename_session(request.name))


@app.post("/api/session/promote", response_model=SessionResponse)
async def promote_session():
    """Store the draft, making it active."""
    return session_view(await manager.promote())


@app.post("/api/session/players", response_model=SessionResponse)
async def buy_in(request: BuyInRequest):
    """Add a player or record an additional buy-in."""
    await manager.add_player(request.player, request.amount, note=request.note)
    return session_view(manager.session)


@app.delete("/api/session/players/{player}", response_model=SessionResponse)
async def remove_player(player: str):
    manager.remove_player(player)
    return session_view(manager.session)


@app.post("/api/session/players/{player}/cash-out", response_model=TransactionItem)
async def cash_out(player: str, request: CashOutRequest):
    """Record a cash-out for a player."""
    transaction = manager.add_cash_out(player, request.amount, note=request.note)
    return TransactionItem(
        id=transaction.id,
        type=transaction.type.value,
        amount=transaction.amount,
        timestamp=transaction.timestamp,
        note=transaction.note,
    )


@app.put("/api/session/players/{player}/final-stack", response_model=SessionResponse)
async def final_stack(player: str, request: FinalStackRequest):
    """Declare a player's final stack."""
    manager.set_final_stack(player, request.amount)
    return session_view(manager.session)


@app.delete("/api/session/players/{player}/transactions/{transaction_id}", response_model=SessionResponse)
async def remove_transaction(player: str, transaction_id: str):
    """Remove a transaction for corrections."""
    if not manager.remove_transaction(player, transaction_id):
        raise TransactionNotFoundError(player, transaction_id)
    return session_view(manager.session)


@app.post("/api/session/save", response_model=SessionResponse)
async def save_session():
    await manager.save()
    return session_view(manager.session)


@app.post("/api/session/end", response_model=FinalizeResponse)
async def end_session():
    """End the session and finalize player profiles."""
    report = await manager.end_session()
    return FinalizeResponse(**report.to_dict())


@app.post("/api/session/finalize", response_model=FinalizeResponse)
async def finalize_session():
    """Retry profile finalization after a partial failure."""
    report = await manager.finalize_session()
    return FinalizeResponse(**report.to_dict())


@app.post("/api/session/repair", response_model=RepairResponse)
async def repair_session():
    """Rebuild drifted player totals from their transactions."""
    repaired = manager.repair_session()
    return RepairResponse(session_id=manager.session.id, repaired=repaired)


@app.get("/api/session/standings", response_model=StandingsResponse)
async def get_standings():
    """Get current session standings."""
    standings = manager.standings()
    return StandingsResponse(
        session_id=manager.session.id,
        is_balanced=manager.session.is_balanced,
        players=[StandingItem(**s.to_dict()) for s in standings],
    )


# Stored sessions
@app.get("/api/sessions", response_model=SessionListResponse)
async def list_sessions(days: Optional[int] = None):
    """List sessions started within the window, newest first."""
    window = days if days is not None else config.recent_sessions_days
    sessions = await manager.recent_sessions(window)
    return SessionListResponse(
        days=window,
        sessions=[session_list_item(s) for s in sessions],
    )


@app.post("/api/sessions/{session_id}/load", response_model=SessionResponse)
async def load_session(session_id: str):
    """Load a stored session as the current one."""
    return session_view(await manager.load_session(session_id))


@app.delete("/api/sessions/{session_id}")
async def delete_session(session_id: str):
    """Delete a stored session and remove it from profiles."""
    await manager.delete_session(session_id)
    return {"message": f"Session '{session_id}' deleted"}


# Player profiles
@app.get("/api/players/{name}/profile", response_model=ProfileResponse)
async def get_profile(name: str):
    profile = await manager.get_profile(name)
    if profile is None:
        raise PlayerNotFoundError(name)
    return profile_view(profile)


@app.get("/api/players/{name}/stats", response_model=PlayerStatsResponse)
async def get_player_stats(name: str, days: Optional[int] = None):
    stats = await manager.player_stats(name, days)
    return PlayerStatsResponse(**stats.to_dict())


@app.post("/api/players/{name}/repair", response_model=ProfileResponse)
async def repair_profile(name: str):
    """Recompute a profile's totals from its finalized sessions."""
    return profile_view(await manager.repair_profile(name))


@app.post("/api/players/repair")
async def repair_all_profiles():
    repaired, total = await manager.repair_all_profiles()
    return {"repaired": repaired, "total": total}


# Entry point
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "homegame.main:app",
        host=config.host,
        port=config.port,
        reload=True,
    )
