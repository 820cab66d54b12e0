"""Session ledger persistence.

PostgreSQL holds the authoritative copy of each session as one JSONB
document, written with a single upsert so readers only ever see a whole
document. Redis keeps a read-through cache of recently used sessions.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from redis.exceptions import RedisError

from homegame.config import config
from homegame.db.connection import db, DB_ERRORS
from homegame.ledger.errors import PersistenceFailureError
from homegame.ledger.session_ledger import SessionLedger
from homegame.state.redis_client import redis_client, make_key
from homegame.utils.logger import get_logger

logger = get_logger(__name__)


class SessionStore:
    """Saves, loads and lists session ledgers."""

    def _session_key(self, session_id: str) -> str:
        """Get Redis key for a cached session document."""
        return make_key("session", session_id)

    async def save(self, session: SessionLedger) -> bool:
        """Persist the full session document.

        Args:
            session: Session to save (any status; the caller decides when a
                draft may be written).

        Returns:
            True once PostgreSQL accepted the write.

        Raises:
            PersistenceFailureError: If the database write failed.
        """
        document = session.to_dict()
        try:
            await db.execute(
                """
                INSERT INTO ledger_sessions (id, name, hosted_by, start_time, end_time, document, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, NOW())
                ON CONFLICT (id)
                DO UPDATE SET name = $2, hosted_by = $3, start_time = $4, end_time = $5,
                              document = $6, updated_at = NOW()
                """,
                session.id,
                session.name,
                session.hosted_by,
                session.start_time,
                session.end_time,
                document,
            )
        except DB_ERRORS as e:
            logger.error(f"Failed to save session {session.id}: {e}")
            raise PersistenceFailureError(f"Could not save session {session.id}") from e

        await self._cache(session.id, document)
        logger.debug(f"Saved session {session.id} ({session.player_count} players)")
        return True

    async def load(self, session_id: str) -> Optional[SessionLedger]:
        """Load a session.

        Tries the Redis cache first, falls back to PostgreSQL.

        Args:
            session_id: Session identifier.

        Returns:
            The session if it exists, None otherwise.

        Raises:
            PersistenceFailureError: If the database read failed.
        """
        try:
            document = await redis_client.get_json(self._session_key(session_id))
        except RedisError as e:
            logger.warning(f"Session cache read failed for {session_id}: {e}")
            document = None
        if document:
            return SessionLedger.from_dict(document)

        try:
            row = await db.fetchrow(
                "SELECT document FROM ledger_sessions WHERE id = $1",
                session_id
            )
        except DB_ERRORS as e:
            logger.error(f"Failed to load session {session_id}: {e}")
            raise PersistenceFailureError(f"Could not load session {session_id}") from e

        if row is None:
            return None

        document = row["document"]
        await self._cache(session_id, document)
        return SessionLedger.from_dict(document)

    async def delete(self, session_id: str) -> bool:
        """Delete a session.

        Returns:
            True if a stored session was deleted, False if none existed.

        Raises:
            PersistenceFailureError: If the database delete failed.
        """
        try:
            result = await db.execute(
                "DELETE FROM ledger_sessions WHERE id = $1",
                session_id
            )
        except DB_ERRORS as e:
            logger.error(f"Failed to delete session {session_id}: {e}")
            raise PersistenceFailureError(f"Could not delete session {session_id}") from e

        try:
            await redis_client.delete(self._session_key(session_id))
        except RedisError as e:
            logger.warning(f"Session cache eviction failed for {session_id}: {e}")

        deleted = result != "DELETE 0"
        if deleted:
            logger.info(f"Deleted session {session_id}")
        return deleted

    async def load_recent_sessions(self, days: Optional[int] = None) -> list[SessionLedger]:
        """Load sessions started within the window, newest first.

        Args:
            days: Window size in days (defaults to config.recent_sessions_days).

        Raises:
            PersistenceFailureError: If the database read failed.
        """
        window = days if days is not None else config.recent_sessions_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=window)
        try:
            rows = await db.fetch(
                """
                SELECT document FROM ledger_sessions
                WHERE start_time >= $1
                ORDER BY start_time DESC
                """,
                cutoff
            )
        except DB_ERRORS as e:
            logger.error(f"Failed to list sessions: {e}")
            raise PersistenceFailureError("Could not list sessions") from e

        return [SessionLedger.from_dict(row["document"]) for row in rows]

    async def _cache(self, session_id: str, document: dict) -> None:
        """Refresh the cached copy; the database copy stays authoritative."""
        try:
            await redis_client.set_json(
                self._session_key(session_id),
                document,
                ex=config.session_cache_ttl_seconds,
            )
        except RedisError as e:
            logger.warning(f"Session cache write failed for {session_id}: {e}")
            await self._evict(session_id)

    async def _evict(self, session_id: str) -> None:
        try:
            await redis_client.delete(self._session_key(session_id))
        except RedisError as e:
            logger.warning(f"Session cache eviction failed for {session_id}: {e}")


session_store = SessionStore()
