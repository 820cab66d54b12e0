"""State persistence: PostgreSQL documents with a Redis cache."""
from .profile_store import ProfileStore, profile_store
from .redis_client import RedisClient, redis_client
from .session_store import SessionStore, session_store

__all__ = [
    "ProfileStore",
    "RedisClient",
    "SessionStore",
    "profile_store",
    "redis_client",
    "session_store",
]
