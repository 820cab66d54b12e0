"""Shared fixtures: in-memory stand-ins for the PostgreSQL-backed stores."""
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from homegame.admin.session_manager import SessionManager
from homegame.ledger.errors import PersistenceFailureError
from homegame.ledger.session_ledger import SessionLedger
from homegame.profiles.profile import PlayerProfile


class MemorySessionStore:
    """Keeps session documents in a dict, the way the database keeps rows."""

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.fail_saves = 0
        self.save_count = 0

    async def save(self, session: SessionLedger) -> bool:
        if self.fail_saves:
            self.fail_saves -= 1
            raise PersistenceFailureError(f"Could not save session {session.id}")
        self.documents[session.id] = session.to_dict()
        self.save_count += 1
        return True

    async def load(self, session_id: str) -> Optional[SessionLedger]:
        document = self.documents.get(session_id)
        return SessionLedger.from_dict(document) if document else None

    async def delete(self, session_id: str) -> bool:
        return self.documents.pop(session_id, None) is not None

    async def load_recent_sessions(self, days: Optional[int] = None) -> list[SessionLedger]:
        cutoff = datetime.now(timezone.utc) - timedelta(days=365 if days is None else days)
        sessions = [SessionLedger.from_dict(d) for d in self.documents.values()]
        sessions = [s for s in sessions if s.start_time >= cutoff]
        return sorted(sessions, key=lambda s: s.start_time, reverse=True)


class MemoryProfileStore:
    """Keeps profile documents keyed by lower-cased name."""

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.failing_names: set[str] = set()
        self.save_count = 0

    async def get_profile(self, player_name: str) -> Optional[PlayerProfile]:
        document = self.documents.get(player_name.strip().lower())
        return PlayerProfile.from_dict(document) if document else None

    async def save_profile(self, profile: PlayerProfile) -> bool:
        if profile.key in self.failing_names:
            raise PersistenceFailureError(f"Could not save profile for {profile.name}")
        self.documents[profile.key] = profile.to_dict()
        self.save_count += 1
        return True

    async def list_profiles(self) -> list[PlayerProfile]:
        return [PlayerProfile.from_dict(d) for _, d in sorted(self.documents.items())]

    async def delete_profile(self, player_name: str) -> bool:
        return self.documents.pop(player_name.strip().lower(), None) is not None


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def profile_store():
    return MemoryProfileStore()


@pytest.fixture
def manager(session_store, profile_store):
    return SessionManager(session_store, profile_store)
