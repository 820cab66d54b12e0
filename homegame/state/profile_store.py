"""Player profile persistence using PostgreSQL."""
from typing import Optional

from homegame.db.connection import db, DB_ERRORS
from homegame.ledger.errors import PersistenceFailureError
from homegame.profiles.profile import PlayerProfile
from homegame.utils.logger import get_logger

logger = get_logger(__name__)


class ProfileStore:
    """Loads and saves player profiles, keyed by lower-cased name."""

    async def get_profile(self, player_name: str) -> Optional[PlayerProfile]:
        """Get a profile by name (case-insensitive).

        Returns:
            The profile if found, None otherwise.

        Raises:
            PersistenceFailureError: If the database read failed.
        """
        try:
            row = await db.fetchrow(
                "SELECT document FROM player_profiles WHERE name_key = $1",
                player_name.strip().lower()
            )
        except DB_ERRORS as e:
            logger.error(f"Failed to load profile for {player_name}: {e}")
            raise PersistenceFailureError(f"Could not load profile for {player_name}") from e

        if row is None:
            return None
        return PlayerProfile.from_dict(row["document"])

    async def save_profile(self, profile: PlayerProfile) -> bool:
        """Write the whole profile document in one statement.

        Raises:
            PersistenceFailureError: If the database write failed.
        """
        try:
            await db.execute(
                """
                INSERT INTO player_profiles (name_key, name, document, updated_at)
                VALUES ($1, $2, $3, NOW())
                ON CONFLICT (name_key)
                DO UPDATE SET name = $2, document = $3, updated_at = NOW()
                """,
                profile.key,
                profile.name,
                profile.to_dict(),
            )
        except DB_ERRORS as e:
            logger.error(f"Failed to save profile for {profile.name}: {e}")
            raise PersistenceFailureError(f"Could not save profile for {profile.name}") from e

        logger.debug(f"Saved profile for {profile.name}")
        return True

    async def list_profiles(self) -> list[PlayerProfile]:
        """List all profiles ordered by name."""
        try:
            rows = await db.fetch("SELECT document FROM player_profiles ORDER BY name_key")
        except DB_ERRORS as e:
            logger.error(f"Failed to list profiles: {e}")
            raise PersistenceFailureError("Could not list profiles") from e
        return [PlayerProfile.from_dict(row["document"]) for row in rows]

    async def delete_profile(self, player_name: str) -> bool:
        """Delete a profile.

        Returns:
            True if a profile was deleted.
        """
        try:
            result = await db.execute(
                "DELETE FROM player_profiles WHERE name_key = $1",
                player_name.strip().lower()
            )
        except DB_ERRORS as e:
            logger.error(f"Failed to delete profile for {player_name}: {e}")
            raise PersistenceFailureError(f"Could not delete profile for {player_name}") from e
        return result != "DELETE 0"


profile_store = ProfileStore()
