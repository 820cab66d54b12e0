"""Database schema and initialization."""
from homegame.db.connection import db
from homegame.utils.logger import get_logger

logger = get_logger(__name__)

# Sessions and profiles are stored as whole JSONB documents so every save is a
# single-row write. Scalar columns are copies used for listing and filtering.
SCHEMA = """
-- Session ledgers (a poker night: players -> transactions)
CREATE TABLE IF NOT EXISTS ledger_sessions (
    id VARCHAR(64) PRIMARY KEY,
    name VARCHAR(200) NOT NULL,
    hosted_by VARCHAR(100) NOT NULL DEFAULT '',
    start_time TIMESTAMPTZ NOT NULL,
    end_time TIMESTAMPTZ,
    document JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_ledger_sessions_start ON ledger_sessions(start_time DESC);

-- Player profiles (lifetime totals and finalized session records)
CREATE TABLE IF NOT EXISTS player_profiles (
    name_key VARCHAR(100) PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    document JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

# Migrations for existing databases
MIGRATIONS = [
    # Migration 1: Add hosted_by column to ledger_sessions
    """
    DO $$
    BEGIN
        IF NOT EXISTS (
            SELECT 1 FROM information_schema.columns
            WHERE table_name = 'ledger_sessions' AND column_name = 'hosted_by'
        ) THEN
            ALTER TABLE ledger_sessions ADD COLUMN hosted_by VARCHAR(100) NOT NULL DEFAULT '';
        END IF;
    END $$;
    """,
]


async def init_db() -> None:
    """Initialize database schema and run migrations."""
    logger.info("Initializing ledger schema...")
    await db.execute(SCHEMA)

    for i, migration in enumerate(MIGRATIONS, 1):
        try:
            await db.execute(migration)
            logger.info(f"Migration {i} completed")
        except Exception as e:
            logger.warning(f"Migration {i} skipped or failed: {e}")

    logger.info("Ledger schema initialized")
