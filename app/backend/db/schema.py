import logging
import asyncpg

logger = logging.getLogger(__name__)

# Every statement is idempotent so the schema can be applied on each start.
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'student' CHECK (role IN ('student', 'proctor', 'admin')),
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        phone TEXT,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS proctors (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
        employee_id TEXT NOT NULL UNIQUE,
        department TEXT NOT NULL,
        designation TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
        usn TEXT NOT NULL UNIQUE,
        department TEXT NOT NULL,
        year INTEGER NOT NULL CHECK (year BETWEEN 1 AND 4),
        semester INTEGER NOT NULL CHECK (semester BETWEEN 1 AND 8),
        batch TEXT NOT NULL,
        proctor_id INTEGER REFERENCES proctors(id),
        profile_photo_url TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        id SERIAL PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        category TEXT NOT NULL,
        start_date TIMESTAMPTZ NOT NULL,
        end_date TIMESTAMPTZ NOT NULL,
        venue TEXT NOT NULL,
        posted_by INTEGER NOT NULL REFERENCES users(id),
        is_pinned BOOLEAN NOT NULL DEFAULT FALSE,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        banner_url TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (end_date > start_date)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS participations (
        id SERIAL PRIMARY KEY,
        student_id INTEGER NOT NULL REFERENCES students(id),
        event_id INTEGER REFERENCES events(id) ON DELETE SET NULL,
        event_name TEXT NOT NULL,
        role TEXT NOT NULL,
        duration_days INTEGER NOT NULL DEFAULT 1 CHECK (duration_days > 0),
        achievement TEXT,
        description TEXT,
        status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'approved', 'rejected')),
        submitted_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        reviewed_by INTEGER REFERENCES users(id),
        proctor_feedback TEXT
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS participations_student_submitted_idx
        ON participations (student_id, submitted_at DESC);
    """,
    """
    CREATE TABLE IF NOT EXISTS participation_proofs (
        id SERIAL PRIMARY KEY,
        participation_id INTEGER NOT NULL REFERENCES participations(id) ON DELETE CASCADE,
        file_name TEXT NOT NULL,
        file_url TEXT NOT NULL,
        file_type TEXT NOT NULL,
        file_size INTEGER NOT NULL CHECK (file_size >= 0),
        uploaded_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS participation_proofs_participation_idx
        ON participation_proofs (participation_id);
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id),
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        type TEXT NOT NULL,
        is_read BOOLEAN NOT NULL DEFAULT FALSE,
        related_entity_id INTEGER,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
]


async def create_schema(pool: asyncpg.Pool):
    """Creates all tables and indexes that do not exist yet."""
    async with pool.acquire() as connection:
        async with connection.transaction():
            for statement in SCHEMA_STATEMENTS:
                await connection.execute(statement)
    logger.info("Database schema is up to date.")
