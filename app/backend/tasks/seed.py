import asyncio
import logging
from datetime import datetime, timedelta, timezone
import asyncpg

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..db.schema import create_schema
from ..models.db_models import NewEvent, NewProctor, NewStudent, NewUser, Role, User
from ..tools.password_hasher import hash_password

logger = logging.getLogger(__name__)

DEMO_EVENT_TITLE = "Hackathon 2024"


async def _ensure_user(db_client: AsyncPostgresClient, username: str, password: str, role: Role,
                       first_name: str, last_name: str, email: str) -> User:
    user = await db_client.get_user_by_username(username)
    if user:
        return user
    user = await db_client.create_user(NewUser(
        username=username,
        password=hash_password(password),
        role=role,
        first_name=first_name,
        last_name=last_name,
        email=email,
    ))
    logger.info(f"Seeded {role.value} account '{username}'.")
    return user


async def seed_database(db_client: AsyncPostgresClient):
    """
    Creates the demo accounts (admin, proctor, student), their profiles and
    one pinned event. Anything that already exists is left untouched, so
    running this twice is harmless.
    """
    admin = await _ensure_user(db_client, "admin", "admin123", Role.ADMIN, "System", "Admin", "admin@college.edu")

    proctor_user = await _ensure_user(
        db_client, "proctor", "proctor123", Role.PROCTOR, "Priya", "Sharma", "proctor@college.edu"
    )
    proctor = await db_client.get_proctor_by_user_id(proctor_user.id)
    if not proctor:
        proctor = await db_client.create_proctor(NewProctor(
            user_id=proctor_user.id,
            employee_id="EMP001",
            department="Computer Science",
            designation="Assistant Professor",
        ))
        logger.info(f"Seeded proctor profile {proctor.employee_id}.")

    student_user = await _ensure_user(
        db_client, "student", "student123", Role.STUDENT, "Rahul", "Kumar", "student@college.edu"
    )
    if not await db_client.get_student_by_user_id(student_user.id):
        student = await db_client.create_student(NewStudent(
            user_id=student_user.id,
            usn="1CR18CS001",
            department="Computer Science",
            year=4,
            semester=7,
            batch="2018-2022",
            proctor_id=proctor.id,
        ))
        logger.info(f"Seeded student profile {student.usn}.")

    # search matches substrings
    existing = await db_client.get_events(search=DEMO_EVENT_TITLE)
    if not any(event.title == DEMO_EVENT_TITLE for event in existing):
        start = datetime.now(timezone.utc) + timedelta(days=14)
        await db_client.create_event(NewEvent(
            title=DEMO_EVENT_TITLE,
            description="24-hour coding marathon open to all departments.",
            category="Technical",
            start_date=start,
            end_date=start + timedelta(days=1),
            venue="Main Auditorium",
            is_pinned=True,
        ), posted_by=admin.id)
        logger.info(f"Seeded event '{DEMO_EVENT_TITLE}'.")


async def main():
    pool = await asyncpg.create_pool(dsn=settings.DATABASE_URL, min_size=1, max_size=2)
    try:
        await create_schema(pool)
        await seed_database(AsyncPostgresClient(pool=pool))
    finally:
        await pool.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
