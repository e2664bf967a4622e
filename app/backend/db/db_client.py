import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional
import asyncpg
from ..models.db_models import (
    User, NewUser, Student, NewStudent, StudentWithUser, Proctor, NewProctor, ProctorWithUser,
    Event, NewEvent, Participation, NewParticipation, ParticipationProof, NewProof,
    ParticipationWithProofs, ParticipationDetail, ParticipationCounts,
    ParticipationStatus, Notification, NewNotification,
)

logger = logging.getLogger(__name__)

# Columns an event update may touch; anything else in the payload is ignored.
EVENT_UPDATABLE_COLUMNS = (
    "title", "description", "category", "start_date", "end_date",
    "venue", "is_pinned", "is_active", "banner_url",
)


def _json_column(value: Optional[str]) -> Optional[Dict[str, Any]]:
    """row_to_json() comes back from asyncpg as text."""
    return json.loads(value) if value else None


class AsyncPostgresClient:
    """
    PostgreSQL client that owns every database operation of the application.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    # ===== Users =====

    async def get_user(self, user_id: int) -> Optional[User]:
        query = "SELECT * FROM users WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return User(**record) if record else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        query = "SELECT * FROM users WHERE username = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, username)
            return User(**record) if record else None

    async def get_all_users(self) -> List[User]:
        query = "SELECT * FROM users ORDER BY created_at DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [User(**record) for record in records]

    async def create_user(self, user: NewUser) -> User:
        query = """
            INSERT INTO users (username, password, role, first_name, last_name, email, phone, is_active)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, user.username, user.password, user.role.value, user.first_name,
                user.last_name, user.email, user.phone, user.is_active
            )
            return User(**record)

    async def set_user_active(self, user_id: int, is_active: bool) -> Optional[User]:
        query = "UPDATE users SET is_active = $2 WHERE id = $1 RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, is_active)
            return User(**record) if record else None

    # ===== Students & Proctors =====

    async def _fetch_students(self, where: str = "", *args) -> List[StudentWithUser]:
        query = f"""
            SELECT row_to_json(s)::text AS student, row_to_json(u)::text AS student_user
            FROM students s
            JOIN users u ON u.id = s.user_id
            {where}
            ORDER BY s.usn;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, *args)
        return [
            StudentWithUser(**_json_column(r["student"]), user=User(**_json_column(r["student_user"])))
            for r in records
        ]

    async def get_student_by_user_id(self, user_id: int) -> Optional[StudentWithUser]:
        students = await self._fetch_students("WHERE s.user_id = $1", user_id)
        return students[0] if students else None

    async def get_student_by_id(self, student_id: int) -> Optional[StudentWithUser]:
        students = await self._fetch_students("WHERE s.id = $1", student_id)
        return students[0] if students else None

    async def get_students(self, proctor_id: Optional[int] = None) -> List[StudentWithUser]:
        """All students, or only those assigned to one proctor."""
        if proctor_id is None:
            return await self._fetch_students()
        return await self._fetch_students("WHERE s.proctor_id = $1", proctor_id)

    async def get_student_user_ids(self) -> List[int]:
        query = """
            SELECT s.user_id FROM students s
            JOIN users u ON u.id = s.user_id
            WHERE u.is_active = TRUE;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query)
            return [r["user_id"] for r in records]

    async def create_student(self, student: NewStudent) -> Student:
        query = """
            INSERT INTO students (user_id, usn, department, year, semester, batch, proctor_id, profile_photo_url)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, student.user_id, student.usn, student.department, student.year,
                student.semester, student.batch, student.proctor_id, student.profile_photo_url
            )
            return Student(**record)

    async def _fetch_proctor(self, where: str, *args) -> Optional[ProctorWithUser]:
        query = f"""
            SELECT row_to_json(p)::text AS proctor, row_to_json(u)::text AS proctor_user
            FROM proctors p
            JOIN users u ON u.id = p.user_id
            {where};
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, *args)
        if not record:
            return None
        return ProctorWithUser(**_json_column(record["proctor"]), user=User(**_json_column(record["proctor_user"])))

    async def get_proctor_by_user_id(self, user_id: int) -> Optional[ProctorWithUser]:
        return await self._fetch_proctor("WHERE p.user_id = $1", user_id)

    async def get_proctor_by_id(self, proctor_id: int) -> Optional[ProctorWithUser]:
        return await self._fetch_proctor("WHERE p.id = $1", proctor_id)

    async def create_proctor(self, proctor: NewProctor) -> Proctor:
        query = """
            INSERT INTO proctors (user_id, employee_id, department, designation)
            VALUES ($1, $2, $3, $4)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, proctor.user_id, proctor.employee_id, proctor.department, proctor.designation
            )
            return Proctor(**record)

    # ===== Events =====

    async def get_events(
        self,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> List[Event]:
        conditions, args = [], []
        if category:
            args.append(category)
            conditions.append(f"category = ${len(args)}")
        if date_from:
            args.append(date_from)
            conditions.append(f"start_date >= ${len(args)}")
        if date_to:
            args.append(date_to)
            conditions.append(f"end_date <= ${len(args)}")
        if search:
            args.append(f"%{search}%")
            conditions.append(f"(title ILIKE ${len(args)} OR description ILIKE ${len(args)})")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"SELECT * FROM events {where} ORDER BY is_pinned DESC, start_date DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, *args)
            return [Event(**record) for record in records]

    async def get_event(self, event_id: int) -> Optional[Event]:
        query = "SELECT * FROM events WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, event_id)
            return Event(**record) if record else None

    async def create_event(self, event: NewEvent, posted_by: int) -> Event:
        query = """
            INSERT INTO events (title, description, category, start_date, end_date, venue,
                                posted_by, is_pinned, is_active, banner_url)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, event.title, event.description, event.category, event.start_date,
                event.end_date, event.venue, posted_by, event.is_pinned, event.is_active, event.banner_url
            )
            return Event(**record)

    async def update_event(self, event_id: int, changes: Dict[str, Any]) -> Optional[Event]:
        """Applies a partial update; unknown keys are dropped."""
        columns = [c for c in EVENT_UPDATABLE_COLUMNS if c in changes]
        if not columns:
            return await self.get_event(event_id)
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=2))
        query = f"UPDATE events SET {assignments} WHERE id = $1 RETURNING *;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, event_id, *[changes[c] for c in columns])
            return Event(**record) if record else None

    async def delete_event(self, event_id: int) -> bool:
        query = "DELETE FROM events WHERE id = $1;"
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, event_id)
            return result.endswith(" 1")

    async def count_events(self) -> int:
        async with self._pool.acquire() as connection:
            return await connection.fetchval("SELECT COUNT(*) FROM events;")

    # ===== Participations =====

    async def create_participation(self, participation: NewParticipation, proofs: List[NewProof]) -> Participation:
        """
        Inserts a participation and all of its proofs in one transaction.
        Either both become visible or neither does.
        """
        participation_query = """
            INSERT INTO participations (student_id, event_id, event_name, role, duration_days, achievement, description)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *;
        """
        proof_query = """
            INSERT INTO participation_proofs (participation_id, file_name, file_url, file_type, file_size)
            VALUES ($1, $2, $3, $4, $5);
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                record = await connection.fetchrow(
                    participation_query, participation.student_id, participation.event_id,
                    participation.event_name, participation.role, participation.duration_days,
                    participation.achievement, participation.description
                )
                await connection.executemany(proof_query, [
                    (record["id"], p.file_name, p.file_url, p.file_type, p.file_size) for p in proofs
                ])
        return Participation(**record)

    async def get_participation(self, participation_id: int) -> Optional[Participation]:
        query = "SELECT * FROM participations WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, participation_id)
            return Participation(**record) if record else None

    async def get_proofs(self, participation_ids: List[int]) -> Dict[int, List[ParticipationProof]]:
        """Fetches the proofs of many participations with a single query."""
        if not participation_ids:
            return {}
        query = """
            SELECT * FROM participation_proofs
            WHERE participation_id = ANY($1)
            ORDER BY uploaded_at, id;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, participation_ids)
        proofs_by_participation = defaultdict(list)
        for record in records:
            proofs_by_participation[record["participation_id"]].append(ParticipationProof(**record))
        return dict(proofs_by_participation)

    async def get_participations(
        self,
        student_id: Optional[int] = None,
        status: Optional[ParticipationStatus] = None,
    ) -> List[ParticipationWithProofs]:
        conditions, args = [], []
        if student_id is not None:
            args.append(student_id)
            conditions.append(f"p.student_id = ${len(args)}")
        if status is not None:
            args.append(ParticipationStatus(status).value)
            conditions.append(f"p.status = ${len(args)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"""
            SELECT p.*, CASE WHEN e.id IS NULL THEN NULL ELSE row_to_json(e)::text END AS event
            FROM participations p
            LEFT JOIN events e ON e.id = p.event_id
            {where}
            ORDER BY p.submitted_at DESC, p.id DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, *args)

        proofs = await self.get_proofs([r["id"] for r in records])
        results = []
        for record in records:
            data = dict(record)
            event = _json_column(data.pop("event"))
            results.append(ParticipationWithProofs(
                **data,
                event=Event(**event) if event else None,
                proofs=proofs.get(record["id"], []),
            ))
        return results

    async def get_participation_detail(self, participation_id: int) -> Optional[ParticipationDetail]:
        query = """
            SELECT p.*,
                   CASE WHEN e.id IS NULL THEN NULL ELSE row_to_json(e)::text END AS event,
                   row_to_json(s)::text AS student,
                   row_to_json(u)::text AS student_user
            FROM participations p
            JOIN students s ON s.id = p.student_id
            JOIN users u ON u.id = s.user_id
            LEFT JOIN events e ON e.id = p.event_id
            WHERE p.id = $1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, participation_id)
        if not record:
            return None

        data = dict(record)
        event = _json_column(data.pop("event"))
        student = StudentWithUser(
            **_json_column(data.pop("student")),
            user=User(**_json_column(data.pop("student_user"))),
        )
        proofs = await self.get_proofs([participation_id])
        return ParticipationDetail(
            **data,
            event=Event(**event) if event else None,
            student=student,
            proofs=proofs.get(participation_id, []),
        )

    async def review_participation(
        self,
        participation_id: int,
        status: ParticipationStatus,
        reviewer_id: int,
        feedback: Optional[str],
    ) -> Optional[Participation]:
        """
        Moves a participation out of 'pending'. The WHERE clause makes this a
        compare-and-swap: None means the row was missing or no longer pending.
        """
        query = """
            UPDATE participations
            SET status = $2, reviewed_by = $3, proctor_feedback = $4
            WHERE id = $1 AND status = 'pending'
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, participation_id, ParticipationStatus(status).value, reviewer_id, feedback
            )
            return Participation(**record) if record else None

    async def count_participations(self) -> ParticipationCounts:
        """All status counts from one statement, so they always add up."""
        query = """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE status = 'pending') AS pending,
                   COUNT(*) FILTER (WHERE status = 'approved') AS approved,
                   COUNT(*) FILTER (WHERE status = 'rejected') AS rejected
            FROM participations;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query)
            return ParticipationCounts(**record)

    # ===== Notifications =====

    async def create_notification(self, notification: NewNotification) -> Notification:
        query = """
            INSERT INTO notifications (user_id, title, message, type, related_entity_id)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, notification.user_id, notification.title, notification.message,
                notification.type, notification.related_entity_id
            )
            return Notification(**record)

    async def create_notifications(self, notifications: List[NewNotification]):
        if not notifications:
            return
        query = """
            INSERT INTO notifications (user_id, title, message, type, related_entity_id)
            VALUES ($1, $2, $3, $4, $5);
        """
        data = [(n.user_id, n.title, n.message, n.type, n.related_entity_id) for n in notifications]
        async with self._pool.acquire() as connection:
            await connection.executemany(query, data)

    async def get_notifications(self, user_id: int) -> List[Notification]:
        query = "SELECT * FROM notifications WHERE user_id = $1 ORDER BY created_at DESC, id DESC;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id)
            return [Notification(**record) for record in records]

    async def mark_notification_read(self, notification_id: int, user_id: int) -> bool:
        """Marks one of the user's own notifications as read."""
        query = "UPDATE notifications SET is_read = TRUE WHERE id = $1 AND user_id = $2;"
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, notification_id, user_id)
            return result.endswith(" 1")
