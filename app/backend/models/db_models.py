# app/backend/models/db_models.py

from enum import Enum
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from typing import Annotated, List, Optional


class Role(str, Enum):
    STUDENT = "student"
    PROCTOR = "proctor"
    ADMIN = "admin"


class ParticipationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    EVENT = "event"
    SUBMISSION = "submission"
    ALERT = "alert"


def as_utc(value: datetime) -> datetime:
    """Dates sent without an offset are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class DomainModel(BaseModel):
    """
    Base for all table models. Fields are snake_case in Python and in the
    database, camelCase on the wire.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class User(DomainModel):
    """
    Represents an account, mapping to the 'users' table.
    """
    id: int
    username: str = Field(..., description="Unique login name (email or USN)")
    password: Optional[str] = Field(None, exclude=True, description="werkzeug password hash, never serialized")
    role: Role
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    is_active: bool = True
    created_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Student(DomainModel):
    """
    Student profile, one-to-one with a User whose role is 'student'.
    """
    id: int
    user_id: int
    usn: str = Field(..., description="University Seat Number, unique per student")
    department: str
    year: int = Field(..., ge=1, le=4)
    semester: int = Field(..., ge=1, le=8)
    batch: str
    proctor_id: Optional[int] = Field(None, description="FK to proctors.id; null until a proctor is assigned")
    profile_photo_url: Optional[str] = None


class Proctor(DomainModel):
    """
    Proctor profile, one-to-one with a User whose role is 'proctor'.
    """
    id: int
    user_id: int
    employee_id: str
    department: str
    designation: str


class Event(DomainModel):
    """
    A campus activity announcement, mapping to the 'events' table.
    """
    id: int
    title: str
    description: str
    category: str
    start_date: datetime
    end_date: datetime
    venue: str
    posted_by: int = Field(..., description="FK to the proctor/admin user who posted it")
    is_pinned: bool = False
    is_active: bool = True
    banner_url: Optional[str] = None
    created_at: datetime


class Participation(DomainModel):
    """
    A student's claim of having taken part in an event, mapping to the
    'participations' table.
    """
    id: int
    student_id: int
    event_id: Optional[int] = Field(None, description="Null for manually entered events")
    event_name: str = Field(..., description="Event title captured at submission time")
    role: str
    duration_days: int = 1
    achievement: Optional[str] = None
    description: Optional[str] = None
    status: ParticipationStatus = ParticipationStatus.PENDING
    submitted_at: datetime
    reviewed_by: Optional[int] = None
    proctor_feedback: Optional[str] = None


class ParticipationProof(DomainModel):
    id: int
    participation_id: int
    file_name: str
    file_url: str
    file_type: str
    file_size: int
    uploaded_at: datetime


class Notification(DomainModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    is_read: bool = False
    related_entity_id: Optional[int] = None
    created_at: datetime


# --- Write models (no id / server-side timestamps yet) ---

class NewUser(DomainModel):
    username: str
    password: str = Field(..., description="Already hashed")
    role: Role = Role.STUDENT
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    is_active: bool = True


class NewStudent(DomainModel):
    user_id: int
    usn: str
    department: str
    year: int = Field(..., ge=1, le=4)
    semester: int = Field(..., ge=1, le=8)
    batch: str
    proctor_id: Optional[int] = None
    profile_photo_url: Optional[str] = None


class NewProctor(DomainModel):
    user_id: int
    employee_id: str
    department: str
    designation: str


class NewEvent(DomainModel):
    title: str
    description: str
    category: str
    start_date: UtcDatetime
    end_date: UtcDatetime
    venue: str
    is_pinned: bool = False
    is_active: bool = True
    banner_url: Optional[str] = None


class ParticipationDraft(DomainModel):
    """What a student submits; the owning student and event name are resolved server-side."""
    event_id: Optional[int] = None
    event_name: Optional[str] = None
    role: str
    duration_days: int = 1
    achievement: Optional[str] = None
    description: Optional[str] = None


class NewParticipation(DomainModel):
    student_id: int
    event_id: Optional[int] = None
    event_name: str
    role: str
    duration_days: int = 1
    achievement: Optional[str] = None
    description: Optional[str] = None


class NewProof(DomainModel):
    file_name: str
    file_url: str
    file_type: str
    file_size: int = Field(..., ge=0)


class NewNotification(DomainModel):
    user_id: int
    title: str
    message: str
    type: str
    related_entity_id: Optional[int] = None


# --- Composite read models ---

class StudentWithUser(Student):
    user: User


class ProctorWithUser(Proctor):
    user: User


class UserProfile(DomainModel):
    """An account together with whichever role profile it has."""
    user: User
    student: Optional[Student] = None
    proctor: Optional[Proctor] = None


class ParticipationWithProofs(Participation):
    event: Optional[Event] = None
    proofs: List[ParticipationProof] = []


class ParticipationDetail(ParticipationWithProofs):
    student: StudentWithUser


class ParticipationCounts(DomainModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class DashboardStats(DomainModel):
    total_events: int
    total_participations: int
    pending_reviews: int
    approved_participations: int
    rejected_participations: int
