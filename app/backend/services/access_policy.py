"""
Role-based access rules shared by every endpoint that touches participations.

Students only ever see their own submissions; proctors and admins see all of
them. List and detail views both go through ``is_reviewer`` so the rule is
decided in exactly one place.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ..models.db_models import Role, Student, Participation
from .errors import AuthorizationError

logger = logging.getLogger(__name__)

REVIEWER_ROLES = frozenset({Role.PROCTOR, Role.ADMIN})


class Actor(Protocol):
    id: int
    role: Role


def is_reviewer(actor: Actor) -> bool:
    return Role(actor.role) in REVIEWER_ROLES


def require_role(actor: Actor, *roles: Role, action: str = "perform this operation"):
    """Raises AuthorizationError unless the actor holds one of the given roles."""
    if Role(actor.role) not in roles:
        logger.warning(f"User {actor.id} ({actor.role}) is not allowed to {action}.")
        allowed = " or ".join(r.value for r in roles)
        raise AuthorizationError(f"Only {allowed} accounts can {action}.")


def require_reviewer(actor: Actor, action: str = "review participations"):
    require_role(actor, *sorted(REVIEWER_ROLES, key=lambda r: r.value), action=action)


@dataclass(frozen=True)
class ParticipationScope:
    """Which participations a query may return."""
    student_id: Optional[int] = None
    nothing_visible: bool = False


def scope_student_filter(actor: Actor, own_student: Optional[Student], requested_student_id: Optional[int]) -> ParticipationScope:
    """
    Decides the student filter a participation query must use.

    Reviewers get whatever they asked for (None means everyone). Students are
    always pinned to their own profile, whatever filter they sent, and see
    nothing at all until that profile exists.
    """
    if is_reviewer(actor):
        return ParticipationScope(student_id=requested_student_id)
    if own_student is None:
        return ParticipationScope(nothing_visible=True)
    return ParticipationScope(student_id=own_student.id)


def can_view_participation(actor: Actor, own_student: Optional[Student], participation: Participation) -> bool:
    if is_reviewer(actor):
        return True
    return own_student is not None and participation.student_id == own_student.id
