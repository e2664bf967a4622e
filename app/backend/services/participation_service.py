import logging
from typing import List, Optional

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    DashboardStats, NewParticipation, NewProof, Participation, ParticipationDetail,
    ParticipationDraft, ParticipationStatus, ParticipationWithProofs, Role, Student,
)
from ..models.redis_models import SessionUser
from .access_policy import can_view_participation, is_reviewer, require_reviewer, require_role, scope_student_filter
from .errors import ConflictError, NotFoundError, ProfileIncompleteError, ValidationError
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = (ParticipationStatus.APPROVED, ParticipationStatus.REJECTED)


class ParticipationService:
    """
    Business logic of the participation workflow: submission with proofs,
    role-scoped reading, the one-way proctor review and dashboard stats.

    A participation starts 'pending' and is moved exactly once to 'approved'
    or 'rejected'. Re-review requires a new submission.
    """
    def __init__(self, db_client: AsyncPostgresClient, notifier: NotificationService):
        self.db_client = db_client
        self.notifier = notifier

    async def _own_student(self, actor: SessionUser) -> Optional[Student]:
        if is_reviewer(actor):
            return None
        return await self.db_client.get_student_by_user_id(actor.id)

    async def _resolve_event_name(self, draft: ParticipationDraft) -> str:
        if draft.event_id is not None:
            event = await self.db_client.get_event(draft.event_id)
            if not event:
                raise NotFoundError(f"Event {draft.event_id} not found.")
            return event.title
        if draft.event_name and draft.event_name.strip():
            return draft.event_name.strip()
        raise ValidationError("Either an event id or an event name is required.")

    async def create_participation(self, actor: SessionUser, draft: ParticipationDraft, proofs: List[NewProof]) -> Participation:
        require_role(actor, Role.STUDENT, action="submit participations")

        student = await self.db_client.get_student_by_user_id(actor.id)
        if not student:
            logger.warning(f"User {actor.id} tried to submit a participation without a student profile.")
            raise ProfileIncompleteError("Student profile incomplete. Complete your profile before submitting.")

        if not proofs:
            raise ValidationError("At least one proof is required.")
        if not draft.role or not draft.role.strip():
            raise ValidationError("Your role in the event is required.")
        if draft.duration_days < 1:
            raise ValidationError("Duration must be at least one day.")

        event_name = await self._resolve_event_name(draft)

        participation = await self.db_client.create_participation(
            NewParticipation(
                student_id=student.id,
                event_id=draft.event_id,
                event_name=event_name,
                role=draft.role.strip(),
                duration_days=draft.duration_days,
                achievement=draft.achievement,
                description=draft.description,
            ),
            proofs,
        )
        logger.info(f"Participation {participation.id} submitted by student {student.id} with {len(proofs)} proof(s).")

        await self.notifier.notify_new_submission(participation, student)
        return participation

    async def list_participations(
        self,
        actor: SessionUser,
        student_id: Optional[int] = None,
        status: Optional[ParticipationStatus | str] = None,
    ) -> List[ParticipationWithProofs]:
        """Newest first. Students always get only their own submissions."""
        if status is not None:
            try:
                status = ParticipationStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown status '{status}'.")

        scope = scope_student_filter(actor, await self._own_student(actor), student_id)
        if scope.nothing_visible:
            return []
        return await self.db_client.get_participations(student_id=scope.student_id, status=status)

    async def get_participation(self, actor: SessionUser, participation_id: int) -> ParticipationDetail:
        detail = await self.db_client.get_participation_detail(participation_id)
        if not detail:
            raise NotFoundError("Participation not found.")

        if not can_view_participation(actor, await self._own_student(actor), detail):
            # Same answer as a missing row, so ids of other students' submissions don't leak.
            logger.warning(f"User {actor.id} tried to read participation {participation_id} of another student.")
            raise NotFoundError("Participation not found.")
        return detail

    async def review_participation(
        self,
        actor: SessionUser,
        participation_id: int,
        status: ParticipationStatus | str,
        feedback: Optional[str] = None,
    ) -> Participation:
        require_reviewer(actor)

        try:
            decision = ParticipationStatus(status)
        except ValueError:
            decision = None
        if decision not in REVIEW_DECISIONS:
            raise ValidationError("Review status must be 'approved' or 'rejected'.")

        feedback = feedback.strip() if feedback and feedback.strip() else None
        if decision == ParticipationStatus.REJECTED and not feedback:
            raise ValidationError("Feedback is required when rejecting a participation.")

        current = await self.db_client.get_participation(participation_id)
        if not current:
            raise NotFoundError("Participation not found.")
        if current.status != ParticipationStatus.PENDING:
            raise ConflictError(f"Participation has already been {current.status.value}.")

        updated = await self.db_client.review_participation(participation_id, decision, actor.id, feedback)
        if updated is None:
            # Another reviewer moved it out of 'pending' between our read and write.
            logger.warning(f"Lost review race on participation {participation_id} (user {actor.id}).")
            raise ConflictError("Participation was reviewed by someone else in the meantime.")

        logger.info(f"Participation {participation_id} {decision.value} by user {actor.id}.")
        await self.notifier.notify_review_outcome(updated)
        return updated

    async def compute_stats(self) -> DashboardStats:
        """Always computed fresh; nothing is cached."""
        total_events = await self.db_client.count_events()
        counts = await self.db_client.count_participations()
        return DashboardStats(
            total_events=total_events,
            total_participations=counts.total,
            pending_reviews=counts.pending,
            approved_participations=counts.approved,
            rejected_participations=counts.rejected,
        )
