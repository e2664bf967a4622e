import logging
from typing import List, Optional

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    Event, Notification, NewNotification, NotificationType,
    Participation, ParticipationStatus, StudentWithUser,
)
from .errors import NotFoundError

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Persists notification records as side effects of workflow transitions.

    Emission is best-effort: a failed write is logged and swallowed, it never
    rolls back or blocks the transition that triggered it.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def emit(
        self,
        user_id: int,
        title: str,
        message: str,
        type: NotificationType | str,
        related_entity_id: Optional[int] = None,
    ) -> Optional[Notification]:
        notification_type = type.value if isinstance(type, NotificationType) else type
        try:
            notification = await self.db_client.create_notification(NewNotification(
                user_id=user_id,
                title=title,
                message=message,
                type=notification_type,
                related_entity_id=related_entity_id,
            ))
            logger.info(f"Notification '{notification_type}' created for user {user_id}.")
            return notification
        except Exception as e:
            logger.error(f"Could not create '{notification_type}' notification for user {user_id}: {e}", exc_info=True)
            return None

    async def notify_review_outcome(self, participation: Participation) -> Optional[Notification]:
        """Tells the owning student how their submission was reviewed."""
        try:
            student = await self.db_client.get_student_by_id(participation.student_id)
        except Exception as e:
            logger.error(f"Could not resolve student {participation.student_id} for notification: {e}", exc_info=True)
            return None
        if student is None:
            logger.warning(f"Participation {participation.id} points at missing student {participation.student_id}.")
            return None

        outcome = "Approved" if participation.status == ParticipationStatus.APPROVED else "Rejected"
        message = f'Your participation for "{participation.event_name}" has been {participation.status.value}.'
        if participation.proctor_feedback:
            message += f" Feedback: {participation.proctor_feedback}"
        return await self.emit(
            user_id=student.user_id,
            title=f"Participation {outcome}",
            message=message,
            type=NotificationType.SUBMISSION,
            related_entity_id=participation.id,
        )

    async def notify_new_submission(self, participation: Participation, student: StudentWithUser) -> Optional[Notification]:
        """
        Tells the student's assigned proctor that a submission awaits review.
        Students without a proctor are a silent no-op.
        """
        if student.proctor_id is None:
            return None
        try:
            proctor = await self.db_client.get_proctor_by_id(student.proctor_id)
        except Exception as e:
            logger.error(f"Could not resolve proctor {student.proctor_id} for notification: {e}", exc_info=True)
            return None
        if proctor is None:
            logger.warning(f"Student {student.id} is assigned to missing proctor {student.proctor_id}.")
            return None

        return await self.emit(
            user_id=proctor.user_id,
            title="New Participation Submitted",
            message=f'{student.user.full_name} ({student.usn}) submitted "{participation.event_name}" for review.',
            type=NotificationType.SUBMISSION,
            related_entity_id=participation.id,
        )

    async def notify_event_posted(self, event: Event) -> int:
        """Fans a new event out to every active student. Returns how many were notified."""
        try:
            user_ids = await self.db_client.get_student_user_ids()
            await self.db_client.create_notifications([
                NewNotification(
                    user_id=user_id,
                    title=f"New Event: {event.title}",
                    message=f'A new event "{event.title}" has been posted in {event.category}. Check it out!',
                    type=NotificationType.EVENT.value,
                    related_entity_id=event.id,
                )
                for user_id in user_ids
            ])
            logger.info(f"Event {event.id} announced to {len(user_ids)} students.")
            return len(user_ids)
        except Exception as e:
            logger.error(f"Could not announce event {event.id}: {e}", exc_info=True)
            return 0

    async def list_for_user(self, user_id: int) -> List[Notification]:
        return await self.db_client.get_notifications(user_id)

    async def mark_read(self, user_id: int, notification_id: int):
        if not await self.db_client.mark_notification_read(notification_id, user_id):
            raise NotFoundError("Notification not found.")
