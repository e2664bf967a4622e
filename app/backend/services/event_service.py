import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Event, NewEvent, as_utc
from ..models.redis_models import SessionUser
from .access_policy import require_reviewer
from .errors import NotFoundError, ValidationError
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class EventService:
    """
    The event catalogue students pick from when submitting participations.
    Only proctors and admins may change it.
    """
    def __init__(self, db_client: AsyncPostgresClient, notifier: NotificationService):
        self.db_client = db_client
        self.notifier = notifier

    async def list_events(
        self,
        category: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> List[Event]:
        return await self.db_client.get_events(category=category, date_from=date_from, date_to=date_to, search=search)

    async def get_event(self, event_id: int) -> Event:
        event = await self.db_client.get_event(event_id)
        if not event:
            raise NotFoundError("Event not found.")
        return event

    async def create_event(self, actor: SessionUser, new_event: NewEvent) -> Event:
        require_reviewer(actor, action="post events")
        if new_event.end_date <= new_event.start_date:
            raise ValidationError("Event end date must be after its start date.")

        event = await self.db_client.create_event(new_event, posted_by=actor.id)
        logger.info(f"Event {event.id} '{event.title}' posted by user {actor.id}.")

        await self.notifier.notify_event_posted(event)
        return event

    async def update_event(self, actor: SessionUser, event_id: int, changes: Dict[str, Any]) -> Event:
        require_reviewer(actor, action="edit events")
        current = await self.get_event(event_id)
        # banner_url is the only column that may be cleared
        changes = {k: v for k, v in changes.items() if v is not None or k == "banner_url"}
        for key in ("start_date", "end_date"):
            if key in changes:
                changes[key] = as_utc(changes[key])

        start = changes.get("start_date", current.start_date)
        end = changes.get("end_date", current.end_date)
        if end <= start:
            raise ValidationError("Event end date must be after its start date.")

        updated = await self.db_client.update_event(event_id, changes)
        if not updated:
            raise NotFoundError("Event not found.")
        logger.info(f"Event {event_id} updated by user {actor.id}: {sorted(changes)}")
        return updated

    async def delete_event(self, actor: SessionUser, event_id: int):
        """Participations keep their captured event name; their event link is cleared."""
        require_reviewer(actor, action="delete events")
        if not await self.db_client.delete_event(event_id):
            raise NotFoundError("Event not found.")
        logger.info(f"Event {event_id} deleted by user {actor.id}.")
