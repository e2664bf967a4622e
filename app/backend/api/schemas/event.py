from pydantic import model_validator
from typing import Optional

from ...models.db_models import DomainModel, NewEvent, UtcDatetime


class EventCreateRequest(NewEvent):
    """Request model for posting a new event."""

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class EventUpdateRequest(DomainModel):
    """Partial update; only the fields sent are changed."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    venue: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_active: Optional[bool] = None
    banner_url: Optional[str] = None
