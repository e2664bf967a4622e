from fastapi import APIRouter, Depends, status, Response, Request, Query
from typing import List, Optional
from ..services.event_service import EventService
from ..services.errors import ServiceError
from ..models.db_models import Event, NewEvent, UtcDatetime
from ..models.redis_models import SessionUser
from .schemas.event import EventCreateRequest, EventUpdateRequest
from .auth import get_current_user
from .dependencies import get_event_service
from .errors import to_http_exception
from .utilities.limiter import limiter

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("", response_model=List[Event], summary="List events, pinned first")
@limiter.limit("60/minute")
async def list_events(
    request: Request,
    category: Optional[str] = None,
    date_from: Optional[UtcDatetime] = Query(None, alias="from"),
    date_to: Optional[UtcDatetime] = Query(None, alias="to"),
    query: Optional[str] = None,
    user: SessionUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service)
):
    return await service.list_events(category=category, date_from=date_from, date_to=date_to, search=query)


@router.post("", response_model=Event, status_code=status.HTTP_201_CREATED, summary="Post a new event")
@limiter.limit("10/minute")
async def create_event(
    request: Request,
    create_request: EventCreateRequest,
    user: SessionUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service)
):
    """Proctors and admins only. Every student gets an 'event' notification."""
    try:
        return await service.create_event(user, NewEvent(**create_request.model_dump()))
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/{event_id}", response_model=Event)
@limiter.limit("120/minute")
async def get_event(
    request: Request,
    event_id: int,
    user: SessionUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service)
):
    try:
        return await service.get_event(event_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.patch("/{event_id}", response_model=Event)
@limiter.limit("30/minute")
async def update_event(
    request: Request,
    event_id: int,
    update_request: EventUpdateRequest,
    user: SessionUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service)
):
    try:
        return await service.update_event(user, event_id, update_request.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise to_http_exception(e)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("10/minute")
async def delete_event(
    request: Request,
    event_id: int,
    user: SessionUser = Depends(get_current_user),
    service: EventService = Depends(get_event_service)
):
    try:
        await service.delete_event(user, event_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
