from fastapi import APIRouter, Depends, status, Response, Request
from typing import List

from ..services.notification_service import NotificationService
from ..services.errors import ServiceError
from ..models.db_models import Notification
from ..models.redis_models import SessionUser
from .auth import get_current_user
from .dependencies import get_notification_service
from .errors import to_http_exception
from .utilities.limiter import limiter

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[Notification], summary="The caller's notifications, newest first")
@limiter.limit("60/minute")
async def list_notifications(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return await service.list_for_user(user.id)


@router.patch("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("120/minute")
async def mark_notification_read(
    request: Request,
    notification_id: int,
    user: SessionUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    try:
        await service.mark_read(user.id, notification_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
