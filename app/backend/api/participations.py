from fastapi import APIRouter, Depends, status, Request, Query
from typing import List, Optional

from ..services.participation_service import ParticipationService
from ..services.errors import ServiceError
from ..models.db_models import (
    DashboardStats, Participation, ParticipationDetail, ParticipationStatus, ParticipationWithProofs,
)
from ..models.redis_models import SessionUser
from .schemas.participation import ParticipationCreateRequest, ReviewRequest
from .auth import get_current_user
from .dependencies import get_participation_service
from .errors import to_http_exception
from .utilities.limiter import limiter

router = APIRouter(prefix="/participations", tags=["Participations"])


@router.post(
    "",
    response_model=Participation,
    status_code=status.HTTP_201_CREATED,
    summary="Submit proof of participation in an event"
)
@limiter.limit("20/minute")
async def create_participation(
    request: Request,
    create_request: ParticipationCreateRequest,
    user: SessionUser = Depends(get_current_user),
    service: ParticipationService = Depends(get_participation_service)
):
    """
    Students only. Either `eventId` of a catalogued event or a free text
    `eventName` is required, plus at least one uploaded proof.
    The submission starts out as `pending`.
    """
    try:
        return await service.create_participation(user, create_request.to_draft(), create_request.proofs)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "",
    response_model=List[ParticipationWithProofs],
    summary="List participations visible to the caller"
)
@limiter.limit("60/minute")
async def list_participations(
    request: Request,
    student_id: Optional[int] = Query(None, alias="studentId"),
    participation_status: Optional[ParticipationStatus] = Query(None, alias="status"),
    user: SessionUser = Depends(get_current_user),
    service: ParticipationService = Depends(get_participation_service)
):
    """
    Newest first. Students always get only their own submissions, whatever
    `studentId` they pass; proctors and admins may filter freely.
    """
    try:
        return await service.list_participations(user, student_id=student_id, status=participation_status)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/{participation_id}",
    response_model=ParticipationDetail,
    summary="Get one participation with its student, event and proofs"
)
@limiter.limit("120/minute")
async def get_participation(
    request: Request,
    participation_id: int,
    user: SessionUser = Depends(get_current_user),
    service: ParticipationService = Depends(get_participation_service)
):
    try:
        return await service.get_participation(user, participation_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.patch(
    "/{participation_id}/review",
    response_model=Participation,
    summary="Approve or reject a pending participation"
)
@limiter.limit("120/minute")
async def review_participation(
    request: Request,
    participation_id: int,
    review_request: ReviewRequest,
    user: SessionUser = Depends(get_current_user),
    service: ParticipationService = Depends(get_participation_service)
):
    """
    Proctors and admins only. A participation can be reviewed once; a second
    review (or a lost race with another reviewer) answers 409.
    """
    try:
        return await service.review_participation(
            user, participation_id, review_request.status, review_request.feedback
        )
    except ServiceError as e:
        raise to_http_exception(e)


stats_router = APIRouter(prefix="/stats", tags=["Stats"])

@stats_router.get("/dashboard", response_model=DashboardStats, summary="Event and participation counts")
@limiter.limit("60/minute")
async def get_dashboard_stats(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    service: ParticipationService = Depends(get_participation_service)
):
    return await service.compute_stats()
