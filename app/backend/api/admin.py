import logging
from fastapi import APIRouter, Depends, status, Request, Query
from typing import List

from ..db.redis_client import RedisClient
from ..services.account_service import AccountService
from ..services.errors import ServiceError
from ..models.db_models import NewProctor, NewStudent, Proctor, Student, StudentWithUser, User
from ..models.redis_models import SessionUser
from .schemas.user import UserCreateRequest, UserActiveRequest
from .auth import get_current_user
from .dependencies import get_account_service, get_redis_client
from .errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])
proctor_router = APIRouter(prefix="/proctor", tags=["Proctor"])


@proctor_router.get("/students", response_model=List[StudentWithUser], summary="Students visible to reviewers")
@limiter.limit("60/minute")
async def list_students(
    request: Request,
    assigned_only: bool = Query(False, alias="assignedOnly"),
    user: SessionUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    """With `assignedOnly=true` a proctor only gets the students assigned to them."""
    try:
        return await service.list_students(user, assigned_only=assigned_only)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/users", response_model=List[User])
@limiter.limit("60/minute")
async def list_users(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        return await service.list_users(user)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_user(
    request: Request,
    create_request: UserCreateRequest,
    user: SessionUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        return await service.create_user(user, **create_request.model_dump())
    except ServiceError as e:
        raise to_http_exception(e)


@router.patch("/users/{user_id}/active", response_model=User, summary="Activate or deactivate an account")
@limiter.limit("30/minute")
async def set_user_active(
    request: Request,
    user_id: int,
    active_request: UserActiveRequest,
    user: SessionUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """A deactivated account is also logged out."""
    try:
        updated = await service.set_user_active(user, user_id, active_request.is_active)
    except ServiceError as e:
        raise to_http_exception(e)

    if not updated.is_active and await redis_client.delete_user_session(user_id):
        logger.info(f"Session of deactivated user {user_id} revoked.")
    return updated


@router.post("/students", response_model=Student, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_student_profile(
    request: Request,
    create_request: NewStudent,
    user: SessionUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        return await service.create_student_profile(user, create_request)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post("/proctors", response_model=Proctor, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_proctor_profile(
    request: Request,
    create_request: NewProctor,
    user: SessionUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        return await service.create_proctor_profile(user, create_request)
    except ServiceError as e:
        raise to_http_exception(e)
