import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from datetime import datetime, timedelta, timezone
from uuid import uuid4
import jwt
from pydantic import ValidationError

from .schemas.user import Token, TokenData, LoginRequest, LoginResponse
from ..models.db_models import UserProfile
from ..models.redis_models import SessionUser, UserSessionRedis
from ..db.redis_client import RedisClient
from ..services.account_service import AccountService
from ..services.errors import ServiceError
from .errors import to_http_exception
from ..config.config import settings
from .dependencies import get_redis_client, get_account_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


# --- Helpers ---
def create_access_token(data: dict, expires_delta: timedelta) -> str:
    """Creates a signed JWT carrying `data` that expires after `expires_delta`."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


# --- Dependency for protected routes ---
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    redis_client: RedisClient = Depends(get_redis_client)
) -> SessionUser:
    """
    Decodes the token, validates its payload and checks that it belongs to the
    user's live Redis session. Returns the identity stored in that session.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    if token_data.user_id is None or token_data.sid is None:
        logger.warning(f"Token is valid but missing claims: {payload}")
        raise credentials_exception

    user_session = await redis_client.get_user_session(token_data.user_id)
    if user_session is None or str(user_session.session_id) != token_data.sid:
        logger.warning(f"User {token_data.user_id} has a valid token but no matching session. Denying access.")
        raise credentials_exception

    return user_session.user_data


# --- Login ---

async def _perform_login(username: str, password: str, accounts: AccountService, redis_client: RedisClient) -> LoginResponse:
    logger.info(f"Login attempt for user '{username}'.")
    user = await accounts.authenticate(username, password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password.")

    ttl = settings.SESSION_TTL_SECONDS
    now = datetime.now(timezone.utc)
    session = UserSessionRedis(
        user_data=SessionUser(**user.model_dump(include={"id", "username", "role", "first_name", "last_name", "email"})),
        session_id=uuid4(),
        session_start_time=now,
        session_end_time=now + timedelta(seconds=ttl),
    )
    await redis_client.save_user_session(session, ttl=ttl)

    access_token = create_access_token(
        data={"user_id": user.id, "sid": str(session.session_id)},
        expires_delta=timedelta(seconds=ttl),
    )
    profile = await accounts.get_profile(user.id)
    logger.info(f"User '{username}' ({user.role.value}) logged in; session TTL {ttl}s.")
    return LoginResponse(token=Token(access_token=access_token), profile=profile)


@router.post("/token", response_model=Token)
@limiter.limit("30/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    accounts: AccountService = Depends(get_account_service),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """Standard OAuth2 endpoint for Swagger UI."""
    login_response = await _perform_login(form_data.username, form_data.password, accounts, redis_client)
    return login_response.token


@router.post("/login", response_model=LoginResponse)
@limiter.limit("30/minute")
async def login(
    request: Request,
    login_request: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """Login endpoint for the browser client."""
    return await _perform_login(login_request.username, login_request.password, accounts, redis_client)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def logout(
    request: Request,
    redis_client: RedisClient = Depends(get_redis_client),
    current_user: SessionUser = Depends(get_current_user)
):
    """Deletes the caller's session from Redis; the token stops working immediately."""
    await redis_client.delete_user_session(current_user.id)
    logger.info(f"User {current_user.id} logged out.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Mounted without the /auth prefix, see main.py
me_router = APIRouter(tags=["Authentication"])

@me_router.get("/user", response_model=UserProfile, summary="The logged in user with their role profile")
@limiter.limit("120/minute")
async def get_me(
    request: Request,
    current_user: SessionUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    try:
        return await accounts.get_profile(current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)
