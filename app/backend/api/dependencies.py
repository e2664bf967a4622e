#app/backend/api/dependencies.py
from fastapi import Request, Depends
import redis.asyncio as redis
import asyncpg

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.notification_service import NotificationService
from ..services.participation_service import ParticipationService
from ..services.event_service import EventService
from ..services.account_service import AccountService


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """
    Hands out the Redis connection pool created at startup.
    """
    return request.app.state.redis_pool

def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Hands out the PostgreSQL connection pool created at startup.
    """
    return request.app.state.postgres_pool


def get_redis_client(redis_pool: redis.ConnectionPool = Depends(get_redis_pool)) -> RedisClient:
    return RedisClient(pool=redis_pool)

def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_notification_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> NotificationService:
    return NotificationService(db_client=db_client)


def get_participation_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    notifier: NotificationService = Depends(get_notification_service)
) -> ParticipationService:
    """
    Builds a fresh ParticipationService for every request.

    The clients are cheap wrappers around the pools created in the lifespan
    handler, so nothing mutable is shared between concurrent requests.
    """
    return ParticipationService(db_client=db_client, notifier=notifier)


def get_event_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    notifier: NotificationService = Depends(get_notification_service)
) -> EventService:
    return EventService(db_client=db_client, notifier=notifier)


def get_account_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> AccountService:
    return AccountService(db_client=db_client)
