import os
import uuid
import pytest
import pytest_asyncio
import redis.asyncio as redis
from datetime import datetime, timedelta, timezone

from app.backend.models.redis_models import SessionUser, UserSessionRedis
from app.backend.db.redis_client import RedisClient

# ----- Test Redis -----
TEST_REDIS_URL = os.environ.get("TEST_REDIS_URL")

pytestmark = pytest.mark.skipif(not TEST_REDIS_URL, reason="TEST_REDIS_URL not set")


@pytest_asyncio.fixture(scope="function")
async def redis_pool():
    pool = redis.ConnectionPool.from_url(TEST_REDIS_URL, decode_responses=True)
    client = redis.Redis(connection_pool=pool)
    await client.flushdb()
    yield pool
    await client.flushdb()
    await client.aclose()


def sample_session(user_id: int = 7) -> UserSessionRedis:
    now = datetime.now(timezone.utc)
    return UserSessionRedis(
        user_data=SessionUser(id=user_id, username="student", role="student",
                              first_name="Rahul", last_name="Kumar", email="student@college.edu"),
        session_id=uuid.uuid4(),
        session_start_time=now,
        session_end_time=now + timedelta(minutes=30),
    )


@pytest.mark.asyncio
async def test_session_roundtrip_and_ttl(redis_pool):
    client = RedisClient(pool=redis_pool)
    session = sample_session()

    await client.save_user_session(session, ttl=60)

    assert await client.get_user_session(7) == session
    assert 0 < await client._redis.ttl("users:7") <= 60


@pytest.mark.asyncio
async def test_new_session_replaces_old_one(redis_pool):
    client = RedisClient(pool=redis_pool)
    await client.save_user_session(sample_session(), ttl=60)
    newer = sample_session()

    await client.save_user_session(newer, ttl=60)

    assert (await client.get_user_session(7)).session_id == newer.session_id


@pytest.mark.asyncio
async def test_delete_session(redis_pool):
    client = RedisClient(pool=redis_pool)
    await client.save_user_session(sample_session(), ttl=60)

    assert await client.delete_user_session(7) == 1
    assert await client.get_user_session(7) is None
