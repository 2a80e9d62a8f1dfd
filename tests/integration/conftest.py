"""
Integration Test Fixtures
Provides a Redis testcontainer shared by the test session
"""

from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from redis.asyncio import Redis
from testcontainers.redis import RedisContainer

REDIS_PASSWORD = "relay-test"


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start a Redis testcontainer for the test session

    Yields:
        Running RedisContainer instance
    """
    container = RedisContainer("redis:7-alpine", password=REDIS_PASSWORD)
    container.start()
    yield container
    container.stop()


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    """host:port of the Redis testcontainer"""
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"{host}:{port}"


@pytest_asyncio.fixture
async def redis_client(redis_url: str) -> AsyncGenerator[Redis, None]:
    """
    Redis client connected to the testcontainer; the database is flushed after each test

    Args:
        redis_url: host:port of the container

    Yields:
        redis.asyncio.Redis with decoded responses
    """
    host, _, port = redis_url.partition(":")
    client = Redis(host=host, port=int(port), password=REDIS_PASSWORD, decode_responses=True)
    yield client
    await client.flushdb()
    await client.aclose()


@pytest.fixture(scope="session")
def redis_password() -> str:
    return REDIS_PASSWORD
