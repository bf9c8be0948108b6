"""
MongoDB fixtures for integration tests.

A disposable MongoDB runs in Docker through testcontainers; the whole
module is skipped when Docker is not available.
"""

import uuid

import pytest
import pytest_asyncio
from pymongo import AsyncMongoClient
from testcontainers.mongodb import MongoDbContainer


@pytest.fixture(scope="session")
def mongo_url():
    container = MongoDbContainer("mongo:7.0")
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    yield container.get_connection_url()

    container.stop()


@pytest_asyncio.fixture
async def mongo_db(mongo_url):
    """Fresh database per test."""
    client = AsyncMongoClient(mongo_url, tz_aware=True)
    name = f"teveplay_test_{uuid.uuid4().hex[:8]}"

    yield client[name]

    await client.drop_database(name)
    await client.close()
