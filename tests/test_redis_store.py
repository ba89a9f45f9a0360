"""Tests for RedisStore implementation.

Note: These tests require a running Redis instance.
They will be skipped if Redis is not available.
"""

import time

import pytest
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from idemguard import IdempotentExecutor, PayloadConflictError, StoreUnavailableError
from idemguard.record import IdempotencyKey, RequestWrapper, ResponseWrapper
from idemguard.stores import RedisStore

KEY = IdempotencyKey("test:1")
REQUEST = RequestWrapper([[["name", '"same"']]])


@pytest.fixture
def redis_client():
    """Create a Redis client for testing."""
    try:
        client = Redis(host="localhost", port=6379, db=15, decode_responses=False)
        # Test connection
        client.ping()
    except RedisConnectionError:
        pytest.skip("Redis server not running")

    yield client
    # Cleanup
    client.flushdb()
    client.close()


@pytest.fixture
def redis_store(redis_client):
    """Create a RedisStore instance for testing."""
    store = RedisStore(redis_client, prefix="test:idempotency:")
    yield store
    store.clear()


def test_redis_store_insert_lookup(redis_store):
    """Test basic insert/lookup operations with RedisStore."""
    assert redis_store.try_insert(KEY, REQUEST, ttl=10) is True
    assert redis_store.try_insert(KEY, REQUEST, ttl=10) is False

    pair = redis_store.lookup(KEY)
    assert pair is not None
    assert pair.request == REQUEST
    assert pair.response is None


def test_redis_store_attach_response(redis_store):
    """Test attaching a response with RedisStore."""
    redis_store.try_insert(KEY, REQUEST, ttl=10)

    assert redis_store.attach_response(KEY, ResponseWrapper({"data": 123}), ttl=10) is True
    assert redis_store.lookup(KEY).response == ResponseWrapper({"data": 123})


def test_redis_store_attach_response_missing_key(redis_store):
    """Test that attaching to an absent key does not create it."""
    assert redis_store.attach_response(KEY, ResponseWrapper(1), ttl=10) is False
    assert redis_store.exists(KEY) is False


def test_redis_store_ttl(redis_store):
    """Test TTL expiration with RedisStore."""
    redis_store.try_insert(KEY, REQUEST, ttl=0.2)

    # Should exist immediately
    assert redis_store.exists(KEY) is True

    # Wait for expiration
    time.sleep(0.4)

    # Should be gone
    assert redis_store.exists(KEY) is False
    assert redis_store.try_insert(KEY, REQUEST, ttl=10) is True


def test_redis_store_remove(redis_store):
    """Test record deletion with RedisStore."""
    redis_store.try_insert(KEY, REQUEST)
    redis_store.remove(KEY)
    assert redis_store.exists(KEY) is False
    redis_store.remove(KEY)


def test_redis_store_clear(redis_store):
    """Test clearing all records with RedisStore."""
    redis_store.try_insert(IdempotencyKey("test:1"), REQUEST)
    redis_store.try_insert(IdempotencyKey("test:2"), REQUEST)

    redis_store.clear()

    assert redis_store.exists(IdempotencyKey("test:1")) is False
    assert redis_store.exists(IdempotencyKey("test:2")) is False


def test_redis_store_persistence(redis_client):
    """Test that RedisStore persists across instances."""
    store1 = RedisStore(redis_client, prefix="test:persist:")
    store1.try_insert(KEY, REQUEST)
    store1.attach_response(KEY, ResponseWrapper({"data": 123}))

    # Create second store instance (simulates process restart)
    store2 = RedisStore(redis_client, prefix="test:persist:")
    pair = store2.lookup(KEY)

    assert pair is not None
    assert pair.response == ResponseWrapper({"data": 123})

    # Cleanup
    store1.clear()


def test_redis_store_prefix_isolation(redis_client):
    """Test that different prefixes isolate data."""
    store1 = RedisStore(redis_client, prefix="app1:")
    store2 = RedisStore(redis_client, prefix="app2:")

    store1.try_insert(KEY, REQUEST)

    assert store1.exists(KEY) is True
    assert store2.exists(KEY) is False

    # Cleanup
    store1.clear()
    store2.clear()


def test_redis_store_with_executor(redis_store):
    """Test replay and conflict detection end to end."""
    executor = IdempotentExecutor(store=redis_store)
    calls = []

    def operation():
        calls.append(1)
        return {"ok": True}

    assert executor.execute("scope", [{"a": 1}], operation, explicit_key="k", ttl=10) == {"ok": True}
    assert executor.execute("scope", [{"a": 1}], operation, explicit_key="k", ttl=10) == {"ok": True}
    assert len(calls) == 1

    with pytest.raises(PayloadConflictError):
        executor.execute("scope", [{"a": 2}], operation, explicit_key="k", ttl=10)


def test_redis_store_unavailable():
    """Test that connection failures surface as StoreUnavailableError."""
    client = Redis(host="localhost", port=1, socket_connect_timeout=0.1)
    store = RedisStore(client)

    with pytest.raises(StoreUnavailableError):
        store.try_insert(KEY, REQUEST)
