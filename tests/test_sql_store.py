"""Tests for SQLStore specifics; the shared contract lives in test_stores."""

import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")

from idemguard import IdempotentExecutor, StoreUnavailableError  # noqa: E402
from idemguard.exceptions import SerializationError  # noqa: E402
from idemguard.record import IdempotencyKey, RequestWrapper, ResponseWrapper  # noqa: E402
from idemguard.stores import SQLStore  # noqa: E402

KEY = IdempotencyKey("test:1")
REQUEST = RequestWrapper([[["name", '"same"']]])


@pytest.fixture
def engine(tmp_path):
    engine = sqlalchemy.create_engine(f"sqlite:///{tmp_path / 'records.db'}")
    yield engine
    engine.dispose()


def test_sql_store_custom_table(engine):
    """Test that the table name is configurable."""
    SQLStore(engine, table_name="my_records")

    assert "my_records" in sqlalchemy.inspect(engine).get_table_names()


def test_sql_store_empty_table_name(engine):
    with pytest.raises(ValueError):
        SQLStore(engine, table_name="")


def test_sql_store_persistence(engine):
    """Test that a second store on the same database sees the pair."""
    store1 = SQLStore(engine)
    store1.try_insert(KEY, REQUEST, ttl=10)
    store1.attach_response(KEY, ResponseWrapper([1, 2, 3]), ttl=10)

    pair = SQLStore(engine).lookup(KEY)

    assert pair.request == REQUEST
    assert pair.response == ResponseWrapper([1, 2, 3])


def test_sql_store_unserializable_response(engine):
    store = SQLStore(engine)
    store.try_insert(KEY, REQUEST)

    with pytest.raises(SerializationError):
        store.attach_response(KEY, ResponseWrapper(object()))


def test_sql_store_missing_table(engine):
    """Test that database errors surface as StoreUnavailableError."""
    store = SQLStore(engine, table_name="not_created", create_table=False)

    with pytest.raises(StoreUnavailableError):
        store.try_insert(KEY, REQUEST)
    with pytest.raises(StoreUnavailableError):
        store.lookup(KEY)


def test_sql_store_with_executor(engine):
    """Test rollback on failure and replay after success."""
    executor = IdempotentExecutor(store=SQLStore(engine))
    calls = []

    def failing():
        calls.append("fail")
        raise RuntimeError("boom")

    def succeeding():
        calls.append("ok")
        return {"id": 7}

    with pytest.raises(RuntimeError):
        executor.execute("scope", [{"a": 1}], failing, ttl=10)
    assert executor.execute("scope", [{"a": 1}], succeeding, ttl=10) == {"id": 7}
    assert executor.execute("scope", [{"a": 1}], succeeding, ttl=10) == {"id": 7}

    assert calls == ["fail", "ok"]


def test_sql_store_long_key(engine):
    """Test that keys wider than the key column are stored by digest."""
    store = SQLStore(engine)
    key = IdempotencyKey("k" * 1000)

    assert store.try_insert(key, REQUEST, ttl=10) is True
    assert store.try_insert(key, REQUEST, ttl=10) is False
    assert store.attach_response(key, ResponseWrapper("done"), ttl=10) is True
    assert store.lookup(key).response == ResponseWrapper("done")

    with engine.connect() as conn:
        stored = conn.execute(sqlalchemy.select(store.table.c.idempotency_key)).scalar_one()
    assert len(stored) == 64

    store.remove(key)
    assert store.exists(key) is False
