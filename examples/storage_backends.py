"""Examples of using different storage backends."""

from idemguard import IdempotentExecutor, idempotent
from idemguard.stores import FileStore

# Example 1: MemoryStore (default, single process only)
print("=" * 60)
print("Example 1: MemoryStore (in-memory, single process)")
print("=" * 60)


@idempotent(ttl=300)
def create_invoice_memory(user_id: int, amount: float) -> dict:
    """Create an invoice (using default MemoryStore)."""
    print(f"  → Creating invoice for user {user_id}, amount ${amount}")
    return {"invoice_id": 123, "user_id": user_id, "amount": amount}


print(f"First call result: {create_invoice_memory(user_id=1, amount=100.0)}")
print(f"Second call result: {create_invoice_memory(user_id=1, amount=100.0)}")
print()

# Example 2: FileStore (persistent, multi-process safe)
print("=" * 60)
print("Example 2: FileStore (persistent, multi-process safe)")
print("=" * 60)

file_store = FileStore("/tmp/idemguard_demo", default_ttl=300)


@idempotent(store=file_store)
def create_invoice_file(user_id: int, amount: float) -> dict:
    """Create an invoice (using FileStore)."""
    print(f"  → Creating invoice for user {user_id}, amount ${amount}")
    return {"invoice_id": 456, "user_id": user_id, "amount": amount}


print(f"First call result: {create_invoice_file(user_id=1, amount=100.0)}")
# Returns the stored result, even across process restarts
print(f"Second call result: {create_invoice_file(user_id=1, amount=100.0)}")
print()

# Example 3: RedisStore (distributed, multi-server safe)
print("=" * 60)
print("Example 3: RedisStore (distributed, multi-server safe)")
print("=" * 60)

try:
    import redis

    from idemguard.stores import RedisStore

    redis_client = redis.Redis(host="localhost", port=6379, db=0)
    redis_client.ping()  # Test connection

    executor = IdempotentExecutor(store=RedisStore(redis_client, prefix="myapp:"))
    result = executor.execute(
        "billing.create_invoice",
        [{"user_id": 1, "amount": 100.0}],
        lambda: {"invoice_id": 789},
        ttl=300,
    )
    print(f"Result: {result}")

except ImportError:
    print("⚠️  Redis not installed. Install with: pip install idemguard[redis]")
except Exception as e:
    print(f"⚠️  Redis not available: {e}")

print()

# Example 4: SQLStore (relational database)
print("=" * 60)
print("Example 4: SQLStore (any SQLAlchemy database)")
print("=" * 60)

try:
    from sqlalchemy import create_engine

    from idemguard.stores import SQLStore

    sql_store = SQLStore(create_engine("sqlite:////tmp/idemguard_demo.db"), default_ttl=300)

    @idempotent(store=sql_store)
    def create_invoice_sql(user_id: int, amount: float) -> dict:
        print(f"  → Creating invoice for user {user_id}, amount ${amount}")
        return {"invoice_id": 321, "user_id": user_id, "amount": amount}

    print(f"First call result: {create_invoice_sql(user_id=1, amount=100.0)}")
    print(f"Second call result: {create_invoice_sql(user_id=1, amount=100.0)}")
    sql_store.clear()

except ImportError:
    print("⚠️  SQLAlchemy not installed. Install with: pip install idemguard[sql]")

# Cleanup
print("Cleaning up demo files...")
file_store.clear()
