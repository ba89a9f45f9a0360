"""SQL store implementation backed by a unique key column."""

import hashlib
import json
import logging
import time

from sqlalchemy import (
    Column,
    ColumnElement,
    Engine,
    Float,
    MetaData,
    String,
    Table,
    Text,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..exceptions import SerializationError, StoreUnavailableError
from ..record import IdempotencyKey, RequestResponsePair, RequestWrapper, ResponseWrapper
from .base import Store

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "idempotency_records"

# Width of the key column; longer keys are stored as their sha256 digest
MAX_KEY_LENGTH = 255


class SQLStore(Store):
    """Relational store for idempotency records.

    The key is the table's primary key, so the database's unique
    constraint decides which concurrent insert wins. Expired rows are
    filtered on read and replaced on insert.
    Keys longer than MAX_KEY_LENGTH are stored as their sha256 digest.

    Args:
        engine: SQLAlchemy engine
        table_name: Name of the records table
        default_ttl: Seconds an entry lives when a call gives no TTL
        create_table: Create the table if it does not exist
    """

    def __init__(
        self,
        engine: Engine,
        table_name: str = DEFAULT_TABLE_NAME,
        default_ttl: float | None = None,
        create_table: bool = True,
    ) -> None:
        super().__init__(default_ttl)
        if not table_name:
            raise ValueError("table_name must not be empty")

        self.engine = engine
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column("idempotency_key", String(MAX_KEY_LENGTH), primary_key=True),
            Column("request_data", Text, nullable=False),
            Column("response_data", Text, nullable=True),
            Column("expires_at", Float, nullable=True, index=True),
        )
        if create_table:
            try:
                self.metadata.create_all(engine)
            except SQLAlchemyError as e:
                raise StoreUnavailableError("create_table", table_name, str(e)) from e

    @staticmethod
    def _row_key(key: IdempotencyKey) -> str:
        value = str(key)
        if len(value) <= MAX_KEY_LENGTH:
            return value
        return hashlib.sha256(value.encode("utf-8")).hexdigest()

    def _live_clause(self, key: IdempotencyKey, now: float) -> ColumnElement[bool]:
        t = self.table
        return (t.c.idempotency_key == self._row_key(key)) & (
            t.c.expires_at.is_(None) | (t.c.expires_at > now)
        )

    def try_insert(
        self, key: IdempotencyKey, request: RequestWrapper, ttl: float | None = None
    ) -> bool:
        """Replace an expired row and insert, relying on the primary key."""
        t = self.table
        now = time.time()
        expires_at = self.expires_at(ttl)
        request_data = json.dumps(request.request)

        try:
            with self.engine.begin() as conn:
                conn.execute(
                    delete(t).where(
                        (t.c.idempotency_key == self._row_key(key)) & (t.c.expires_at <= now)
                    )
                )
                conn.execute(
                    insert(t).values(
                        idempotency_key=self._row_key(key),
                        request_data=request_data,
                        response_data=None,
                        expires_at=expires_at,
                    )
                )
        except IntegrityError:
            return False
        except SQLAlchemyError as e:
            raise StoreUnavailableError("try_insert", str(key), str(e)) from e
        return True

    def lookup(self, key: IdempotencyKey) -> RequestResponsePair | None:
        t = self.table
        query = select(t.c.request_data, t.c.response_data).where(
            self._live_clause(key, time.time())
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as e:
            raise StoreUnavailableError("lookup", str(key), str(e)) from e

        if row is None:
            return None

        response = None
        if row.response_data is not None:
            response = ResponseWrapper(json.loads(row.response_data)["value"])
        return RequestResponsePair(
            request=RequestWrapper(json.loads(row.request_data)),
            response=response,
        )

    def attach_response(
        self, key: IdempotencyKey, response: ResponseWrapper, ttl: float | None = None
    ) -> bool:
        """Attach a response to a live row; the request column is left as is."""
        try:
            response_data = json.dumps({"value": response.response})
        except (TypeError, ValueError) as e:
            raise SerializationError(response.response, str(e)) from e

        statement = (
            update(self.table)
            .where(self._live_clause(key, time.time()))
            .values(response_data=response_data, expires_at=self.expires_at(ttl))
        )
        try:
            with self.engine.begin() as conn:
                updated = conn.execute(statement).rowcount
        except SQLAlchemyError as e:
            raise StoreUnavailableError("attach_response", str(key), str(e)) from e

        if not updated:
            logger.warning("Cannot attach response, key no longer exists: %s", key)
            return False
        return True

    def remove(self, key: IdempotencyKey) -> None:
        t = self.table
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(t).where(t.c.idempotency_key == self._row_key(key)))
        except SQLAlchemyError as e:
            raise StoreUnavailableError("remove", str(key), str(e)) from e

    def clear(self) -> None:
        """Delete every row (useful for testing)."""
        with self.engine.begin() as conn:
            conn.execute(delete(self.table))
