"""
Database Access

One Database object is shared by every store. It owns the SQLAlchemy engine
and hands out transactions.

DESIGN DECISION: transaction() is re-entrant per thread. When ExpenseStore
opens a transaction and calls BudgetStore.adjust_spent, the inner call joins
the outer transaction instead of committing on its own. Any exception raised
anywhere inside the outermost block rolls the whole unit back.

On SQLite we take over transaction control from the driver and start every
transaction with BEGIN IMMEDIATE, so the write lock is held from the first
read. This makes read-check-write sequences (budget overlap checks, spent
snapshots) atomic against other processes too.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, func, insert, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.audit import AuditLogger
from expense_tracker.config import get_settings
from expense_tracker.errors import (
    DatabaseConnectionError,
    DuplicateError,
    StorageError,
)
from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.finance import OTHER_CATEGORY_ID
from expense_tracker.services.storage.schema import category_table, metadata


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"))


def _install_sqlite_hooks(engine: Engine) -> None:
    """Enforce foreign keys and explicit BEGIN IMMEDIATE on SQLite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy's begin hook below own transaction boundaries.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _is_unique_violation(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "unique" in message or "duplicate" in message


class Database:
    """
    Shared connection pool and transaction scope for all stores.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        echo: Optional[bool] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        settings = get_settings()
        self._url = url or settings.database.url
        self._echo = settings.database.echo if echo is None else echo
        self._other_name = settings.app.other_category_name
        self._engine: Optional[Engine] = None
        self._local = threading.local()
        self._audit = audit_logger or AuditLogger()

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self.connect()
        return self._engine

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    def _open_engine(self) -> Engine:
        """Create the engine and verify the backend answers."""
        kwargs = {"echo": self._echo}
        if self._url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(self._url):
                # One shared connection, otherwise every checkout sees an empty database.
                kwargs["poolclass"] = StaticPool

        engine = create_engine(self._url, **kwargs)
        if engine.dialect.name == "sqlite":
            _install_sqlite_hooks(engine)

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            engine.dispose()
            raise
        return engine

    def connect(self) -> Engine:
        """
        Establish the engine (retried on transient failures).

        Raises:
            DatabaseConnectionError: If the backend is unreachable after retries
        """
        if self._engine is None:
            try:
                self._engine = self._open_engine()
            except SQLAlchemyError as e:
                self._audit.log(AuditEventBuilder.storage_error("connect", str(e)))
                raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e
        return self._engine

    def dispose(self) -> None:
        """Close every pooled connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "connection", None) is not None

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Open (or join) a transaction.

        The outermost block commits on success and rolls back on any
        exception. SQLAlchemy failures surface as StorageError subclasses;
        engine errors (ValidationError, NotFoundError, ...) pass through.
        """
        active = getattr(self._local, "connection", None)
        if active is not None:
            yield active
            return

        try:
            with self.engine.begin() as conn:
                self._local.connection = conn
                try:
                    yield conn
                finally:
                    self._local.connection = None
        except IntegrityError as e:
            self._audit.log(AuditEventBuilder.storage_error("transaction", str(e.orig)))
            if _is_unique_violation(e):
                raise DuplicateError(f"Duplicate value rejected: {e.orig}") from e
            raise StorageError(f"Constraint violation: {e.orig}") from e
        except SQLAlchemyError as e:
            self._audit.log(AuditEventBuilder.storage_error("transaction", str(e)))
            raise StorageError(f"Database operation failed: {e}") from e

    def init_schema(self) -> None:
        """
        Create all tables and seed the reserved Other category (id 1).

        Safe to call on every start.
        """
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create schema: {e}") from e

        with self.transaction() as conn:
            exists = conn.execute(
                select(category_table.c.id).where(category_table.c.id == OTHER_CATEGORY_ID)
            ).first()
            if exists is None:
                conn.execute(
                    insert(category_table).values(
                        id=OTHER_CATEGORY_ID,
                        name=self._other_name,
                        description="Fallback for expenses of deleted categories",
                    )
                )
                if conn.dialect.name == "postgresql":
                    # An explicit id does not advance the serial sequence.
                    max_id = conn.execute(select(func.max(category_table.c.id))).scalar_one()
                    conn.execute(
                        text("SELECT setval(pg_get_serial_sequence('category', 'id'), :value)"),
                        {"value": max_id},
                    )

        self._audit.log(AuditEventBuilder.database_ready(self.engine.url.render_as_string(hide_password=True)))
