"""Shared database connection and query helpers.

One ConnectionManager owns one psycopg2 connection, opened on first use and
kept until close(). get_instance() hands out the process-wide manager.

A manager is not thread-safe. Give each thread its own manager, or serialize
access to the shared one.
"""

import threading
from contextlib import contextmanager
from typing import Optional, Sequence

import psycopg2
import psycopg2.errors
from psycopg2.extras import RealDictCursor

from .config import DatabaseConfig
from .errors import (
    CharsetError,
    ConnectError,
    ExecError,
    PrepareError,
    TransactionError,
)
from .log_config import get_logger
from .params import bind_values, param_types, translate_placeholders

logger = get_logger()

_LASTVAL_SAVEPOINT = "dbaccess_lastval"


class ConnectionManager:
    """Lazily opened single connection with parameterized query helpers."""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig.from_env()
        self._conn = None
        self._in_transaction = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --- Lifecycle ---

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def connection(self):
        """The live connection, opened on first access."""
        if self._conn is None:
            self._conn = self._open()
        return self._conn

    def get_connection(self):
        return self.connection

    def _open(self):
        args, kwargs = self.config.connect_args()
        logger.info("Connecting to %s", self.config.describe())
        try:
            conn = psycopg2.connect(*args, **kwargs)
        except psycopg2.Error as e:
            logger.error("Connection failed: %s", e)
            raise ConnectError(f"Connection failed: {e}") from e

        try:
            conn.set_client_encoding(self.config.charset)
        except (psycopg2.Error, LookupError) as e:
            conn.close()
            logger.error("Error loading character set %s: %s", self.config.charset, e)
            raise CharsetError(
                f"Error loading character set {self.config.charset}: {e}"
            ) from e

        conn.autocommit = True
        return conn

    def close(self):
        """Release the session. The next query opens a fresh one."""
        if self._conn is None:
            return
        if self._in_transaction:
            logger.warning("Closing connection with an open transaction; it will be discarded")
        try:
            self._conn.close()
        finally:
            self._conn = None
            self._in_transaction = False
        logger.info("Connection to %s closed", self.config.describe())

    # --- Queries ---

    def query(self, sql: str, params: Sequence = ()):
        """Bind ``params`` to the ``?`` placeholders in ``sql`` and execute.

        Returns the executed RealDictCursor. The caller owns it and should
        close it once the results are consumed.

        Raises:
            PrepareError: placeholder count mismatch, or the server rejected
                the statement (syntax, unknown table/column, permissions).
            ExecError: any other failure while running the statement.
        """
        params = tuple(params or ())
        statement, placeholders = translate_placeholders(sql, escape_percent=bool(params))
        if placeholders != len(params):
            logger.error(
                "Failed to prepare statement: %d placeholders, %d parameters",
                placeholders, len(params),
            )
            raise PrepareError(
                f"Failed to prepare statement: expected {placeholders} parameters, "
                f"got {len(params)}"
            )
        if not params:
            statement = sql

        logger.debug("Executing [%s] %s", param_types(params), statement)
        try:
            cur = self.connection.cursor(cursor_factory=RealDictCursor)
        except psycopg2.Error as e:
            logger.error("Failed to open cursor: %s", e)
            raise ExecError(f"Failed to open cursor: {e}") from e
        try:
            cur.execute(statement, bind_values(params) if params else None)
        except psycopg2.ProgrammingError as e:
            cur.close()
            logger.error("Failed to prepare statement: %s", e)
            raise PrepareError(f"Failed to prepare statement: {e}") from e
        except psycopg2.Error as e:
            cur.close()
            logger.error("Query execution failed: %s", e)
            raise ExecError(f"Query execution failed: {e}") from e
        return cur

    def execute(self, sql: str, params: Sequence = ()) -> int:
        """Run a statement and return the number of affected rows."""
        cur = self.query(sql, params)
        try:
            return cur.rowcount
        finally:
            cur.close()

    def fetch_all(self, sql: str, params: Sequence = ()) -> list[dict]:
        """All result rows, in the order the database returned them."""
        cur = self.query(sql, params)
        try:
            rows = cur.fetchall()
        except psycopg2.Error as e:
            logger.error("Failed to fetch results: %s", e)
            raise ExecError(f"Failed to fetch results: {e}") from e
        finally:
            cur.close()
        return [dict(row) for row in rows]

    def fetch_one(self, sql: str, params: Sequence = ()) -> Optional[dict]:
        """First result row, or None when nothing matched."""
        cur = self.query(sql, params)
        try:
            row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error("Failed to fetch results: %s", e)
            raise ExecError(f"Failed to fetch results: {e}") from e
        finally:
            cur.close()
        return dict(row) if row is not None else None

    def last_insert_id(self) -> Optional[int]:
        """Most recent sequence value generated in this session.

        Returns None when no insert has generated a key yet. Inside an
        explicit transaction the lookup runs under a savepoint so a miss does
        not abort the caller's transaction.
        """
        cur = None
        try:
            cur = self.connection.cursor()
            if self._in_transaction:
                cur.execute(f"SAVEPOINT {_LASTVAL_SAVEPOINT}")
            try:
                cur.execute("SELECT lastval()")
            except psycopg2.errors.ObjectNotInPrerequisiteState:
                if self._in_transaction:
                    cur.execute(f"ROLLBACK TO SAVEPOINT {_LASTVAL_SAVEPOINT}")
                return None
            row = cur.fetchone()
            if self._in_transaction:
                cur.execute(f"RELEASE SAVEPOINT {_LASTVAL_SAVEPOINT}")
        except psycopg2.Error as e:
            logger.error("Failed to read last insert id: %s", e)
            raise ExecError(f"Failed to read last insert id: {e}") from e
        finally:
            if cur is not None:
                cur.close()
        return row[0]

    # --- Transactions ---

    def begin_transaction(self):
        """Stop autocommitting until commit() or rollback()."""
        if self._in_transaction:
            raise TransactionError("Transaction already in progress")
        try:
            self.connection.autocommit = False
        except psycopg2.Error as e:
            logger.error("Failed to begin transaction: %s", e)
            raise ExecError(f"Failed to begin transaction: {e}") from e
        self._in_transaction = True
        logger.debug("Transaction started")

    def commit(self):
        conn = self.connection
        try:
            conn.commit()
        except psycopg2.Error as e:
            logger.error("Commit failed: %s", e)
            try:
                conn.rollback()
            except psycopg2.Error as rollback_error:
                logger.error("Rollback after failed commit failed: %s", rollback_error)
            self._end_transaction()
            raise ExecError(f"Commit failed: {e}") from e
        self._end_transaction()
        logger.debug("Transaction committed")

    def rollback(self):
        conn = self.connection
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.error("Rollback failed: %s", e)
            raise ExecError(f"Rollback failed: {e}") from e
        finally:
            self._end_transaction()
        logger.debug("Transaction rolled back")

    def _end_transaction(self):
        if not self._in_transaction:
            return
        self._in_transaction = False
        if self._conn is None or self._conn.closed:
            return
        try:
            self._conn.autocommit = True
        except psycopg2.Error as e:
            logger.warning("Could not restore autocommit: %s", e)

    @contextmanager
    def transaction(self):
        """Context manager for a transaction with auto-commit/rollback."""
        self.begin_transaction()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        self.commit()


# --- Process-wide instance ---

_instance: Optional[ConnectionManager] = None
_instance_lock = threading.Lock()


def get_instance() -> ConnectionManager:
    """Shared manager, connected. Built from the environment on first call."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = ConnectionManager()
        _instance.get_connection()
        return _instance


def close_instance():
    """Close the shared manager's connection and forget the manager."""
    global _instance
    with _instance_lock:
        manager, _instance = _instance, None
    if manager is not None:
        manager.close()
