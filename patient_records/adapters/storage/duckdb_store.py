"""DuckDB Document Store.

Owns the single DuckDB connection shared by the patient and address
repositories, creates the schema, and translates driver exceptions into the
domain error taxonomy.

Security Impact:
    - All statements use bound parameters; no user text is interpolated into SQL
    - Connection errors never include PHI; only operation names and identifiers are logged
    - Unique constraints on patient_id and normalized phone are enforced by the schema

Architecture:
    - Infrastructure adapter behind PatientRepositoryPort / AddressRepositoryPort
    - One connection per process; every operation runs on its own cursor
      (``connection.cursor()``), so request threads never share a cursor
    - Repositories borrow the store; only the process owner calls close()
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

import duckdb

from patient_records.domain.ports import (
    DuplicateRecordError,
    ExternalServiceError,
    OperationCancelledError,
)
from patient_records.infrastructure.config_manager import DatabaseConfig
from patient_records.infrastructure.request_scope import (
    CANCELLED,
    DEADLINE_EXCEEDED,
    get_request_scope,
    interrupt_on_abort,
)

logger = logging.getLogger(__name__)


PATIENTS_DDL = """
    CREATE TABLE IF NOT EXISTS patients (
        patient_id VARCHAR PRIMARY KEY,
        name VARCHAR NOT NULL,
        name_lower VARCHAR NOT NULL,
        date_of_birth DATE NOT NULL,
        phone VARCHAR NOT NULL,
        phone_key VARCHAR NOT NULL UNIQUE,
        state VARCHAR NOT NULL,
        created_at TIMESTAMP NOT NULL,
        edited_by VARCHAR,
        edited_at TIMESTAMP
    )
"""

ADDRESSES_DDL = """
    CREATE TABLE IF NOT EXISTS addresses (
        address_id VARCHAR PRIMARY KEY,
        patient_id VARCHAR NOT NULL,
        line1 VARCHAR NOT NULL,
        line2 VARCHAR NOT NULL DEFAULT '',
        city VARCHAR NOT NULL,
        state VARCHAR(2) NOT NULL,
        zip VARCHAR(5) NOT NULL,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
"""


def to_db_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to the naive UTC form stored in TIMESTAMP columns."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Re-attach UTC to a naive TIMESTAMP value read from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _interrupt_reason() -> str:
    scope = get_request_scope()
    if scope is None:
        return "interrupted"
    return CANCELLED if scope.cancelled else DEADLINE_EXCEEDED


class DuckDBDocumentStore:
    """Process-owned DuckDB connection with schema management.

    Parameters:
        db_config: DatabaseConfig from the configuration manager (preferred)
        db_path: Path to the database file or ':memory:' (used when no db_config)

    Example Usage:
        ```python
        store = DuckDBDocumentStore(db_path=":memory:")
        store.initialize_schema()
        with store.cursor("patient.get") as cur:
            cur.execute("SELECT count(*) FROM patients").fetchone()
        store.close()
        ```
    """

    def __init__(self, db_config: Optional[DatabaseConfig] = None, db_path: Optional[str] = None):
        if db_config:
            self.db_path = db_config.get_connection_string()
            self.read_only = db_config.read_only
        else:
            self.db_path = db_path or ":memory:"
            self.read_only = False

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise ExternalServiceError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._connect_lock = threading.Lock()
        # Held for the whole of every write transaction
        self._write_lock = threading.Lock()
        self._initialized = False

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or lazily create the shared connection."""
        with self._connect_lock:
            if self._connection is None:
                try:
                    self._connection = duckdb.connect(self.db_path, read_only=self.read_only)
                    logger.info(f"Connected to DuckDB database: {self.db_path}")
                except duckdb.Error as e:
                    raise ExternalServiceError(
                        f"Failed to connect to DuckDB: {str(e)}",
                        operation="connect",
                        details={"db_path": self.db_path}
                    ) from e
            return self._connection

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize_schema(self) -> None:
        """Create the patients and addresses tables if they do not exist.

        Raises:
            ExternalServiceError: If the DDL fails
        """
        with self.cursor("initialize_schema") as cur:
            cur.execute(PATIENTS_DDL)
            cur.execute(ADDRESSES_DDL)
        self._initialized = True
        logger.info("DuckDB schema initialized")

    @contextmanager
    def cursor(self, operation: str, record_type: str = "Patient",
               record_id: Optional[str] = None) -> Iterator[duckdb.DuckDBPyConnection]:
        """Yield a fresh cursor and translate driver errors raised inside the block.

        Parameters:
            operation: Operation name used in errors and logs
            record_type: Entity kind reported by DuplicateRecordError
            record_id: Identifier reported by DuplicateRecordError

        Raises:
            DuplicateRecordError: On a unique/primary key violation
            OperationCancelledError: If the query was interrupted
            ExternalServiceError: On any other DuckDB error
        """
        cur = self._get_connection().cursor()
        try:
            with interrupt_on_abort(cur.interrupt):
                yield cur
        except duckdb.ConstraintException as e:
            field = "phone" if "phone_key" in str(e) else None
            logger.info(f"{operation}: constraint violation for {record_type} {record_id or ''}".rstrip())
            raise DuplicateRecordError(record_type, record_id, field=field) from e
        except duckdb.InterruptException as e:
            raise OperationCancelledError(operation, _interrupt_reason()) from e
        except duckdb.Error as e:
            logger.error(f"{operation} failed: {type(e).__name__}")
            raise ExternalServiceError(
                f"DuckDB {operation} failed: {str(e)}",
                operation=operation
            ) from e
        finally:
            cur.close()

    @contextmanager
    def transaction(self, operation: str, record_type: str = "Patient",
                    record_id: Optional[str] = None) -> Iterator[duckdb.DuckDBPyConnection]:
        """Like cursor(), but wraps the block in BEGIN/COMMIT with rollback on error.

        Write transactions are serialized by a store-owned lock, so two writers
        touching the same row commit one after the other (last writer wins)
        instead of failing with a DuckDB write-write conflict.

        Raises:
            OperationCancelledError: If the request deadline passes while waiting for the lock
        """
        scope = get_request_scope()
        timeout = scope.remaining() if scope is not None else None
        if not self._write_lock.acquire(timeout=-1 if timeout is None else timeout):
            raise OperationCancelledError(operation, DEADLINE_EXCEEDED)
        try:
            with self.cursor(operation, record_type, record_id) as cur:
                cur.begin()
                try:
                    yield cur
                except BaseException:
                    cur.rollback()
                    raise
                cur.commit()
        finally:
            self._write_lock.release()

    def health_check(self) -> None:
        """Run a trivial query; raise ExternalServiceError if it fails."""
        with self.cursor("health_check") as cur:
            cur.execute("SELECT 1").fetchone()

    def close(self) -> None:
        """Close the shared connection. Called by the process owner only."""
        with self._connect_lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                    logger.info("Closed DuckDB connection")
                except duckdb.Error as e:
                    logger.warning(f"Error closing connection: {str(e)}")
                finally:
                    self._connection = None
                    self._initialized = False
