"""DuckDB Address Repository.

Implements AddressRepositoryPort on top of DuckDBDocumentStore. Address
identifiers are globally unique; an upsert that names another patient's
address is rejected rather than silently re-parenting it.
"""

import logging
from typing import Any, Sequence

from patient_records.adapters.storage.duckdb_store import (
    DuckDBDocumentStore,
    from_db_timestamp,
    to_db_timestamp,
)
from patient_records.domain.models import Address, utc_now
from patient_records.domain.ports import AddressRepositoryPort, DuplicateRecordError, RecordNotFoundError
from patient_records.domain.validation import (
    ADDRESS_ID_MAX_LENGTH,
    generate_address_id,
    validate_address,
    validate_id,
)
from patient_records.infrastructure.request_scope import ensure_active

logger = logging.getLogger(__name__)

ADDRESS_COLUMNS = "address_id, patient_id, line1, line2, city, state, zip, created_at, updated_at"


def _row_to_address(row: Sequence[Any]) -> Address:
    return Address(
        address_id=row[0],
        patient_id=row[1],
        line1=row[2],
        line2=row[3],
        city=row[4],
        state=row[5],
        zip=row[6],
        created_at=from_db_timestamp(row[7]),
        updated_at=from_db_timestamp(row[8]),
    )


class DuckDBAddressRepository(AddressRepositoryPort):
    """DuckDB-backed address repository.

    Parameters:
        store: Shared DuckDBDocumentStore (borrowed, never closed here)
    """

    def __init__(self, store: DuckDBDocumentStore):
        self.store = store

    def create_indexes(self) -> None:
        if not self.store.initialized:
            self.store.initialize_schema()
        with self.store.cursor("address.create_indexes", "Address") as cur:
            cur.execute("CREATE INDEX IF NOT EXISTS idx_addresses_patient_id ON addresses(patient_id)")
        logger.info("Address indexes created")

    def list_by_patient_id(self, patient_id: str) -> list[Address]:
        validate_id(patient_id)
        ensure_active("address.list_by_patient_id")
        with self.store.cursor("address.list_by_patient_id", "Address") as cur:
            rows = cur.execute(
                f"SELECT {ADDRESS_COLUMNS} FROM addresses WHERE patient_id = ? ORDER BY address_id ASC",
                [patient_id],
            ).fetchall()
        ensure_active("address.list_by_patient_id")
        return [_row_to_address(row) for row in rows]

    def get_by_id(self, patient_id: str, address_id: str) -> Address:
        validate_id(patient_id)
        validate_id(address_id, field="address_id", max_length=ADDRESS_ID_MAX_LENGTH)
        ensure_active("address.get_by_id")
        with self.store.cursor("address.get_by_id", "Address", address_id) as cur:
            row = cur.execute(
                f"SELECT {ADDRESS_COLUMNS} FROM addresses WHERE address_id = ? AND patient_id = ?",
                [address_id, patient_id],
            ).fetchone()
        ensure_active("address.get_by_id")
        if row is None:
            raise RecordNotFoundError("Address", address_id)
        return _row_to_address(row)

    def upsert(self, patient_id: str, address: Address) -> Address:
        """Insert or update an address owned by ``patient_id``.

        The owning patient_id always overwrites the caller's value. created_at
        is kept from the stored row on update and stamped on insert.

        Raises:
            ValidationError: If identifiers or fields are malformed
            DuplicateRecordError: If address_id already belongs to another patient
        """
        validate_id(patient_id)
        now = utc_now()
        address = address.model_copy(update={
            "patient_id": patient_id,
            "address_id": address.address_id or generate_address_id(patient_id),
            "updated_at": address.updated_at or now,
        })
        validate_address(address)

        ensure_active("address.upsert")
        with self.store.transaction("address.upsert", "Address", address.address_id) as cur:
            existing = cur.execute(
                "SELECT patient_id, created_at FROM addresses WHERE address_id = ?",
                [address.address_id],
            ).fetchone()

            if existing is not None and existing[0] != patient_id:
                raise DuplicateRecordError("Address", address.address_id, field="address_id")

            if existing is not None:
                address = address.model_copy(update={"created_at": from_db_timestamp(existing[1])})
                cur.execute(
                    "UPDATE addresses SET line1 = ?, line2 = ?, city = ?, state = ?, zip = ?, "
                    "updated_at = ? WHERE address_id = ?",
                    [address.line1, address.line2, address.city, address.state, address.zip,
                     to_db_timestamp(address.updated_at), address.address_id],
                )
            else:
                address = address.model_copy(update={"created_at": address.created_at or now})
                cur.execute(
                    f"INSERT INTO addresses ({ADDRESS_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [address.address_id, patient_id, address.line1, address.line2, address.city,
                     address.state, address.zip, to_db_timestamp(address.created_at),
                     to_db_timestamp(address.updated_at)],
                )

        logger.info(f"Upserted address {address.address_id} for patient {patient_id}")
        return address
