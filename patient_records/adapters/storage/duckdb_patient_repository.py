"""DuckDB Patient Repository.

Implements PatientRepositoryPort on top of DuckDBDocumentStore.

Security Impact:
    - Identifiers are validated before any statement is issued
    - Name filters are escaped for LIKE metacharacters and bound as parameters,
      so '.*', '(unclosed' or '%' are matched as literal text
    - Phone uniqueness is enforced on the digits-only phone_key column
"""

import logging
from typing import Any, List, Optional, Sequence

from patient_records.adapters.storage.duckdb_store import (
    DuckDBDocumentStore,
    from_db_timestamp,
    to_db_timestamp,
)
from patient_records.domain.models import Patient, PatientListQuery, utc_now
from patient_records.domain.ports import PatientRepositoryPort, RecordNotFoundError
from patient_records.domain.validation import (
    canonicalize_search_term,
    escape_like_pattern,
    generate_patient_id,
    normalize_phone,
    sanitize_search_term,
    validate_id,
    validate_patient,
    validate_state_search,
)
from patient_records.infrastructure.request_scope import ensure_active

logger = logging.getLogger(__name__)

PATIENT_COLUMNS = (
    "patient_id, name, date_of_birth, phone, state, created_at, edited_by, edited_at"
)

# Only immutable columns are indexed; DuckDB rewrites a row as delete + insert
# when an UPDATE touches an indexed column.
PATIENT_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_patients_created_at ON patients(created_at)",
)

# Columns written by update(); identifier and created_at are immutable
MUTABLE_COLUMNS = (
    "name", "name_lower", "date_of_birth", "phone", "phone_key", "state", "edited_by", "edited_at",
)


def _row_to_patient(row: Sequence[Any]) -> Patient:
    return Patient(
        patient_id=row[0],
        name=row[1],
        date_of_birth=row[2],
        phone=row[3],
        state=row[4],
        created_at=from_db_timestamp(row[5]),
        edited_by=row[6],
        edited_at=from_db_timestamp(row[7]),
    )


def _name_clause(name: Optional[str]) -> tuple[str, List[Any]]:
    term = sanitize_search_term(name)
    if term is None:
        return "", []
    return "WHERE name_lower LIKE ? ESCAPE '\\'", [f"%{escape_like_pattern(term.lower())}%"]


class DuckDBPatientRepository(PatientRepositoryPort):
    """DuckDB-backed patient repository.

    Parameters:
        store: Shared DuckDBDocumentStore (borrowed, never closed here)
    """

    def __init__(self, store: DuckDBDocumentStore):
        self.store = store

    def create_indexes(self) -> None:
        """Create the secondary index on created_at.

        Primary key and phone uniqueness are part of the table definition.
        """
        if not self.store.initialized:
            self.store.initialize_schema()
        with self.store.cursor("patient.create_indexes") as cur:
            for ddl in PATIENT_INDEXES:
                cur.execute(ddl)
        logger.info("Patient indexes created")

    def list(self, query: PatientListQuery) -> List[Patient]:
        where, params = _name_clause(query.name)
        sql = (
            f"SELECT {PATIENT_COLUMNS} FROM patients {where} "
            "ORDER BY created_at DESC, patient_id ASC LIMIT ? OFFSET ?"
        )
        ensure_active("patient.list")
        with self.store.cursor("patient.list") as cur:
            rows = cur.execute(sql, params + [query.limit, query.offset]).fetchall()
        ensure_active("patient.list")
        return [_row_to_patient(row) for row in rows]

    def count(self, query: PatientListQuery) -> int:
        where, params = _name_clause(query.name)
        ensure_active("patient.count")
        with self.store.cursor("patient.count") as cur:
            (total,) = cur.execute(f"SELECT count(*) FROM patients {where}", params).fetchone()
        ensure_active("patient.count")
        return int(total)

    def get_by_id(self, patient_id: str) -> Patient:
        validate_id(patient_id)
        ensure_active("patient.get_by_id")
        with self.store.cursor("patient.get_by_id") as cur:
            row = cur.execute(
                f"SELECT {PATIENT_COLUMNS} FROM patients WHERE patient_id = ?", [patient_id]
            ).fetchone()
        ensure_active("patient.get_by_id")
        if row is None:
            raise RecordNotFoundError("Patient", patient_id)
        return _row_to_patient(row)

    def _insert_params(self, patient: Patient) -> List[Any]:
        return [
            patient.patient_id,
            patient.name,
            canonicalize_search_term(patient.name),
            patient.date_of_birth,
            patient.phone,
            normalize_phone(patient.phone),
            patient.state,
            to_db_timestamp(patient.created_at),
            patient.edited_by,
            to_db_timestamp(patient.edited_at),
        ]

    def _prepare_new(self, patient: Patient) -> Patient:
        validate_patient(patient)
        return patient.model_copy(update={
            "patient_id": patient.patient_id or generate_patient_id(),
            "created_at": patient.created_at or utc_now(),
        })

    def create(self, patient: Patient) -> Patient:
        """Insert a patient, generating its identifier and created_at when absent.

        Raises:
            ValidationError: If the patient fails validation
            DuplicateRecordError: If the identifier or normalized phone is taken
        """
        patient = self._prepare_new(patient)
        ensure_active("patient.create")
        with self.store.transaction("patient.create", "Patient", patient.patient_id) as cur:
            cur.execute(
                "INSERT INTO patients (patient_id, name, name_lower, date_of_birth, phone, "
                "phone_key, state, created_at, edited_by, edited_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._insert_params(patient),
            )
        logger.info(f"Created patient {patient.patient_id}")
        return patient

    def bulk_insert(self, patients: List[Patient]) -> int:
        """Insert many patients in one transaction.

        Either every patient is inserted or none is.

        Returns:
            int: Number of patients inserted
        """
        if not patients:
            return 0
        prepared = [self._prepare_new(p) for p in patients]
        ensure_active("patient.bulk_insert")
        with self.store.transaction("patient.bulk_insert", "Patient") as cur:
            cur.executemany(
                "INSERT INTO patients (patient_id, name, name_lower, date_of_birth, phone, "
                "phone_key, state, created_at, edited_by, edited_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [self._insert_params(p) for p in prepared],
            )
        logger.info(f"Bulk inserted {len(prepared)} patients")
        return len(prepared)

    def update(self, patient_id: str, patient: Patient) -> Patient:
        """Overwrite the mutable fields of an existing patient.

        Only columns whose value actually changes are written.
        """
        validate_id(patient_id)
        validate_patient(patient.model_copy(update={"patient_id": patient_id}))
        edited_at = patient.edited_at or utc_now()

        ensure_active("patient.update")
        with self.store.transaction("patient.update", "Patient", patient_id) as cur:
            row = cur.execute(
                f"SELECT {PATIENT_COLUMNS} FROM patients WHERE patient_id = ?", [patient_id]
            ).fetchone()
            if row is None:
                raise RecordNotFoundError("Patient", patient_id)
            current = _row_to_patient(row)

            desired = {
                "name": patient.name,
                "name_lower": canonicalize_search_term(patient.name),
                "date_of_birth": patient.date_of_birth,
                "phone": patient.phone,
                "phone_key": normalize_phone(patient.phone),
                "state": patient.state,
                "edited_by": patient.edited_by,
                "edited_at": to_db_timestamp(edited_at),
            }
            existing = {
                "name": current.name,
                "name_lower": canonicalize_search_term(current.name),
                "date_of_birth": current.date_of_birth,
                "phone": current.phone,
                "phone_key": normalize_phone(current.phone),
                "state": current.state,
                "edited_by": current.edited_by,
                "edited_at": to_db_timestamp(current.edited_at),
            }
            changed = [col for col in MUTABLE_COLUMNS if desired[col] != existing[col]]
            if changed:
                assignments = ", ".join(f"{col} = ?" for col in changed)
                cur.execute(
                    f"UPDATE patients SET {assignments} WHERE patient_id = ?",
                    [desired[col] for col in changed] + [patient_id],
                )

        logger.info(f"Updated patient {patient_id}")
        return current.model_copy(update={
            "name": patient.name,
            "date_of_birth": patient.date_of_birth,
            "phone": patient.phone,
            "state": patient.state,
            "edited_by": patient.edited_by,
            "edited_at": edited_at,
        })

    def find_by_state(self, state: str, limit: int = 20, offset: int = 0) -> List[Patient]:
        """Return patients whose state/region equals ``state``, ordered by name."""
        state = validate_state_search(state, limit, offset)
        ensure_active("patient.find_by_state")
        with self.store.cursor("patient.find_by_state") as cur:
            rows = cur.execute(
                f"SELECT {PATIENT_COLUMNS} FROM patients WHERE state = ? "
                "ORDER BY name ASC, patient_id ASC LIMIT ? OFFSET ?",
                [state, limit, offset],
            ).fetchall()
        ensure_active("patient.find_by_state")
        return [_row_to_patient(row) for row in rows]

    def health_check(self) -> None:
        self.store.health_check()
