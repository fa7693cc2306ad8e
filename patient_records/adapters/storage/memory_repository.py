"""In-memory repositories.

Dict-backed implementations of the repository ports used for development and
tests. They honour exactly the same contract as the DuckDB repositories:
literal case-insensitive name filtering, created_at-desc/patient_id-asc
ordering, explicit RecordNotFoundError and phone uniqueness on digits.
"""

import logging
import threading
from typing import List, Optional

from patient_records.adapters.storage.sample_data import sample_addresses, sample_patients
from patient_records.domain.models import Address, Patient, PatientListQuery, utc_now
from patient_records.domain.ports import (
    AddressRepositoryPort,
    DuplicateRecordError,
    PatientRepositoryPort,
    RecordNotFoundError,
)
from patient_records.domain.validation import (
    ADDRESS_ID_MAX_LENGTH,
    canonicalize_search_term,
    generate_address_id,
    generate_patient_id,
    normalize_phone,
    sanitize_search_term,
    validate_address,
    validate_id,
    validate_patient,
    validate_state_search,
)
from patient_records.infrastructure.request_scope import ensure_active

logger = logging.getLogger(__name__)


def _ordering_key(patient: Patient):
    # created_at descending, then patient_id ascending
    return (-patient.created_at.timestamp(), patient.patient_id)


class InMemoryPatientRepository(PatientRepositoryPort):
    """Thread-safe dict-backed patient repository."""

    def __init__(self, patients: Optional[List[Patient]] = None):
        self._patients: dict[str, Patient] = {}
        self._lock = threading.Lock()
        if patients:
            self.bulk_insert(patients)

    @classmethod
    def with_sample_data(cls) -> 'InMemoryPatientRepository':
        """Create a repository seeded with the ten sample patients."""
        return cls(sample_patients())

    def _matching(self, name: Optional[str]) -> List[Patient]:
        term = sanitize_search_term(name)
        if term is None:
            return list(self._patients.values())
        needle = term.lower()
        return [p for p in self._patients.values() if needle in canonicalize_search_term(p.name)]

    def list(self, query: PatientListQuery) -> List[Patient]:
        ensure_active("patient.list")
        with self._lock:
            matches = sorted(self._matching(query.name), key=_ordering_key)
        return matches[query.offset:query.offset + query.limit]

    def count(self, query: PatientListQuery) -> int:
        ensure_active("patient.count")
        with self._lock:
            return len(self._matching(query.name))

    def get_by_id(self, patient_id: str) -> Patient:
        validate_id(patient_id)
        ensure_active("patient.get_by_id")
        with self._lock:
            patient = self._patients.get(patient_id)
        if patient is None:
            raise RecordNotFoundError("Patient", patient_id)
        return patient.model_copy()

    def _phone_taken(self, phone: str, exclude_id: Optional[str] = None) -> bool:
        key = normalize_phone(phone)
        return any(
            normalize_phone(p.phone) == key and p.patient_id != exclude_id
            for p in self._patients.values()
        )

    def _prepare_new(self, patient: Patient) -> Patient:
        validate_patient(patient)
        return patient.model_copy(update={
            "patient_id": patient.patient_id or generate_patient_id(),
            "created_at": patient.created_at or utc_now(),
        })

    def _insert_locked(self, patient: Patient) -> None:
        if patient.patient_id in self._patients:
            raise DuplicateRecordError("Patient", patient.patient_id)
        if self._phone_taken(patient.phone):
            raise DuplicateRecordError("Patient", patient.patient_id, field="phone")
        self._patients[patient.patient_id] = patient

    def create(self, patient: Patient) -> Patient:
        patient = self._prepare_new(patient)
        ensure_active("patient.create")
        with self._lock:
            self._insert_locked(patient)
        logger.info(f"Created patient {patient.patient_id}")
        return patient.model_copy()

    def bulk_insert(self, patients: List[Patient]) -> int:
        """Insert many patients atomically; nothing is inserted if any fails."""
        prepared = [self._prepare_new(p) for p in patients]
        ensure_active("patient.bulk_insert")
        with self._lock:
            snapshot = dict(self._patients)
            try:
                for patient in prepared:
                    self._insert_locked(patient)
            except DuplicateRecordError:
                self._patients = snapshot
                raise
        return len(prepared)

    def update(self, patient_id: str, patient: Patient) -> Patient:
        validate_id(patient_id)
        validate_patient(patient.model_copy(update={"patient_id": patient_id}))
        ensure_active("patient.update")
        with self._lock:
            current = self._patients.get(patient_id)
            if current is None:
                raise RecordNotFoundError("Patient", patient_id)
            if self._phone_taken(patient.phone, exclude_id=patient_id):
                raise DuplicateRecordError("Patient", patient_id, field="phone")
            updated = current.model_copy(update={
                "name": patient.name,
                "date_of_birth": patient.date_of_birth,
                "phone": patient.phone,
                "state": patient.state,
                "edited_by": patient.edited_by,
                "edited_at": patient.edited_at or utc_now(),
            })
            self._patients[patient_id] = updated
        logger.info(f"Updated patient {patient_id}")
        return updated.model_copy()

    def find_by_state(self, state: str, limit: int = 20, offset: int = 0) -> List[Patient]:
        state = validate_state_search(state, limit, offset)
        ensure_active("patient.find_by_state")
        with self._lock:
            matches = sorted(
                (p for p in self._patients.values() if p.state == state),
                key=lambda p: (p.name, p.patient_id),
            )
        return matches[offset:offset + limit]


class InMemoryAddressRepository(AddressRepositoryPort):
    """Thread-safe dict-backed address repository keyed by address_id."""

    def __init__(self, addresses: Optional[List[Address]] = None):
        self._addresses: dict[str, Address] = {}
        self._lock = threading.Lock()
        for address in addresses or []:
            self.upsert(address.patient_id, address)

    @classmethod
    def with_sample_data(cls) -> 'InMemoryAddressRepository':
        return cls(sample_addresses())

    def list_by_patient_id(self, patient_id: str) -> List[Address]:
        validate_id(patient_id)
        ensure_active("address.list_by_patient_id")
        with self._lock:
            matches = [a for a in self._addresses.values() if a.patient_id == patient_id]
        return sorted(matches, key=lambda a: a.address_id)

    def get_by_id(self, patient_id: str, address_id: str) -> Address:
        validate_id(patient_id)
        validate_id(address_id, field="address_id", max_length=ADDRESS_ID_MAX_LENGTH)
        ensure_active("address.get_by_id")
        with self._lock:
            address = self._addresses.get(address_id)
        if address is None or address.patient_id != patient_id:
            raise RecordNotFoundError("Address", address_id)
        return address.model_copy()

    def upsert(self, patient_id: str, address: Address) -> Address:
        validate_id(patient_id)
        now = utc_now()
        address = address.model_copy(update={
            "patient_id": patient_id,
            "address_id": address.address_id or generate_address_id(patient_id),
            "updated_at": address.updated_at or now,
        })
        validate_address(address)
        ensure_active("address.upsert")
        with self._lock:
            existing = self._addresses.get(address.address_id)
            if existing is not None and existing.patient_id != patient_id:
                raise DuplicateRecordError("Address", address.address_id, field="address_id")
            created_at = existing.created_at if existing is not None else (address.created_at or now)
            address = address.model_copy(update={"created_at": created_at})
            self._addresses[address.address_id] = address
        logger.info(f"Upserted address {address.address_id} for patient {patient_id}")
        return address.model_copy()
