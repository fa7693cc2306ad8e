"""Patient service: cache-aside reads and invalidating writes over a patient repository."""

import logging
from datetime import timedelta
from typing import List, Optional

from pydantic import TypeAdapter

from patient_records.domain import cache_keys
from patient_records.domain.models import Patient, PatientListQuery, utc_now
from patient_records.domain.ports import CacheStorePort, PatientRepositoryPort, ValidationError
from patient_records.domain.validation import generate_patient_id
from patient_records.services.cache_aside import CacheAside, CacheEventLogger

logger = logging.getLogger(__name__)

ENTITY_TTL = timedelta(minutes=30)
AGGREGATE_TTL = timedelta(minutes=5)

_PATIENT = TypeAdapter(Patient)
_PATIENT_LIST = TypeAdapter(List[Patient])
_COUNT = TypeAdapter(int)


class PatientService:
    """Patient operations with cache-aside caching.

    Single-patient reads are cached for ``entity_ttl``; list and count
    results for ``aggregate_ttl``. Writes invalidate the patient's by-id key;
    list and count keys are left to expire.

    Parameters:
        repository: Patient repository (borrowed)
        cache: Cache store (borrowed), or None to disable caching
        entity_ttl: TTL for single-patient reads
        aggregate_ttl: TTL for list and count queries
    """

    def __init__(
        self,
        repository: PatientRepositoryPort,
        cache: Optional[CacheStorePort] = None,
        entity_ttl: timedelta = ENTITY_TTL,
        aggregate_ttl: timedelta = AGGREGATE_TTL,
        events: Optional[CacheEventLogger] = None,
    ):
        self.repository = repository
        self.entity_ttl = entity_ttl
        self.aggregate_ttl = aggregate_ttl
        self.events = events or CacheEventLogger("patient_service")
        self._cache = CacheAside(cache, self.events)

    def list_patients(self, query: PatientListQuery) -> List[Patient]:
        key = cache_keys.patient_list(query.name, query.limit, query.offset)
        return self._cache.read(key, lambda: self.repository.list(query), _PATIENT_LIST, self.aggregate_ttl)

    def count_patients(self, query: PatientListQuery) -> int:
        key = cache_keys.patient_count(query.name)
        return self._cache.read(key, lambda: self.repository.count(query), _COUNT, self.aggregate_ttl)

    def get_patient(self, patient_id: str) -> Patient:
        """Return one patient.

        Raises:
            ValidationError: If the identifier is malformed
            RecordNotFoundError: If no such patient exists
        """
        key = cache_keys.patient_by_id(patient_id)
        return self._cache.read(key, lambda: self.repository.get_by_id(patient_id), _PATIENT, self.entity_ttl)

    def create_patient(self, patient: Patient) -> Patient:
        """Create a patient, generating its identifier when absent.

        created_at is always stamped by the server.
        """
        patient = patient.model_copy(update={
            "patient_id": patient.patient_id or generate_patient_id(),
            "created_at": utc_now(),
        })
        created = self.repository.create(patient)
        self._cache.invalidate(cache_keys.patient_by_id(created.patient_id))
        logger.info(f"Patient {created.patient_id} created")
        return created

    def update_patient(self, patient: Patient, edited_by: Optional[str] = None) -> Patient:
        """Update a patient's mutable fields and invalidate its cached entry.

        Parameters:
            patient: New values; patient_id selects the record
            edited_by: Editor recorded on the patient (falls back to patient.edited_by)
        """
        if not patient.patient_id:
            raise ValidationError("patient_id is required", field="patient_id")
        patient = patient.model_copy(update={
            "edited_by": edited_by or patient.edited_by,
            "edited_at": utc_now(),
        })
        updated = self.repository.update(patient.patient_id, patient)
        self._cache.invalidate(cache_keys.patient_by_id(patient.patient_id))
        logger.info(f"Patient {patient.patient_id} updated")
        return updated
