"""Domain Ports - Abstract Contracts for Patient Records Storage and Caching.

This module defines the Port interfaces (abstract contracts) that Adapters must implement,
together with the exception hierarchy shared by every layer. The Domain Core defines what
it needs, not how it's provided.

Security Impact:
    - Repositories must reject malformed identifiers before any query is issued
    - Free-text filters must be treated as literal text by every backend
    - Cache failures are isolated behind CacheError so they can never leak to callers

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Storage adapters (DuckDB, in-memory) implement the repository ports
    - Cache adapters (in-memory, Redis) implement CacheStorePort
    - Services depend on ports only, so every backend is swappable in tests
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, List, Optional

from patient_records.domain.models import Address, Patient, PatientListQuery


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class PatientRecordsError(Exception):
    """Base exception for all patient-records errors."""
    pass


class ValidationError(PatientRecordsError):
    """Raised when input is malformed or unsafe.

    Validation errors are raised before the input reaches a store, so a
    ValidationError always means no query was issued.

    Attributes:
        field: Name of the offending field (if a single field is at fault)
        value: The rejected value
        errors: Mapping of field name to message when several fields failed
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        errors: Optional[dict[str, str]] = None
    ):
        super().__init__(message)
        self.field = field
        self.value = value
        self.errors = errors or ({field: message} if field else {})


class RecordNotFoundError(PatientRecordsError):
    """Raised when a read or update target does not exist.

    Attributes:
        record_type: Entity kind ("Patient", "Address")
        record_id: Identifier that was looked up
    """

    def __init__(self, record_type: str, record_id: Optional[str] = None):
        if record_id:
            message = f"{record_type} with ID '{record_id}' not found"
        else:
            message = f"{record_type} not found"
        super().__init__(message)
        self.record_type = record_type
        self.record_id = record_id


class DuplicateRecordError(PatientRecordsError):
    """Raised when a write violates a uniqueness constraint.

    Attributes:
        record_type: Entity kind ("Patient", "Address")
        record_id: Identifier of the record being written
        field: Field whose uniqueness was violated (e.g. "phone")
    """

    def __init__(self, record_type: str, record_id: Optional[str] = None, field: Optional[str] = None):
        if record_id:
            message = f"{record_type} with ID '{record_id}' already exists"
        else:
            message = f"{record_type} already exists"
        if field:
            message = f"{message} (duplicate {field})"
        super().__init__(message)
        self.record_type = record_type
        self.record_id = record_id
        self.field = field


class ExternalServiceError(PatientRecordsError):
    """Raised when the underlying store fails in a way not classifiable above.

    Attributes:
        operation: The operation that failed
        details: Additional error context (never contains PHI)
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class OperationCancelledError(PatientRecordsError):
    """Raised when the request scope is cancelled or its deadline passes during I/O.

    Attributes:
        operation: The operation that was aborted
        reason: "deadline_exceeded" or "cancelled"
    """

    def __init__(self, operation: str, reason: str = "cancelled"):
        super().__init__(f"Operation '{operation}' aborted: {reason}")
        self.operation = operation
        self.reason = reason


class CacheError(PatientRecordsError):
    """Raised by cache stores on backend failure.

    Services absorb every CacheError; it never reaches an API caller.
    """

    def __init__(self, message: str, operation: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.key = key


# ============================================================================
# Repository Ports
# ============================================================================

class PatientRepositoryPort(ABC):
    """Abstract contract for patient storage backends.

    Every backend honours the same contract:
        - list/count filter on a case-insensitive, literal substring of the name
        - list ordering is created_at descending, ties broken by patient_id ascending
        - get_by_id and update raise RecordNotFoundError for absent patients
        - create raises DuplicateRecordError on duplicate identifier or phone
        - malformed identifiers raise ValidationError before the store is touched

    Backends borrow their connection; they never close it.
    """

    @abstractmethod
    def list(self, query: PatientListQuery) -> List[Patient]:
        """Return one page of patients matching the query."""
        pass

    @abstractmethod
    def get_by_id(self, patient_id: str) -> Patient:
        """Return the patient with the given identifier.

        Raises:
            ValidationError: If the identifier is malformed
            RecordNotFoundError: If no such patient exists
        """
        pass

    @abstractmethod
    def create(self, patient: Patient) -> Patient:
        """Insert a new patient.

        Raises:
            ValidationError: If the patient fails validation
            DuplicateRecordError: If the identifier or phone is already taken
        """
        pass

    @abstractmethod
    def update(self, patient_id: str, patient: Patient) -> Patient:
        """Overwrite the mutable fields of an existing patient.

        Only name, phone, state, date_of_birth, edited_by and edited_at are
        written. The identifier and created_at are never modified.

        Raises:
            ValidationError: If the identifier or fields are malformed
            RecordNotFoundError: If no such patient exists
            DuplicateRecordError: If the new phone belongs to another patient
        """
        pass

    @abstractmethod
    def count(self, query: PatientListQuery) -> int:
        """Count patients matching the query's name filter (pagination ignored)."""
        pass

    @abstractmethod
    def find_by_state(self, state: str, limit: int = 20, offset: int = 0) -> List[Patient]:
        """Return patients in the given state/region ordered by name."""
        pass

    @abstractmethod
    def bulk_insert(self, patients: List[Patient]) -> int:
        """Insert many patients, returning the number inserted."""
        pass

    def create_indexes(self) -> None:
        """Create backend indexes (no-op for backends without indexes)."""
        return None

    def health_check(self) -> None:
        """Raise ExternalServiceError if the backend is unreachable."""
        return None


class AddressRepositoryPort(ABC):
    """Abstract contract for address storage backends.

    Addresses reference their patient by identifier; the relation is not
    ownership and no cross-entity check is performed here.
    """

    @abstractmethod
    def list_by_patient_id(self, patient_id: str) -> List[Address]:
        """Return all addresses of a patient ordered by address_id."""
        pass

    @abstractmethod
    def get_by_id(self, patient_id: str, address_id: str) -> Address:
        """Return one address of a patient.

        Raises:
            ValidationError: If either identifier is malformed
            RecordNotFoundError: If the address does not exist for that patient
        """
        pass

    @abstractmethod
    def upsert(self, patient_id: str, address: Address) -> Address:
        """Create or update an address.

        Generates an identifier when absent and always stamps the owning
        patient_id, overwriting any caller-supplied value.

        Raises:
            ValidationError: If identifiers or fields are malformed
            DuplicateRecordError: If the address_id belongs to another patient
        """
        pass

    def create_indexes(self) -> None:
        """Create backend indexes (no-op for backends without indexes)."""
        return None


# ============================================================================
# Cache Port
# ============================================================================

class CacheStorePort(ABC):
    """Abstract contract for key/value cache stores.

    All operations are fallible and raise CacheError on backend failure.
    A miss is not a failure: ``get`` returns None.

    Example Usage:
        ```python
        cache.set("patient:id:P001", payload, timedelta(minutes=30))
        payload = cache.get("patient:id:P001")  # bytes or None
        cache.delete("patient:id:P001")
        ```
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the cached bytes for key, or None on miss."""
        pass

    @abstractmethod
    def set(self, key: str, value: bytes, ttl: timedelta) -> None:
        """Store value under key for ttl."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key (missing keys are not an error)."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release backend resources. Called by the process owner only."""
        pass
