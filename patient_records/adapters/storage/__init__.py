"""Storage adapters implementing the repository ports."""

from patient_records.adapters.storage.duckdb_address_repository import DuckDBAddressRepository
from patient_records.adapters.storage.duckdb_patient_repository import DuckDBPatientRepository
from patient_records.adapters.storage.duckdb_store import DuckDBDocumentStore
from patient_records.adapters.storage.memory_repository import (
    InMemoryAddressRepository,
    InMemoryPatientRepository,
)

__all__ = [
    "DuckDBDocumentStore",
    "DuckDBPatientRepository",
    "DuckDBAddressRepository",
    "InMemoryPatientRepository",
    "InMemoryAddressRepository",
]
