"""Component wiring.

Builds the process-owned store and cache, and the repositories and services
that borrow them, from Settings.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from patient_records.adapters.cache.memory_cache import InMemoryCacheStore
from patient_records.adapters.cache.redis_cache import RedisCacheStore
from patient_records.adapters.storage.duckdb_address_repository import DuckDBAddressRepository
from patient_records.adapters.storage.duckdb_patient_repository import DuckDBPatientRepository
from patient_records.adapters.storage.duckdb_store import DuckDBDocumentStore
from patient_records.adapters.storage.memory_repository import (
    InMemoryAddressRepository,
    InMemoryPatientRepository,
)
from patient_records.domain.ports import AddressRepositoryPort, CacheStorePort, PatientRepositoryPort
from patient_records.infrastructure.config_manager import CacheConfig
from patient_records.infrastructure.settings import Settings
from patient_records.services.address_service import AddressService
from patient_records.services.patient_service import PatientService

logger = logging.getLogger(__name__)


def create_document_store(settings: Settings) -> Optional[DuckDBDocumentStore]:
    """Create and initialize the DuckDB store, or None for the in-memory backend."""
    if settings.repository_backend == "memory":
        return None
    if settings.repository_backend != "duckdb":
        raise ValueError(f"Unsupported repository backend: {settings.repository_backend}")
    store = DuckDBDocumentStore(db_config=settings.db_config)
    store.initialize_schema()
    return store


def create_repositories(
    store: Optional[DuckDBDocumentStore],
    seed_sample_data: bool = False,
) -> Tuple[PatientRepositoryPort, AddressRepositoryPort]:
    """Create the patient and address repositories.

    With a store, the DuckDB repositories are returned and their indexes
    created; without one, the in-memory repositories (optionally seeded).
    """
    if store is None:
        if seed_sample_data:
            return InMemoryPatientRepository.with_sample_data(), InMemoryAddressRepository.with_sample_data()
        return InMemoryPatientRepository(), InMemoryAddressRepository()

    patients = DuckDBPatientRepository(store)
    addresses = DuckDBAddressRepository(store)
    patients.create_indexes()
    addresses.create_indexes()
    return patients, addresses


def create_cache_store(config: CacheConfig) -> Optional[CacheStorePort]:
    """Create the cache store selected by config.backend (None for 'none')."""
    if config.backend == "none":
        logger.info("Caching disabled")
        return None
    if config.backend == "redis":
        return RedisCacheStore.from_config(config)
    return InMemoryCacheStore()


def create_services(
    patients: PatientRepositoryPort,
    addresses: AddressRepositoryPort,
    cache: Optional[CacheStorePort],
    config: CacheConfig,
) -> Tuple[PatientService, AddressService]:
    entity_ttl = timedelta(seconds=config.entity_ttl_seconds)
    aggregate_ttl = timedelta(seconds=config.aggregate_ttl_seconds)
    return (
        PatientService(patients, cache, entity_ttl=entity_ttl, aggregate_ttl=aggregate_ttl),
        AddressService(addresses, cache, entity_ttl=entity_ttl),
    )
