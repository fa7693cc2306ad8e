"""Dependency injection for the patient-records API.

Process-wide components (store, cache, repositories, services) are created
once on first use and cached; the app lifespan closes them on shutdown.
"""

import logging
from functools import lru_cache
from typing import Annotated, Optional, Tuple

from fastapi import Depends

from patient_records.adapters.storage.duckdb_store import DuckDBDocumentStore
from patient_records.domain.ports import AddressRepositoryPort, CacheStorePort, PatientRepositoryPort
from patient_records.infrastructure.factory import (
    create_cache_store,
    create_document_store,
    create_repositories,
    create_services,
)
from patient_records.infrastructure.settings import Settings, settings
from patient_records.services.address_service import AddressService
from patient_records.services.patient_service import PatientService

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


@lru_cache()
def get_document_store() -> Optional[DuckDBDocumentStore]:
    """Process-owned DuckDB store (None when the in-memory backend is configured)."""
    logger.debug(f"Creating document store for backend: {settings.repository_backend}")
    return create_document_store(settings)


@lru_cache()
def get_cache_store() -> Optional[CacheStorePort]:
    """Process-owned cache store (None when caching is disabled)."""
    return create_cache_store(settings.cache_config)


@lru_cache()
def get_repositories() -> Tuple[PatientRepositoryPort, AddressRepositoryPort]:
    return create_repositories(get_document_store(), seed_sample_data=settings.seed_sample_data)


@lru_cache()
def get_services() -> Tuple[PatientService, AddressService]:
    patients, addresses = get_repositories()
    return create_services(patients, addresses, get_cache_store(), settings.cache_config)


def get_patient_repository() -> PatientRepositoryPort:
    return get_repositories()[0]


def get_patient_service() -> PatientService:
    return get_services()[0]


def get_address_service() -> AddressService:
    return get_services()[1]


def close_resources() -> None:
    """Close the store and cache if they were created, then forget all cached components."""
    if get_document_store.cache_info().currsize:
        store = get_document_store()
        if store is not None:
            store.close()
    if get_cache_store.cache_info().currsize:
        cache = get_cache_store()
        if cache is not None:
            cache.close()
    for provider in (get_services, get_repositories, get_cache_store, get_document_store):
        provider.cache_clear()


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
PatientRepositoryDep = Annotated[PatientRepositoryPort, Depends(get_patient_repository)]
PatientServiceDep = Annotated[PatientService, Depends(get_patient_service)]
AddressServiceDep = Annotated[AddressService, Depends(get_address_service)]
