"""Service layer: cache-aside patient and address services."""

from patient_records.services.address_service import AddressService
from patient_records.services.cache_aside import CacheAside, CacheEventLogger
from patient_records.services.patient_service import PatientService

__all__ = ["AddressService", "CacheAside", "CacheEventLogger", "PatientService"]
