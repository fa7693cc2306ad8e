"""Address service: cache-aside reads and invalidating writes over an address repository."""

import logging
from datetime import timedelta
from typing import List, Optional

from pydantic import TypeAdapter

from patient_records.domain import cache_keys
from patient_records.domain.models import Address, AddressCreateRequest, utc_now
from patient_records.domain.ports import AddressRepositoryPort, CacheStorePort
from patient_records.domain.validation import generate_address_id, validate_address_fields, validate_id
from patient_records.services.cache_aside import CacheAside, CacheEventLogger
from patient_records.services.patient_service import ENTITY_TTL

logger = logging.getLogger(__name__)

_ADDRESS = TypeAdapter(Address)
_ADDRESS_LIST = TypeAdapter(List[Address])


class AddressService:
    """Address operations with cache-aside caching.

    Both single addresses and per-patient address lists are cached for
    ``entity_ttl``; every write invalidates both keys it could have staled.
    No check is made that the patient exists.
    """

    def __init__(
        self,
        repository: AddressRepositoryPort,
        cache: Optional[CacheStorePort] = None,
        entity_ttl: timedelta = ENTITY_TTL,
        events: Optional[CacheEventLogger] = None,
    ):
        self.repository = repository
        self.entity_ttl = entity_ttl
        self.events = events or CacheEventLogger("address_service")
        self._cache = CacheAside(cache, self.events)

    def get_by_patient_id(self, patient_id: str) -> List[Address]:
        key = cache_keys.addresses_by_patient(patient_id)
        return self._cache.read(
            key, lambda: self.repository.list_by_patient_id(patient_id), _ADDRESS_LIST, self.entity_ttl
        )

    def get_by_id(self, patient_id: str, address_id: str) -> Address:
        key = cache_keys.address_by_id(patient_id, address_id)
        return self._cache.read(
            key, lambda: self.repository.get_by_id(patient_id, address_id), _ADDRESS, self.entity_ttl
        )

    def create(self, patient_id: str, request: AddressCreateRequest) -> Address:
        """Create a new address with a generated identifier.

        Raises:
            ValidationError: If the patient id or any address field is invalid
        """
        validate_id(patient_id)
        validate_address_fields(request.line1, request.line2, request.city, request.state, request.zip)
        address = Address(
            address_id=generate_address_id(patient_id),
            patient_id=patient_id,
            line1=request.line1,
            line2=request.line2,
            city=request.city,
            state=request.state,
            zip=request.zip,
        )
        return self.upsert(patient_id, address)

    def upsert(self, patient_id: str, address: Address) -> Address:
        """Create or update an address and invalidate its cached entries."""
        address = address.model_copy(update={"updated_at": utc_now()})
        saved = self.repository.upsert(patient_id, address)
        self._cache.invalidate(
            cache_keys.address_by_id(patient_id, saved.address_id),
            cache_keys.addresses_by_patient(patient_id),
        )
        logger.info(f"Address {saved.address_id} saved for patient {patient_id}")
        return saved
