"""Address endpoints, nested under their patient."""

from typing import List

from fastapi import APIRouter, status

from patient_records.api.dependencies import AddressServiceDep
from patient_records.domain.models import Address, AddressCreateRequest

router = APIRouter(prefix="/api/patients/{patient_id}/addresses", tags=["addresses"])


@router.get("", response_model=List[Address])
def list_addresses(patient_id: str, service: AddressServiceDep):
    return service.get_by_patient_id(patient_id)


@router.get("/{address_id}", response_model=Address)
def get_address(patient_id: str, address_id: str, service: AddressServiceDep):
    return service.get_by_id(patient_id, address_id)


@router.post("", response_model=Address, status_code=status.HTTP_201_CREATED)
def create_address(patient_id: str, body: AddressCreateRequest, service: AddressServiceDep):
    """Create an address with a generated identifier."""
    return service.create(patient_id, body)


@router.put("/{address_id}", response_model=Address)
def upsert_address(patient_id: str, address_id: str, body: AddressCreateRequest, service: AddressServiceDep):
    """Create or replace the address with the given identifier."""
    address = Address(address_id=address_id, patient_id=patient_id, **body.model_dump())
    return service.upsert(patient_id, address)
