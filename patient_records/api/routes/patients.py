"""Patient endpoints."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Header, Query, status
from pydantic import BaseModel, ConfigDict, Field

from patient_records.api.dependencies import PatientServiceDep
from patient_records.domain.models import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, Patient, PatientListQuery

router = APIRouter(prefix="/api/patients", tags=["patients"])

NAME_FILTER_MIN_LENGTH = 2


class PatientWriteRequest(BaseModel):
    """Body accepted by create and update. Server-controlled fields are not accepted."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    date_of_birth: date
    phone: str
    state: str


class PatientCreateRequest(PatientWriteRequest):
    patient_id: Optional[str] = Field(None, description="Externally assigned identifier")


class PatientListResponse(BaseModel):
    items: List[Patient]
    total: int
    limit: int
    offset: int


@router.get("", response_model=PatientListResponse)
def list_patients(
    service: PatientServiceDep,
    name: Optional[str] = Query(
        None, min_length=NAME_FILTER_MIN_LENGTH, max_length=100, description="Name contains (case-insensitive)"
    ),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT, description="Page size"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
):
    """List patients with an optional name filter, newest first."""
    query = PatientListQuery(name=name, limit=limit, offset=offset)
    items = service.list_patients(query)
    total = service.count_patients(query)
    return PatientListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/{patient_id}", response_model=Patient)
def get_patient(patient_id: str, service: PatientServiceDep):
    return service.get_patient(patient_id)


@router.post("", response_model=Patient, status_code=status.HTTP_201_CREATED)
def create_patient(body: PatientCreateRequest, service: PatientServiceDep):
    return service.create_patient(Patient(**body.model_dump()))


@router.put("/{patient_id}", response_model=Patient)
def update_patient(
    patient_id: str,
    body: PatientWriteRequest,
    service: PatientServiceDep,
    edited_by: Optional[str] = Header(None, alias="X-Edited-By", max_length=100),
):
    """Replace a patient's mutable fields. The editor is taken from X-Edited-By."""
    patient = Patient(patient_id=patient_id, **body.model_dump())
    return service.update_patient(patient, edited_by=edited_by)
