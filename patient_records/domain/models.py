"""Patient Records Domain Models.

This module defines the canonical data models for the patient-records domain:
patients, their addresses, and the list query used by list/count operations.

Security Impact:
    - Models carry PHI (name, date of birth, phone, address lines); they are never logged
    - Business rules (identifier shape, phone digits, lengths) are enforced by
      ``patient_records.domain.validation`` at the service/repository boundary
    - Query bounds (limit/offset) are enforced here so no backend sees an unbounded page

Architecture:
    - Pure domain models with zero infrastructure dependencies beyond Pydantic
    - Server-controlled timestamps are optional on input and stamped by services
"""

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Patient(BaseModel):
    """Patient demographic record.

    Parameters:
        patient_id: Identifier, externally assigned or generated on create
        name: Full name (PHI)
        date_of_birth: Date of birth (PHI)
        phone: Phone number as entered; uniqueness is checked on its digits (PHI)
        state: State or region, free text (e.g. "Washington")
        created_at: Server-stamped creation time (UTC)
        edited_by: Last editor, refreshed on every update
        edited_at: Server-stamped time of the last update (UTC)
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    patient_id: Optional[str] = Field(None, description="Patient identifier")
    name: str = Field(..., description="Full name (PHI)")
    date_of_birth: date = Field(..., description="Date of birth (PHI)")
    phone: str = Field(..., description="Phone number (PHI)")
    state: str = Field(..., description="State or region")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp (UTC)")
    edited_by: Optional[str] = Field(None, description="Last editor")
    edited_at: Optional[datetime] = Field(None, description="Last edit timestamp (UTC)")

    @field_validator("created_at", "edited_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Treat naive timestamps as UTC and normalize aware ones to UTC."""
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class Address(BaseModel):
    """Postal address belonging to exactly one patient.

    The patient relation is a reference, not ownership: deleting or
    editing an address never touches the patient.

    Parameters:
        address_id: Identifier, generated on upsert when absent
        patient_id: Owning patient identifier (always stamped by the repository)
        line1: Street address line 1 (PHI)
        line2: Street address line 2 (PHI)
        city: City name
        state: 2-letter state code
        zip: 5-digit ZIP code
        created_at: Server-stamped creation time (UTC)
        updated_at: Server-stamped time of the last write (UTC)
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    address_id: Optional[str] = Field(None, description="Address identifier")
    patient_id: Optional[str] = Field(None, description="Owning patient identifier")
    line1: str = Field(..., description="Street address line 1 (PHI)")
    line2: str = Field("", description="Street address line 2 (PHI)")
    city: str = Field(..., description="City name")
    state: str = Field(..., description="State code (2-letter uppercase)")
    zip: str = Field(..., description="ZIP code (5 digits)")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp (UTC)")
    updated_at: Optional[datetime] = Field(None, description="Last write timestamp (UTC)")

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, v):
        """Normalize state codes to uppercase before validation."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("line2", mode="before")
    @classmethod
    def default_line2(cls, v):
        return "" if v is None else v

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class AddressCreateRequest(BaseModel):
    """Fields accepted when creating an address (the identifier is generated)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class PatientListQuery(BaseModel):
    """Query parameters for patient list and count operations.

    The name filter is free text and is matched literally (case-insensitive
    substring); query-language metacharacters in it carry no meaning.
    A minimum-length guard on the name is the caller's responsibility.

    Parameters:
        name: Optional name filter
        limit: Page size (1-100)
        offset: Number of records to skip (>= 0)
    """

    name: Optional[str] = Field(None, max_length=100, description="Name filter (free text)")
    limit: int = Field(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT, description="Page size")
    offset: int = Field(0, ge=0, description="Records to skip")

    @field_validator("name", mode="before")
    @classmethod
    def blank_name_is_none(cls, v):
        """Treat empty or whitespace-only filters as no filter."""
        if isinstance(v, str) and not v.strip():
            return None
        return v
