"""Sample patients and addresses for development seeding."""

from datetime import date, datetime, timedelta
from typing import Optional

from patient_records.domain.models import Address, Patient, utc_now

# (patient_id, name, phone, state, date_of_birth)
SAMPLE_PATIENTS = (
    ("P001", "Ava Thompson", "(206) 417-8842", "Washington", date(1988, 1, 12)),
    ("P002", "Liam Anderson", "(415) 736-5528", "California", date(1979, 3, 3)),
    ("P003", "Sophia Martinez", "(617) 980-3314", "Massachusetts", date(1992, 7, 27)),
    ("P004", "Noah Patel", "(972) 645-2091", "Texas", date(1985, 5, 5)),
    ("P005", "Mia Chen", "(312) 478-6605", "Illinois", date(1996, 9, 19)),
    ("P006", "Ethan Johnson", "(303) 825-1947", "Colorado", date(1975, 11, 8)),
    ("P007", "Olivia Rossi", "(646) 291-0743", "New York", date(1990, 2, 22)),
    ("P008", "Jackson Lee", "(503) 913-2286", "Oregon", date(1983, 4, 16)),
    ("P009", "Emma Davis", "(305) 744-1189", "Florida", date(1998, 12, 2)),
    ("P010", "Lucas Hernandez", "(713) 402-5378", "Texas", date(1981, 6, 14)),
)

# patient_id -> (line1, city, state code, zip)
SAMPLE_ADDRESSES = {
    "P001": ("1420 Pine St", "Seattle", "WA", "98101"),
    "P002": ("88 Valencia St", "San Francisco", "CA", "94103"),
    "P003": ("250 Boylston St", "Boston", "MA", "02116"),
    "P004": ("3100 Main St", "Dallas", "TX", "75226"),
    "P005": ("401 N Wabash Ave", "Chicago", "IL", "60611"),
    "P006": ("1600 Glenarm Pl", "Denver", "CO", "80202"),
    "P007": ("75 Spring St", "New York", "NY", "10012"),
    "P008": ("920 SW 6th Ave", "Portland", "OR", "97204"),
    "P009": ("1111 Lincoln Rd", "Miami Beach", "FL", "33139"),
    "P010": ("2700 Post Oak Blvd", "Houston", "TX", "77056"),
}


def sample_patients(now: Optional[datetime] = None) -> list[Patient]:
    """Build the sample patients.

    created_at is staggered one minute apart so P001 is the newest and the
    default list ordering is P001..P010.
    """
    now = now or utc_now()
    return [
        Patient(
            patient_id=patient_id,
            name=name,
            phone=phone,
            state=state,
            date_of_birth=dob,
            created_at=now - timedelta(minutes=i),
        )
        for i, (patient_id, name, phone, state, dob) in enumerate(SAMPLE_PATIENTS)
    ]


def sample_addresses() -> list[Address]:
    """Build one sample address per sample patient."""
    return [
        Address(
            address_id=f"{patient_id}-addr-1",
            patient_id=patient_id,
            line1=line1,
            city=city,
            state=state,
            zip=zip_code,
        )
        for patient_id, (line1, city, state, zip_code) in SAMPLE_ADDRESSES.items()
    ]
