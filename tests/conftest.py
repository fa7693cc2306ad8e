"""Shared fixtures for the patient-records test suite."""

from datetime import date, datetime, timedelta, timezone

import pytest

from patient_records.adapters.cache.memory_cache import InMemoryCacheStore
from patient_records.adapters.storage.duckdb_address_repository import DuckDBAddressRepository
from patient_records.adapters.storage.duckdb_patient_repository import DuckDBPatientRepository
from patient_records.adapters.storage.duckdb_store import DuckDBDocumentStore
from patient_records.adapters.storage.memory_repository import (
    InMemoryAddressRepository,
    InMemoryPatientRepository,
)
from patient_records.domain.models import Address, Patient

BASE_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_patient(index: int, name: str = None, created_at: datetime = None, **overrides) -> Patient:
    """Build a valid patient with a unique id and phone derived from index."""
    data = {
        "patient_id": f"T{index:03d}",
        "name": name or f"Test Patient {index}",
        "date_of_birth": date(1980, 1, 1),
        "phone": f"555{index:07d}",
        "state": "Washington",
        "created_at": created_at,
    }
    data.update(overrides)
    return Patient(**data)


def make_address(**overrides) -> Address:
    data = {
        "line1": "100 Main St",
        "line2": "",
        "city": "Seattle",
        "state": "WA",
        "zip": "98101",
    }
    data.update(overrides)
    return Address(**data)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def duckdb_store():
    """In-memory DuckDB store with schema initialized."""
    store = DuckDBDocumentStore(db_path=":memory:")
    store.initialize_schema()
    yield store
    store.close()


@pytest.fixture(params=["memory", "duckdb"])
def patient_repository(request):
    """Each patient repository backend, so contract tests run against both."""
    if request.param == "memory":
        return InMemoryPatientRepository()
    repository = DuckDBPatientRepository(request.getfixturevalue("duckdb_store"))
    repository.create_indexes()
    return repository


@pytest.fixture(params=["memory", "duckdb"])
def address_repository(request):
    """Each address repository backend."""
    if request.param == "memory":
        return InMemoryAddressRepository()
    repository = DuckDBAddressRepository(request.getfixturevalue("duckdb_store"))
    repository.create_indexes()
    return repository


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_store(clock):
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def twelve_patients():
    """Twelve patients created one minute apart (T001 oldest, T012 newest)."""
    return [make_patient(i, created_at=BASE_TIME + timedelta(minutes=i)) for i in range(1, 13)]


@pytest.fixture
def patient_factory():
    """The make_patient builder, for tests that need several distinct patients."""
    return make_patient


@pytest.fixture
def address_factory():
    return make_address


@pytest.fixture
def base_time():
    return BASE_TIME
