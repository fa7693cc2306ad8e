"""Tests for AddressService."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from patient_records.adapters.storage.memory_repository import InMemoryAddressRepository
from patient_records.domain import cache_keys
from patient_records.domain.models import AddressCreateRequest
from patient_records.domain.ports import RecordNotFoundError, ValidationError
from patient_records.services.address_service import AddressService


@pytest.fixture
def repository():
    return Mock(wraps=InMemoryAddressRepository.with_sample_data())


@pytest.fixture
def service(repository, cache_store):
    return AddressService(repository, cache_store)


def _request(**overrides) -> AddressCreateRequest:
    data = {"line1": "77 Harbor Way", "line2": "Unit 4", "city": "Tacoma", "state": "wa", "zip": "98402"}
    data.update(overrides)
    return AddressCreateRequest(**data)


class TestReads:

    def test_list_is_cached(self, service, repository):
        first = service.get_by_patient_id("P001")
        second = service.get_by_patient_id("P001")

        assert [a.address_id for a in first] == ["P001-addr-1"]
        assert first == second
        assert repository.list_by_patient_id.call_count == 1

    def test_single_address_is_cached(self, service, repository):
        assert service.get_by_id("P001", "P001-addr-1").city == "Seattle"
        service.get_by_id("P001", "P001-addr-1")

        assert repository.get_by_id.call_count == 1

    def test_wrong_patient_is_not_found(self, service):
        with pytest.raises(RecordNotFoundError):
            service.get_by_id("P002", "P001-addr-1")

    def test_entity_ttl_applies_to_lists(self, service, repository, clock):
        service.get_by_patient_id("P001")
        clock.advance(timedelta(minutes=29).total_seconds())
        service.get_by_patient_id("P001")
        clock.advance(timedelta(minutes=1).total_seconds())
        service.get_by_patient_id("P001")

        assert repository.list_by_patient_id.call_count == 2


class TestWrites:

    def test_create_generates_id_and_invalidates_list(self, service, repository):
        assert len(service.get_by_patient_id("P001")) == 1

        created = service.create("P001", _request())

        assert created.address_id.startswith("P001-addr-")
        assert created.state == "WA"
        listed = service.get_by_patient_id("P001")
        assert created.address_id in [a.address_id for a in listed]
        assert repository.list_by_patient_id.call_count == 2

    def test_create_for_unknown_patient_is_allowed(self, service):
        created = service.create("P999", _request())

        assert created.patient_id == "P999"

    def test_create_rejects_invalid_fields(self, service, repository):
        with pytest.raises(ValidationError) as exc_info:
            service.create("P001", _request(zip="123", city=""))

        assert set(exc_info.value.errors) == {"zip", "city"}
        repository.upsert.assert_not_called()

    def test_create_rejects_malformed_patient_id(self, service):
        with pytest.raises(ValidationError):
            service.create("P001:evil", _request())

    def test_upsert_invalidates_single_and_list_keys(self, service, cache_store):
        cached = service.get_by_id("P001", "P001-addr-1")
        service.get_by_patient_id("P001")

        saved = service.upsert("P001", cached.model_copy(update={"line1": "9 New Rd"}))

        assert cache_store.get(cache_keys.address_by_id("P001", "P001-addr-1")) is None
        assert cache_store.get(cache_keys.addresses_by_patient("P001")) is None
        assert service.get_by_id("P001", "P001-addr-1").line1 == "9 New Rd"
        assert saved.created_at == cached.created_at
        assert saved.updated_at >= cached.updated_at
