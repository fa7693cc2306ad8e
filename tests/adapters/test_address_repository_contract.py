"""Contract tests for address repositories (in-memory and DuckDB)."""

from datetime import timedelta

import pytest

from patient_records.domain.ports import DuplicateRecordError, RecordNotFoundError, ValidationError


class TestUpsert:
    """Insert-or-update semantics."""

    def test_insert_generates_id_and_stamps_owner(self, address_repository, address_factory):
        saved = address_repository.upsert("P001", address_factory(patient_id="SOMEONE-ELSE"))

        assert saved.address_id.startswith("P001-addr-")
        assert saved.patient_id == "P001"
        assert saved.created_at is not None
        assert saved.updated_at is not None
        assert address_repository.get_by_id("P001", saved.address_id) == saved

    def test_update_keeps_created_at(self, address_repository, address_factory, base_time):
        first = address_repository.upsert(
            "P001", address_factory(address_id="P001-addr-1", updated_at=base_time)
        )

        changed = address_factory(
            address_id="P001-addr-1", line1="200 Oak Ave", updated_at=base_time + timedelta(hours=1),
        )
        second = address_repository.upsert("P001", changed)

        assert second.created_at == first.created_at
        assert second.updated_at == base_time + timedelta(hours=1)
        stored = address_repository.get_by_id("P001", "P001-addr-1")
        assert stored.line1 == "200 Oak Ave"
        assert stored.created_at == first.created_at

    def test_id_owned_by_another_patient_rejected(self, address_repository, address_factory):
        address_repository.upsert("P001", address_factory(address_id="shared-1"))

        with pytest.raises(DuplicateRecordError):
            address_repository.upsert("P002", address_factory(address_id="shared-1", line1="Hijack"))
        assert address_repository.get_by_id("P001", "shared-1").line1 == "100 Main St"
        assert address_repository.list_by_patient_id("P002") == []

    @pytest.mark.parametrize("overrides", [
        {"zip": "9810"}, {"zip": "ABCDE"}, {"state": "WAS"}, {"line1": ""}, {"city": ""},
    ])
    def test_invalid_fields_rejected(self, address_repository, address_factory, overrides):
        with pytest.raises(ValidationError):
            address_repository.upsert("P001", address_factory(**overrides))
        assert address_repository.list_by_patient_id("P001") == []

    def test_malformed_patient_id_rejected(self, address_repository, address_factory):
        with pytest.raises(ValidationError):
            address_repository.upsert("P:001", address_factory())


class TestReads:

    def test_list_by_patient_ordered_by_address_id(self, address_repository, address_factory):
        for address_id in ("P001-addr-3", "P001-addr-1", "P001-addr-2"):
            address_repository.upsert("P001", address_factory(address_id=address_id))
        address_repository.upsert("P002", address_factory(address_id="P002-addr-1"))

        listed = address_repository.list_by_patient_id("P001")
        assert [a.address_id for a in listed] == ["P001-addr-1", "P001-addr-2", "P001-addr-3"]

    def test_list_for_unknown_patient_is_empty(self, address_repository):
        assert address_repository.list_by_patient_id("P999") == []

    def test_get_under_wrong_patient_is_not_found(self, address_repository, address_factory):
        saved = address_repository.upsert("P001", address_factory())

        with pytest.raises(RecordNotFoundError) as exc_info:
            address_repository.get_by_id("P002", saved.address_id)
        assert exc_info.value.record_type == "Address"

    def test_get_missing_address_is_not_found(self, address_repository):
        with pytest.raises(RecordNotFoundError):
            address_repository.get_by_id("P001", "P001-addr-404")

    def test_malformed_address_id_rejected(self, address_repository):
        with pytest.raises(ValidationError):
            address_repository.get_by_id("P001", "addr:1")
