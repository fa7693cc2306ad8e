"""Contract tests run against every patient repository backend.

The ``patient_repository`` fixture is parametrized over the in-memory and
DuckDB implementations, so each test here asserts one shared behaviour.
"""

import threading
from datetime import date, timedelta

import pytest

from patient_records.domain.models import PatientListQuery
from patient_records.domain.ports import DuplicateRecordError, RecordNotFoundError, ValidationError


class TestListAndPagination:
    """Filtering, ordering and pagination."""

    def test_pagination_over_twelve_patients(self, patient_repository, twelve_patients):
        patient_repository.bulk_insert(twelve_patients)

        assert len(patient_repository.list(PatientListQuery(limit=5, offset=10))) == 2
        assert patient_repository.list(PatientListQuery(limit=5, offset=12)) == []
        assert patient_repository.list(PatientListQuery(limit=5, offset=50)) == []
        assert patient_repository.count(PatientListQuery(limit=5, offset=50)) == 12

    def test_ordering_is_newest_first(self, patient_repository, twelve_patients):
        patient_repository.bulk_insert(twelve_patients)

        page = patient_repository.list(PatientListQuery(limit=3))
        assert [p.patient_id for p in page] == ["T012", "T011", "T010"]

    def test_ties_broken_by_patient_id_ascending(self, patient_repository, patient_factory, base_time):
        for index in (3, 1, 2):
            patient_repository.create(patient_factory(index, created_at=base_time))

        page = patient_repository.list(PatientListQuery())
        assert [p.patient_id for p in page] == ["T001", "T002", "T003"]

    def test_name_filter_is_case_insensitive_substring(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1, name="Ava Thompson"))
        patient_repository.create(patient_factory(2, name="Liam Anderson"))
        patient_repository.create(patient_factory(3, name="Olivia Rossi"))

        matches = patient_repository.list(PatientListQuery(name="THOMP"))
        assert [p.patient_id for p in matches] == ["T001"]
        assert patient_repository.count(PatientListQuery(name="liv")) == 1
        assert patient_repository.count(PatientListQuery(name="an")) == 1

    @pytest.mark.parametrize("term", [".*", "(unclosed", "%", "_", "\\", "[a-z]", "' OR '1'='1"])
    def test_metacharacters_match_literally(self, patient_repository, patient_factory, term):
        patient_repository.create(patient_factory(1, name="Ava Thompson"))
        patient_repository.create(patient_factory(2, name="Liam Anderson"))

        assert patient_repository.list(PatientListQuery(name=term)) == []
        assert patient_repository.count(PatientListQuery(name=term)) == 0

    def test_literal_percent_in_name_is_found(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1, name="Ava 100% Thompson"))
        patient_repository.create(patient_factory(2, name="Ava 1000 Thompson"))

        matches = patient_repository.list(PatientListQuery(name="100%"))
        assert [p.patient_id for p in matches] == ["T001"]

    def test_filter_matches_names_with_repeated_whitespace(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1, name="Ava  Thompson"))
        patient_repository.create(patient_factory(2, name="Liam Anderson"))

        for term in ("Ava  Thompson", "ava thompson", " AVA THOMPSON "):
            matches = patient_repository.list(PatientListQuery(name=term))
            assert [p.patient_id for p in matches] == ["T001"]
            assert patient_repository.count(PatientListQuery(name=term)) == 1

    def test_filter_matches_name_after_update(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1, name="Ava Thompson"))
        patient_repository.update("T001", patient_factory(1, name="Ava   Marie Thompson"))

        matches = patient_repository.list(PatientListQuery(name="ava marie"))
        assert [p.patient_id for p in matches] == ["T001"]
        assert patient_repository.list(PatientListQuery(name="Ava Thompson")) == []

    def test_list_on_empty_repository(self, patient_repository):
        assert patient_repository.list(PatientListQuery()) == []
        assert patient_repository.count(PatientListQuery()) == 0


class TestCreateAndGet:
    """Create/get round trips and uniqueness."""

    def test_round_trip_stamps_created_at(self, patient_repository, patient_factory):
        created = patient_repository.create(patient_factory(1))

        assert created.created_at is not None
        fetched = patient_repository.get_by_id("T001")
        assert fetched == created

    def test_generates_id_when_absent(self, patient_repository, patient_factory):
        created = patient_repository.create(patient_factory(1, patient_id=None))

        assert created.patient_id.startswith("P")
        assert patient_repository.get_by_id(created.patient_id).name == "Test Patient 1"

    def test_duplicate_id_rejected(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1))

        with pytest.raises(DuplicateRecordError):
            patient_repository.create(patient_factory(2, patient_id="T001"))

    def test_duplicate_phone_rejected_and_first_unchanged(self, patient_repository, patient_factory):
        first = patient_repository.create(patient_factory(1, phone="(206) 417-8842"))

        with pytest.raises(DuplicateRecordError) as exc_info:
            patient_repository.create(patient_factory(2, phone="206-417-8842"))

        assert exc_info.value.field == "phone"
        assert patient_repository.get_by_id("T001") == first
        with pytest.raises(RecordNotFoundError):
            patient_repository.get_by_id("T002")

    def test_invalid_patient_rejected_before_store(self, patient_repository, patient_factory):
        with pytest.raises(ValidationError):
            patient_repository.create(patient_factory(1, phone="12"))
        assert patient_repository.count(PatientListQuery()) == 0

    def test_missing_patient_raises_not_found(self, patient_repository):
        with pytest.raises(RecordNotFoundError) as exc_info:
            patient_repository.get_by_id("NOPE")
        assert exc_info.value.record_id == "NOPE"

    @pytest.mark.parametrize("bad_id", ["P:1", "P 1", "", "x'; DROP TABLE patients; --"])
    def test_malformed_id_raises_validation_error(self, patient_repository, bad_id):
        with pytest.raises(ValidationError):
            patient_repository.get_by_id(bad_id)


class TestUpdate:
    """Updates overwrite only the mutable fields."""

    def test_update_then_read_returns_new_values(self, patient_repository, patient_factory):
        original = patient_repository.create(patient_factory(1))

        changes = patient_factory(
            1, name="Renamed Patient", phone="(999) 555-0000", state="Oregon",
            date_of_birth=date(1981, 2, 3), edited_by="dr-lee",
        )
        updated = patient_repository.update("T001", changes)
        fetched = patient_repository.get_by_id("T001")

        assert fetched == updated
        assert fetched.name == "Renamed Patient"
        assert fetched.phone == "(999) 555-0000"
        assert fetched.state == "Oregon"
        assert fetched.date_of_birth == date(1981, 2, 3)
        assert fetched.edited_by == "dr-lee"
        assert fetched.edited_at is not None
        assert fetched.created_at == original.created_at

    def test_update_never_changes_id_or_created_at(self, patient_repository, patient_factory, base_time):
        original = patient_repository.create(patient_factory(1, created_at=base_time))

        changes = patient_factory(1, patient_id="OTHER", created_at=base_time + timedelta(days=9))
        patient_repository.update("T001", changes)

        fetched = patient_repository.get_by_id("T001")
        assert fetched.created_at == original.created_at
        with pytest.raises(RecordNotFoundError):
            patient_repository.get_by_id("OTHER")

    def test_update_with_unchanged_phone(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1))

        updated = patient_repository.update("T001", patient_factory(1, name="Same Phone"))
        assert updated.name == "Same Phone"

    def test_update_to_taken_phone_rejected(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1))
        second = patient_repository.create(patient_factory(2))

        with pytest.raises(DuplicateRecordError):
            patient_repository.update("T002", patient_factory(2, phone=patient_factory(1).phone))
        assert patient_repository.get_by_id("T002") == second

    def test_update_missing_patient_raises_not_found(self, patient_repository, patient_factory):
        with pytest.raises(RecordNotFoundError):
            patient_repository.update("T404", patient_factory(404))


class TestBulkAndStateQueries:

    def test_bulk_insert_returns_count(self, patient_repository, twelve_patients):
        assert patient_repository.bulk_insert(twelve_patients) == 12
        assert patient_repository.count(PatientListQuery()) == 12

    def test_bulk_insert_is_all_or_nothing(self, patient_repository, patient_factory):
        batch = [patient_factory(1), patient_factory(2), patient_factory(3, phone=patient_factory(1).phone)]

        with pytest.raises(DuplicateRecordError):
            patient_repository.bulk_insert(batch)
        assert patient_repository.count(PatientListQuery()) == 0

    def test_find_by_state_orders_by_name(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1, name="Noah Patel", state="Texas"))
        patient_repository.create(patient_factory(2, name="Lucas Hernandez", state="Texas"))
        patient_repository.create(patient_factory(3, name="Mia Chen", state="Illinois"))

        matches = patient_repository.find_by_state("Texas")
        assert [p.name for p in matches] == ["Lucas Hernandez", "Noah Patel"]
        assert patient_repository.find_by_state("Texas", limit=1, offset=1)[0].name == "Noah Patel"

    @pytest.mark.parametrize("state", ["T", "", "x" * 51])
    def test_find_by_state_validates_length(self, patient_repository, state):
        with pytest.raises(ValidationError):
            patient_repository.find_by_state(state)

    def test_health_check_passes(self, patient_repository):
        patient_repository.health_check()


class TestConcurrentWrites:
    """Concurrent updates to one patient resolve as last writer wins."""

    def test_parallel_updates_to_one_patient_all_succeed(self, patient_repository, patient_factory):
        patient_repository.create(patient_factory(1))
        errors = []
        written = []

        def writer(thread_index):
            for i in range(10):
                name = f"Writer {thread_index} {i}"
                try:
                    patient_repository.update("T001", patient_factory(1, name=name))
                    written.append(name)
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=writer, args=(t,)) for t in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(written) == 80
        final = patient_repository.get_by_id("T001")
        assert final.name in written
        assert final.patient_id == "T001"

    def test_parallel_creates_with_distinct_phones(self, patient_repository, patient_factory):
        errors = []

        def creator(index):
            try:
                patient_repository.create(patient_factory(index))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=creator, args=(i,)) for i in range(1, 17)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert patient_repository.count(PatientListQuery()) == 16
