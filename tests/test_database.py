"""
Tests for the SQLite record store (database.py).
Each test gets its own database file under tmp_path.
"""
import sqlite3

import pytest
from factories import FIXED_TIME, make_identity, make_responses

from nca_enrolment.database import SqliteRecordStore
from nca_enrolment.models import (
    DocumentType,
    EnrollmentDraft,
    RecordStatus,
    VerificationStatus,
)
from nca_enrolment.scoring import score


def _create(store, email="a@x.com", dob="1995-01-01", student_id="STU-1"):
    return store.create_record(make_identity(email=email, date_of_birth=dob), student_id, "Alex_Taylor_1995-01-01")


class TestStudents:
    def test_init_db_is_idempotent(self, store):
        store.init_db()
        store.init_db()
        assert store.list_records() == []

    def test_create_and_find(self, store):
        created = _create(store)
        assert created.attempt_count == 0
        assert created.status == RecordStatus.REGISTERED
        assert not created.is_blocked
        found = store.find_by_identity("a@x.com", "1995-01-01")
        assert found.student_id == "STU-1"

    def test_lookup_case_insensitive_on_email(self, store):
        _create(store, email="Alex@Example.com")
        assert store.find_by_identity("  alex@example.COM ", "1995-01-01") is not None

    def test_lookup_exact_on_dob(self, store):
        _create(store)
        assert store.find_by_identity("a@x.com", "1995-01-02") is None

    def test_duplicate_identity_rejected(self, store):
        _create(store)
        with pytest.raises(sqlite3.IntegrityError):
            _create(store, email="A@X.COM", student_id="STU-2")

    def test_same_email_different_dob_is_new_identity(self, store):
        _create(store)
        _create(store, dob="1990-06-15", student_id="STU-2")
        assert len(store.list_records()) == 2

    def test_get_unknown_record(self, store):
        assert store.get_record("STU-NOPE") is None

    def test_set_status(self, store):
        _create(store)
        store.set_status("STU-1", RecordStatus.ENROLLED)
        assert store.get_record("STU-1").status == RecordStatus.ENROLLED


class TestIncrementAttempt:
    def test_increments_until_limit(self, store):
        _create(store)
        assert store.increment_attempt("STU-1", 3).attempt_count == 1
        assert store.increment_attempt("STU-1", 3).attempt_count == 2
        third = store.increment_attempt("STU-1", 3)
        assert third.attempt_count == 3
        assert third.is_blocked
        assert third.status == RecordStatus.MAX_ATTEMPTS
        assert third.last_attempt_at is not None

    def test_refused_at_limit(self, store):
        _create(store)
        for _ in range(3):
            store.increment_attempt("STU-1", 3)
        assert store.increment_attempt("STU-1", 3) is None
        assert store.get_record("STU-1").attempt_count == 3

    def test_in_progress_before_limit(self, store):
        _create(store)
        record = store.increment_attempt("STU-1", 3)
        assert record.status == RecordStatus.IN_PROGRESS
        assert not record.is_blocked

    def test_unknown_student(self, store):
        assert store.increment_attempt("STU-NOPE", 3) is None

    def test_two_store_handles_cannot_exceed_limit(self, settings):
        a = SqliteRecordStore(settings.store.db_path)
        b = SqliteRecordStore(settings.store.db_path)
        _create(a)
        a.increment_attempt("STU-1", 3)
        a.increment_attempt("STU-1", 3)
        results = [a.increment_attempt("STU-1", 3), b.increment_attempt("STU-1", 3)]
        assert sum(r is not None for r in results) == 1
        assert a.get_record("STU-1").attempt_count == 3


class TestResetAttempts:
    def test_reset_clears_count_and_block(self, store):
        created = _create(store)
        for _ in range(3):
            store.increment_attempt("STU-1", 3)
        record = store.reset_attempts("STU-1")
        assert record.attempt_count == 0
        assert not record.is_blocked
        assert record.status == RecordStatus.RESET
        assert record.reset_at is not None
        assert record.registered_at == created.registered_at
        assert record.folder_id == created.folder_id

    def test_reset_unknown(self, store):
        assert store.reset_attempts("STU-NOPE") is None


class TestAssessmentRows:
    def test_append_and_list(self, store):
        record = _create(store)
        result = score(make_responses(12), completed_at=FIXED_TIME)
        store.append_assessment_row(record, result, attempt_number=1)
        rows = store.list_assessments("STU-1")
        assert len(rows) == 1
        row = rows[0]
        assert row["overall"] == 55
        assert row["rating"] == "Needs Some Support"
        assert row["eligible"] == 0
        assert row["numeracy"] == 0
        assert row["digital_literacy"] == 50
        assert row["attempt_number"] == 1

    def test_rows_append_only(self, store):
        record = _create(store)
        store.append_assessment_row(record, score(make_responses(12)), attempt_number=1)
        store.append_assessment_row(record, score(make_responses(22)), attempt_number=2)
        assert [r["overall"] for r in store.list_assessments()] == [55, 100]


class TestEnrolmentsAndDocuments:
    def test_append_enrolment_row_without_pages(self, store):
        record = _create(store)
        store.append_enrolment_row(record, EnrollmentDraft())
        rows = store.list_enrolments()
        assert rows[0]["first_name"] == "Alex"
        assert rows[0]["verification_status"] == "Pending Review"

    def test_document_status_upsert(self, store):
        _create(store)
        store.upsert_document_status("STU-1", {DocumentType.PHOTO_ID: "/files/a/id.png"})
        status = store.get_document_status("STU-1")
        assert status["photo_id"] == "/files/a/id.png"
        assert status["all_documents_complete"] == 0

        store.upsert_document_status("STU-1", {d: f"/files/a/{d.value}" for d in DocumentType})
        status = store.get_document_status("STU-1")
        assert status["all_documents_complete"] == 1

    def test_update_verification_status(self, store):
        record = _create(store)
        store.append_enrolment_row(record, EnrollmentDraft())
        store.upsert_document_status("STU-1", {})
        assert store.update_verification_status("STU-1", VerificationStatus.VERIFIED, "ok", "dhairya@nca.edu.au")
        assert store.list_enrolments()[0]["verification_status"] == "Verified"
        assert store.get_document_status("STU-1")["verification_status"] == "Verified"

    def test_update_verification_without_enrolment(self, store):
        _create(store)
        assert not store.update_verification_status("STU-1", VerificationStatus.REJECTED)


class TestAuditAndSeed:
    def test_audit_newest_first(self, store):
        store.append_audit("dhairya@nca.edu.au", "login")
        store.append_audit("dhairya@nca.edu.au", "reset_attempts", "STU-1", {"previous_attempt_count": 3})
        rows = store.list_audit()
        assert [r["action"] for r in rows] == ["reset_attempts", "login"]
        assert '"previous_attempt_count": 3' in rows[0]["detail"]

    def test_seed_demo_students_once(self, store):
        assert store.seed_demo_students() > 0
        assert store.seed_demo_students() == 0
        records = store.list_records()
        assert any(r.is_blocked for r in records)
        assert store.list_assessments()
