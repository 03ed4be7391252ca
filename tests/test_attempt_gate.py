"""
Tests for the max-attempts gate (attempt_gate.py).
"""
import re
import sqlite3

import pytest
from factories import make_identity

from nca_enrolment.attempt_gate import AttemptGate, new_student_id
from nca_enrolment.errors import AttemptLimitExceeded, CollaboratorUnavailable


class TestStudentId:
    def test_format(self):
        assert re.fullmatch(r"STU-\d{13}-[0-9A-F]{4}", new_student_id())

    def test_unique(self):
        assert len({new_student_id() for _ in range(50)}) == 50


class TestValidateOrRegister:
    def test_new_student(self, gate, documents):
        decision = gate.validate_or_register(make_identity())
        assert decision.is_new_student
        assert decision.attempt_count == 0
        assert decision.attempts_remaining == 3
        assert not decision.blocked
        assert decision.message.startswith("Registration successful!")
        assert decision.folder_id == f"Alex_Taylor_1995-01-01_{decision.student_id}"
        assert (documents.root / decision.folder_id).is_dir()

    def test_namesakes_do_not_share_a_folder(self, gate, documents):
        a = gate.validate_or_register(make_identity(first_name="Sam", last_name="Lee", email="a@x.com"))
        b = gate.validate_or_register(make_identity(first_name="Sam", last_name="Lee", email="b@y.com"))
        assert a.student_id != b.student_id
        assert a.folder_id != b.folder_id
        documents.upload_file(a.folder_id, "secret_a.pdf", b"%PDF-1.4", "application/pdf")
        assert [f.name for f in documents.list_folder(b.folder_id)] == []
        assert [f.name for f in documents.list_folder(a.folder_id)] == ["secret_a.pdf"]

    def test_returning_student_same_id(self, gate):
        first = gate.validate_or_register(make_identity())
        second = gate.validate_or_register(make_identity(email="A@X.com"))
        assert second.student_id == first.student_id
        assert not second.is_new_student
        assert second.message == "Welcome back! You have 3 attempts remaining."

    def test_returning_after_one_attempt(self, gate):
        first = gate.validate_or_register(make_identity())
        gate.record_attempt(first.student_id)
        decision = gate.validate_or_register(make_identity())
        assert decision.attempts_remaining == 2
        assert "2 attempts remaining" in decision.message

    def test_blocked_after_three(self, gate):
        first = gate.validate_or_register(make_identity())
        for _ in range(3):
            gate.record_attempt(first.student_id)
        decision = gate.validate_or_register(make_identity())
        assert decision.blocked
        assert decision.attempts_remaining == 0
        assert decision.message.startswith("Maximum LLN attempts reached.")

    def test_store_failure_fails_closed(self, gate, monkeypatch):
        def _boom(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")
        monkeypatch.setattr(gate.store, "find_by_identity", _boom)
        with pytest.raises(CollaboratorUnavailable):
            gate.validate_or_register(make_identity())

    def test_folder_failure(self, gate, monkeypatch):
        def _boom(*args, **kwargs):
            raise PermissionError("read-only filesystem")
        monkeypatch.setattr(gate.documents, "ensure_folder", _boom)
        with pytest.raises(CollaboratorUnavailable):
            gate.validate_or_register(make_identity())
        assert gate.store.list_records() == []

    def test_concurrent_registration_resolves_to_existing(self, gate, monkeypatch):
        existing = gate.validate_or_register(make_identity())
        calls = {"n": 0}
        real_find = gate.store.find_by_identity

        def _miss_once(email, dob):
            calls["n"] += 1
            return None if calls["n"] == 1 else real_find(email, dob)

        monkeypatch.setattr(gate.store, "find_by_identity", _miss_once)
        decision = gate.validate_or_register(make_identity())
        assert decision.student_id == existing.student_id
        assert not decision.is_new_student


class TestAttempts:
    def test_count_two_to_three_then_blocked(self, gate):
        sid = gate.validate_or_register(make_identity()).student_id
        gate.record_attempt(sid)
        gate.record_attempt(sid)
        record = gate.record_attempt(sid)
        assert record.attempt_count == 3
        assert record.is_blocked
        with pytest.raises(AttemptLimitExceeded):
            gate.ensure_can_attempt(sid)

    def test_record_attempt_refused_at_limit(self, gate):
        sid = gate.validate_or_register(make_identity()).student_id
        for _ in range(3):
            gate.record_attempt(sid)
        with pytest.raises(AttemptLimitExceeded) as exc_info:
            gate.record_attempt(sid)
        assert exc_info.value.user_message == (
            "Maximum LLN attempts reached. Please contact administration for assistance."
        )

    def test_ensure_can_attempt_unknown_student(self, gate):
        with pytest.raises(CollaboratorUnavailable):
            gate.ensure_can_attempt("STU-NOPE")

    def test_custom_limit(self, store, documents):
        gate = AttemptGate(store, documents, max_attempts=1)
        sid = gate.validate_or_register(make_identity()).student_id
        gate.record_attempt(sid)
        with pytest.raises(AttemptLimitExceeded):
            gate.ensure_can_attempt(sid)


class TestReset:
    def test_reset_unblocks(self, gate):
        sid = gate.validate_or_register(make_identity()).student_id
        for _ in range(3):
            gate.record_attempt(sid)
        record = gate.reset(sid)
        assert record.attempt_count == 0
        assert not record.is_blocked
        assert gate.ensure_can_attempt(sid).attempt_count == 0
        assert not gate.validate_or_register(make_identity()).blocked

    def test_reset_unknown(self, gate):
        with pytest.raises(KeyError):
            gate.reset("STU-NOPE")
