"""
Tests for the admin portal service (admin.py): sign-in, permission checks,
attempt resets, verification status, export and the audit log.
"""
import sqlite3

import pytest
from factories import ADMIN_PASSWORD, PDF_BYTES, make_identity, make_responses

from nca_enrolment.errors import AuthenticationError, CollaboratorUnavailable, PermissionDenied
from nca_enrolment.models import RecordStatus, VerificationStatus


@pytest.fixture
def blocked_student(service):
    session = service.register(make_identity())
    for _ in range(3):
        service.gate.record_attempt(session.student_id)
    return session.student_id


class TestLogin:
    def test_login_audited(self, admin_service):
        token = admin_service.login("dhairya@nca.edu.au", ADMIN_PASSWORD)
        assert admin_service.principal(token).email == "dhairya@nca.edu.au"
        assert admin_service.store.list_audit()[0]["action"] == "login"

    def test_bad_login(self, admin_service):
        with pytest.raises(AuthenticationError):
            admin_service.login("dhairya@nca.edu.au", "guess")

    def test_invalid_token_rejected_everywhere(self, admin_service):
        with pytest.raises(AuthenticationError):
            admin_service.list_students("garbage")
        with pytest.raises(AuthenticationError):
            admin_service.analytics(None)


class TestStudents:
    def test_list_students(self, admin_service, viewer_token, service):
        service.register(make_identity())
        service.register(make_identity(email="b@x.com"))
        assert len(admin_service.list_students(viewer_token)) == 2

    def test_student_folder(self, admin_service, super_admin_token, service):
        session = service.register(make_identity())
        service.submit_assessment(session, make_responses(22))
        folder = admin_service.student_folder(super_admin_token, session.student_id)
        assert folder.record.student_id == session.student_id
        assert folder.shareable_link == f"/files/{session.folder_id}/"
        assert len(folder.assessments) == 1
        assert folder.files == []

    def test_viewer_cannot_open_folders(self, admin_service, viewer_token, service):
        session = service.register(make_identity())
        with pytest.raises(PermissionDenied):
            admin_service.student_folder(viewer_token, session.student_id)

    def test_unknown_student_folder(self, admin_service, super_admin_token):
        with pytest.raises(KeyError):
            admin_service.student_folder(super_admin_token, "STU-NOPE")


class TestResetAttempts:
    def test_super_admin_resets(self, admin_service, super_admin_token, blocked_student, service):
        record = admin_service.reset_attempts(super_admin_token, blocked_student)
        assert record.attempt_count == 0
        assert not record.is_blocked
        assert record.status == RecordStatus.RESET

        session = service.register(make_identity())
        assert session.student_id == blocked_student
        assert session.attempt_count == 0

    def test_reset_audited_with_previous_count(self, admin_service, super_admin_token, blocked_student):
        admin_service.reset_attempts(super_admin_token, blocked_student)
        entry = admin_service.audit_log(super_admin_token)[0]
        assert entry["action"] == "reset_attempts"
        assert entry["student_id"] == blocked_student
        assert entry["actor"] == "dhairya@nca.edu.au"
        assert '"previous_attempt_count": 3' in entry["detail"]

    def test_viewer_cannot_reset(self, admin_service, viewer_token, blocked_student):
        with pytest.raises(PermissionDenied):
            admin_service.reset_attempts(viewer_token, blocked_student)
        assert admin_service.store.get_record(blocked_student).attempt_count == 3

    def test_reset_unknown(self, admin_service, super_admin_token):
        with pytest.raises(KeyError):
            admin_service.reset_attempts(super_admin_token, "STU-NOPE")


class TestVerificationStatus:
    def test_no_enrolment_returns_false(self, admin_service, super_admin_token, service):
        session = service.register(make_identity())
        assert not admin_service.update_verification_status(
            super_admin_token, session.student_id, VerificationStatus.VERIFIED,
        )

    def test_update_after_enrolment(self, admin_service, super_admin_token, service):
        session = service.register(make_identity())
        record = service.store.get_record(session.student_id)
        service.store.append_enrolment_row(record, session.draft)
        assert admin_service.update_verification_status(
            super_admin_token, session.student_id, VerificationStatus.INCOMPLETE, "visa missing",
        )
        row = service.store.list_enrolments()[0]
        assert row["verification_status"] == "Incomplete"
        assert row["verified_by"] == "dhairya@nca.edu.au"
        assert admin_service.audit_log(super_admin_token)[0]["action"] == "update_verification_status"

    def test_viewer_cannot_edit(self, admin_service, viewer_token, service):
        session = service.register(make_identity())
        with pytest.raises(PermissionDenied):
            admin_service.update_verification_status(viewer_token, session.student_id, VerificationStatus.VERIFIED)


class TestReporting:
    def test_analytics_for_viewer(self, admin_service, viewer_token, service):
        session = service.register(make_identity())
        service.submit_assessment(session, make_responses(22))
        summary = admin_service.analytics(viewer_token)
        assert summary.total_students == 1
        assert summary.total_assessments == 1

    def test_export_csv(self, admin_service, super_admin_token, service):
        service.register(make_identity())
        csv = admin_service.export_students_csv(super_admin_token).decode("utf-8")
        header = csv.splitlines()[0]
        assert "student_id" in header and "attempt_count" in header
        assert "a@x.com" in csv

    def test_viewer_cannot_export(self, admin_service, viewer_token):
        with pytest.raises(PermissionDenied):
            admin_service.export_students_csv(viewer_token)


class TestDownloadFile:
    @pytest.fixture
    def uploaded(self, service):
        session = service.register(make_identity())
        service.documents.upload_file(session.folder_id, "passport.pdf", PDF_BYTES, "application/pdf",
                                      subfolder="Documents")
        return session.student_id

    def test_super_admin_downloads_listed_file(self, admin_service, super_admin_token, uploaded):
        folder = admin_service.student_folder(super_admin_token, uploaded)
        assert [f.path for f in folder.files] == ["Documents/passport.pdf"]
        data = admin_service.download_file(super_admin_token, uploaded, folder.files[0].path)
        assert data == PDF_BYTES

    def test_viewer_cannot_download(self, admin_service, viewer_token, uploaded):
        with pytest.raises(PermissionDenied):
            admin_service.download_file(viewer_token, uploaded, "Documents/passport.pdf")

    def test_path_outside_folder_rejected(self, admin_service, super_admin_token, uploaded):
        with pytest.raises(ValueError):
            admin_service.download_file(super_admin_token, uploaded, "../../nca.db")

    def test_missing_file(self, admin_service, super_admin_token, uploaded):
        with pytest.raises(FileNotFoundError):
            admin_service.download_file(super_admin_token, uploaded, "Documents/visa.pdf")

    def test_unknown_student(self, admin_service, super_admin_token):
        with pytest.raises(KeyError):
            admin_service.download_file(super_admin_token, "STU-NOPE", "x.pdf")


class TestStoreFailures:
    @pytest.fixture
    def broken_store(self, admin_service, monkeypatch):
        def _boom(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")
        for name in ("get_record", "update_verification_status", "list_audit",
                     "list_records", "list_assessments", "list_enrolments"):
            monkeypatch.setattr(admin_service.store, name, _boom)

    @pytest.mark.parametrize("call", [
        lambda svc, tok: svc.student_folder(tok, "STU-1"),
        lambda svc, tok: svc.reset_attempts(tok, "STU-1"),
        lambda svc, tok: svc.update_verification_status(tok, "STU-1", VerificationStatus.VERIFIED),
        lambda svc, tok: svc.download_file(tok, "STU-1", "x.pdf"),
        lambda svc, tok: svc.export_students_csv(tok),
        lambda svc, tok: svc.audit_log(tok),
        lambda svc, tok: svc.analytics(tok),
        lambda svc, tok: svc.daily_assessments(tok),
    ])
    def test_wrapped_as_unavailable(self, admin_service, super_admin_token, broken_store, call):
        with pytest.raises(CollaboratorUnavailable):
            call(admin_service, super_admin_token)
