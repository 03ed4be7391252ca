"""
End-to-end tests for EnrolmentService (enrolment.py): registration through
the LLN gate, the enrolment pages, uploads and final submission, all on a
temporary record store and document root.
"""
import sqlite3

import pytest
from factories import (
    PDF_BYTES,
    PNG_BYTES,
    USI,
    make_background,
    make_compliance,
    make_course,
    make_identity,
    make_personal_details,
    make_responses,
    make_settings,
)

from nca_enrolment.enrolment import EnrolmentService
from nca_enrolment.errors import (
    AttemptLimitExceeded,
    CollaboratorUnavailable,
    StaleStateError,
    ValidationError,
)
from nca_enrolment.models import (
    Checkpoint,
    DocumentType,
    Page,
    Rating,
    RecordStatus,
)


def _to_documents(service, credited=22):
    session = service.register(make_identity())
    service.submit_assessment(session, make_responses(credited))
    service.submit_personal_details(session, make_personal_details(), make_course(), make_background(), USI)
    service.submit_declaration(session, make_compliance())
    return session


def _upload_all(service, session):
    for doc in DocumentType:
        data, mime, name = (PDF_BYTES, "application/pdf", "doc.pdf") if doc != DocumentType.RECENT_PHOTO \
            else (PNG_BYTES, "image/png", "me.png")
        service.upload_document(session, doc, name, data, mime)


class TestRegister:
    def test_new_student_session(self, service):
        session = service.register(make_identity())
        assert session.page == Page.LLN
        assert session.checkpoint == Checkpoint.LLN_IN_PROGRESS
        assert session.attempt_count == 0
        assert session.notice.startswith("Registration successful!")
        assert service.store.get_record(session.student_id) is not None

    def test_invalid_identity_not_persisted(self, service):
        with pytest.raises(ValidationError):
            service.register(make_identity(email="not-an-email"))
        assert service.store.list_records() == []

    def test_blocked_identity_refused(self, service):
        session = service.register(make_identity())
        for _ in range(3):
            service.gate.record_attempt(session.student_id)
        with pytest.raises(AttemptLimitExceeded):
            service.register(make_identity())


class TestSubmitAssessment:
    def test_end_to_end_eligible(self, service):
        session = service.register(make_identity(email="a@x.com", date_of_birth="1995-01-01"))
        result = service.submit_assessment(session, make_responses(19))
        assert result.overall == 86
        assert result.rating == Rating.EXCELLENT
        assert result.eligible
        assert session.attempt_count == 1
        assert session.continue_page() == Page.PERSONAL_DETAILS

        record = service.store.get_record(session.student_id)
        assert record.attempt_count == 1
        rows = service.store.list_assessments(session.student_id)
        assert [r["overall"] for r in rows] == [86]

    def test_second_attempt_uses_new_score_only(self, service):
        session = service.register(make_identity())
        first = service.submit_assessment(session, make_responses(12))
        assert not first.eligible
        assert session.page == Page.NOT_ELIGIBLE

        service.retake(session)
        second = service.submit_assessment(session, make_responses(19))
        assert second.eligible
        assert session.score == second
        assert session.attempt_count == 2
        assert [r["attempt_number"] for r in service.store.list_assessments(session.student_id)] == [1, 2]

    def test_ineligible_second_attempt_rating_recomputed(self, service):
        session = service.register(make_identity())
        service.submit_assessment(session, make_responses(13))
        service.retake(session)
        second = service.submit_assessment(session, make_responses(12))
        assert second.overall == 55
        assert second.rating == Rating.NEEDS_SOME_SUPPORT
        assert session.attempt_count == 2

    def test_unanswered_question_blocks_without_counting(self, service):
        session = service.register(make_identity())
        responses = make_responses(22)
        del responses["q22"]
        with pytest.raises(ValidationError):
            service.submit_assessment(session, responses)
        assert service.store.get_record(session.student_id).attempt_count == 0
        assert session.score is None

    def test_section_answers_saved_earlier_are_merged(self, service):
        session = service.register(make_identity())
        responses = make_responses(22)
        session.save_responses({k: v for k, v in responses.items() if k in ("q1", "q2")})
        rest = {k: v for k, v in responses.items() if k not in ("q1", "q2")}
        assert service.submit_assessment(session, rest).overall == 100

    def test_third_attempt_blocks_and_fourth_refused_before_scoring(self, service, monkeypatch):
        session = service.register(make_identity())
        for _ in range(2):
            service.submit_assessment(session, make_responses(12))
            service.retake(session)
        service.submit_assessment(session, make_responses(12))
        record = service.store.get_record(session.student_id)
        assert record.attempt_count == 3
        assert record.is_blocked
        assert record.status == RecordStatus.MAX_ATTEMPTS

        with pytest.raises(AttemptLimitExceeded):
            service.retake(session)

        scored = []
        monkeypatch.setattr("nca_enrolment.enrolment.score", lambda *a, **k: scored.append(1))
        session.score = None
        with pytest.raises(AttemptLimitExceeded):
            service.submit_assessment(session, make_responses(22))
        assert scored == []
        assert len(service.store.list_assessments(session.student_id)) == 3

    def test_cannot_resubmit_after_result(self, service):
        session = service.register(make_identity())
        service.submit_assessment(session, make_responses(22))
        with pytest.raises(StaleStateError) as exc_info:
            service.submit_assessment(session, make_responses(22))
        assert exc_info.value.redirect_to == Page.PERSONAL_DETAILS
        assert service.store.get_record(session.student_id).attempt_count == 1

    def test_assessment_row_failure_keeps_attempt(self, service, monkeypatch):
        session = service.register(make_identity())

        def _boom(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(service.store, "append_assessment_row", _boom)
        result = service.submit_assessment(session, make_responses(22))
        assert result.eligible
        assert session.attempt_count == 1

    def test_increment_failure_surfaces_unavailable(self, service, monkeypatch):
        session = service.register(make_identity())

        def _boom(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(service.store, "increment_attempt", _boom)
        with pytest.raises(CollaboratorUnavailable):
            service.submit_assessment(session, make_responses(22))
        assert session.score is None

    def test_resume_assessment(self, service):
        session = service.register(make_identity())
        session.save_responses({"q1": "To get a job"})
        assert service.resume_assessment(session) == Page.LLN
        assert session.responses == {"q1": "To get a job"}

    def test_resume_refused_once_blocked(self, service):
        session = service.register(make_identity())
        for _ in range(3):
            service.gate.record_attempt(session.student_id)
        with pytest.raises(AttemptLimitExceeded):
            service.resume_assessment(session)

    def test_attempts_remaining(self, service):
        session = service.register(make_identity())
        service.submit_assessment(session, make_responses(12))
        assert service.attempts_remaining(session) == 2

    def test_assessment_report(self, service):
        session = service.register(make_identity())
        with pytest.raises(StaleStateError):
            service.assessment_report(session)
        service.submit_assessment(session, make_responses(22))
        assert service.assessment_report(session)[:4] == b"%PDF"


class TestEnrolmentPages:
    def test_personal_details_when_ineligible(self, service):
        session = service.register(make_identity())
        service.submit_assessment(session, make_responses(12))
        with pytest.raises(StaleStateError) as exc_info:
            service.submit_personal_details(
                session, make_personal_details(), make_course(), make_background(), USI,
            )
        assert exc_info.value.redirect_to == Page.NOT_ELIGIBLE

    def test_pages_advance(self, service):
        session = _to_documents(service)
        assert session.checkpoint == Checkpoint.DECLARATION_COMPLETE
        assert session.page == Page.DOCUMENTS

    def test_upload_before_declaration_refused(self, service):
        session = service.register(make_identity())
        service.submit_assessment(session, make_responses(22))
        with pytest.raises(StaleStateError):
            service.upload_document(session, DocumentType.PHOTO_ID, "id.png", PNG_BYTES, "image/png")


class TestUploads:
    def test_upload_stores_file_and_tracks(self, service):
        session = _to_documents(service)
        url = service.upload_document(session, DocumentType.PHOTO_ID, "id.png", PNG_BYTES, "image/png")
        assert url.startswith(f"/files/{session.folder_id}/Documents/photo_id_{session.student_id}_")
        assert url.endswith(".png")
        assert session.draft.documents[DocumentType.PHOTO_ID] == url
        assert service.store.get_document_status(session.student_id)["photo_id"] == url

    def test_invalid_type_rejected(self, service):
        session = _to_documents(service)
        with pytest.raises(ValidationError) as exc_info:
            service.upload_document(session, DocumentType.PHOTO_ID, "id.gif", b"GIF89a", "image/gif")
        assert exc_info.value.issues[0].code == "V-12"
        assert DocumentType.PHOTO_ID not in session.draft.documents

    def test_oversized_rejected(self, store, documents, tmp_path):
        service = EnrolmentService(store, documents, make_settings(tmp_path, max_upload_bytes=16))
        session = _to_documents(service)
        with pytest.raises(ValidationError):
            service.upload_document(session, DocumentType.PHOTO_ID, "id.png", PNG_BYTES, "image/png")

    def test_all_five_collects_documents(self, service):
        session = _to_documents(service)
        _upload_all(service, session)
        assert session.checkpoint == Checkpoint.DOCUMENTS_COLLECTED
        assert service.store.get_document_status(session.student_id)["all_documents_complete"] == 1

    def test_document_store_failure(self, service, monkeypatch):
        session = _to_documents(service)

        def _boom(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(service.documents, "upload_file", _boom)
        with pytest.raises(CollaboratorUnavailable):
            service.upload_document(session, DocumentType.PHOTO_ID, "id.png", PNG_BYTES, "image/png")
        assert session.draft.documents == {}


class TestSubmitEnrolment:
    def test_requires_all_documents(self, service):
        session = _to_documents(service)
        with pytest.raises(StaleStateError):
            service.submit_enrolment(session)

    def test_complete_flow(self, service):
        session = _to_documents(service)
        _upload_all(service, session)
        assert service.submit_enrolment(session) == Page.COMPLETE
        assert session.is_terminal

        record = service.store.get_record(session.student_id)
        assert record.status == RecordStatus.ENROLLED
        enrolments = service.store.list_enrolments()
        assert len(enrolments) == 1
        assert enrolments[0]["usi"] == USI
        assert enrolments[0]["course"] == make_course().course_name

        names = {f.name for f in service.documents.list_folder(session.folder_id)}
        assert f"LLN_Report_{session.student_id}.pdf" in names
        assert f"Enrolment_Form_{session.student_id}.pdf" in names

    def test_cannot_submit_twice(self, service):
        session = _to_documents(service)
        _upload_all(service, session)
        service.submit_enrolment(session)
        with pytest.raises(StaleStateError) as exc_info:
            service.submit_enrolment(session)
        assert exc_info.value.redirect_to == Page.COMPLETE
        assert len(service.store.list_enrolments()) == 1

    def test_returning_student_after_enrolment_keeps_count(self, service):
        session = _to_documents(service)
        _upload_all(service, session)
        service.submit_enrolment(session)
        again = service.register(make_identity())
        assert again.student_id == session.student_id
        assert again.attempt_count == 1
