"""
enrolment.py — Applicant-facing enrolment service
=================================================
Glue between the wizard state machine, the attempt gate and the backing
stores.  Every Streamlit button on the public wizard maps to one method
here; each method either advances the ``EnrolmentSession`` or raises an
``EnrolmentError`` subclass and leaves it untouched.

---------------------------------------------------------------------------
Flow
---------------------------------------------------------------------------
  register(identity)               → EnrolmentSession   (gate: new / returning / blocked)
  submit_assessment(session, resp) → ScoreResult        (gate re-check → score → +1 attempt)
  retake(session)                  → Page.LLN           (gate re-check)
  submit_personal_details(...)     → Page.DECLARATION
  submit_declaration(...)          → Page.DOCUMENTS
  upload_document(...)             → url                (all 5 → documents-collected)
  submit_enrolment(session)        → Page.COMPLETE      (row + PDFs filed)
  assessment_report(session)       → PDF bytes

Ordering on LLN submission
--------------------------
  1. required-answer validation        (nothing persisted on failure)
  2. gate re-read                       (blocked → AttemptLimitExceeded, no scoring)
  3. score()                            (pure)
  4. conditional increment              (lost race → AttemptLimitExceeded)
  5. append assessment row
  6. session advances to lln-results

Consumers
---------
  streamlit_app.py
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from nca_enrolment.attempt_gate import AttemptGate
from nca_enrolment.config import Settings, get_settings
from nca_enrolment.database import SqliteRecordStore
from nca_enrolment.documents import DOCUMENTS_SUBFOLDER, LocalDocumentStore, document_filename
from nca_enrolment.errors import AttemptLimitExceeded, CollaboratorUnavailable, StaleStateError
from nca_enrolment.models import (
    ALLOWED_UPLOAD_TYPES,
    Background,
    Checkpoint,
    Compliance,
    CourseDetails,
    DocumentType,
    Page,
    PersonalDetails,
    RecordStatus,
    ResponseSet,
    ScoreResult,
    StudentIdentity,
    StudentRecord,
)
from nca_enrolment.reports import (
    assessment_report_filename,
    enrolment_forms_filename,
    render_assessment_report,
    render_enrolment_forms,
)
from nca_enrolment.scoring import score
from nca_enrolment.validation import AssessmentValidator, IdentityValidator, UploadValidator
from nca_enrolment.wizard import EnrolmentSession

logger = logging.getLogger(__name__)


class EnrolmentService:
    """Runs the public enrolment wizard against the configured stores."""

    def __init__(
        self,
        store: SqliteRecordStore,
        documents: LocalDocumentStore,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.documents = documents
        self.gate = AttemptGate(store, documents, max_attempts=self.settings.policy.max_attempts)
        self.upload_validator = UploadValidator(self.settings.policy.max_upload_bytes)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EnrolmentService":
        settings = settings or get_settings()
        return cls(
            SqliteRecordStore(settings.store.db_path),
            LocalDocumentStore(settings.store.documents_root, settings.store.documents_base_url),
            settings,
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _record(self, session: EnrolmentSession) -> StudentRecord:
        try:
            record = self.store.get_record(session.student_id)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        if record is None:
            raise CollaboratorUnavailable("record store")
        return record

    # ── Registration ─────────────────────────────────────────────────────────

    def register(self, identity: StudentIdentity) -> EnrolmentSession:
        """Validate the identity and open a session. Blocked identities are refused."""
        IdentityValidator().check(identity).raise_for_issues()
        decision = self.gate.validate_or_register(identity)
        if decision.blocked:
            raise AttemptLimitExceeded(decision.student_id, decision.attempt_count)

        session = EnrolmentSession(
            student_id    = decision.student_id,
            identity      = identity,
            folder_id     = decision.folder_id,
            attempt_count = decision.attempt_count,
            notice        = decision.message,
        )
        session.begin_assessment()
        return session

    # ── LLN ──────────────────────────────────────────────────────────────────

    def submit_assessment(self, session: EnrolmentSession, responses: ResponseSet) -> ScoreResult:
        if session.is_terminal or session.score is not None:
            raise StaleStateError(session.continue_page())

        merged = {**session.responses, **responses}
        AssessmentValidator().check_all(merged).raise_for_issues()

        self.gate.ensure_can_attempt(session.student_id)
        result = score(merged, pass_mark=self.settings.policy.pass_mark)
        record = self.gate.record_attempt(session.student_id)

        try:
            self.store.append_assessment_row(record, result, attempt_number=record.attempt_count)
        except sqlite3.Error as exc:
            # attempt already counted; the score row is best-effort
            logger.error("Could not append assessment row for %s: %s", session.student_id, exc)

        session.record_score(result, attempt_count=record.attempt_count)
        logger.info(
            "LLN submitted by %s: %d%% %s (attempt %d/%d)",
            session.student_id, result.overall, result.rating.value,
            record.attempt_count, self.gate.max_attempts,
        )
        return result

    def resume_assessment(self, session: EnrolmentSession) -> Page:
        """Re-enter the LLN page, re-checking the gate first."""
        record = self.gate.ensure_can_attempt(session.student_id)
        session.attempt_count = record.attempt_count
        return session.begin_assessment()

    def retake(self, session: EnrolmentSession) -> Page:
        """Ineligible → back to the LLN page, if attempts remain."""
        record = self.gate.ensure_can_attempt(session.student_id)
        session.attempt_count = record.attempt_count
        return session.retake()

    def attempts_remaining(self, session: EnrolmentSession) -> int:
        return max(self.gate.max_attempts - self._record(session).attempt_count, 0)

    def assessment_report(self, session: EnrolmentSession) -> bytes:
        if session.score is None:
            raise StaleStateError(session.continue_page())
        return render_assessment_report(self._record(session), session.score)

    # ── Enrolment form pages ─────────────────────────────────────────────────

    def submit_personal_details(
        self,
        session: EnrolmentSession,
        personal: PersonalDetails,
        course: CourseDetails,
        background: Background,
        usi: str,
    ) -> Page:
        return session.submit_personal_details(personal, course, background, usi)

    def submit_declaration(self, session: EnrolmentSession, compliance: Compliance) -> Page:
        return session.submit_declaration(compliance)

    def upload_document(
        self,
        session: EnrolmentSession,
        doc_type: DocumentType,
        filename: str,
        data: bytes,
        mime_type: str,
    ) -> str:
        """Validate and file one required document; returns its URL."""
        if not session.checkpoint.at_least(Checkpoint.DECLARATION_COMPLETE) or session.is_terminal:
            raise StaleStateError(session.continue_page())
        self.upload_validator.check(filename, data, mime_type).raise_for_issues()

        stored_name = document_filename(doc_type, session.student_id, ALLOWED_UPLOAD_TYPES[mime_type])
        try:
            url = self.documents.upload_file(
                session.folder_id, stored_name, data, mime_type, subfolder=DOCUMENTS_SUBFOLDER,
            )
        except OSError as exc:
            logger.error("Upload of %s failed for %s: %s", doc_type.value, session.student_id, exc)
            raise CollaboratorUnavailable("document store", exc) from exc

        session.record_document(doc_type, url)
        try:
            self.store.upsert_document_status(session.student_id, session.draft.documents)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        return url

    def submit_enrolment(self, session: EnrolmentSession) -> Page:
        """Persist the completed enrolment and file the PDFs. Terminal."""
        if session.is_terminal:
            raise StaleStateError(Page.COMPLETE, "This enrolment has already been submitted.")
        if not session.checkpoint.at_least(Checkpoint.DOCUMENTS_COLLECTED):
            raise StaleStateError(session.continue_page(), "Please upload all required documents first.")

        record = self._record(session)
        try:
            report_pdf = render_assessment_report(record, session.score)
            forms_pdf = render_enrolment_forms(record, session.draft, session.score)
            self.documents.upload_file(
                session.folder_id, assessment_report_filename(record.student_id),
                report_pdf, "application/pdf",
            )
            self.documents.upload_file(
                session.folder_id, enrolment_forms_filename(record.student_id),
                forms_pdf, "application/pdf",
            )
        except OSError as exc:
            raise CollaboratorUnavailable("document store", exc) from exc

        try:
            self.store.append_enrolment_row(record, session.draft)
            self.store.set_status(record.student_id, RecordStatus.ENROLLED)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc

        page = session.complete()
        logger.info("Enrolment submitted for %s", record.student_id)
        return page
