"""
wizard.py — Enrolment wizard state machine
==========================================
One ``EnrolmentSession`` per applicant, created at registration and kept in
``st.session_state`` until the enrolment completes or the applicant starts
over.  The session is a pydantic model so it can be snapshotted to JSON.

Checkpoint progression
----------------------
  start → lln-in-progress → lln-results → personal-details-complete
        → declaration-complete → documents-collected → enrollment-complete

Rules
-----
* Checkpoints only move forward, with one exception: ``retake()`` from an
  ineligible result returns to ``lln-in-progress`` and discards the score.
* An ineligible result is absorbing: every page resolves to not-eligible.
* ``enrollment-complete`` is terminal: every page resolves to complete and
  every mutating call raises ``StaleStateError``.
* Going back never clears data entered on later pages.

Page guard
----------
  resolve_page(requested, session) → the page to actually render.  When the
  requested page's precondition is missing the applicant is sent to the
  earliest step they still have to complete.

Consumers
---------
  enrolment.py      — EnrolmentService drives the transitions
  streamlit_app.py  — calls resolve_page() on every rerun
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import BaseModel, Field

from nca_enrolment.errors import StaleStateError
from nca_enrolment.models import (
    Background,
    Checkpoint,
    Compliance,
    CourseDetails,
    DocumentType,
    EnrollmentDraft,
    Page,
    PersonalDetails,
    ResponseSet,
    ScoreResult,
    StudentIdentity,
)
from nca_enrolment.validation import DeclarationValidator, PersonalDetailsValidator

logger = logging.getLogger(__name__)


# ─── Session ─────────────────────────────────────────────────────────────────

class EnrolmentSession(BaseModel):
    """Client-side draft of one applicant's enrolment."""
    student_id:    str
    identity:      StudentIdentity
    folder_id:     str = ""
    attempt_count: int = 0
    responses:     ResponseSet = Field(default_factory=dict,
                                       description="In-progress LLN answers")
    score:         Optional[ScoreResult] = None
    draft:         EnrollmentDraft = Field(default_factory=EnrollmentDraft)
    page:          Page = Page.LLN
    notice:        str = ""

    # ── Derived state ────────────────────────────────────────────────────────

    @property
    def checkpoint(self) -> Checkpoint:
        return self.draft.status

    @property
    def is_terminal(self) -> bool:
        return self.draft.status == Checkpoint.ENROLLMENT_COMPLETE

    @property
    def is_eligible(self) -> bool:
        return self.score is not None and self.score.eligible

    @property
    def is_ineligible(self) -> bool:
        return self.score is not None and not self.score.eligible

    def continue_page(self) -> Page:
        """Earliest page the applicant still has to complete."""
        return _CONTINUE_PAGE[self.checkpoint](self)

    # ── Internal helpers ─────────────────────────────────────────────────────

    def _advance(self, target: Checkpoint) -> None:
        if not self.draft.status.at_least(target):
            logger.debug("Session %s: %s → %s", self.student_id, self.draft.status.value, target.value)
            self.draft.status = target

    def _require(self, page: Page) -> None:
        if self.is_terminal:
            raise StaleStateError(Page.COMPLETE, "This enrolment has already been submitted.")
        if not _PRECONDITIONS[page](self):
            raise StaleStateError(resolve_page(page, self))

    # ── Transitions ──────────────────────────────────────────────────────────

    def begin_assessment(self) -> Page:
        self._require(Page.LLN)
        self._advance(Checkpoint.LLN_IN_PROGRESS)
        self.page = Page.LLN
        return self.page

    def save_responses(self, answers: ResponseSet) -> None:
        """Merge answers for one LLN section into the in-progress set."""
        self._require(Page.LLN)
        self.responses.update(answers)

    def record_score(self, result: ScoreResult, attempt_count: Optional[int] = None) -> Page:
        self._require(Page.LLN)
        self.score = result
        if attempt_count is not None:
            self.attempt_count = attempt_count
        self._advance(Checkpoint.LLN_RESULTS)
        self.page = Page.LLN_RESULTS if result.eligible else Page.NOT_ELIGIBLE
        return self.page

    def retake(self) -> Page:
        """Leave the ineligible branch: drop the score and answer again."""
        self._require(Page.NOT_ELIGIBLE)
        self.score = None
        self.responses = {}
        self.draft.status = Checkpoint.LLN_IN_PROGRESS
        self.page = Page.LLN
        return self.page

    def abandon(self) -> Page:
        """Throw the draft away. Attempts already counted stay on the record."""
        logger.info("Session %s abandoned at %s", self.student_id, self.draft.status.value)
        self.responses = {}
        self.score = None
        self.draft = EnrollmentDraft()
        self.page = Page.START
        return self.page

    def submit_personal_details(
        self,
        personal: PersonalDetails,
        course: CourseDetails,
        background: Background,
        usi: str,
    ) -> Page:
        self._require(Page.PERSONAL_DETAILS)
        PersonalDetailsValidator().check(personal, course, background, usi).raise_for_issues()

        self.draft.personal_details = personal
        self.draft.course_details = course
        self.draft.background = background
        compliance = self.draft.compliance or Compliance()
        self.draft.compliance = compliance.model_copy(update={"usi": usi.strip()})
        self._advance(Checkpoint.PERSONAL_DETAILS_COMPLETE)
        self.page = Page.DECLARATION
        return self.page

    def submit_declaration(self, compliance: Compliance) -> Page:
        self._require(Page.DECLARATION)
        DeclarationValidator().check(compliance).raise_for_issues()

        usi = compliance.usi or (self.draft.compliance.usi if self.draft.compliance else "")
        self.draft.compliance = compliance.model_copy(update={"usi": usi})
        self._advance(Checkpoint.DECLARATION_COMPLETE)
        self.page = Page.DOCUMENTS
        return self.page

    def record_document(self, doc_type: DocumentType, url: str) -> Page:
        self._require(Page.DOCUMENTS)
        self.draft.documents[doc_type] = url
        if not self.draft.missing_documents:
            self._advance(Checkpoint.DOCUMENTS_COLLECTED)
        self.page = Page.DOCUMENTS
        return self.page

    def complete(self) -> Page:
        self._require(Page.DOCUMENTS)
        if not self.checkpoint.at_least(Checkpoint.DOCUMENTS_COLLECTED):
            raise StaleStateError(Page.DOCUMENTS, "Please upload all required documents first.")
        self.draft.status = Checkpoint.ENROLLMENT_COMPLETE
        self.page = Page.COMPLETE
        return self.page

    def navigate(self, requested: Page) -> Page:
        """Move to ``requested`` (forward or back) if its precondition holds."""
        self.page = resolve_page(requested, self)
        return self.page


# ─── Page preconditions ──────────────────────────────────────────────────────

_PRECONDITIONS: dict[Page, Callable[[EnrolmentSession], bool]] = {
    Page.START:            lambda s: True,
    Page.REGISTER:         lambda s: True,
    Page.LLN:              lambda s: s.score is None,
    Page.LLN_RESULTS:      lambda s: s.score is not None,
    Page.NOT_ELIGIBLE:     lambda s: s.is_ineligible,
    Page.PERSONAL_DETAILS: lambda s: s.is_eligible,
    Page.DECLARATION:      lambda s: s.is_eligible
                                     and s.checkpoint.at_least(Checkpoint.PERSONAL_DETAILS_COMPLETE),
    Page.DOCUMENTS:        lambda s: s.is_eligible
                                     and s.checkpoint.at_least(Checkpoint.DECLARATION_COMPLETE),
    Page.COMPLETE:         lambda s: s.is_terminal,
}

_CONTINUE_PAGE: dict[Checkpoint, Callable[[EnrolmentSession], Page]] = {
    Checkpoint.START:                     lambda s: Page.LLN,
    Checkpoint.LLN_IN_PROGRESS:           lambda s: Page.LLN,
    Checkpoint.LLN_RESULTS:               lambda s: Page.PERSONAL_DETAILS if s.is_eligible
                                                    else Page.NOT_ELIGIBLE,
    Checkpoint.PERSONAL_DETAILS_COMPLETE: lambda s: Page.DECLARATION,
    Checkpoint.DECLARATION_COMPLETE:      lambda s: Page.DOCUMENTS,
    Checkpoint.DOCUMENTS_COLLECTED:       lambda s: Page.DOCUMENTS,
    Checkpoint.ENROLLMENT_COMPLETE:       lambda s: Page.COMPLETE,
}


def precondition_met(page: Page, session: Optional[EnrolmentSession]) -> bool:
    if session is None:
        return page in (Page.START, Page.REGISTER)
    return _PRECONDITIONS[page](session)


def resolve_page(requested: Page, session: Optional[EnrolmentSession]) -> Page:
    """Page guard: ``requested`` if allowed, otherwise the earliest unmet step."""
    if session is None:
        return requested if requested in (Page.START, Page.REGISTER) else Page.START
    if session.is_terminal:
        return Page.COMPLETE
    if session.is_ineligible:
        return Page.NOT_ELIGIBLE
    if _PRECONDITIONS[requested](session):
        return requested
    redirect = session.continue_page()
    logger.info(
        "Page guard: %s requested at %s, redirecting to %s",
        requested.value, session.checkpoint.value, redirect.value,
    )
    return redirect
