"""
validation.py — Field validation for every wizard step
======================================================
Rule-based checks run before any state is advanced or persisted.

Issue levels
------------
BLOCK   – the step does not advance; the page re-prompts.
WARN    – the step advances; the page shows a notice.

Rules implemented
-----------------
Identity (register page):
  V-01  Required field is empty
  V-02  Email does not look like name@domain.tld
  V-03  Date of birth is not YYYY-MM-DD
  V-04  Date of birth is not a real past date

LLN (per section):
  V-05  Required question left unanswered

Personal details:
  V-01  Required field is empty
  V-06  Postcode is not 4 digits
  V-07  State is not an Australian state/territory code
  V-08  Course is not in the course list
  V-09  Mobile number looks unusual                          [WARN]
  V-15  USI is not 10 letters/digits                         [WARN]

Declaration:
  V-10  Policy / handbook / declaration not acknowledged
  V-11  Signature name missing

Uploads:
  V-12  File type not JPG, PNG or PDF
  V-13  File larger than the upload limit
  V-14  Empty file
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from nca_enrolment.errors import ValidationError
from nca_enrolment.models import (
    ALLOWED_UPLOAD_TYPES,
    COURSES,
    STATES,
    Background,
    Compliance,
    CourseDetails,
    PersonalDetails,
    ResponseSet,
    Section,
    StudentIdentity,
)
from nca_enrolment.question_bank import QUESTION_BANK, questions_for
from nca_enrolment.scoring import is_answered


# ─── Result types ────────────────────────────────────────────────────────────

class IssueLevel(str, Enum):
    BLOCK = "BLOCK"
    WARN  = "WARN"


@dataclass
class FieldIssue:
    code:    str
    level:   IssueLevel
    message: str
    field:   str = ""


@dataclass
class ValidationResult:
    issues: list[FieldIssue] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(i.level == IssueLevel.BLOCK for i in self.issues)

    @property
    def passed(self) -> bool:
        return not self.blocked

    @property
    def warnings(self) -> list[FieldIssue]:
        return [i for i in self.issues if i.level == IssueLevel.WARN]

    @property
    def blocking(self) -> list[FieldIssue]:
        return [i for i in self.issues if i.level == IssueLevel.BLOCK]

    def for_field(self, name: str) -> list[FieldIssue]:
        return [i for i in self.issues if i.field == name]

    def summary(self) -> str:
        if not self.issues:
            return "✅ All checks passed."
        return "\n".join(
            f"{'🚫' if i.level == IssueLevel.BLOCK else '⚠️'} [{i.code}] {i.message}"
            for i in self.issues
        )

    def raise_for_issues(self) -> "ValidationResult":
        """Raise ValidationError when any BLOCK issue is present."""
        if self.blocked:
            raise ValidationError(self.blocking)
        return self


def merge(*results: ValidationResult) -> ValidationResult:
    issues: list[FieldIssue] = []
    for r in results:
        issues.extend(r.issues)
    return ValidationResult(issues=issues)


# ─── Patterns ────────────────────────────────────────────────────────────────

EMAIL_RE    = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DOB_RE      = re.compile(r"^\d{4}-\d{2}-\d{2}$")
POSTCODE_RE = re.compile(r"^\d{4}$")
MOBILE_RE   = re.compile(r"^(\+?61|0)4\d{8}$")
USI_RE      = re.compile(r"^[A-Za-z0-9]{10}$")


def _required(issues: list[FieldIssue], value, field_name: str, label: str) -> None:
    if value is None or not str(value).strip():
        issues.append(FieldIssue(
            code="V-01", level=IssueLevel.BLOCK, field=field_name,
            message=f"{label} is required.",
        ))


def _check_dob(issues: list[FieldIssue], dob: str, field_name: str, today: Optional[date] = None) -> None:
    if not dob or not dob.strip():
        return
    if not DOB_RE.match(dob.strip()):
        issues.append(FieldIssue(
            code="V-03", level=IssueLevel.BLOCK, field=field_name,
            message="Date of birth must be in YYYY-MM-DD format.",
        ))
        return
    try:
        parsed = datetime.strptime(dob.strip(), "%Y-%m-%d").date()
    except ValueError:
        issues.append(FieldIssue(
            code="V-04", level=IssueLevel.BLOCK, field=field_name,
            message=f"'{dob}' is not a valid calendar date.",
        ))
        return
    if parsed >= (today or date.today()):
        issues.append(FieldIssue(
            code="V-04", level=IssueLevel.BLOCK, field=field_name,
            message="Date of birth must be in the past.",
        ))


# ─── Validators ──────────────────────────────────────────────────────────────

class IdentityValidator:
    """V-01 – V-04: registration page."""

    def check(self, identity: StudentIdentity, today: Optional[date] = None) -> ValidationResult:
        issues: list[FieldIssue] = []
        _required(issues, identity.first_name,    "first_name",    "First name")
        _required(issues, identity.last_name,     "last_name",     "Last name")
        _required(issues, identity.email,         "email",         "Email")
        _required(issues, identity.date_of_birth, "date_of_birth", "Date of birth")

        if identity.email.strip() and not EMAIL_RE.match(identity.email.strip()):
            issues.append(FieldIssue(
                code="V-02", level=IssueLevel.BLOCK, field="email",
                message="Please enter a valid email address.",
            ))
        _check_dob(issues, identity.date_of_birth, "date_of_birth", today)
        return ValidationResult(issues=issues)


class AssessmentValidator:
    """V-05: every required question in a section must have an answer."""

    def check_section(self, section: Section, responses: ResponseSet) -> ValidationResult:
        issues = [
            FieldIssue(
                code="V-05", level=IssueLevel.BLOCK, field=q.id,
                message=f"Please answer question {q.id[1:]}: {q.prompt}",
            )
            for q in questions_for(section)
            if q.required and not is_answered(responses.get(q.id))
        ]
        return ValidationResult(issues=issues)

    def check_all(self, responses: ResponseSet) -> ValidationResult:
        issues = [
            FieldIssue(
                code="V-05", level=IssueLevel.BLOCK, field=q.id,
                message=f"Please answer question {q.id[1:]}: {q.prompt}",
            )
            for q in QUESTION_BANK
            if q.required and not is_answered(responses.get(q.id))
        ]
        return ValidationResult(issues=issues)


class PersonalDetailsValidator:
    """V-01, V-06 – V-09, V-15: personal details page."""

    def check(
        self,
        personal: PersonalDetails,
        course: CourseDetails,
        background: Background,
        usi: str = "",
    ) -> ValidationResult:
        issues: list[FieldIssue] = []
        for name, label in (
            ("title", "Title"), ("gender", "Gender"), ("first_name", "First name"),
            ("last_name", "Last name"), ("date_of_birth", "Date of birth"),
            ("mobile", "Mobile number"), ("email", "Email"),
        ):
            _required(issues, getattr(personal, name), name, label)

        addr = personal.address
        for name, label in (
            ("street_name", "Street name"), ("suburb", "Suburb"),
            ("postcode", "Postcode"), ("state", "State"),
        ):
            _required(issues, getattr(addr, name), f"address.{name}", label)

        _required(issues, course.course_name, "course_name", "Course")
        _required(issues, course.start_date, "start_date", "Preferred start date")
        _required(issues, background.emergency_contact_name, "emergency_contact_name", "Emergency contact")
        _required(issues, background.country_of_birth, "country_of_birth", "Country of birth")
        _required(issues, usi, "usi", "USI")

        if personal.email.strip() and not EMAIL_RE.match(personal.email.strip()):
            issues.append(FieldIssue(
                code="V-02", level=IssueLevel.BLOCK, field="email",
                message="Please enter a valid email address.",
            ))
        _check_dob(issues, personal.date_of_birth, "date_of_birth")

        if addr.postcode.strip() and not POSTCODE_RE.match(addr.postcode.strip()):
            issues.append(FieldIssue(
                code="V-06", level=IssueLevel.BLOCK, field="address.postcode",
                message="Postcode must be 4 digits.",
            ))
        if addr.state.strip() and addr.state.strip().upper() not in STATES:
            issues.append(FieldIssue(
                code="V-07", level=IssueLevel.BLOCK, field="address.state",
                message=f"State must be one of {', '.join(STATES)}.",
            ))
        if course.course_name.strip() and course.course_name not in COURSES:
            issues.append(FieldIssue(
                code="V-08", level=IssueLevel.BLOCK, field="course_name",
                message=f"'{course.course_name}' is not an offered course.",
            ))

        mobile = re.sub(r"[\s\-()]", "", personal.mobile)
        if mobile and not MOBILE_RE.match(mobile):
            issues.append(FieldIssue(
                code="V-09", level=IssueLevel.WARN, field="mobile",
                message="Mobile number does not look like an Australian mobile (04xx xxx xxx).",
            ))
        if usi.strip() and not USI_RE.match(usi.strip()):
            issues.append(FieldIssue(
                code="V-15", level=IssueLevel.WARN, field="usi",
                message="A USI is usually 10 letters and numbers. Please double-check it.",
            ))
        return ValidationResult(issues=issues)


class DeclarationValidator:
    """V-10 – V-11: declaration page."""

    def check(self, compliance: Compliance) -> ValidationResult:
        issues: list[FieldIssue] = []
        for name, label in (
            ("read_policy",           "the student policy"),
            ("read_handbook",         "the student handbook"),
            ("agrees_to_declaration", "the declaration"),
        ):
            if not getattr(compliance, name):
                issues.append(FieldIssue(
                    code="V-10", level=IssueLevel.BLOCK, field=name,
                    message=f"Please confirm you have read and accept {label}.",
                ))
        if not compliance.signature_name.strip():
            issues.append(FieldIssue(
                code="V-11", level=IssueLevel.BLOCK, field="signature_name",
                message="Please type your full name as your signature.",
            ))
        return ValidationResult(issues=issues)


class UploadValidator:
    """V-12 – V-14: document uploads."""

    def __init__(self, max_bytes: int = 10 * 1024 * 1024):
        self.max_bytes = max_bytes

    def check(self, filename: str, data: bytes, mime_type: str) -> ValidationResult:
        issues: list[FieldIssue] = []
        if mime_type not in ALLOWED_UPLOAD_TYPES:
            issues.append(FieldIssue(
                code="V-12", level=IssueLevel.BLOCK, field=filename,
                message="Invalid file type. Only JPG, PNG, and PDF files are allowed.",
            ))
        if not data:
            issues.append(FieldIssue(
                code="V-14", level=IssueLevel.BLOCK, field=filename,
                message=f"'{filename}' is empty.",
            ))
        elif len(data) > self.max_bytes:
            limit_mb = self.max_bytes / (1024 * 1024)
            issues.append(FieldIssue(
                code="V-13", level=IssueLevel.BLOCK, field=filename,
                message=f"'{filename}' is larger than {limit_mb:.0f}MB.",
            ))
        return ValidationResult(issues=issues)
