"""
Data models for the NCA enrolment wizard.

Questions and identities are plain (frozen) dataclasses — they are inputs
that never leave the process.  Everything that is persisted, rendered into a
PDF or carried across Streamlit reruns is a pydantic model so it can be
round-tripped through JSON with ``model_dump_json`` / ``model_validate_json``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ─── Enumerations ────────────────────────────────────────────────────────────

class Section(str, Enum):
    """LLN assessment sections, in presentation order."""
    LEARNING         = "Learning"
    READING          = "Reading"
    WRITING          = "Writing"
    NUMERACY         = "Numeracy"
    DIGITAL_LITERACY = "Digital Literacy"


class ResponseKind(str, Enum):
    TEXT          = "text"
    NUMBER        = "number"
    EMAIL         = "email"
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE  = "multi_choice"


class Rating(str, Enum):
    EXCELLENT                 = "Excellent"
    GOOD                      = "Good"
    NEEDS_SOME_SUPPORT        = "Needs Some Support"
    NEEDS_SIGNIFICANT_SUPPORT = "Needs Significant Support"


class Checkpoint(str, Enum):
    """Wizard progress marker. Declaration order is the progression order."""
    START                     = "start"
    LLN_IN_PROGRESS           = "lln-in-progress"
    LLN_RESULTS               = "lln-results"
    PERSONAL_DETAILS_COMPLETE = "personal-details-complete"
    DECLARATION_COMPLETE      = "declaration-complete"
    DOCUMENTS_COLLECTED       = "documents-collected"
    ENROLLMENT_COMPLETE       = "enrollment-complete"

    @property
    def rank(self) -> int:
        return list(Checkpoint).index(self)

    def at_least(self, other: "Checkpoint") -> bool:
        return self.rank >= other.rank


class Page(str, Enum):
    START            = "start"
    REGISTER         = "register"
    LLN              = "lln"
    LLN_RESULTS      = "lln-results"
    NOT_ELIGIBLE     = "not-eligible"
    PERSONAL_DETAILS = "personal-details"
    DECLARATION      = "declaration"
    DOCUMENTS        = "documents"
    COMPLETE         = "complete"


class RecordStatus(str, Enum):
    REGISTERED   = "Registered"
    IN_PROGRESS  = "In Progress"
    MAX_ATTEMPTS = "Max Attempts Reached"
    RESET        = "Reset by Admin"
    ENROLLED     = "Enrolled"


class VerificationStatus(str, Enum):
    PENDING    = "Pending Review"
    VERIFIED   = "Verified"
    INCOMPLETE = "Incomplete"
    REJECTED   = "Rejected"


class DocumentType(str, Enum):
    PASSPORT_BIO = "passport_bio"
    VISA_COPY    = "visa_copy"
    PHOTO_ID     = "photo_id"
    USI_EMAIL    = "usi_email"
    RECENT_PHOTO = "recent_photo"

    @property
    def label(self) -> str:
        return REQUIRED_DOCUMENTS[self]


class AdminRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN       = "admin"
    VIEWER      = "viewer"


# ─── Reference data ──────────────────────────────────────────────────────────

COURSES: list[str] = [
    "CHC33021 Certificate III in Individual Support",
    "CHC43015 Certificate IV in Ageing Support",
    "CHC43121 Certificate IV in Disability",
    "HLT33115 Certificate III in Health Services Assistance",
]

STATES: list[str] = ["NSW", "VIC", "QLD", "WA", "SA", "TAS", "ACT", "NT"]

DELIVERY_MODES: list[str] = ["Blended", "Online", "Face to Face"]

REQUIRED_DOCUMENTS: dict[DocumentType, str] = {
    DocumentType.PASSPORT_BIO: "Passport Bio Page",
    DocumentType.VISA_COPY:    "Current VISA Copy",
    DocumentType.PHOTO_ID:     "Photo ID",
    DocumentType.USI_EMAIL:    "USI Creation Email",
    DocumentType.RECENT_PHOTO: "Recent Photo",
}

ALLOWED_UPLOAD_TYPES: dict[str, str] = {
    "image/jpeg":      "jpg",
    "image/png":       "png",
    "application/pdf": "pdf",
}

DECLARATION_POINTS: list[str] = [
    "Students need to be aware about the schedule of the classes and finish all the classes as per the given timetable in the student portal.",
    "Students need to attend at least one class per week.",
    "Students who are not disciplined in the classes will not be allowed to continue the course.",
    "Students who want to discontinue the classes for a week or more need to contact our team and discuss their situation.",
    "For the practical classes (Manual Handling and First Aid) booking is essential. Once booked with the consent of the student, missed practical classes must be retaken at the student's own expense.",
    "Students will do the Manual Handling and First Aid class one or two weeks prior to their placement, provided the pre-requisite documents were submitted in the first two or three weeks.",
    "Placement is an integral part of the course. Students are placed in a queue for placement after completing their theory classes and submitting the placement prerequisite documents.",
    "Students need to be fully available from Monday to Friday for their placement, excluding public holidays, and be willing to do any shifts provided by the facility.",
    "Students cannot step back once the placement is organised with their consent. If they do, National College Australia is not liable to provide a second placement opportunity.",
    "If the student does not adhere to the guidelines given during their placement, the placement may be cancelled by the host organisation or by the college.",
    "Work placement follows the college's placement criteria: attitude, reliability, punctuality, location of residence, flexibility, communication skills and overall course performance.",
    "Students need to complete all the assignments and must attend all the modules and practical classes in order to get their placements.",
    "Students need to be ready for a travel time of at least 1 hour to their placement facility.",
    "Students are expected to submit their placement prerequisite documents within two or three weeks of their enrolment.",
    "Students need to submit their placement log book within one month after their placement. Failing to submit the logbook will lead to cancellation of the enrolment.",
    "Classes are strictly supervised: camera on at all times, attend the complete session, be respectful, and no driving, travelling, working, eating or drinking during class.",
    "Students are required to inform the college via email within one week of any change to their visa conditions or address.",
]


# ─── LLN questions (tagged variants) ─────────────────────────────────────────

@dataclass(frozen=True)
class TextQuestion:
    id:              str
    section:         Section
    prompt:          str
    required:        bool = True
    hint:            Optional[str] = None
    expected_answer: Optional[str] = None
    response_kind: ClassVar[ResponseKind] = ResponseKind.TEXT


@dataclass(frozen=True)
class NumberQuestion:
    id:              str
    section:         Section
    prompt:          str
    required:        bool = True
    hint:            Optional[str] = None
    expected_answer: Optional[str] = None
    response_kind: ClassVar[ResponseKind] = ResponseKind.NUMBER


@dataclass(frozen=True)
class EmailQuestion:
    id:       str
    section:  Section
    prompt:   str
    required: bool = True
    hint:     Optional[str] = None
    response_kind: ClassVar[ResponseKind] = ResponseKind.EMAIL


@dataclass(frozen=True)
class SingleChoiceQuestion:
    id:              str
    section:         Section
    prompt:          str
    options:         tuple[str, ...] = ()
    required:        bool = True
    hint:            Optional[str] = None
    expected_answer: Optional[str] = None
    response_kind: ClassVar[ResponseKind] = ResponseKind.SINGLE_CHOICE


@dataclass(frozen=True)
class MultiChoiceQuestion:
    id:       str
    section:  Section
    prompt:   str
    options:  tuple[str, ...] = ()
    required: bool = True
    hint:     Optional[str] = None
    response_kind: ClassVar[ResponseKind] = ResponseKind.MULTI_CHOICE


Question = Union[
    TextQuestion, NumberQuestion, EmailQuestion,
    SingleChoiceQuestion, MultiChoiceQuestion,
]

# question id → text answer, or list of selected options for multi-choice
ResponseSet = dict[str, Union[str, list[str]]]


# ─── Identity ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StudentIdentity:
    """The four fields collected on the registration page."""
    first_name:    str
    last_name:     str
    email:         str
    date_of_birth: str   # YYYY-MM-DD

    @property
    def normalised_email(self) -> str:
        return self.email.strip().lower()

    @property
    def full_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}"

    @property
    def folder_name(self) -> str:
        """Folder naming convention: First_Last_YYYY-MM-DD."""
        return f"{self.first_name.strip()}_{self.last_name.strip()}_{self.date_of_birth}"


# ─── Scoring output ──────────────────────────────────────────────────────────

_RECOMMENDATION_ELIGIBLE = (
    "Student has demonstrated sufficient language, literacy, and numeracy "
    "skills to undertake the chosen course. No additional support required."
)
_RECOMMENDATION_SUPPORT = (
    "Student requires additional support in language, literacy, and numeracy "
    "skills before commencing the course. We recommend enrolling in foundation "
    "courses or seeking tutoring support."
)


class ScoreResult(BaseModel):
    """Outcome of scoring one LLN submission. Immutable once produced."""
    model_config = ConfigDict(frozen=True)

    per_section:   dict[str, int] = Field(default_factory=dict,
                                          description="Section label → percentage 0–100")
    overall:       int = Field(ge=0, le=100)
    rating:        Rating
    eligible:      bool
    completed_at:  datetime
    correct_count: int = 0
    total_count:   int = 0
    credited:      list[str] = Field(default_factory=list,
                                     description="Ids of questions that earned credit")

    @property
    def recommendation(self) -> str:
        return _RECOMMENDATION_ELIGIBLE if self.eligible else _RECOMMENDATION_SUPPORT

    @property
    def eligibility_label(self) -> str:
        return "ELIGIBLE" if self.eligible else "NOT ELIGIBLE"


# ─── Record-store rows ───────────────────────────────────────────────────────

class StudentRecord(BaseModel):
    student_id:      str
    first_name:      str
    last_name:       str
    email:           str
    date_of_birth:   str
    folder_id:       str = ""
    attempt_count:   int = Field(default=0, ge=0)
    is_blocked:      bool = False
    registered_at:   datetime
    last_attempt_at: Optional[datetime] = None
    status:          RecordStatus = RecordStatus.REGISTERED
    reset_at:        Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ─── Enrolment draft ─────────────────────────────────────────────────────────

class Address(BaseModel):
    house_number:   str = ""
    street_name:    str = ""
    suburb:         str = ""
    postcode:       str = ""
    state:          str = ""
    postal_address: str = ""

    def one_line(self) -> str:
        parts = [f"{self.house_number} {self.street_name}".strip(), self.suburb,
                 f"{self.state} {self.postcode}".strip()]
        return ", ".join(p for p in parts if p)


class PersonalDetails(BaseModel):
    title:         str = ""
    gender:        str = ""
    first_name:    str = ""
    middle_name:   str = ""
    last_name:     str = ""
    date_of_birth: str = ""
    mobile:        str = ""
    email:         str = ""
    address:       Address = Field(default_factory=Address)


class CourseDetails(BaseModel):
    course_name:   str = ""
    delivery_mode: str = "Blended"
    start_date:    str = ""


class Background(BaseModel):
    emergency_contact_name:     str = ""
    emergency_contact_phone:    str = ""
    emergency_contact_relation: str = ""
    country_of_birth:           str = ""
    country_of_citizenship:     str = ""
    main_language:              str = ""
    english_proficiency:        str = ""
    australian_citizen:         bool = False
    aboriginal_status:          str = ""
    employment_status:          str = ""
    secondary_school:           str = ""
    school_level:               str = ""
    qualifications:             str = ""
    disability:                 str = ""
    course_reason:              str = ""


class Compliance(BaseModel):
    usi:                   str = ""
    read_policy:           bool = False
    read_handbook:         bool = False
    agrees_to_declaration: bool = False
    signature_name:        str = ""
    signature_date:        str = ""


class EnrollmentDraft(BaseModel):
    """Everything collected after the LLN step, filled in page by page."""
    personal_details: Optional[PersonalDetails] = None
    course_details:   Optional[CourseDetails] = None
    background:       Optional[Background] = None
    compliance:       Optional[Compliance] = None
    documents:        dict[DocumentType, str] = Field(default_factory=dict,
                                                      description="Document type → stored file URL")
    status:           Checkpoint = Checkpoint.START

    @property
    def missing_documents(self) -> list[DocumentType]:
        return [d for d in REQUIRED_DOCUMENTS if d not in self.documents]
