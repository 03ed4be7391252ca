# streamlit_app.py – National College Australia online enrolment
# Public wizard: register → LLN assessment → personal details → declaration
# → documents → complete.  Admins use pages/1_Admin_Dashboard.py.

from __future__ import annotations

import logging
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

import streamlit as st

from nca_enrolment.config import get_settings
from nca_enrolment.enrolment import EnrolmentService
from nca_enrolment.errors import (
    AttemptLimitExceeded,
    CollaboratorUnavailable,
    EnrolmentError,
    StaleStateError,
    ValidationError,
)
from nca_enrolment.models import (
    COURSES,
    DECLARATION_POINTS,
    DELIVERY_MODES,
    REQUIRED_DOCUMENTS,
    STATES,
    Address,
    Background,
    Checkpoint,
    Compliance,
    CourseDetails,
    MultiChoiceQuestion,
    Page,
    PersonalDetails,
    Question,
    SingleChoiceQuestion,
    StudentIdentity,
)
from nca_enrolment.question_bank import questions_for, sections
from nca_enrolment.reports import assessment_report_filename
from nca_enrolment.validation import AssessmentValidator
from nca_enrolment.wizard import EnrolmentSession, resolve_page

settings = get_settings()
logging.basicConfig(
    level=settings.app.log_level,
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
)
logger = logging.getLogger("nca_enrolment.app")

# ─── Page config ─────────────────────────────────────────────────────────────
st.set_page_config(
    page_title="Enrol – National College Australia",
    page_icon="🎓",
    layout="centered",
)

# ─── Theme constants ─────────────────────────────────────────────────────────
NAVY         = "#1E3A8A"
BLUE         = "#2563EB"
BLUE_LITE    = "#EFF6FF"
GREEN        = "#107C41"
RED          = "#D13438"
ORANGE       = "#CA5010"
TEXT_PRIMARY = "#1B1B1B"
TEXT_MUTED   = "#616161"
BORDER       = "#E1DFDD"

RATING_COLOUR = {
    "Excellent":                 GREEN,
    "Good":                      BLUE,
    "Needs Some Support":        ORANGE,
    "Needs Significant Support": RED,
}

STEPS = [
    ("LLN Assessment",   {Page.LLN, Page.LLN_RESULTS, Page.NOT_ELIGIBLE}),
    ("Personal Details", {Page.PERSONAL_DETAILS}),
    ("Declaration",      {Page.DECLARATION}),
    ("Documents",        {Page.DOCUMENTS}),
    ("Complete",         {Page.COMPLETE}),
]

st.markdown(f"""
<style>
  [data-testid="stAppViewContainer"] {{ background: #F8FAFC; }}
  h1, h2, h3, h4 {{ color: {TEXT_PRIMARY} !important; font-family: 'Segoe UI', sans-serif; }}
  .stButton > button, .stFormSubmitButton > button {{
    background: {NAVY} !important; color: #fff !important; border: none !important;
    border-radius: 6px !important; font-weight: 600 !important;
  }}
  .stButton > button:hover, .stFormSubmitButton > button:hover {{ background: {BLUE} !important; }}
</style>
""", unsafe_allow_html=True)


# ─── Helpers ─────────────────────────────────────────────────────────────────

@st.cache_resource
def _service() -> EnrolmentService:
    return EnrolmentService.from_settings(settings)


def _session() -> EnrolmentSession | None:
    return st.session_state.get("enrolment")


def _go(page: Page) -> None:
    st.session_state["page"] = page.value
    st.rerun()


def _start_over() -> None:
    session = _session()
    if session is not None and not session.is_terminal:
        session.abandon()
    for key in ("enrolment", "page", "lln_section"):
        st.session_state.pop(key, None)
    st.rerun()


def _card(label: str, value: str, color: str = BLUE) -> str:
    return f"""
    <div style="background:#fff;border-left:4px solid {color};border-radius:6px;
                padding:10px 16px;margin-bottom:8px;border:1px solid {BORDER};">
      <div style="color:{TEXT_MUTED};font-size:0.7rem;font-weight:600;text-transform:uppercase;
                  letter-spacing:.06em;margin-bottom:3px;">{label}</div>
      <div style="color:{color};font-size:1.3rem;font-weight:700;">{value}</div>
    </div>"""


def _header(title: str, subtitle: str = "") -> None:
    st.markdown(f"""
    <div style="margin-bottom:8px;">
      <p style="color:{NAVY};font-weight:700;margin:0;">National College Australia</p>
      <h2 style="margin:0;">{title}</h2>
      <p style="color:{TEXT_MUTED};margin:0;font-size:0.9rem;">{subtitle}</p>
    </div>""", unsafe_allow_html=True)


def _step_progress(page: Page) -> None:
    current = next((i for i, (_, pages) in enumerate(STEPS) if page in pages), None)
    if current is None:
        return
    cols = st.columns(len(STEPS))
    for i, (label, _) in enumerate(STEPS):
        mark = "✅" if i < current else ("🔵" if i == current else "⚪")
        cols[i].markdown(f"<div style='text-align:center;font-size:0.8rem;'>{mark}<br/>{label}</div>",
                         unsafe_allow_html=True)
    st.markdown("---")


def _show_error(exc: EnrolmentError) -> None:
    if isinstance(exc, ValidationError):
        for issue in exc.issues:
            st.error(getattr(issue, "message", str(issue)))
    elif isinstance(exc, CollaboratorUnavailable):
        logger.warning("Collaborator unavailable: %s", exc.collaborator)
        st.error(exc.user_message)
    else:
        st.error(exc.user_message)


def _answer_widget(q: Question, current):
    label = f"**{q.id[1:]}.** {q.prompt}"
    if q.hint:
        st.info(q.hint)
    if isinstance(q, MultiChoiceQuestion):
        return st.multiselect(label, list(q.options), default=current or [], key=f"ans_{q.id}")
    if isinstance(q, SingleChoiceQuestion):
        options = list(q.options)
        index = options.index(current) if current in options else None
        return st.radio(label, options, index=index, key=f"ans_{q.id}", horizontal=len(options) <= 4)
    return st.text_input(label, value=current or "", key=f"ans_{q.id}")


# ─── Pages ───────────────────────────────────────────────────────────────────

def _render_start() -> None:
    _header("Student Enrolment", "Start your enrolment in a few simple steps.")
    st.markdown("""
    1. **LLN assessment** – a short Language, Literacy and Numeracy check (22 questions).
    2. **Personal details** – contact, course and background information.
    3. **Declaration** – read and sign the student declaration.
    4. **Documents** – upload your passport, visa, photo ID, USI email and a recent photo.
    """)
    st.caption(f"You can attempt the LLN assessment up to {settings.policy.max_attempts} times.")
    session = _session()
    if session is not None and session.checkpoint == Checkpoint.LLN_IN_PROGRESS:
        if st.button("Resume LLN Assessment →", use_container_width=True):
            try:
                page = _service().resume_assessment(session)
            except EnrolmentError as exc:
                _show_error(exc)
                return
            _go(page)
    if st.button("Start Enrolment →", use_container_width=True):
        _go(Page.REGISTER)


def _render_register() -> None:
    _header("Register", "Tell us who you are before starting the LLN assessment.")
    with st.form("register_form"):
        c1, c2 = st.columns(2)
        first = c1.text_input("First name")
        last = c2.text_input("Last name")
        email = st.text_input("Email")
        dob = st.text_input("Date of birth", placeholder="YYYY-MM-DD")
        submitted = st.form_submit_button("Continue to LLN Assessment →", use_container_width=True)

    if submitted:
        identity = StudentIdentity(first_name=first, last_name=last, email=email, date_of_birth=dob)
        try:
            session = _service().register(identity)
        except EnrolmentError as exc:
            _show_error(exc)
            return
        st.session_state["enrolment"] = session
        st.session_state["lln_section"] = 0
        _go(Page.LLN)


def _render_lln(session: EnrolmentSession) -> None:
    _step_progress(Page.LLN)
    all_sections = sections()
    idx = min(st.session_state.get("lln_section", 0), len(all_sections) - 1)
    section = all_sections[idx]
    _header("LLN Assessment", f"Section {idx + 1} of {len(all_sections)}: {section.value}")
    if session.notice:
        st.success(session.notice)
        session.notice = ""
    st.progress((idx + 1) / len(all_sections))

    with st.form(f"lln_{section.name}"):
        answers = {q.id: _answer_widget(q, session.responses.get(q.id)) for q in questions_for(section)}
        c_back, c_next = st.columns(2)
        back = c_back.form_submit_button("← Previous", disabled=idx == 0, use_container_width=True)
        is_last = idx == len(all_sections) - 1
        nxt = c_next.form_submit_button("Submit Assessment" if is_last else "Next →",
                                        use_container_width=True)

    answers = {k: v for k, v in answers.items() if v is not None}
    if back:
        session.save_responses(answers)
        st.session_state["lln_section"] = idx - 1
        st.rerun()
    if not nxt:
        return

    check = AssessmentValidator().check_section(section, answers)
    if check.blocked:
        for issue in check.blocking:
            st.error(issue.message)
        return
    session.save_responses(answers)
    if not is_last:
        st.session_state["lln_section"] = idx + 1
        st.rerun()

    try:
        with st.spinner("Scoring your assessment…"):
            result = _service().submit_assessment(session, {})
    except StaleStateError as exc:
        _go(exc.redirect_to)
    except AttemptLimitExceeded as exc:
        st.error(exc.user_message)
        return
    except EnrolmentError as exc:
        _show_error(exc)
        return
    st.session_state["lln_section"] = 0
    _go(Page.LLN_RESULTS if result.eligible else Page.NOT_ELIGIBLE)


def _render_results_summary(session: EnrolmentSession) -> None:
    result = session.score
    colour = RATING_COLOUR.get(result.rating.value, BLUE)
    c1, c2, c3 = st.columns(3)
    c1.markdown(_card("Overall Score", f"{result.overall}%", colour), unsafe_allow_html=True)
    c2.markdown(_card("Rating", result.rating.value, colour), unsafe_allow_html=True)
    c3.markdown(_card("Eligibility", result.eligibility_label, GREEN if result.eligible else RED),
                unsafe_allow_html=True)
    with st.expander("Section breakdown", expanded=True):
        for label, pct in result.per_section.items():
            st.write(f"**{label}** – {pct}%")
            st.progress(pct / 100)
    try:
        pdf = _service().assessment_report(session)
    except EnrolmentError as exc:
        _show_error(exc)
    else:
        st.download_button("📄 Download LLN Report (PDF)", pdf,
                           file_name=assessment_report_filename(session.student_id),
                           mime="application/pdf")


def _render_lln_results(session: EnrolmentSession) -> None:
    _step_progress(Page.LLN_RESULTS)
    _header("Your LLN Results", "Congratulations – you are eligible to continue your enrolment.")
    _render_results_summary(session)
    st.caption(f"Attempt {session.attempt_count} of {settings.policy.max_attempts}.")
    if st.button("Continue to Personal Details →", use_container_width=True):
        _go(Page.PERSONAL_DETAILS)


def _render_not_eligible(session: EnrolmentSession) -> None:
    _step_progress(Page.NOT_ELIGIBLE)
    _header("Additional Support Recommended",
            "Your result is below the level needed to start the course right now.")
    _render_results_summary(session)
    st.info(session.score.recommendation)
    remaining = max(settings.policy.max_attempts - session.attempt_count, 0)
    st.markdown(
        f"We recommend speaking with our student support team on **{settings.app.support_phone}** "
        f"or **{settings.app.support_email}** to discuss your options."
    )
    if remaining > 0:
        st.caption(f"You have {remaining} attempt(s) remaining.")
        if st.button("Retake LLN Assessment", use_container_width=True):
            try:
                _service().retake(session)
            except EnrolmentError as exc:
                _show_error(exc)
                return
            st.session_state["lln_section"] = 0
            _go(Page.LLN)
    else:
        st.error(AttemptLimitExceeded.user_message)
    if st.button("Start over", type="secondary"):
        _start_over()


def _render_personal_details(session: EnrolmentSession) -> None:
    _step_progress(Page.PERSONAL_DETAILS)
    _header("Personal Details", "All fields marked * are required.")
    d = session.draft
    pd_ = d.personal_details or PersonalDetails(
        first_name=session.identity.first_name, last_name=session.identity.last_name,
        email=session.identity.email, date_of_birth=session.identity.date_of_birth,
    )
    course = d.course_details or CourseDetails()
    bg = d.background or Background()
    usi_current = d.compliance.usi if d.compliance else ""

    def _idx(options: list[str], value: str) -> int | None:
        return options.index(value) if value in options else None

    with st.form("personal_details_form"):
        st.subheader("About you")
        c1, c2 = st.columns(2)
        title = c1.selectbox("Title *", ["Mr", "Mrs", "Ms", "Miss", "Dr"],
                             index=_idx(["Mr", "Mrs", "Ms", "Miss", "Dr"], pd_.title))
        gender = c2.selectbox("Gender *", ["Male", "Female", "Other"],
                              index=_idx(["Male", "Female", "Other"], pd_.gender))
        c1, c2, c3 = st.columns(3)
        first = c1.text_input("First name *", pd_.first_name)
        middle = c2.text_input("Middle name", pd_.middle_name)
        last = c3.text_input("Last name *", pd_.last_name)
        c1, c2 = st.columns(2)
        dob = c1.text_input("Date of birth *", pd_.date_of_birth, placeholder="YYYY-MM-DD")
        mobile = c2.text_input("Mobile *", pd_.mobile)
        email = st.text_input("Email *", pd_.email)

        st.subheader("Address")
        a = pd_.address
        c1, c2 = st.columns([1, 3])
        house = c1.text_input("Unit / house no.", a.house_number)
        street = c2.text_input("Street name *", a.street_name)
        c1, c2, c3 = st.columns([2, 1, 1])
        suburb = c1.text_input("Suburb *", a.suburb)
        state = c2.selectbox("State *", STATES, index=_idx(STATES, a.state))
        postcode = c3.text_input("Postcode *", a.postcode)
        postal = st.text_input("Postal address (if different)", a.postal_address)

        st.subheader("Course")
        course_name = st.selectbox("Course *", COURSES, index=_idx(COURSES, course.course_name))
        c1, c2 = st.columns(2)
        mode = c1.selectbox("Delivery mode", DELIVERY_MODES,
                            index=_idx(DELIVERY_MODES, course.delivery_mode) or 0)
        start = c2.text_input("Preferred start date *", course.start_date, placeholder="YYYY-MM-DD")

        st.subheader("Background")
        c1, c2, c3 = st.columns(3)
        ec_name = c1.text_input("Emergency contact *", bg.emergency_contact_name)
        ec_rel = c2.text_input("Relationship", bg.emergency_contact_relation)
        ec_phone = c3.text_input("Contact phone", bg.emergency_contact_phone)
        c1, c2 = st.columns(2)
        cob = c1.text_input("Country of birth *", bg.country_of_birth)
        coc = c2.text_input("Country of citizenship", bg.country_of_citizenship)
        citizen = st.checkbox("I am an Australian citizen", bg.australian_citizen)
        c1, c2 = st.columns(2)
        language = c1.text_input("Main language spoken at home", bg.main_language)
        proficiency = c2.selectbox("English proficiency", ["Very well", "Well", "Not well", "Not at all"],
                                   index=_idx(["Very well", "Well", "Not well", "Not at all"],
                                              bg.english_proficiency))
        aboriginal = st.selectbox("Aboriginal or Torres Strait Islander origin",
                                  ["No", "Aboriginal", "Torres Strait Islander", "Both"],
                                  index=_idx(["No", "Aboriginal", "Torres Strait Islander", "Both"],
                                             bg.aboriginal_status))
        employment = st.text_input("Employment status", bg.employment_status)
        c1, c2 = st.columns(2)
        school = c1.text_input("Secondary school", bg.secondary_school)
        level = c2.text_input("Highest school level completed", bg.school_level)
        quals = st.text_input("Prior qualifications", bg.qualifications)
        disability = st.text_input("Disability, impairment or long-term condition", bg.disability)
        reason = st.text_area("Main reason for undertaking this course", bg.course_reason)

        st.subheader("Unique Student Identifier (USI)")
        usi = st.text_input("USI *", usi_current)

        submitted = st.form_submit_button("Continue to Declaration →", use_container_width=True)

    if st.button("← Back to LLN results"):
        _go(Page.LLN_RESULTS)
    if not submitted:
        return

    personal = PersonalDetails(
        title=title or "", gender=gender or "", first_name=first, middle_name=middle,
        last_name=last, date_of_birth=dob, mobile=mobile, email=email,
        address=Address(house_number=house, street_name=street, suburb=suburb,
                        postcode=postcode, state=state or "", postal_address=postal),
    )
    course_details = CourseDetails(course_name=course_name or "", delivery_mode=mode, start_date=start)
    background = Background(
        emergency_contact_name=ec_name, emergency_contact_relation=ec_rel,
        emergency_contact_phone=ec_phone, country_of_birth=cob, country_of_citizenship=coc,
        australian_citizen=citizen, main_language=language, english_proficiency=proficiency or "",
        aboriginal_status=aboriginal or "", employment_status=employment, secondary_school=school,
        school_level=level, qualifications=quals, disability=disability, course_reason=reason,
    )
    try:
        page = _service().submit_personal_details(session, personal, course_details, background, usi)
    except StaleStateError as exc:
        _go(exc.redirect_to)
    except EnrolmentError as exc:
        _show_error(exc)
        return
    _go(page)


def _render_declaration(session: EnrolmentSession) -> None:
    _step_progress(Page.DECLARATION)
    _header("Student Declaration", "Please read each point carefully.")
    comp = session.draft.compliance or Compliance()
    with st.container(border=True):
        for i, point in enumerate(DECLARATION_POINTS, start=1):
            st.markdown(f"{i}. {point}")

    with st.form("declaration_form"):
        read_policy = st.checkbox("I have read the student policies and procedures", comp.read_policy)
        read_handbook = st.checkbox("I have read the student handbook", comp.read_handbook)
        agrees = st.checkbox(
            "I have read, understood, and agree to all the above declarations and conditions",
            comp.agrees_to_declaration,
        )
        c1, c2 = st.columns([2, 1])
        signature = c1.text_input("Signature (type your full name)", comp.signature_name)
        sig_date = c2.text_input("Date", comp.signature_date or date.today().isoformat())
        submitted = st.form_submit_button("Continue to Documents →", use_container_width=True)

    if st.button("← Back to Personal Details"):
        _go(Page.PERSONAL_DETAILS)
    if not submitted:
        return
    compliance = Compliance(
        read_policy=read_policy, read_handbook=read_handbook, agrees_to_declaration=agrees,
        signature_name=signature, signature_date=sig_date,
    )
    try:
        page = _service().submit_declaration(session, compliance)
    except StaleStateError as exc:
        _go(exc.redirect_to)
    except EnrolmentError as exc:
        _show_error(exc)
        return
    _go(page)


def _render_documents(session: EnrolmentSession) -> None:
    _step_progress(Page.DOCUMENTS)
    limit_mb = settings.policy.max_upload_bytes // (1024 * 1024)
    _header("Upload Documents", f"JPG, PNG or PDF, up to {limit_mb}MB each.")

    for doc_type, label in REQUIRED_DOCUMENTS.items():
        with st.container(border=True):
            uploaded_url = session.draft.documents.get(doc_type)
            st.markdown(f"**{label}** {'✅' if uploaded_url else ''}")
            upload = st.file_uploader(label, type=["jpg", "jpeg", "png", "pdf"],
                                      key=f"upload_{doc_type.value}", label_visibility="collapsed")
            if upload is not None and st.button(f"Upload {label}", key=f"btn_{doc_type.value}"):
                try:
                    _service().upload_document(session, doc_type, upload.name,
                                               upload.getvalue(), upload.type or "")
                except StaleStateError as exc:
                    _go(exc.redirect_to)
                except EnrolmentError as exc:
                    _show_error(exc)
                else:
                    st.rerun()

    missing = session.draft.missing_documents
    if missing:
        st.caption("Still needed: " + ", ".join(d.label for d in missing))
    c_back, c_submit = st.columns(2)
    if c_back.button("← Back to Declaration", use_container_width=True):
        _go(Page.DECLARATION)
    if c_submit.button("Submit Enrolment", disabled=bool(missing), use_container_width=True):
        try:
            with st.spinner("Submitting your enrolment…"):
                page = _service().submit_enrolment(session)
        except StaleStateError as exc:
            _go(exc.redirect_to)
        except EnrolmentError as exc:
            _show_error(exc)
            return
        _go(page)


def _render_complete(session: EnrolmentSession) -> None:
    _step_progress(Page.COMPLETE)
    _header("Enrolment Submitted 🎉", "Thank you – your application is now with our admissions team.")
    st.success(f"Your student ID is **{session.student_id}**. Please keep it for your records.")
    st.markdown(
        "Our team will review your documents and contact you within 2–3 business days. "
        f"Questions? Email **{settings.app.support_email}** or call **{settings.app.support_phone}**."
    )
    if st.button("Start a new enrolment"):
        _start_over()


# ─── Router ──────────────────────────────────────────────────────────────────

_session_obj = _session()
_requested = Page(st.session_state.get("page", Page.START.value))
_page = resolve_page(_requested, _session_obj)
if _page != _requested:
    st.session_state["page"] = _page.value
if _session_obj is not None:
    _session_obj.page = _page

if _page == Page.START:
    _render_start()
elif _page == Page.REGISTER:
    _render_register()
elif _page == Page.LLN:
    _render_lln(_session_obj)
elif _page == Page.LLN_RESULTS:
    _render_lln_results(_session_obj)
elif _page == Page.NOT_ELIGIBLE:
    _render_not_eligible(_session_obj)
elif _page == Page.PERSONAL_DETAILS:
    _render_personal_details(_session_obj)
elif _page == Page.DECLARATION:
    _render_declaration(_session_obj)
elif _page == Page.DOCUMENTS:
    _render_documents(_session_obj)
elif _page == Page.COMPLETE:
    _render_complete(_session_obj)
