"""
pages/1_Admin_Dashboard.py – NCA admin portal.

Student list, per-student folders, LLN attempt resets, document
verification, analytics and CSV export.  Protected by the signed-token
sign-in in nca_enrolment.auth; every action re-checks the role permission.

Accounts  →  dhairya@nca.edu.au (super_admin)  |  admin@nca.edu.au (viewer)
Passwords →  bcrypt hashes in ADMIN_PASSWORD_HASHES (generate_admin_passwords.py)
"""

from __future__ import annotations

import html as _html
import json
import mimetypes as _mimetypes
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from nca_enrolment import auth
from nca_enrolment.admin import AdminService
from nca_enrolment.config import get_settings
from nca_enrolment.errors import EnrolmentError
from nca_enrolment.models import VerificationStatus

settings = get_settings()

# ─── Page config ─────────────────────────────────────────────────────────────
st.set_page_config(
    page_title="Admin Dashboard – National College Australia",
    page_icon="🔐",
    layout="wide",
)

# ─── Theme constants ─────────────────────────────────────────────────────────
CARD_BG   = "#FFFFFF"
NAVY      = "#1E3A8A"
BLUE      = "#2563EB"
PURPLE    = "#5C2D91"
GREEN     = "#107C10"
ORANGE    = "#CA5010"
RED       = "#D13438"
GREY      = "#616161"

STATUS_COLORS = {
    "Registered":           GREY,
    "In Progress":          BLUE,
    "Max Attempts Reached": RED,
    "Reset by Admin":       ORANGE,
    "Enrolled":             GREEN,
}

RATING_COLORS = {
    "Excellent":                 GREEN,
    "Good":                      BLUE,
    "Needs Some Support":        ORANGE,
    "Needs Significant Support": RED,
}

st.markdown("""
<style>
  [data-testid="stAppViewContainer"] { background: #F5F5F5; }
  [data-testid="stHeader"]           { background: #fff !important; border-bottom: 1px solid #E1DFDD; }
  h1, h2, h3, h4                     { color: #1B1B1B !important; font-family: 'Segoe UI', sans-serif; }
  .stExpander details                 { background: #FFFFFF; border-radius: 4px; border: 1px solid #E1DFDD !important; }
  .stButton > button {
    background: #1E3A8A !important; border: none !important; color: #fff !important;
    border-radius: 4px !important; font-weight: 600 !important;
  }
  .stButton > button:hover { background: #2563EB !important; }
  [data-testid="stSidebar"] {
    background: linear-gradient(180deg, #1E3A8A 0%, #172554 100%) !important;
  }
  [data-testid="stSidebar"] h1, [data-testid="stSidebar"] h2, [data-testid="stSidebar"] h3,
  [data-testid="stSidebar"] .stMarkdown p, [data-testid="stSidebar"] .stMarkdown b,
  [data-testid="stSidebar"] .stMarkdown strong { color: rgba(255,255,255,0.9) !important; }
  [data-testid="stSidebar"] .stCaption { color: rgba(255,255,255,0.6) !important; }
</style>
""", unsafe_allow_html=True)

# ─── Helpers ─────────────────────────────────────────────────────────────────

def _card(label: str, value: str, color: str = BLUE, wide: bool = False) -> str:
    w = "100%" if wide else "auto"
    return f"""
    <div style="background:{CARD_BG};border-left:4px solid {color};border-radius:4px;
                padding:10px 16px;display:inline-block;min-width:160px;width:{w};
                margin-bottom:8px;box-sizing:border-box;border:1px solid #E1DFDD;">
      <div style="color:{GREY};font-size:0.7rem;font-weight:600;text-transform:uppercase;
                  letter-spacing:.06em;margin-bottom:3px;">{label}</div>
      <div style="color:#1B1B1B;font-size:1.2rem;font-weight:700;">{value}</div>
    </div>"""


def _section_header(title: str, icon: str = "") -> None:
    st.markdown(
        f"""<h3 style="color:#1B1B1B;border-bottom:1px solid #E1DFDD;
                        padding-bottom:6px;margin-top:28px;">{icon} {title}</h3>""",
        unsafe_allow_html=True,
    )


def _badge(text: str, color: str) -> str:
    return (
        f'<span style="background:{color}15;color:{color};border:1px solid {color}40;'
        f'border-radius:12px;padding:1px 10px;font-size:0.78rem;font-weight:600;">'
        f'{_html.escape(text)}</span>'
    )


def _hex_rgba(hex_color: str, alpha: float = 1.0) -> str:
    """Convert a #RRGGBB hex color to rgba() string Plotly can use."""
    h = hex_color.lstrip("#")
    r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    return f"rgba({r},{g},{b},{alpha})"


@st.cache_resource
def _service() -> AdminService:
    svc = AdminService.from_settings(settings)
    if settings.app.seed_demo_data:
        svc.store.seed_demo_students()
    return svc


def _sign_out() -> None:
    st.session_state.pop("admin_token", None)
    st.rerun()


# ─── Login gate ──────────────────────────────────────────────────────────────

def _show_login() -> None:
    st.markdown("""
    <div style="max-width:400px;margin:80px auto 0;">
      <div style="text-align:center;margin-bottom:32px;">
        <span style="font-size:3rem;">🔐</span>
        <h2 style="color:#1B1B1B;margin-top:8px;">Admin Access</h2>
        <p style="color:#616161;font-size:0.9rem;">
          This portal is restricted to National College Australia staff.
        </p>
      </div>
    </div>
    """, unsafe_allow_html=True)

    _, col_c, _ = st.columns([1, 2, 1])
    with col_c:
        with st.form("admin_login_form", clear_on_submit=False):
            email = st.text_input("Email", placeholder="you@nca.edu.au")
            password = st.text_input("Password", type="password", placeholder="••••••••••")
            submitted = st.form_submit_button("🔓  Sign in", use_container_width=True)

        if submitted:
            try:
                st.session_state["admin_token"] = _service().login(email, password)
            except EnrolmentError as exc:
                st.error(exc.user_message)
            else:
                st.rerun()

        if not settings.auth.is_configured:
            st.warning("Admin sign-in is not configured. Set JWT_SECRET and ADMIN_PASSWORD_HASHES in .env.")


_token = st.session_state.get("admin_token")
_principal = _service().principal(_token)
if _principal is None:
    if _token:
        st.info("Your session has expired. Please sign in again.")
        st.session_state.pop("admin_token", None)
    _show_login()
    st.stop()


def _can(permission: str) -> bool:
    return auth.has_permission(_principal, permission)


# ─── Authenticated: sidebar ──────────────────────────────────────────────────
with st.sidebar:
    st.markdown("### 🔐 Admin Panel")
    st.markdown(f"Signed in as **{_principal.email}**")
    st.caption(f"Role: {_principal.role.value}")
    if st.button("Sign Out", use_container_width=True):
        _sign_out()
    st.markdown("---")
    st.markdown("**System status**")
    for _component, _status in settings.status_summary().items():
        st.markdown(f"{_component}: {_status}")
    st.markdown("---")
    st.markdown(
        "<a href='/' target='_self' style='color:#fff;font-weight:600;"
        "text-decoration:none;'>🏠 ← Back to Enrolment</a>",
        unsafe_allow_html=True,
    )


# ─── Page header ─────────────────────────────────────────────────────────────
st.markdown("""
<div style="display:flex;align-items:center;gap:12px;margin-bottom:8px;">
  <span style="font-size:2rem;">🎓</span>
  <div>
    <h1 style="color:#1B1B1B;margin:0;font-size:1.9rem;">Enrolment Admin Dashboard</h1>
    <p style="color:#616161;margin:0;font-size:0.9rem;">
      Applicants, LLN attempts, documents and enrolment analytics.
    </p>
  </div>
</div>
""", unsafe_allow_html=True)
st.markdown("---")

tab_students, tab_folders, tab_analytics, tab_audit = st.tabs(
    ["👥 Students", "📁 Student Folders", "📊 Analytics", "🧾 Audit Log"]
)


# ═════════════════════════════════════════════════════════════════════════════
# TAB 1 – Students
# ═════════════════════════════════════════════════════════════════════════════
with tab_students:
    _section_header("All Students", "👥")
    try:
        _records = _service().list_students(_token)
    except EnrolmentError as exc:
        st.error(exc.user_message)
        _records = []

    if not _records:
        st.info("No students have registered yet.")
    else:
        _rows = [
            {
                "Student ID": r.student_id,
                "Name":       r.full_name,
                "Email":      r.email,
                "DOB":        r.date_of_birth,
                "Attempts":   r.attempt_count,
                "Blocked":    "🔒" if r.is_blocked else "",
                "Status":     r.status.value,
                "Registered": r.registered_at.strftime("%Y-%m-%d %H:%M"),
                "Last Attempt": r.last_attempt_at.strftime("%Y-%m-%d %H:%M") if r.last_attempt_at else "—",
            }
            for r in _records
        ]
        _df = pd.DataFrame(_rows)

        _kc1, _kc2, _kc3, _kc4 = st.columns(4)
        _kc1.markdown(_card("Registered", str(len(_rows)), BLUE, wide=True), unsafe_allow_html=True)
        _kc2.markdown(_card("Enrolled", str(sum(r.status.value == "Enrolled" for r in _records)), GREEN, wide=True),
                      unsafe_allow_html=True)
        _kc3.markdown(_card("Blocked", str(sum(r.is_blocked for r in _records)), RED, wide=True),
                      unsafe_allow_html=True)
        _kc4.markdown(_card("Max Attempts", str(settings.policy.max_attempts), ORANGE, wide=True),
                      unsafe_allow_html=True)

        _query = st.text_input("Search", placeholder="Name, email or student ID")
        if _query:
            _q = _query.strip().lower()
            _df = _df[_df.apply(lambda row: _q in " ".join(map(str, row.values)).lower(), axis=1)]

        st.dataframe(
            _df,
            use_container_width=True,
            hide_index=True,
            column_config={
                "Student ID":   st.column_config.TextColumn("Student ID",   width="medium"),
                "Name":         st.column_config.TextColumn("Name",         width="medium"),
                "Email":        st.column_config.TextColumn("Email",        width="medium"),
                "DOB":          st.column_config.TextColumn("DOB",          width="small"),
                "Attempts":     st.column_config.ProgressColumn(
                    "Attempts", min_value=0, max_value=settings.policy.max_attempts, format="%d",
                ),
                "Blocked":      st.column_config.TextColumn("",             width="small"),
                "Status":       st.column_config.TextColumn("Status",       width="medium"),
                "Registered":   st.column_config.TextColumn("Registered",   width="medium"),
                "Last Attempt": st.column_config.TextColumn("Last Attempt", width="medium"),
            },
        )

        if _can(auth.EXPORT_DATA):
            try:
                _csv = _service().export_students_csv(_token)
            except EnrolmentError as exc:
                st.error(exc.user_message)
            else:
                st.download_button(
                    "⬇️ Export students (CSV)",
                    _csv,
                    file_name="nca_students.csv",
                    mime="text/csv",
                )

        if _can(auth.RESET_ATTEMPTS):
            _section_header("Reset LLN Attempts", "🔄")
            _with_attempts = [r for r in _records if r.attempt_count > 0]
            if not _with_attempts:
                st.caption("No student has used an attempt yet.")
            else:
                _choice = st.selectbox(
                    "Student",
                    _with_attempts,
                    format_func=lambda r: f"{r.full_name} – {r.student_id} ({r.attempt_count} attempts, {r.status.value})",
                )
                if st.button("Reset attempts to 0"):
                    try:
                        _updated = _service().reset_attempts(_token, _choice.student_id)
                    except (EnrolmentError, KeyError) as exc:
                        st.error(getattr(exc, "user_message", f"Unknown student {exc}"))
                    else:
                        st.success(f"{_updated.full_name} can now retake the LLN assessment.")
                        st.rerun()


# ═════════════════════════════════════════════════════════════════════════════
# TAB 2 – Student Folders
# ═════════════════════════════════════════════════════════════════════════════
with tab_folders:
    _section_header("Student Folder", "📁")
    if not _can(auth.VIEW_FOLDERS):
        st.info("Your role does not include access to student folders.")
    elif not _records:
        st.info("No student folders yet.")
    else:
        _sel = st.selectbox("Student", _records, key="folder_student",
                            format_func=lambda r: f"{r.full_name} – {r.student_id}")
        try:
            _folder = _service().student_folder(_token, _sel.student_id)
        except (EnrolmentError, KeyError) as exc:
            st.error(getattr(exc, "user_message", f"Unknown student {exc}"))
            _folder = None

        if _folder is not None:
            _rec = _folder.record
            st.markdown(
                f"**{_html.escape(_rec.full_name)}** &nbsp; "
                f"{_badge(_rec.status.value, STATUS_COLORS.get(_rec.status.value, GREY))} &nbsp; "
                f"<code>{_html.escape(_folder.shareable_link)}</code>",
                unsafe_allow_html=True,
            )

            _c1, _c2 = st.columns(2)
            with _c1:
                st.markdown("**LLN attempts**")
                if _folder.assessments:
                    st.dataframe(
                        pd.DataFrame(_folder.assessments)[
                            ["attempt_number", "overall", "rating", "eligible", "completed_at"]
                        ],
                        use_container_width=True,
                        hide_index=True,
                        column_config={
                            "attempt_number": st.column_config.NumberColumn("#", width="small"),
                            "overall":        st.column_config.NumberColumn("Score %", width="small"),
                            "rating":         st.column_config.TextColumn("Rating"),
                            "eligible":       st.column_config.CheckboxColumn("Eligible", width="small"),
                            "completed_at":   st.column_config.TextColumn("Completed"),
                        },
                    )
                else:
                    st.caption("No LLN attempts recorded.")
            with _c2:
                st.markdown("**Files**")
                if _folder.files:
                    for _i, _f in enumerate(_folder.files):
                        st.markdown(f"📄 `{_f.path}` · {_f.size_bytes / 1024:.0f} KB · "
                                    f"{_f.modified_at:%Y-%m-%d %H:%M}")
                        try:
                            _data = _service().download_file(_token, _rec.student_id, _f.path)
                        except (EnrolmentError, OSError, ValueError) as exc:
                            st.caption(getattr(exc, "user_message", "File unavailable."))
                            continue
                        st.download_button(
                            "⬇️ Download",
                            _data,
                            file_name=_f.name,
                            mime=_mimetypes.guess_type(_f.name)[0] or "application/octet-stream",
                            key=f"dl_{_rec.student_id}_{_i}",
                        )
                else:
                    st.caption("Folder is empty.")

            if _folder.documents:
                st.markdown("**Document checklist**")
                _docs = _folder.documents
                st.markdown(
                    " ".join(
                        _badge(k.replace("_", " ").title(), GREEN if _docs.get(k) else RED)
                        for k in ("passport_bio", "visa_copy", "photo_id", "usi_email", "recent_photo")
                    ),
                    unsafe_allow_html=True,
                )
                st.caption(f"Verification: {_docs.get('verification_status', '—')}")

            if _can(auth.EDIT_ALL):
                with st.form("verification_form"):
                    _status = st.selectbox("Verification status", list(VerificationStatus),
                                           format_func=lambda s: s.value)
                    _notes = st.text_area("Notes")
                    if st.form_submit_button("Update verification"):
                        try:
                            _ok = _service().update_verification_status(
                                _token, _sel.student_id, _status, _notes,
                            )
                        except EnrolmentError as exc:
                            st.error(exc.user_message)
                        else:
                            if _ok:
                                st.success("Verification status updated.")
                            else:
                                st.warning("This student has not submitted an enrolment yet.")


# ═════════════════════════════════════════════════════════════════════════════
# TAB 3 – Analytics
# ═════════════════════════════════════════════════════════════════════════════
with tab_analytics:
    _section_header("Enrolment Analytics", "📊")
    try:
        _summary = _service().analytics(_token)
    except EnrolmentError as exc:
        st.error(exc.user_message)
        _summary = None

    if _summary is not None:
        _a1, _a2, _a3, _a4, _a5 = st.columns(5)
        _a1.markdown(_card("Students", str(_summary.total_students), BLUE, wide=True), unsafe_allow_html=True)
        _a2.markdown(_card("Enrolments", str(_summary.total_enrolments), GREEN, wide=True), unsafe_allow_html=True)
        _a3.markdown(_card("Today", str(_summary.today_submissions), PURPLE, wide=True), unsafe_allow_html=True)
        _a4.markdown(_card("Last 7 days", str(_summary.weekly_submissions), PURPLE, wide=True),
                     unsafe_allow_html=True)
        _a5.markdown(_card("LLN pass rate", f"{_summary.eligibility_rate:.1f}%", ORANGE, wide=True),
                     unsafe_allow_html=True)
        st.caption(f"{_summary.students_at_max_attempts} student(s) have used all "
                   f"{settings.policy.max_attempts} LLN attempts.")

        _g1, _g2 = st.columns(2)
        with _g1:
            if _summary.rating_distribution:
                _labels = list(_summary.rating_distribution)
                fig = go.Figure(go.Pie(
                    labels=_labels,
                    values=[_summary.rating_distribution[k] for k in _labels],
                    hole=0.55,
                    marker=dict(colors=[RATING_COLORS.get(k, GREY) for k in _labels]),
                ))
                fig.update_layout(title="LLN ratings", height=320, margin=dict(l=10, r=10, t=40, b=10),
                                  paper_bgcolor=CARD_BG)
                st.plotly_chart(fig, use_container_width=True)
            else:
                st.caption("No LLN assessments yet.")
        with _g2:
            if _summary.popular_courses:
                fig = go.Figure(go.Bar(
                    x=[n for _, n in _summary.popular_courses],
                    y=[c for c, _ in _summary.popular_courses],
                    orientation="h",
                    marker=dict(color=_hex_rgba(NAVY, 0.85)),
                ))
                fig.update_layout(title="Popular courses", height=320, margin=dict(l=10, r=10, t=40, b=10),
                                  paper_bgcolor=CARD_BG, yaxis=dict(autorange="reversed"))
                st.plotly_chart(fig, use_container_width=True)
            else:
                st.caption("No enrolments yet.")

        try:
            _daily = _service().daily_assessments(_token)
        except EnrolmentError as exc:
            st.error(exc.user_message)
            _daily = pd.DataFrame()
        if not _daily.empty:
            fig = go.Figure()
            for _label, _color in (("Eligible", GREEN), ("Not eligible", RED)):
                _part = _daily[_daily["eligible"] == _label]
                fig.add_trace(go.Bar(x=_part["day"], y=_part["count"], name=_label,
                                     marker=dict(color=_hex_rgba(_color, 0.8))))
            fig.update_layout(title="LLN submissions (last 30 days)", barmode="stack", height=300,
                              margin=dict(l=10, r=10, t=40, b=10), paper_bgcolor=CARD_BG)
            st.plotly_chart(fig, use_container_width=True)


# ═════════════════════════════════════════════════════════════════════════════
# TAB 4 – Audit Log
# ═════════════════════════════════════════════════════════════════════════════
with tab_audit:
    _section_header("Admin Actions", "🧾")
    try:
        _audit = _service().audit_log(_token)
    except EnrolmentError as exc:
        st.error(exc.user_message)
        _audit = []
    if not _audit:
        st.caption("No admin actions recorded yet.")
    else:
        _audit_df = pd.DataFrame(_audit)
        _audit_df["detail"] = _audit_df["detail"].map(
            lambda d: ", ".join(f"{k}={v}" for k, v in json.loads(d or "{}").items())
        )
        st.dataframe(
            _audit_df[["at", "actor", "action", "student_id", "detail"]],
            use_container_width=True,
            hide_index=True,
            column_config={
                "at":         st.column_config.TextColumn("When",    width="medium"),
                "actor":      st.column_config.TextColumn("Admin",   width="medium"),
                "action":     st.column_config.TextColumn("Action",  width="medium"),
                "student_id": st.column_config.TextColumn("Student", width="medium"),
                "detail":     st.column_config.TextColumn("Detail",  width="large"),
            },
        )
