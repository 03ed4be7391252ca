"""
nca_enrolment — National College Australia student enrolment
=============================================================
Package containing the LLN assessment, wizard state machine, attempt gate,
admin operations and persistence for the NCA online enrolment app.

Module map
----------
  models.py          Enums, question variants, pydantic records and drafts,
                     course / state / document reference lists.
  config.py          Settings loaded from .env (storage, auth, policy, app).
  errors.py          EnrolmentError hierarchy shown to applicants and admins.
  question_bank.py   The fixed 22-question LLN assessment.
  scoring.py         Pure scoring engine: ResponseSet → ScoreResult.
  validation.py      Field rules for every wizard step (V-01 … V-15).
  wizard.py          EnrolmentSession state machine + page guard.
  attempt_gate.py    Max-3-attempts gate keyed on email + date of birth.
  database.py        SQLite record store.
  documents.py       Per-student document folders on local disk.
  reports.py         reportlab PDFs: LLN report, enrolment form.
  auth.py            bcrypt passwords, JWT tokens, role permissions.
  enrolment.py       Applicant-facing service used by streamlit_app.py.
  admin.py           Admin-facing service used by the Admin Dashboard page.
  analytics.py       pandas aggregates for the admin Analytics tab.

Flow
----
  register → LLN (22 questions, 5 sections) → results
      ├── eligible   → personal details → declaration → documents → complete
      └── ineligible → not eligible → retake (while attempts remain)
"""
__version__ = "1.0.0"
