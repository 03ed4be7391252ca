"""
nca_enrolment/database.py — SQLite record store
===============================================
Authoritative store for student tracking records, LLN assessment rows,
enrolment submissions, document tracking and the admin audit log.

Design decisions
----------------
- **One connection per call** — every method opens, commits and closes its
  own connection so Streamlit reruns and the admin page never share cursor
  state.
- **WAL journal mode** — the admin dashboard reads while applicants write.
- **Conditional increment** — ``increment_attempt`` is a single
  ``UPDATE … WHERE attempt_count < max`` statement, so two concurrent
  submissions for the same student can never push the count past the
  limit; the loser sees ``None`` and is refused.
- **Identity uniqueness** — ``UNIQUE(email_key, date_of_birth)`` where
  ``email_key`` is the lower-cased email, so lookups are case-insensitive
  on email and exact on date of birth.

Database file location
----------------------
Defaults to ``nca_enrolment.db`` in the workspace root; override with
``NCA_DB_PATH``.  Tests point it at a tmp_path.

Tables
------
  students            one row per (email, date_of_birth) identity
  lln_assessments     append-only, one row per scored submission
  enrolments          append-only, one row per completed enrolment
  document_tracking   one row per student, URL per required document
  audit_log           admin actions

Public API (SqliteRecordStore)
------------------------------
  init_db()                                 create tables if missing
  find_by_identity(email, dob)              → StudentRecord | None
  create_record(identity, student_id, folder_id) → StudentRecord
  get_record(student_id)                    → StudentRecord | None
  list_records()                            → list[StudentRecord]
  increment_attempt(student_id, max)        → StudentRecord | None
  reset_attempts(student_id)                → StudentRecord | None
  set_status(student_id, status)
  append_assessment_row(record, result, attempt_number)
  list_assessments(student_id=None)         → list[dict]
  append_enrolment_row(record, draft)       → row id
  list_enrolments()                         → list[dict]
  upsert_document_status(student_id, documents)
  get_document_status(student_id)           → dict | None
  update_verification_status(student_id, status, notes, by) → bool
  append_audit(actor, action, student_id, detail)
  list_audit(limit)                         → list[dict]
  seed_demo_students()

Consumers
---------
  attempt_gate.py   — lookup / create / increment / reset
  enrolment.py      — assessment, enrolment and document rows
  admin.py          — listings, verification status, audit log
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from nca_enrolment.models import (
    REQUIRED_DOCUMENTS,
    DocumentType,
    EnrollmentDraft,
    RecordStatus,
    ScoreResult,
    Section,
    StudentIdentity,
    StudentRecord,
    VerificationStatus,
)
from nca_enrolment.scoring import rating_for

logger = logging.getLogger(__name__)

_SECTION_COLUMNS: dict[str, str] = {
    Section.LEARNING.value:         "learning",
    Section.READING.value:          "reading",
    Section.WRITING.value:          "writing",
    Section.NUMERACY.value:         "numeracy",
    Section.DIGITAL_LITERACY.value: "digital_literacy",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _row_to_record(row: sqlite3.Row) -> StudentRecord:
    return StudentRecord(
        student_id      = row["student_id"],
        first_name      = row["first_name"],
        last_name       = row["last_name"],
        email           = row["email"],
        date_of_birth   = row["date_of_birth"],
        folder_id       = row["folder_id"] or "",
        attempt_count   = row["attempt_count"],
        is_blocked      = bool(row["is_blocked"]),
        registered_at   = row["registered_at"],
        last_attempt_at = row["last_attempt_at"],
        status          = row["status"],
        reset_at        = row["reset_at"],
    )


class SqliteRecordStore:
    """Record store backed by a single SQLite file."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Return a connection with row_factory set."""
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_conn()
        conn.executescript("""
        CREATE TABLE IF NOT EXISTS students (
            student_id      TEXT    PRIMARY KEY,
            first_name      TEXT    NOT NULL,
            last_name       TEXT    NOT NULL,
            email           TEXT    NOT NULL,
            email_key       TEXT    NOT NULL,
            date_of_birth   TEXT    NOT NULL,
            folder_id       TEXT,
            attempt_count   INTEGER NOT NULL DEFAULT 0,
            is_blocked      INTEGER NOT NULL DEFAULT 0,
            registered_at   TEXT    NOT NULL,
            last_attempt_at TEXT,
            status          TEXT    NOT NULL DEFAULT 'Registered',
            reset_at        TEXT,
            UNIQUE (email_key, date_of_birth)
        );
        CREATE TABLE IF NOT EXISTS lln_assessments (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id       TEXT    NOT NULL,
            first_name       TEXT,
            last_name        TEXT,
            email            TEXT,
            date_of_birth    TEXT,
            learning         INTEGER,
            reading          INTEGER,
            writing          INTEGER,
            numeracy         INTEGER,
            digital_literacy INTEGER,
            overall          INTEGER NOT NULL,
            rating           TEXT    NOT NULL,
            eligible         INTEGER NOT NULL,
            attempt_number   INTEGER,
            completed_at     TEXT    NOT NULL,
            recorded_at      TEXT    NOT NULL
        );
        CREATE TABLE IF NOT EXISTS enrolments (
            id                     INTEGER PRIMARY KEY AUTOINCREMENT,
            student_id             TEXT    NOT NULL,
            first_name             TEXT,
            middle_name            TEXT,
            surname                TEXT,
            email                  TEXT,
            mobile                 TEXT,
            date_of_birth          TEXT,
            address                TEXT,
            course                 TEXT,
            delivery_mode          TEXT,
            start_date             TEXT,
            usi                    TEXT,
            country_of_birth       TEXT,
            emergency_contact_name TEXT,
            draft_json             TEXT,
            submitted_at           TEXT    NOT NULL,
            verification_status    TEXT    NOT NULL DEFAULT 'Pending Review',
            verification_notes     TEXT,
            verified_by            TEXT,
            verified_at            TEXT
        );
        CREATE TABLE IF NOT EXISTS document_tracking (
            student_id             TEXT PRIMARY KEY,
            passport_bio           TEXT,
            visa_copy              TEXT,
            photo_id               TEXT,
            usi_email              TEXT,
            recent_photo           TEXT,
            all_documents_complete INTEGER NOT NULL DEFAULT 0,
            upload_date            TEXT,
            verification_status    TEXT NOT NULL DEFAULT 'Pending Review'
        );
        CREATE TABLE IF NOT EXISTS audit_log (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            at          TEXT NOT NULL,
            actor       TEXT NOT NULL,
            action      TEXT NOT NULL,
            student_id  TEXT,
            detail      TEXT
        );
        """)
        conn.commit()
        conn.close()

    # ─── Student tracking ────────────────────────────────────────────────────

    def find_by_identity(self, email: str, date_of_birth: str) -> Optional[StudentRecord]:
        """Case-insensitive on email, exact on date of birth."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM students WHERE email_key = ? AND date_of_birth = ?",
            (email.strip().lower(), date_of_birth.strip()),
        ).fetchone()
        conn.close()
        return _row_to_record(row) if row else None

    def create_record(self, identity: StudentIdentity, student_id: str, folder_id: str) -> StudentRecord:
        """Insert a fresh record with attempt_count 0.

        Raises sqlite3.IntegrityError if the identity already exists.
        """
        conn = self._get_conn()
        conn.execute(
            """
            INSERT INTO students (
                student_id, first_name, last_name, email, email_key,
                date_of_birth, folder_id, registered_at, status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                student_id,
                identity.first_name.strip(),
                identity.last_name.strip(),
                identity.email.strip(),
                identity.normalised_email,
                identity.date_of_birth.strip(),
                folder_id,
                _now(),
                RecordStatus.REGISTERED.value,
            ),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM students WHERE student_id = ?", (student_id,)).fetchone()
        conn.close()
        return _row_to_record(row)

    def get_record(self, student_id: str) -> Optional[StudentRecord]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM students WHERE student_id = ?", (student_id,)).fetchone()
        conn.close()
        return _row_to_record(row) if row else None

    def list_records(self) -> list[StudentRecord]:
        """All students, most recently registered first."""
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM students ORDER BY registered_at DESC").fetchall()
        conn.close()
        return [_row_to_record(r) for r in rows]

    def increment_attempt(self, student_id: str, max_attempts: int) -> Optional[StudentRecord]:
        """Add one attempt unless the student is already at ``max_attempts``.

        Returns the updated record, or None when the increment was refused
        (unknown student or limit reached).
        """
        conn = self._get_conn()
        cur = conn.execute(
            """
            UPDATE students SET
                attempt_count   = attempt_count + 1,
                last_attempt_at = ?,
                is_blocked      = CASE WHEN attempt_count + 1 >= ? THEN 1 ELSE 0 END,
                status          = CASE WHEN attempt_count + 1 >= ? THEN ? ELSE ? END
            WHERE student_id = ? AND attempt_count < ?
            """,
            (
                _now(), max_attempts, max_attempts,
                RecordStatus.MAX_ATTEMPTS.value, RecordStatus.IN_PROGRESS.value,
                student_id, max_attempts,
            ),
        )
        conn.commit()
        if cur.rowcount == 0:
            conn.close()
            return None
        row = conn.execute("SELECT * FROM students WHERE student_id = ?", (student_id,)).fetchone()
        conn.close()
        return _row_to_record(row)

    def reset_attempts(self, student_id: str) -> Optional[StudentRecord]:
        """attempt_count → 0, unblocked; registered_at and folder_id untouched."""
        conn = self._get_conn()
        cur = conn.execute(
            """
            UPDATE students SET
                attempt_count = 0,
                is_blocked    = 0,
                status        = ?,
                reset_at      = ?
            WHERE student_id = ?
            """,
            (RecordStatus.RESET.value, _now(), student_id),
        )
        conn.commit()
        row = None
        if cur.rowcount:
            row = conn.execute("SELECT * FROM students WHERE student_id = ?", (student_id,)).fetchone()
        conn.close()
        return _row_to_record(row) if row else None

    def set_status(self, student_id: str, status: RecordStatus) -> None:
        conn = self._get_conn()
        conn.execute(
            "UPDATE students SET status = ? WHERE student_id = ?",
            (status.value, student_id),
        )
        conn.commit()
        conn.close()

    # ─── LLN assessments ─────────────────────────────────────────────────────

    def append_assessment_row(
        self,
        record: StudentRecord,
        result: ScoreResult,
        attempt_number: Optional[int] = None,
    ) -> int:
        per_section = {_SECTION_COLUMNS[k]: v for k, v in result.per_section.items() if k in _SECTION_COLUMNS}
        conn = self._get_conn()
        cur = conn.execute(
            """
            INSERT INTO lln_assessments (
                student_id, first_name, last_name, email, date_of_birth,
                learning, reading, writing, numeracy, digital_literacy,
                overall, rating, eligible, attempt_number, completed_at, recorded_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.student_id, record.first_name, record.last_name,
                record.email, record.date_of_birth,
                per_section.get("learning"), per_section.get("reading"),
                per_section.get("writing"), per_section.get("numeracy"),
                per_section.get("digital_literacy"),
                result.overall, result.rating.value, int(result.eligible),
                attempt_number, result.completed_at.isoformat(), _now(),
            ),
        )
        conn.commit()
        row_id = cur.lastrowid
        conn.close()
        return row_id

    def list_assessments(self, student_id: Optional[str] = None) -> list[dict]:
        conn = self._get_conn()
        if student_id:
            rows = conn.execute(
                "SELECT * FROM lln_assessments WHERE student_id = ? ORDER BY id", (student_id,)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM lln_assessments ORDER BY id").fetchall()
        conn.close()
        return [dict(r) for r in rows]

    # ─── Enrolments ──────────────────────────────────────────────────────────

    def append_enrolment_row(self, record: StudentRecord, draft: EnrollmentDraft) -> int:
        pd = draft.personal_details
        course = draft.course_details
        bg = draft.background
        usi = draft.compliance.usi if draft.compliance else ""
        conn = self._get_conn()
        cur = conn.execute(
            """
            INSERT INTO enrolments (
                student_id, first_name, middle_name, surname, email, mobile,
                date_of_birth, address, course, delivery_mode, start_date, usi,
                country_of_birth, emergency_contact_name, draft_json,
                submitted_at, verification_status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.student_id,
                pd.first_name if pd else record.first_name,
                pd.middle_name if pd else "",
                pd.last_name if pd else record.last_name,
                pd.email if pd else record.email,
                pd.mobile if pd else "",
                pd.date_of_birth if pd else record.date_of_birth,
                pd.address.one_line() if pd else "",
                course.course_name if course else "",
                course.delivery_mode if course else "",
                course.start_date if course else "",
                usi,
                bg.country_of_birth if bg else "",
                bg.emergency_contact_name if bg else "",
                draft.model_dump_json(),
                _now(),
                VerificationStatus.PENDING.value,
            ),
        )
        conn.commit()
        row_id = cur.lastrowid
        conn.close()
        return row_id

    def list_enrolments(self) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM enrolments ORDER BY submitted_at DESC").fetchall()
        conn.close()
        return [dict(r) for r in rows]

    # ─── Document tracking ───────────────────────────────────────────────────

    def upsert_document_status(self, student_id: str, documents: dict[DocumentType, str]) -> None:
        cols = {d.value: documents.get(d) for d in REQUIRED_DOCUMENTS}
        complete = int(all(cols.values()))
        conn = self._get_conn()
        conn.execute(
            """
            INSERT INTO document_tracking (
                student_id, passport_bio, visa_copy, photo_id, usi_email,
                recent_photo, all_documents_complete, upload_date
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(student_id) DO UPDATE SET
                passport_bio           = excluded.passport_bio,
                visa_copy              = excluded.visa_copy,
                photo_id               = excluded.photo_id,
                usi_email              = excluded.usi_email,
                recent_photo           = excluded.recent_photo,
                all_documents_complete = excluded.all_documents_complete,
                upload_date            = excluded.upload_date
            """,
            (
                student_id, cols["passport_bio"], cols["visa_copy"], cols["photo_id"],
                cols["usi_email"], cols["recent_photo"], complete, _now(),
            ),
        )
        conn.commit()
        conn.close()

    def get_document_status(self, student_id: str) -> Optional[dict]:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM document_tracking WHERE student_id = ?", (student_id,)
        ).fetchone()
        conn.close()
        return dict(row) if row else None

    def update_verification_status(
        self,
        student_id: str,
        status: VerificationStatus,
        notes: str = "",
        verified_by: str = "",
    ) -> bool:
        """Update the latest enrolment and the document row. False if no enrolment exists."""
        conn = self._get_conn()
        cur = conn.execute(
            """
            UPDATE enrolments SET
                verification_status = ?,
                verification_notes  = ?,
                verified_by         = ?,
                verified_at         = ?
            WHERE id = (SELECT MAX(id) FROM enrolments WHERE student_id = ?)
            """,
            (status.value, notes, verified_by, _now(), student_id),
        )
        conn.execute(
            "UPDATE document_tracking SET verification_status = ? WHERE student_id = ?",
            (status.value, student_id),
        )
        conn.commit()
        updated = cur.rowcount > 0
        conn.close()
        return updated

    # ─── Audit log ───────────────────────────────────────────────────────────

    def append_audit(self, actor: str, action: str, student_id: str = "", detail: Optional[dict] = None) -> None:
        conn = self._get_conn()
        conn.execute(
            "INSERT INTO audit_log (at, actor, action, student_id, detail) VALUES (?, ?, ?, ?, ?)",
            (_now(), actor, action, student_id, json.dumps(detail or {})),
        )
        conn.commit()
        conn.close()

    def list_audit(self, limit: int = 100) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
        conn.close()
        return [dict(r) for r in rows]

    # ─── Demo data ───────────────────────────────────────────────────────────

    def seed_demo_students(self) -> int:
        """Populate an empty database with a handful of demo applicants.

        Returns the number of students inserted (0 when data already exists).
        """
        conn = self._get_conn()
        count = conn.execute("SELECT COUNT(*) FROM students").fetchone()[0]
        conn.close()
        if count > 0:
            return 0

        now = datetime.now(timezone.utc).replace(microsecond=0)
        for i, seed in enumerate(_SEED_STUDENTS):
            registered = now - timedelta(days=seed["days_ago"])
            conn = self._get_conn()
            conn.execute(
                """
                INSERT OR IGNORE INTO students (
                    student_id, first_name, last_name, email, email_key,
                    date_of_birth, folder_id, attempt_count, is_blocked,
                    registered_at, last_attempt_at, status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    f"STU-DEMO-{i + 1:03d}", seed["first"], seed["last"], seed["email"],
                    seed["email"].lower(), seed["dob"],
                    f"{seed['first']}_{seed['last']}_{seed['dob']}_STU-DEMO-{i + 1:03d}",
                    seed["attempts"], int(seed["attempts"] >= 3),
                    registered.isoformat(), registered.isoformat(), seed["status"],
                ),
            )
            for attempt, overall in enumerate(seed["scores"], start=1):
                conn.execute(
                    """
                    INSERT INTO lln_assessments (
                        student_id, first_name, last_name, email, date_of_birth,
                        overall, rating, eligible, attempt_number, completed_at, recorded_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        f"STU-DEMO-{i + 1:03d}", seed["first"], seed["last"], seed["email"],
                        seed["dob"], overall, _demo_rating(overall), int(overall >= 60),
                        attempt, registered.isoformat(), registered.isoformat(),
                    ),
                )
            if seed.get("course"):
                conn.execute(
                    """
                    INSERT INTO enrolments (
                        student_id, first_name, surname, email, date_of_birth,
                        course, delivery_mode, submitted_at, verification_status
                    ) VALUES (?, ?, ?, ?, ?, ?, 'Blended', ?, ?)
                    """,
                    (
                        f"STU-DEMO-{i + 1:03d}", seed["first"], seed["last"], seed["email"],
                        seed["dob"], seed["course"], registered.isoformat(),
                        VerificationStatus.PENDING.value,
                    ),
                )
            conn.commit()
            conn.close()
        logger.info("Seeded %d demo students into %s", len(_SEED_STUDENTS), self.db_path)
        return len(_SEED_STUDENTS)


def _demo_rating(overall: int) -> str:
    return rating_for(overall).value


_SEED_STUDENTS: list[dict] = [
    {"first": "Priya",  "last": "Sharma",   "email": "priya.sharma@example.com",  "dob": "1994-03-12",
     "attempts": 1, "scores": [91], "status": "Enrolled", "days_ago": 0,
     "course": "CHC33021 Certificate III in Individual Support"},
    {"first": "Liam",   "last": "Nguyen",   "email": "liam.nguyen@example.com",   "dob": "1988-11-02",
     "attempts": 2, "scores": [45, 73], "status": "In Progress", "days_ago": 2,
     "course": "CHC43121 Certificate IV in Disability"},
    {"first": "Fatima", "last": "Haddad",   "email": "fatima.h@example.com",      "dob": "1999-07-25",
     "attempts": 3, "scores": [27, 41, 55], "status": "Max Attempts Reached", "days_ago": 5},
    {"first": "Tom",    "last": "O'Connor", "email": "tom.oconnor@example.com",   "dob": "1976-01-30",
     "attempts": 1, "scores": [82], "status": "Enrolled", "days_ago": 9,
     "course": "CHC33021 Certificate III in Individual Support"},
    {"first": "Mei",    "last": "Chen",     "email": "mei.chen@example.com",      "dob": "2001-05-18",
     "attempts": 0, "scores": [], "status": "Registered", "days_ago": 12},
]
