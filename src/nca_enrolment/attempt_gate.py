"""
attempt_gate.py — LLN attempt / eligibility gate
================================================
Decides whether an identity (email + date of birth) may start or continue an
LLN attempt, registers first-time applicants, and counts attempts.

---------------------------------------------------------------------------
Rules
---------------------------------------------------------------------------
  * Lookup is by (email, date_of_birth); email is case-insensitive.
  * Unknown identity → create document folder + record (attempt_count 0).
  * attempt_count ≥ max_attempts → blocked; no further attempts.
  * Each scored submission adds exactly one attempt, pass or fail.
  * Reaching max_attempts flags the record blocked immediately.
  * Only an admin reset returns the count to 0.

Failure handling
----------------
The gate fails closed: any record-store or document-store error surfaces
as ``CollaboratorUnavailable``.  A failed lookup is never treated as a new
student, and a failed increment never lets a submission through.

Consumers
---------
  enrolment.py   — register(), submit_assessment(), retake()
  admin.py       — reset()
"""

from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass

from nca_enrolment.database import SqliteRecordStore
from nca_enrolment.documents import LocalDocumentStore
from nca_enrolment.errors import AttemptLimitExceeded, CollaboratorUnavailable
from nca_enrolment.models import StudentIdentity, StudentRecord

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


def new_student_id() -> str:
    """STU-<epoch millis>-<4 hex> — sortable by registration time."""
    return f"STU-{int(time.time() * 1000)}-{uuid.uuid4().hex[:4].upper()}"


@dataclass
class GateDecision:
    student_id:         str
    attempt_count:      int
    is_new_student:     bool
    blocked:            bool
    attempts_remaining: int
    folder_id:          str
    message:            str


class AttemptGate:
    """Eligibility gate in front of the LLN assessment."""

    def __init__(
        self,
        store: SqliteRecordStore,
        documents: LocalDocumentStore,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self.store = store
        self.documents = documents
        self.max_attempts = max_attempts

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _decision(self, record: StudentRecord, is_new: bool) -> GateDecision:
        blocked = record.is_blocked or record.attempt_count >= self.max_attempts
        remaining = max(self.max_attempts - record.attempt_count, 0)
        if blocked:
            message = AttemptLimitExceeded.user_message
        elif is_new:
            message = "Registration successful! You can now proceed with the LLN assessment."
        else:
            message = f"Welcome back! You have {remaining} attempts remaining."
        return GateDecision(
            student_id         = record.student_id,
            attempt_count      = record.attempt_count,
            is_new_student     = is_new,
            blocked            = blocked,
            attempts_remaining = remaining,
            folder_id          = record.folder_id,
            message            = message,
        )

    def _lookup(self, identity: StudentIdentity):
        try:
            return self.store.find_by_identity(identity.email, identity.date_of_birth)
        except sqlite3.Error as exc:
            logger.error("Record store lookup failed for %s: %s", identity.normalised_email, exc)
            raise CollaboratorUnavailable("record store", exc) from exc

    # ── Public API ───────────────────────────────────────────────────────────

    def validate_or_register(self, identity: StudentIdentity) -> GateDecision:
        """Look up the identity, registering it on first contact."""
        existing = self._lookup(identity)
        if existing is not None:
            decision = self._decision(existing, is_new=False)
            logger.info(
                "Returning student %s: %d/%d attempts%s",
                existing.student_id, existing.attempt_count, self.max_attempts,
                " (blocked)" if decision.blocked else "",
            )
            return decision

        student_id = new_student_id()
        try:
            folder_id = self.documents.ensure_folder(student_id, identity.folder_name)
        except OSError as exc:
            logger.error("Could not create folder for %s: %s", student_id, exc)
            raise CollaboratorUnavailable("document store", exc) from exc

        try:
            record = self.store.create_record(identity, student_id, folder_id)
        except sqlite3.IntegrityError:
            # registered concurrently under the same identity
            record = self._lookup(identity)
            if record is None:
                raise CollaboratorUnavailable("record store")
            return self._decision(record, is_new=False)
        except sqlite3.Error as exc:
            logger.error("Could not create record for %s: %s", identity.normalised_email, exc)
            raise CollaboratorUnavailable("record store", exc) from exc

        logger.info("Registered new student %s (folder %s)", record.student_id, folder_id)
        return self._decision(record, is_new=True)

    def ensure_can_attempt(self, student_id: str) -> StudentRecord:
        """Re-read the record right before scoring; raise if blocked."""
        try:
            record = self.store.get_record(student_id)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        if record is None:
            raise CollaboratorUnavailable("record store")
        if record.is_blocked or record.attempt_count >= self.max_attempts:
            raise AttemptLimitExceeded(student_id, record.attempt_count)
        return record

    def record_attempt(self, student_id: str) -> StudentRecord:
        """Count one scored submission. Raises AttemptLimitExceeded if none are left."""
        try:
            record = self.store.increment_attempt(student_id, self.max_attempts)
        except sqlite3.Error as exc:
            logger.error("Attempt increment failed for %s: %s", student_id, exc)
            raise CollaboratorUnavailable("record store", exc) from exc
        if record is None:
            logger.warning("Attempt refused for %s: limit of %d reached", student_id, self.max_attempts)
            raise AttemptLimitExceeded(student_id, self.max_attempts)
        if record.is_blocked:
            logger.info("Student %s reached the attempt limit and is now blocked", student_id)
        return record

    def reset(self, student_id: str) -> StudentRecord:
        """Admin reset: attempt_count 0, unblocked."""
        try:
            record = self.store.reset_attempts(student_id)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        if record is None:
            raise KeyError(student_id)
        logger.info("Attempts reset for %s", student_id)
        return record
