"""
admin.py — Admin portal operations
==================================
Every call takes the admin's signed token, re-verifies it and checks the
permission for the action before touching the record store.  State-changing
actions (attempt reset, verification status) are written to the audit log.

  login(email, password)                       → token
  list_students(token)                         view_all
  student_folder(token, student_id)            view_folders
  download_file(token, student_id, path)       view_folders
  reset_attempts(token, student_id)            reset_attempts   (audited)
  update_verification_status(token, id, …)     edit_all         (audited)
  analytics(token)                             view_analytics
  daily_assessments(token, days)               view_analytics
  export_students_csv(token)                   export_data
  audit_log(token)                             view_all

Consumers
---------
  pages/1_Admin_Dashboard.py
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from nca_enrolment import auth
from nca_enrolment.analytics import AnalyticsSummary, compute_analytics, daily_assessments, students_frame
from nca_enrolment.attempt_gate import AttemptGate
from nca_enrolment.auth import AdminAuthenticator, AdminPrincipal, require_permission
from nca_enrolment.config import Settings, get_settings
from nca_enrolment.database import SqliteRecordStore
from nca_enrolment.documents import FileInfo, LocalDocumentStore
from nca_enrolment.errors import CollaboratorUnavailable
from nca_enrolment.models import StudentRecord, VerificationStatus

logger = logging.getLogger(__name__)


@dataclass
class StudentFolder:
    record:          StudentRecord
    shareable_link:  str
    files:           list[FileInfo] = field(default_factory=list)
    documents:       Optional[dict] = None
    assessments:     list[dict] = field(default_factory=list)


class AdminService:
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
        self.authenticator = AdminAuthenticator(self.settings.auth)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AdminService":
        settings = settings or get_settings()
        return cls(
            SqliteRecordStore(settings.store.db_path),
            LocalDocumentStore(settings.store.documents_root, settings.store.documents_base_url),
            settings,
        )

    # ── Auth ─────────────────────────────────────────────────────────────────

    def login(self, email: str, password: str) -> str:
        token = self.authenticator.authenticate(email, password)
        self._audit(email.strip().lower(), "login")
        return token

    def principal(self, token: Optional[str]) -> Optional[AdminPrincipal]:
        return self.authenticator.verify(token)

    def _authorise(self, token: Optional[str], permission: str) -> AdminPrincipal:
        return require_permission(self.authenticator.verify(token), permission)

    def _audit(self, actor: str, action: str, student_id: str = "", detail: Optional[dict] = None) -> None:
        try:
            self.store.append_audit(actor, action, student_id, detail)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc

    def _record(self, student_id: str) -> StudentRecord:
        try:
            record = self.store.get_record(student_id)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        if record is None:
            raise KeyError(student_id)
        return record

    # ── Students ─────────────────────────────────────────────────────────────

    def list_students(self, token: str) -> list[StudentRecord]:
        self._authorise(token, auth.VIEW_ALL)
        try:
            return self.store.list_records()
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc

    def student_folder(self, token: str, student_id: str) -> StudentFolder:
        self._authorise(token, auth.VIEW_FOLDERS)
        record = self._record(student_id)
        try:
            files = self.documents.list_folder(record.folder_id) if record.folder_id else []
        except OSError as exc:
            raise CollaboratorUnavailable("document store", exc) from exc
        try:
            documents = self.store.get_document_status(student_id)
            assessments = self.store.list_assessments(student_id)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        return StudentFolder(
            record         = record,
            shareable_link = self.documents.shareable_link(record.folder_id),
            files          = files,
            documents      = documents,
            assessments    = assessments,
        )

    def download_file(self, token: str, student_id: str, relative_path: str) -> bytes:
        """Bytes of one file in the student's folder (path as listed by student_folder)."""
        principal = self._authorise(token, auth.VIEW_FOLDERS)
        record = self._record(student_id)
        if not record.folder_id:
            raise FileNotFoundError(relative_path)
        try:
            data = self.documents.read_file(record.folder_id, relative_path)
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise CollaboratorUnavailable("document store", exc) from exc
        logger.info("%s downloaded %s for %s", principal.email, relative_path, student_id)
        return data

    def reset_attempts(self, token: str, student_id: str) -> StudentRecord:
        principal = self._authorise(token, auth.RESET_ATTEMPTS)
        before = self._record(student_id)
        record = self.gate.reset(student_id)
        self._audit(
            principal.email, "reset_attempts", student_id,
            {"previous_attempt_count": before.attempt_count, "previous_status": before.status.value},
        )
        logger.info("%s reset LLN attempts for %s (was %d)", principal.email, student_id, before.attempt_count)
        return record

    def update_verification_status(
        self,
        token: str,
        student_id: str,
        status: VerificationStatus,
        notes: str = "",
    ) -> bool:
        principal = self._authorise(token, auth.EDIT_ALL)
        try:
            updated = self.store.update_verification_status(student_id, status, notes, principal.email)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        if updated:
            self._audit(
                principal.email, "update_verification_status", student_id,
                {"status": status.value, "notes": notes},
            )
            logger.info("%s set verification status of %s to %s", principal.email, student_id, status.value)
        return updated

    # ── Reporting ────────────────────────────────────────────────────────────

    def analytics(self, token: str) -> AnalyticsSummary:
        self._authorise(token, auth.VIEW_ANALYTICS)
        try:
            return compute_analytics(self.store, max_attempts=self.settings.policy.max_attempts)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc

    def daily_assessments(self, token: str, days: int = 30) -> pd.DataFrame:
        self._authorise(token, auth.VIEW_ANALYTICS)
        try:
            return daily_assessments(self.store, days=days)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc

    def export_students_csv(self, token: str) -> bytes:
        self._authorise(token, auth.EXPORT_DATA)
        try:
            frame = students_frame(self.store)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
        return frame.to_csv(index=False).encode("utf-8")

    def audit_log(self, token: str, limit: int = 100) -> list[dict]:
        self._authorise(token, auth.VIEW_ALL)
        try:
            return self.store.list_audit(limit)
        except sqlite3.Error as exc:
            raise CollaboratorUnavailable("record store", exc) from exc
