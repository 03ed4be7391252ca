"""
errors.py — Exception hierarchy for the enrolment flow
======================================================
Every failure the wizard can surface to a student or an admin derives from
``EnrolmentError`` and carries a ``user_message`` that the Streamlit pages
render verbatim.  None of these is fatal to the process: the page shows the
message and the student stays on (or is redirected to) a valid step.

  ValidationError          field-level problems, nothing persisted, re-prompt
  AttemptLimitExceeded     identity already used all LLN attempts
  CollaboratorUnavailable  record store / document store / renderer failed
  StaleStateError          requested page's precondition is missing
  AuthenticationError      bad admin credentials or an invalid token
  PermissionDenied         admin lacks the permission for an action
"""

from __future__ import annotations

from typing import Optional


SUPPORT_CONTACT = "Please contact administration for assistance."


class EnrolmentError(Exception):
    """Base class for all enrolment-flow errors."""

    user_message: str = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class ValidationError(EnrolmentError):
    """One or more fields failed validation; the step is not advanced."""

    user_message = "Please correct the highlighted fields and try again."

    def __init__(self, issues: list, message: Optional[str] = None):
        self.issues = list(issues)
        if message is None and self.issues:
            message = "; ".join(getattr(i, "message", str(i)) for i in self.issues)
        super().__init__(message)


class AttemptLimitExceeded(EnrolmentError):
    user_message = f"Maximum LLN attempts reached. {SUPPORT_CONTACT}"

    def __init__(self, student_id: str = "", attempt_count: int = 0):
        self.student_id = student_id
        self.attempt_count = attempt_count
        super().__init__()


class CollaboratorUnavailable(EnrolmentError):
    """A backing service failed. The caller may retry; no state was advanced."""

    user_message = "The service is temporarily unavailable. Please try again later."

    def __init__(self, collaborator: str, cause: Optional[BaseException] = None):
        self.collaborator = collaborator
        self.cause = cause
        super().__init__()


class StaleStateError(EnrolmentError):
    user_message = "This step is not available yet. Redirecting you to where you left off."

    def __init__(self, redirect_to, message: Optional[str] = None):
        self.redirect_to = redirect_to
        super().__init__(message)


class AuthenticationError(EnrolmentError):
    user_message = "Invalid email or password."


class PermissionDenied(EnrolmentError):
    user_message = "You do not have permission to perform this action."

    def __init__(self, permission: str):
        self.permission = permission
        super().__init__(f"Missing permission: {permission}")
