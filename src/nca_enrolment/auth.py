"""
auth.py — Admin sign-in, signed tokens and permissions
======================================================
Admin accounts are a fixed registry (email → role); passwords are bcrypt
hashes supplied through ``ADMIN_PASSWORD_HASHES``.  A successful sign-in
yields an HS256 JWT valid for 24 hours (configurable) carrying the admin's
email, role and permissions.  The admin page keeps the token in
``st.session_state`` and re-verifies it on every rerun.

Roles
-----
  super_admin   every permission
  admin         view_all, reset_attempts, view_folders, view_analytics, export_data
  viewer        view_all, view_analytics
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from nca_enrolment.config import AuthConfig
from nca_enrolment.errors import AuthenticationError, PermissionDenied
from nca_enrolment.models import AdminRole

logger = logging.getLogger(__name__)


# ─── Permissions ─────────────────────────────────────────────────────────────

VIEW_ALL       = "view_all"
EDIT_ALL       = "edit_all"
DELETE_ALL     = "delete_all"
RESET_ATTEMPTS = "reset_attempts"
VIEW_FOLDERS   = "view_folders"
MANAGE_USERS   = "manage_users"
VIEW_ANALYTICS = "view_analytics"
EXPORT_DATA    = "export_data"

ROLE_PERMISSIONS: dict[AdminRole, tuple[str, ...]] = {
    AdminRole.SUPER_ADMIN: (
        VIEW_ALL, EDIT_ALL, DELETE_ALL, RESET_ATTEMPTS,
        VIEW_FOLDERS, MANAGE_USERS, VIEW_ANALYTICS, EXPORT_DATA,
    ),
    AdminRole.ADMIN: (VIEW_ALL, RESET_ATTEMPTS, VIEW_FOLDERS, VIEW_ANALYTICS, EXPORT_DATA),
    AdminRole.VIEWER: (VIEW_ALL, VIEW_ANALYTICS),
}


@dataclass(frozen=True)
class AdminAccount:
    id:    str
    email: str
    name:  str
    role:  AdminRole


ADMIN_ACCOUNTS: dict[str, AdminAccount] = {
    "dhairya@nca.edu.au": AdminAccount("admin-1", "dhairya@nca.edu.au", "Dhairya", AdminRole.SUPER_ADMIN),
    "admin@nca.edu.au":   AdminAccount("admin-2", "admin@nca.edu.au",   "NCA Admin", AdminRole.VIEWER),
}


@dataclass
class AdminPrincipal:
    """Verified identity decoded from a token."""
    id:          str
    email:       str
    role:        AdminRole
    permissions: list[str] = field(default_factory=list)
    expires_at:  Optional[datetime] = None


# ─── Passwords ───────────────────────────────────────────────────────────────

def hash_password(password: str, rounds: int = 10) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored admin password hash is malformed")
        return False


# ─── Permission checks ───────────────────────────────────────────────────────

def has_permission(principal: Optional[AdminPrincipal], permission: str) -> bool:
    return principal is not None and permission in principal.permissions


def require_permission(principal: Optional[AdminPrincipal], permission: str) -> AdminPrincipal:
    if principal is None:
        raise AuthenticationError("Please sign in again.")
    if permission not in principal.permissions:
        logger.warning("%s denied %s", principal.email, permission)
        raise PermissionDenied(permission)
    return principal


# ─── Tokens ──────────────────────────────────────────────────────────────────

class AdminAuthenticator:
    """Checks admin credentials and issues / verifies signed tokens."""

    def __init__(self, config: AuthConfig, accounts: Optional[dict[str, AdminAccount]] = None):
        self.config = config
        self.accounts = accounts if accounts is not None else ADMIN_ACCOUNTS

    def authenticate(self, email: str, password: str) -> str:
        """Return a signed token, or raise AuthenticationError."""
        key = email.strip().lower()
        account = self.accounts.get(key)
        hashed = self.config.password_hashes.get(key)
        if account is None or not hashed or not verify_password(password, hashed):
            logger.warning("Failed admin sign-in for %s", key or "<blank>")
            raise AuthenticationError()
        logger.info("Admin sign-in: %s (%s)", key, account.role.value)
        return self.issue_token(account)

    def issue_token(self, account: AdminAccount, now: Optional[datetime] = None) -> str:
        issued = now or datetime.now(timezone.utc)
        claims = {
            "sub":         account.id,
            "email":       account.email,
            "role":        account.role.value,
            "permissions": list(ROLE_PERMISSIONS[account.role]),
            "iat":         issued,
            "exp":         issued + timedelta(hours=self.config.token_ttl_hours),
        }
        return jwt.encode(claims, self.config.jwt_secret, algorithm=self.config.jwt_algorithm)

    def verify(self, token: Optional[str]) -> Optional[AdminPrincipal]:
        """Decode and check a token; None when missing, tampered or expired."""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.config.jwt_secret, algorithms=[self.config.jwt_algorithm])
        except JWTError as exc:
            logger.info("Rejected admin token: %s", exc)
            return None
        try:
            role = AdminRole(payload.get("role"))
        except ValueError:
            return None
        return AdminPrincipal(
            id          = payload.get("sub", ""),
            email       = payload.get("email", ""),
            role        = role,
            permissions = list(payload.get("permissions", [])),
            expires_at  = datetime.fromtimestamp(payload["exp"], tz=timezone.utc) if "exp" in payload else None,
        )
