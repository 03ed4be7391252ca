"""
config.py — Central settings for the NCA enrolment app
======================================================
All configuration is loaded from environment variables / .env file.
Copy .env.example → .env and fill in your values.

Admin accounts are configured as ``ADMIN_PASSWORD_HASHES`` in the form
``email=bcrypt-hash;email=bcrypt-hash`` — generate the hashes with
``python generate_admin_passwords.py``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env into os.environ (no-op if already set, safe to call multiple times)
load_dotenv(override=False)

_ROOT = Path(__file__).resolve().parent.parent.parent


# ─── Helpers ────────────────────────────────────────────────────────────────

def _is_placeholder(value: str) -> bool:
    """Return True if the value looks like an unfilled template placeholder."""
    return not value or "<" in value or value.startswith("your-") or value == "PLACEHOLDER"


def _parse_hashes(raw: str) -> dict[str, str]:
    """'a@x.com=$2b$…;b@x.com=$2b$…' → {email: hash}."""
    out: dict[str, str] = {}
    for pair in raw.split(";"):
        email, sep, hashed = pair.partition("=")
        if sep and email.strip() and hashed.strip():
            out[email.strip().lower()] = hashed.strip()
    return out


# ─── Record & document storage ───────────────────────────────────────────────

@dataclass(frozen=True)
class StoreConfig:
    db_path:            str
    documents_root:     str
    documents_base_url: str


# ─── Admin authentication ────────────────────────────────────────────────────

@dataclass(frozen=True)
class AuthConfig:
    jwt_secret:       str
    jwt_algorithm:    str
    token_ttl_hours:  int
    password_hashes:  dict[str, str] = field(default_factory=dict)

    @property
    def is_configured(self) -> bool:
        """True when a real signing secret and at least one admin hash exist."""
        return not _is_placeholder(self.jwt_secret) and bool(self.password_hashes)


# ─── Enrolment policy ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PolicyConfig:
    max_attempts:     int
    pass_mark:        int
    max_upload_bytes: int


# ─── App-level settings ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class AppConfig:
    log_level:      str
    seed_demo_data: bool
    support_email:  str
    support_phone:  str


# ─── Master settings object ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    store:  StoreConfig
    auth:   AuthConfig
    policy: PolicyConfig
    app:    AppConfig

    def status_summary(self) -> dict[str, str]:
        """Return a dict of component → status badge for the admin sidebar."""
        def badge(ok: bool, ok_label: str = "🟢 Ready") -> str:
            return ok_label if ok else "⚪ Not configured"

        return {
            "Record store":   badge(bool(self.store.db_path), f"🟢 {Path(self.store.db_path).name}"),
            "Document store": badge(bool(self.store.documents_root)),
            "Admin sign-in":  badge(self.auth.is_configured),
            "Demo data":      "🧪 Seeded" if self.app.seed_demo_data else "⚪ Off",
        }


def get_settings() -> Settings:
    """Load all configuration from environment variables."""
    _str  = lambda k, d="": os.getenv(k, d).strip()
    _int  = lambda k, d=0: int(os.getenv(k, str(d)) or d)
    _bool = lambda k, d=False: os.getenv(k, str(d)).lower() in ("1", "true", "yes")

    return Settings(
        store=StoreConfig(
            db_path            = _str("NCA_DB_PATH", str(_ROOT / "nca_enrolment.db")),
            documents_root     = _str("NCA_DOCUMENTS_ROOT", str(_ROOT / "student_documents")),
            documents_base_url = _str("NCA_DOCUMENTS_BASE_URL", "/files").rstrip("/"),
        ),
        auth=AuthConfig(
            jwt_secret      = _str("JWT_SECRET", "<change-me>"),
            jwt_algorithm   = _str("JWT_ALGORITHM", "HS256"),
            token_ttl_hours = _int("JWT_EXPIRE_HOURS", 24),
            password_hashes = _parse_hashes(_str("ADMIN_PASSWORD_HASHES")),
        ),
        policy=PolicyConfig(
            max_attempts     = _int("LLN_MAX_ATTEMPTS", 3),
            pass_mark        = _int("LLN_PASS_MARK", 60),
            max_upload_bytes = _int("UPLOAD_MAX_BYTES", 10 * 1024 * 1024),
        ),
        app=AppConfig(
            log_level      = _str("LOG_LEVEL", "INFO").upper(),
            seed_demo_data = _bool("SEED_DEMO_DATA", False),
            support_email  = _str("SUPPORT_EMAIL", "admissions@nca.edu.au"),
            support_phone  = _str("SUPPORT_PHONE", "1300 000 622"),
        ),
    )
