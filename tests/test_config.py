"""
Smoke tests for config / settings loading.
Run: python -m pytest tests/ -v
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from nca_enrolment.config import AuthConfig, _is_placeholder, _parse_hashes, get_settings


class TestIsPlaceholder:
    def test_empty_string_is_placeholder(self):
        assert _is_placeholder("")

    def test_angle_bracket_is_placeholder(self):
        assert _is_placeholder("<change-me>")

    def test_your_prefix_is_placeholder(self):
        assert _is_placeholder("your-secret")

    def test_literal_PLACEHOLDER_is_placeholder(self):
        assert _is_placeholder("PLACEHOLDER")

    def test_real_value_not_placeholder(self):
        assert not _is_placeholder("8f1c2e9a7b4d4c0f")


class TestParseHashes:
    def test_pairs(self):
        parsed = _parse_hashes("Dhairya@NCA.edu.au=$2b$10$abc;admin@nca.edu.au=$2b$10$def")
        assert parsed == {"dhairya@nca.edu.au": "$2b$10$abc", "admin@nca.edu.au": "$2b$10$def"}

    def test_hash_may_contain_equals(self):
        assert _parse_hashes("a@x.com=abc=def") == {"a@x.com": "abc=def"}

    def test_blank_and_malformed_ignored(self):
        assert _parse_hashes("") == {}
        assert _parse_hashes("no-separator; =hash; a@x.com=") == {}


class TestSettingsLoading:
    def test_get_settings_returns_object(self):
        s = get_settings()
        assert s is not None
        assert hasattr(s, "store")
        assert hasattr(s, "policy")

    def test_policy_defaults(self, monkeypatch):
        for key in ("LLN_MAX_ATTEMPTS", "LLN_PASS_MARK", "UPLOAD_MAX_BYTES"):
            monkeypatch.delenv(key, raising=False)
        s = get_settings()
        assert s.policy.max_attempts == 3
        assert s.policy.pass_mark == 60
        assert s.policy.max_upload_bytes == 10 * 1024 * 1024

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NCA_DB_PATH", str(tmp_path / "x.db"))
        monkeypatch.setenv("LLN_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("JWT_EXPIRE_HOURS", "8")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("SEED_DEMO_DATA", "true")
        s = get_settings()
        assert s.store.db_path == str(tmp_path / "x.db")
        assert s.policy.max_attempts == 5
        assert s.auth.token_ttl_hours == 8
        assert s.app.log_level == "DEBUG"
        assert s.app.seed_demo_data

    def test_documents_base_url_trailing_slash_trimmed(self, monkeypatch):
        monkeypatch.setenv("NCA_DOCUMENTS_BASE_URL", "https://files.nca.edu.au/")
        assert get_settings().store.documents_base_url == "https://files.nca.edu.au"

    def test_auth_not_configured_without_hashes(self, monkeypatch):
        monkeypatch.setenv("ADMIN_PASSWORD_HASHES", "")
        assert not get_settings().auth.is_configured

    def test_auth_configured(self):
        cfg = AuthConfig("8f1c2e9a7b4d4c0f", "HS256", 24, {"a@x.com": "$2b$10$abc"})
        assert cfg.is_configured

    def test_placeholder_secret_not_configured(self):
        cfg = AuthConfig("<change-me>", "HS256", 24, {"a@x.com": "$2b$10$abc"})
        assert not cfg.is_configured

    def test_status_summary_keys(self):
        summary = get_settings().status_summary()
        assert set(summary) == {"Record store", "Document store", "Admin sign-in", "Demo data"}
