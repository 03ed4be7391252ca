"""
Shared pytest fixtures for the NCA enrolment test suite.
Every fixture works on a throw-away SQLite file and document root under
tmp_path — nothing touches the real database or student folders.
Factory helpers live in tests/factories.py so they can be imported
directly by test modules as well as being used here.
"""
import sys
import os

_tests_dir = os.path.dirname(__file__)
_src_dir   = os.path.join(_tests_dir, "..", "src")
for _p in (_tests_dir, _src_dir):
    if _p not in sys.path:
        sys.path.insert(0, _p)

os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")


import pytest

from factories import ADMIN_PASSWORD, make_settings

from nca_enrolment.admin import AdminService
from nca_enrolment.attempt_gate import AttemptGate
from nca_enrolment.database import SqliteRecordStore
from nca_enrolment.documents import LocalDocumentStore
from nca_enrolment.enrolment import EnrolmentService


# ─── pytest fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def store(settings):
    return SqliteRecordStore(settings.store.db_path)


@pytest.fixture
def documents(settings):
    return LocalDocumentStore(settings.store.documents_root, settings.store.documents_base_url)


@pytest.fixture
def gate(store, documents):
    return AttemptGate(store, documents, max_attempts=3)


@pytest.fixture
def service(store, documents, settings):
    return EnrolmentService(store, documents, settings)


@pytest.fixture
def admin_service(store, documents, settings):
    return AdminService(store, documents, settings)


@pytest.fixture
def super_admin_token(admin_service):
    return admin_service.login("dhairya@nca.edu.au", ADMIN_PASSWORD)


@pytest.fixture
def viewer_token(admin_service):
    return admin_service.login("admin@nca.edu.au", ADMIN_PASSWORD)
