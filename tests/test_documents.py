"""
Tests for the per-student document folders (documents.py).
"""
from datetime import date

import pytest
from factories import PDF_BYTES, PNG_BYTES

from nca_enrolment.documents import DOCUMENTS_SUBFOLDER, LocalDocumentStore, document_filename
from nca_enrolment.models import DocumentType


class TestDocumentFilename:
    def test_convention(self):
        name = document_filename(DocumentType.PASSPORT_BIO, "STU-1", "pdf", on=date(2025, 3, 14))
        assert name == "passport_bio_STU-1_2025-03-14.pdf"

    def test_strips_leading_dot(self):
        assert document_filename(DocumentType.RECENT_PHOTO, "STU-1", ".jpg", on=date(2025, 1, 1)).endswith(".jpg")
        assert ".." not in document_filename(DocumentType.RECENT_PHOTO, "STU-1", ".jpg")


class TestLocalDocumentStore:
    def test_ensure_folder_idempotent(self, documents):
        a = documents.ensure_folder("STU-1", "Alex_Taylor_1995-01-01")
        b = documents.ensure_folder("STU-1", "Alex_Taylor_1995-01-01")
        assert a == b == "Alex_Taylor_1995-01-01_STU-1"
        assert (documents.root / a).is_dir()

    def test_same_name_different_students_get_own_folders(self, documents):
        a = documents.ensure_folder("STU-1", "Sam_Lee_1995-01-01")
        b = documents.ensure_folder("STU-2", "Sam_Lee_1995-01-01")
        assert a != b
        documents.upload_file(a, "secret_a.pdf", PDF_BYTES, "application/pdf")
        assert documents.list_folder(b) == []

    def test_folder_name_sanitised(self, documents):
        folder = documents.ensure_folder("STU-2", "Tom_O'Connor_1976-01-30")
        assert "'" not in folder

    def test_upload_into_subfolder(self, documents):
        folder = documents.ensure_folder("STU-1", "Alex_Taylor_1995-01-01")
        url = documents.upload_file(folder, "photo_id_STU-1.png", PNG_BYTES, "image/png",
                                    subfolder=DOCUMENTS_SUBFOLDER)
        assert url == f"/files/{folder}/Documents/photo_id_STU-1.png"
        assert documents.read_file(folder, "Documents/photo_id_STU-1.png") == PNG_BYTES

    def test_upload_replaces_same_name(self, documents):
        folder = documents.ensure_folder("STU-1", "Alex_Taylor_1995-01-01")
        documents.upload_file(folder, "report.pdf", b"%PDF-old", "application/pdf")
        documents.upload_file(folder, "report.pdf", PDF_BYTES, "application/pdf")
        assert documents.read_file(folder, "report.pdf") == PDF_BYTES
        assert len(documents.list_folder(folder)) == 1

    def test_upload_to_unknown_folder(self, documents):
        with pytest.raises(FileNotFoundError):
            documents.upload_file("Nobody_1990-01-01", "x.pdf", PDF_BYTES, "application/pdf")

    def test_list_folder_recursive(self, documents):
        folder = documents.ensure_folder("STU-1", "Alex_Taylor_1995-01-01")
        documents.upload_file(folder, "report.pdf", PDF_BYTES, "application/pdf")
        documents.upload_file(folder, "id.png", PNG_BYTES, "image/png", subfolder=DOCUMENTS_SUBFOLDER)
        paths = sorted(f.path for f in documents.list_folder(folder))
        assert paths == ["Documents/id.png", "report.pdf"]

    def test_list_missing_folder_is_empty(self, documents):
        assert documents.list_folder("Nobody_1990-01-01") == []

    def test_path_traversal_rejected(self, documents):
        folder = documents.ensure_folder("STU-1", "Alex_Taylor_1995-01-01")
        with pytest.raises(ValueError):
            documents.read_file(folder, "../../secrets.txt")

    def test_shareable_link(self, tmp_path):
        store = LocalDocumentStore(tmp_path / "docs", base_url="https://files.nca.edu.au/")
        assert store.shareable_link("Alex_Taylor_1995-01-01") == "https://files.nca.edu.au/Alex_Taylor_1995-01-01/"
