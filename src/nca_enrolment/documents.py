"""
documents.py — Per-student document folders
===========================================
Every registered student gets one folder named
``First_Last_YYYY-MM-DD_<student id>`` under the documents root; two
applicants sharing a name and date of birth never share a folder.
Uploaded identity documents land in a ``Documents`` subfolder; generated
PDFs (LLN report, enrolment forms) sit at the folder root.

Files are addressed by URL ``{base_url}/{folder_id}/{subpath}`` so the admin
dashboard can hand out a shareable link without exposing filesystem paths.

Public API (LocalDocumentStore)
-------------------------------
  ensure_folder(student_id, folder_name)         → folder_id (idempotent)
  upload_file(folder_id, name, data, mime, sub)  → url
  list_folder(folder_id)                         → list[FileInfo]
  shareable_link(folder_id)                      → url
  read_file(folder_id, relative_path)            → bytes
  document_filename(doc_type, student_id, ext)   → "{doc}_{student}_{date}.{ext}"
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

from nca_enrolment.models import DocumentType

logger = logging.getLogger(__name__)

DOCUMENTS_SUBFOLDER = "Documents"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._\-]+")


def _safe(name: str) -> str:
    """Strip path separators and odd characters from a folder/file name."""
    cleaned = _UNSAFE_CHARS.sub("_", name.strip()).strip("._")
    return cleaned or "unnamed"


def document_filename(doc_type: DocumentType, student_id: str, ext: str,
                      on: Optional[date] = None) -> str:
    """Naming convention for uploaded documents."""
    stamp = (on or date.today()).isoformat()
    return f"{doc_type.value}_{student_id}_{stamp}.{ext.lstrip('.')}"


@dataclass
class FileInfo:
    name:        str
    path:        str   # relative to the student folder
    size_bytes:  int
    modified_at: datetime
    url:         str


class LocalDocumentStore:
    """Document store on the local filesystem."""

    def __init__(self, root: str | Path, base_url: str = "/files"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _folder(self, folder_id: str) -> Path:
        path = (self.root / _safe(folder_id)).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Folder id escapes the documents root: {folder_id!r}")
        return path

    def _url(self, folder_id: str, relative: str) -> str:
        return f"{self.base_url}/{folder_id}/{relative}"

    def ensure_folder(self, student_id: str, folder_name: str) -> str:
        """Create the student folder if missing and return its id."""
        folder_id = _safe(f"{folder_name}_{student_id}")
        path = self._folder(folder_id)
        if not path.exists():
            path.mkdir(parents=True)
            logger.info("Created student folder %s", folder_id)
        return folder_id

    def upload_file(
        self,
        folder_id: str,
        name: str,
        data: bytes,
        mime_type: str,
        subfolder: Optional[str] = None,
    ) -> str:
        """Write ``data`` into the folder (or a subfolder) and return its URL.

        An existing file with the same name is replaced.
        """
        target_dir = self._folder(folder_id)
        if not target_dir.exists():
            raise FileNotFoundError(f"Unknown student folder: {folder_id}")
        relative = _safe(name)
        if subfolder:
            target_dir = target_dir / _safe(subfolder)
            target_dir.mkdir(exist_ok=True)
            relative = f"{_safe(subfolder)}/{relative}"
        (target_dir / _safe(name)).write_bytes(data)
        logger.info("Stored %s (%s, %d bytes) in %s", relative, mime_type, len(data), folder_id)
        return self._url(folder_id, relative)

    def list_folder(self, folder_id: str) -> list[FileInfo]:
        """All files in the folder, recursively, newest first."""
        path = self._folder(folder_id)
        if not path.exists():
            return []
        files = []
        for f in path.rglob("*"):
            if not f.is_file():
                continue
            stat = f.stat()
            relative = f.relative_to(path).as_posix()
            files.append(FileInfo(
                name        = f.name,
                path        = relative,
                size_bytes  = stat.st_size,
                modified_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                url         = self._url(folder_id, relative),
            ))
        return sorted(files, key=lambda fi: fi.modified_at, reverse=True)

    def read_file(self, folder_id: str, relative_path: str) -> bytes:
        folder = self._folder(folder_id)
        path = (folder / relative_path).resolve()
        if folder not in path.parents:
            raise ValueError(f"Path escapes the student folder: {relative_path!r}")
        return path.read_bytes()

    def shareable_link(self, folder_id: str) -> str:
        return f"{self.base_url}/{folder_id}/"
