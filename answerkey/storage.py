"""
Saved Key Archive
=================
Write-once storage for sanitized answer-key pages.

Directory Layout:
    saved-keys/
    ├── exam-{subject}-{date}-{time}.html   # when the page names its slot
    └── key-{sha256(url)[:12]}.html         # otherwise

The archive talks to storage through a small capability object
(exists / write / read / delete / list) so tests can swap in an
in-memory fake. Only generated filenames can be read or deleted.
"""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import ArchivalError, FileNotAllowedError
from .models import ExamMeta, SavedKeyFile

logger = logging.getLogger(__name__)

# Project root: one level up from /answerkey/ package
_PROJECT_ROOT = Path(__file__).parent.parent.absolute()

SAVED_KEYS_DIR = _PROJECT_ROOT / "saved-keys"

KEY_FILENAME_PATTERN = re.compile(r"^key-[a-f0-9]{12}(?:-\d+)?\.html$", re.IGNORECASE)
EXAM_FILENAME_PATTERN = re.compile(r"^exam-[a-z0-9-]+\.html$")


# ─── Storage Backend ──────────────────────────────────────────────────────────


class FileSystemStorage:
    """Flat directory of HTML files. The directory is created on first write."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root) if root else SAVED_KEYS_DIR

    def exists(self, name: str) -> bool:
        return (self.root / name).exists()

    def write(self, name: str, text: str):
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_text(text, encoding="utf-8")
        except OSError as e:
            raise ArchivalError(f"Cannot write {name}: {e}") from e

    def read(self, name: str) -> bytes:
        return (self.root / name).read_bytes()

    def delete(self, name: str):
        (self.root / name).unlink()

    def list(self) -> list[SavedKeyFile]:
        files = []
        for path in self.root.iterdir():
            if not path.is_file() or not path.name.endswith(".html"):
                continue
            stat = path.stat()
            created = getattr(stat, "st_birthtime", stat.st_mtime)
            files.append(SavedKeyFile(
                name=path.name,
                size=stat.st_size,
                created=datetime.fromtimestamp(created, timezone.utc).isoformat(),
            ))
        return files


# ─── Filenames ────────────────────────────────────────────────────────────────


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumerics to "-", trim, max 80 chars."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return slug.strip("-")[:80]


def exam_slot_filename(meta: Optional[ExamMeta]) -> Optional[str]:
    """`exam-<subject>-<date>-<time>.html`, or None unless all three are known."""
    subject = slugify(meta.subject) if meta and meta.subject else ""
    date = slugify(meta.test_date) if meta and meta.test_date else ""
    time = slugify(meta.test_time) if meta and meta.test_time else ""

    if subject and date and time:
        return f"exam-{subject}-{date}-{time}.html"
    return None


def derive_filename(source_url: str, meta: Optional[ExamMeta] = None) -> str:
    """Exam-slot name when subject, date and time are known, else URL hash."""
    slot_name = exam_slot_filename(meta)
    if slot_name:
        return slot_name

    digest = hashlib.sha256(source_url.encode("utf-8")).hexdigest()[:12]
    return f"key-{digest}.html"


def is_allowed_filename(name: str) -> bool:
    return bool(KEY_FILENAME_PATTERN.match(name) or EXAM_FILENAME_PATTERN.match(name))


# ─── Archive ──────────────────────────────────────────────────────────────────


class SavedKeyArchive:
    """
    Sanitized answer keys, one file per exam slot.

    `save` never raises: an existing file is left untouched and any
    storage failure is only logged.
    """

    def __init__(self, storage=None):
        self.storage = storage or FileSystemStorage()

    def save(
        self,
        sanitized_html: str,
        source_url: str,
        meta: Optional[ExamMeta] = None,
    ) -> Optional[str]:
        """Persist once per derived filename. Returns the name if written."""
        try:
            filename = derive_filename(source_url, meta)
            if self.storage.exists(filename):
                logger.info(f"Saved key already exists, skipping: {filename}")
                return None
            self.storage.write(filename, sanitized_html)
            logger.info(f"Saved sanitized answer key: {filename}")
            return filename
        except Exception as e:
            logger.error(f"Failed to save sanitized answer key: {e}")
            return None

    def list_files(self) -> list[SavedKeyFile]:
        """Saved keys, newest first."""
        files = self.storage.list()
        files.sort(key=lambda f: f.created, reverse=True)
        return files

    def read(self, name: str) -> bytes:
        self._check(name)
        return self.storage.read(name)

    def delete(self, name: str):
        self._check(name)
        self.storage.delete(name)
        logger.info(f"Deleted saved key: {name}")

    def _check(self, name: str):
        if not is_allowed_filename(name):
            logger.warning(f"Rejected saved-key filename: {name}")
            raise FileNotAllowedError(name)
