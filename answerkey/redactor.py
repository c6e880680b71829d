"""
Redactor
========
Produces a copy of the answer-key page with candidate details removed,
for archiving. Test date, test time and subject are always kept so the
archived key can still be identified.
"""

from __future__ import annotations

import logging
import re
from html import escape
from typing import Optional

from bs4 import BeautifulSoup, NavigableString

from .document import HTML_PARSER
from .models import ExamMeta

logger = logging.getLogger(__name__)

REDACTED = "[redacted]"

PERSONAL_LABELS = (
    "registration number",
    "roll number",
    "candidate name",
    "candidate",
    "community",
    "category",
    "test center name",
    "test centre name",
    "application number",
    "dob",
    "date of birth",
    "father name",
    "mother name",
)

KEEP_LABEL_PATTERN = re.compile(r"test date|test time|subjects?")

PERSONAL_IMAGE_PATTERN = re.compile(r"photo|photograph|candidate|signature")

# Meta fields that identify the exam slot rather than the candidate
KEEP_META_FIELDS = {"test_date", "test_time", "subject", "exam_images"}


def is_personal_label(text: str) -> bool:
    key = text.strip().lower()
    if KEEP_LABEL_PATTERN.search(key):
        return False
    return key.startswith(PERSONAL_LABELS)


def redact_personal_fields(html: str, meta: Optional[ExamMeta] = None) -> str:
    """Return sanitized HTML: personal rows, photos and meta values removed."""
    soup = BeautifulSoup(html, HTML_PARSER)

    rows_to_remove = []
    for cell in soup.find_all(["td", "th"]):
        # Layout cells wrapping a whole nested table are not labels
        if cell.find(["td", "th"]) is not None:
            continue
        if not is_personal_label(cell.get_text()):
            continue
        value_cell = cell.find_next_sibling("td")
        if value_cell is not None:
            value_cell.string = REDACTED
        if cell.parent is not None:
            rows_to_remove.append(cell.parent)

    removed = 0
    seen: set[int] = set()
    for row in rows_to_remove:
        if id(row) in seen:
            continue
        seen.add(id(row))
        # Drop the indentation that followed the row as well
        trailing = row.next_sibling
        if isinstance(trailing, NavigableString) and not trailing.strip():
            trailing.extract()
        row.extract()
        removed += 1

    images_removed = 0
    for img in soup.find_all("img"):
        haystack = f"{img.get('src') or ''} {img.get('alt') or ''}".lower()
        if PERSONAL_IMAGE_PATTERN.search(haystack):
            img.extract()
            images_removed += 1

    sanitized = str(soup)

    if meta:
        for field_name, value in meta.model_dump().items():
            if field_name in KEEP_META_FIELDS:
                continue
            if isinstance(value, str) and len(value.strip()) > 2:
                # Serialized text has & < > as entities
                for needle in (escape(value, quote=False), value):
                    sanitized = sanitized.replace(needle, REDACTED)

    logger.debug(f"Redacted {removed} rows and {images_removed} images")
    return sanitized
