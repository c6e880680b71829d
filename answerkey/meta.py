"""
Meta Extractor
==============
Reads candidate / exam details from label-value table cells and
collects the first few header images of the page.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin

from .document import AnswerKeyDocument
from .models import ExamMeta

logger = logging.getLogger(__name__)

# Lowercased label cell text → ExamMeta field
META_LABELS = {
    "registration number": "registration",
    "roll number": "roll_number",
    "candidate name": "name",
    "community": "community",
    "test center name": "test_centre",
    "test centre name": "test_centre",
    "test date": "test_date",
    "test time": "test_time",
    "subject": "subject",
    "subjects": "subject",
}

MAX_EXAM_IMAGES = 3


def extract_meta(doc: AnswerKeyDocument) -> ExamMeta:
    """Build ExamMeta from label/value cell pairs plus header images."""
    fields: dict[str, str] = {}

    for cell in doc.soup.find_all("td"):
        target = META_LABELS.get(cell.get_text().strip().lower())
        if not target:
            continue
        value_cell = cell.find_next_sibling()
        if value_cell is None or value_cell.name != "td":
            continue
        value = value_cell.get_text().strip()
        if value:
            # Last occurrence of a repeated label wins
            fields[target] = value

    meta = ExamMeta(**fields, exam_images=extract_exam_images(doc))
    logger.debug(f"Extracted meta fields: {sorted(fields)}")
    return meta


def extract_exam_images(
    doc: AnswerKeyDocument,
    limit: int = MAX_EXAM_IMAGES,
) -> list[str]:
    """First `limit` distinct image sources, in document order."""
    seen: set[str] = set()
    images: list[str] = []

    for img in doc.soup.find_all("img"):
        src = (img.get("src") or "").strip()
        if not src:
            continue
        absolute = _absolutize(src, doc.source_url)
        if absolute in seen:
            continue
        seen.add(absolute)
        images.append(absolute)
        if len(images) >= limit:
            break

    return images


def _absolutize(src: str, base_url: Optional[str]) -> str:
    if src.startswith(("http://", "https://", "data:")):
        return src
    if src.startswith("//"):
        return f"https:{src}"
    if base_url:
        return urljoin(base_url, src)
    return src
