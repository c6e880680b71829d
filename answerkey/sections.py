"""
Section Detector / Assigner
===========================
Finds named section containers and stamps section names onto the
extracted question list by position.

Sections are matched by count only: the first section claims the first
`question_count` questions, the next section the following run, etc.
"""

from __future__ import annotations

import logging

from .document import AnswerKeyDocument
from .models import RawQuestion, SectionInfo

logger = logging.getLogger(__name__)

SECTION_CONTAINER = ".section-cntnr"
SECTION_LABEL = ".section-lbl .bold"
QUESTION_PANEL = "div.question-pnl"

OVERALL_SECTION = "Overall"


def section_label(container) -> str:
    """Trimmed text of the container's label element, "" if none."""
    label = container.select_one(SECTION_LABEL)
    return label.get_text().strip() if label else ""


def detect_sections(doc: AnswerKeyDocument) -> list[SectionInfo]:
    """Ordered SectionInfo list; sections without questions are dropped."""
    sections: list[SectionInfo] = []

    for i, container in enumerate(doc.soup.select(SECTION_CONTAINER)):
        name = section_label(container) or f"Section {i + 1}"
        count = len(container.select(QUESTION_PANEL))
        if count > 0:
            sections.append(SectionInfo(name=name, question_count=count))

    if sections:
        logger.info(
            "Detected sections: "
            + ", ".join(f"{s.name} ({s.question_count})" for s in sections)
        )
    return sections


def assign_sections(
    questions: list[RawQuestion],
    sections: list[SectionInfo],
) -> list[RawQuestion]:
    """
    Return a new question list with section names stamped positionally.

    Surplus sections are ignored. Questions beyond the total section
    count keep any section they already carry, else get the first
    section's name ("Overall" when there are no sections).
    """
    stamped: list[RawQuestion] = []
    idx = 0

    for section in sections:
        for _ in range(section.question_count):
            if idx >= len(questions):
                break
            stamped.append(questions[idx].model_copy(update={"section": section.name}))
            idx += 1

    fallback = sections[0].name if sections else OVERALL_SECTION
    for q in questions[idx:]:
        stamped.append(q.model_copy(update={"section": q.section or fallback}))

    total_slots = sum(s.question_count for s in sections)
    if sections and total_slots != len(questions):
        logger.warning(
            f"Section counts ({total_slots}) do not match "
            f"question count ({len(questions)}); assignment is best-effort"
        )

    return stamped
