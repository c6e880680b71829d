"""
Question Extractors
===================
Three independent strategies that turn an answer-key page into an
ordered list of RawQuestion records:

    1. structured  - question panels with "Chosen Option" / rightAns cells
    2. text        - "Question ID:" blocks in the page's plain text
    3. table       - any table with "Chosen" and "Correct" header cells

Each strategy is a plain function AnswerKeyDocument -> list[RawQuestion].
`extract_questions` tries them in EXTRACTION_STRATEGIES order and keeps
the first non-empty result; records from different strategies are never
merged.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from .document import AnswerKeyDocument
from .models import RawQuestion
from .options import resolve_option
from .sections import QUESTION_PANEL, section_label

logger = logging.getLogger(__name__)

Strategy = Callable[[AnswerKeyDocument], list[RawQuestion]]

# ─── Text Patterns ────────────────────────────────────────────────────────────

# "Question ID :", "Question No.:", "question no -"
QUESTION_SPLIT_PATTERN = re.compile(
    r"Question\s*(?:ID|No\.?)\s*[:\-]", re.IGNORECASE
)

CHOSEN_PATTERN = re.compile(
    r"Chosen\s*Option\s*:\s*([A-Za-z0-9\-]+)", re.IGNORECASE
)

CORRECT_PATTERN = re.compile(
    r"Correct\s*Option\s*:\s*([A-Za-z0-9\-]+)", re.IGNORECASE
)

STATUS_PATTERN = re.compile(
    r"Status\s*:\s*([^\n\r]+)", re.IGNORECASE
)

# Table header cells
CHOSEN_HEADER = re.compile(r"chosen", re.IGNORECASE)
CORRECT_HEADER = re.compile(r"correct", re.IGNORECASE)
STATUS_HEADER = re.compile(r"status", re.IGNORECASE)


# ─── Strategy 1: Structured Markup ───────────────────────────────────────────


def extract_structured(doc: AnswerKeyDocument) -> list[RawQuestion]:
    """Read question panels (div.question-pnl) in document order."""
    questions: list[RawQuestion] = []

    for panel in doc.soup.select(QUESTION_PANEL):
        container = panel.find_parent(class_="section-cntnr")
        section = section_label(container) if container else ""

        right = panel.select_one(".rightAns")
        right_text = right.get_text().strip() if right else ""
        chosen_text = _labelled_value(panel, "Chosen Option")
        status = _labelled_value(panel, "Status").lower()

        questions.append(RawQuestion(
            chosen=resolve_option(chosen_text),
            correct=resolve_option(right_text),
            status=status,
            section=section or None,
        ))

    return questions


def _labelled_value(panel, label: str) -> str:
    """Text of the first bold cell whose preceding cell mentions `label`."""
    for cell in panel.select("td.bold"):
        prev = cell.find_previous_sibling("td")
        if prev is not None and label in prev.get_text():
            return cell.get_text().strip()
    return ""


# ─── Strategy 2: Raw Text ────────────────────────────────────────────────────


def extract_from_text(doc: AnswerKeyDocument) -> list[RawQuestion]:
    """
    Split plain text on "Question ID:" markers and regex each block.

    When no block yields anything, fall back to zipping every global
    chosen / correct / status match by position. That zip can misalign
    records when the three match counts differ.
    """
    text = doc.text
    blocks = [b.strip() for b in QUESTION_SPLIT_PATTERN.split(text)[1:]]

    parsed: list[RawQuestion] = []
    for block in blocks:
        chosen = _first_group(CHOSEN_PATTERN, block)
        correct = _first_group(CORRECT_PATTERN, block)
        status = _first_group(STATUS_PATTERN, block)
        if chosen or correct or status:
            parsed.append(RawQuestion(chosen=chosen, correct=correct, status=status))

    if parsed:
        return parsed

    chosen_list = CHOSEN_PATTERN.findall(text)
    correct_list = CORRECT_PATTERN.findall(text)
    status_list = STATUS_PATTERN.findall(text)
    count = max(len(chosen_list), len(correct_list), len(status_list))

    if count:
        logger.warning(
            f"No question blocks found; zipping {len(chosen_list)} chosen, "
            f"{len(correct_list)} correct, {len(status_list)} status matches"
        )

    return [
        RawQuestion(
            chosen=_at(chosen_list, i),
            correct=_at(correct_list, i),
            status=_at(status_list, i),
        )
        for i in range(count)
    ]


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(1) if match else None


def _at(values: list[str], index: int) -> Optional[str]:
    return values[index] if index < len(values) else None


# ─── Strategy 3: Table Rows ──────────────────────────────────────────────────


def extract_from_table(doc: AnswerKeyDocument) -> list[RawQuestion]:
    """
    Use the first row with "chosen" and "correct" cells as the header.

    Column positions are fixed from that row; rows before it are ignored.
    """
    parsed: list[RawQuestion] = []
    chosen_idx = correct_idx = status_idx = -1

    for row in doc.soup.find_all("tr"):
        cells = [c.get_text().strip() for c in row.find_all(["th", "td"])]
        if not cells:
            continue

        if chosen_idx == -1:
            if _find_cell(cells, CHOSEN_HEADER) >= 0 and _find_cell(cells, CORRECT_HEADER) >= 0:
                chosen_idx = _find_cell(cells, CHOSEN_HEADER)
                correct_idx = _find_cell(cells, CORRECT_HEADER)
                status_idx = _find_cell(cells, STATUS_HEADER)
            continue

        if len(cells) > max(chosen_idx, correct_idx):
            parsed.append(RawQuestion(
                chosen=cells[chosen_idx],
                correct=cells[correct_idx],
                status=cells[status_idx] if 0 <= status_idx < len(cells) else None,
            ))

    return parsed


def _find_cell(cells: list[str], pattern: re.Pattern) -> int:
    for i, cell in enumerate(cells):
        if pattern.search(cell):
            return i
    return -1


# ─── Fallback Chain ──────────────────────────────────────────────────────────


EXTRACTION_STRATEGIES: list[tuple[str, Strategy]] = [
    ("structured", extract_structured),
    ("text", extract_from_text),
    ("table", extract_from_table),
]


def extract_questions(
    doc: AnswerKeyDocument,
    strategies: Optional[list[tuple[str, Strategy]]] = None,
) -> tuple[str, list[RawQuestion]]:
    """
    Run strategies in order, stopping at the first non-empty result.

    Returns (strategy_name, questions); ("", []) when every strategy
    comes back empty.
    """
    for name, strategy in strategies or EXTRACTION_STRATEGIES:
        questions = strategy(doc)
        if questions:
            logger.info(f"Strategy '{name}' extracted {len(questions)} questions")
            return name, questions
        logger.info(f"Strategy '{name}' found no questions, falling back")

    return "", []
