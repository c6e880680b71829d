"""
Scorer
======
Applies the fixed marking rule (+1 correct, -1/3 wrong, 0 blank) to an
extracted question list.

Scores are accumulated as integer thirds and only converted to decimal
marks (rounded half-up to 2 places) when presented, so no rounding error
ever feeds back into the totals.
"""

from __future__ import annotations

import logging

from .models import NormalizedOption, Outcome, RawQuestion, ScoreSummary, ScoreTally
from .options import BLANK_PLACEHOLDER, normalize_option

logger = logging.getLogger(__name__)

BLANK_STATUS_MARKERS = ("not answered", "not attempted", "unanswered")


def classify_question(question: RawQuestion) -> Outcome:
    """Decide CORRECT / WRONG / BLANK for a single question."""
    chosen = normalize_option(question.chosen)
    correct = normalize_option(question.correct)
    status = (question.status or "").lower()

    is_blank = (
        chosen == NormalizedOption.BLANK
        or (question.chosen or "").strip() == BLANK_PLACEHOLDER
        or any(marker in status for marker in BLANK_STATUS_MARKERS)
    )

    # An unreadable correct answer can't be scored; treat it as blank
    if is_blank or correct == NormalizedOption.BLANK:
        return Outcome.BLANK

    return Outcome.CORRECT if chosen == correct else Outcome.WRONG


def compute_score(questions: list[RawQuestion]) -> ScoreSummary:
    """
    Score every question, overall and per section.

    Questions without a section only count toward the overall tally.
    Never raises; an empty list gives all-zero tallies.
    """
    summary = ScoreSummary()

    for question in questions:
        outcome = classify_question(question)
        summary.overall.add(outcome)
        if question.section:
            summary.sections.setdefault(question.section, ScoreTally()).add(outcome)

    overall = summary.overall
    logger.info(
        f"Scored {overall.question_count} questions: "
        f"{overall.correct} correct, {overall.wrong} wrong, "
        f"{overall.blank} blank, total {overall.total}"
    )
    return summary
