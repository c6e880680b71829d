"""
Data Models
===========
Pydantic models for answer-key extraction and scoring output.
Response models serialize with camelCase aliases for the web client.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from fractions import Fraction
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


# ─── Enums ────────────────────────────────────────────────────────────────────


class NormalizedOption(str, Enum):
    """Canonical answer option. BLANK covers anything unanswered."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    BLANK = ""


class Outcome(str, Enum):
    """Scoring outcome of a single question."""
    CORRECT = "correct"
    WRONG = "wrong"
    BLANK = "blank"


# Marks are tracked in thirds: +1 = 3 thirds, -1/3 = -1 third.
OUTCOME_THIRDS = {
    Outcome.CORRECT: 3,
    Outcome.WRONG: -1,
    Outcome.BLANK: 0,
}


def round_thirds(thirds: int) -> float:
    """Convert a thirds count to marks rounded half-up to 2 decimals."""
    value = (Decimal(thirds) / Decimal(3)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )
    return float(value)


# ─── Extraction Models ────────────────────────────────────────────────────────


class RawQuestion(BaseModel):
    """
    One question as read from the page, before normalization.
    Produced by exactly one extraction strategy per run.
    """
    chosen: Optional[str] = None
    correct: Optional[str] = None
    status: Optional[str] = None
    section: Optional[str] = None


class SectionInfo(BaseModel):
    """A named run of consecutive questions, in document order."""
    name: str
    question_count: int = Field(gt=0)


class ExamMeta(BaseModel):
    """Candidate / exam details read from the key-value header tables."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    roll_number: Optional[str] = None
    registration: Optional[str] = None
    test_centre: Optional[str] = None
    test_date: Optional[str] = None
    test_time: Optional[str] = None
    subject: Optional[str] = None
    community: Optional[str] = None
    exam_images: list[str] = Field(default_factory=list)


# ─── Scoring Models ──────────────────────────────────────────────────────────


class ScoreTally(BaseModel):
    """
    Running counters for one scope (overall or a section).
    `thirds` is the exact score scaled by 3.
    """
    correct: int = 0
    wrong: int = 0
    blank: int = 0
    thirds: int = 0

    def add(self, outcome: Outcome):
        if outcome == Outcome.CORRECT:
            self.correct += 1
        elif outcome == Outcome.WRONG:
            self.wrong += 1
        else:
            self.blank += 1
        self.thirds += OUTCOME_THIRDS[outcome]

    @computed_field
    @property
    def attempted(self) -> int:
        return self.correct + self.wrong

    @computed_field
    @property
    def question_count(self) -> int:
        return self.correct + self.wrong + self.blank

    @computed_field
    @property
    def total(self) -> float:
        return round_thirds(self.thirds)

    @property
    def exact_total(self) -> Fraction:
        return Fraction(self.thirds, 3)


class SectionScore(BaseModel):
    """Per-section tally as returned to clients."""
    name: str
    total: float
    correct: int
    wrong: int
    blank: int
    attempted: int
    questions: int

    @classmethod
    def from_tally(cls, name: str, tally: ScoreTally) -> "SectionScore":
        return cls(
            name=name,
            total=tally.total,
            correct=tally.correct,
            wrong=tally.wrong,
            blank=tally.blank,
            attempted=tally.attempted,
            questions=tally.question_count,
        )


class ScoreSummary(BaseModel):
    """Overall tally plus per-section tallies in first-seen order."""
    overall: ScoreTally = Field(default_factory=ScoreTally)
    sections: dict[str, ScoreTally] = Field(default_factory=dict)


class DetectedSection(BaseModel):
    name: str
    questions: int


class MarkingRule(BaseModel):
    correct: float = 1
    wrong: float = -1 / 3
    blank: float = 0


class ScoreResult(BaseModel):
    """
    Complete output of a scoring run.
    This is the top-level JSON structure returned by /api/score.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    total: float
    correct: int
    wrong: int
    blank: int
    attempted: int
    questions: int
    sections: list[SectionScore] = Field(default_factory=list)
    sections_detected: list[DetectedSection] = Field(default_factory=list)
    meta: ExamMeta = Field(default_factory=ExamMeta)
    rule: MarkingRule = Field(default_factory=MarkingRule)
    strategy: str = ""

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ─── Archive Models ──────────────────────────────────────────────────────────


class SavedKeyFile(BaseModel):
    """A sanitized answer key persisted in the archive."""
    name: str
    size: int = 0
    created: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
