"""
Scoring Engine
==============
Main orchestrator that combines fetching, extraction, section assignment,
scoring and archiving into a complete scoring pipeline.

Usage:
    engine = ScoreEngine(config)
    result = engine.score_url("https://.../answer-key.html")
    # result is a ScoreResult ready for JSON serialization

Architecture:
    URL → Fetcher → HTML → AnswerKeyDocument → Extractors (fallback chain) →
    RawQuestions → Section Assigner → Scorer → ScoreResult
                              └→ Redactor → SavedKeyArchive (background)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .document import load_document
from .errors import ExtractionExhaustedError
from .extractors import extract_questions
from .fetcher import DEFAULT_TIMEOUT, USER_AGENT, fetch_document, validate_url
from .meta import extract_meta
from .models import DetectedSection, ExamMeta, ScoreResult, SectionScore
from .redactor import redact_personal_fields
from .scoring import compute_score
from .sections import assign_sections, detect_sections
from .storage import FileSystemStorage, SavedKeyArchive, exam_slot_filename

logger = logging.getLogger(__name__)


@dataclass
class ScoreConfig:
    """Configuration for the scoring engine."""

    # Fetching
    fetch_timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT

    # Archive
    archive_enabled: bool = True
    background_archive: bool = True
    saved_keys_dir: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class PipelineState(Enum):
    """Stages of a single scoring run."""
    FETCHING = "FETCHING"
    PARSING = "PARSING"
    EXTRACTING = "EXTRACTING"
    ASSIGNING = "ASSIGNING"
    SCORING = "SCORING"
    ARCHIVING = "ARCHIVING"
    DONE = "DONE"
    FAILED = "FAILED"


class ScoreEngine:
    """
    Answer-key scoring engine.

    Orchestrates the full pipeline:
        1. Fetch the answer-key page
        2. Parse and read candidate meta
        3. Extract questions (structured → text → table)
        4. Assign detected sections
        5. Score
        6. Redact and archive a copy (never affects the result)

    Create one engine per request; it holds no state shared across runs.
    """

    def __init__(
        self,
        config: Optional[ScoreConfig] = None,
        archive: Optional[SavedKeyArchive] = None,
    ):
        self.config = config or ScoreConfig()
        self.archive = archive or SavedKeyArchive(
            FileSystemStorage(self.config.saved_keys_dir)
        )
        self.state: Optional[PipelineState] = None
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("answerkey")
        package_logger.setLevel(log_level)

        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(formatter)
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file).absolute()
            already = any(
                isinstance(h, logging.FileHandler) and h.baseFilename == str(log_path)
                for h in package_logger.handlers
            )
            if not already:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(formatter)
                package_logger.addHandler(file_handler)

    def _transition(self, state: PipelineState):
        logger.debug(f"Pipeline: {self.state.value if self.state else 'START'} → {state.value}")
        self.state = state

    def score_url(self, url: str) -> ScoreResult:
        """
        Fetch an answer-key page and score it.

        Raises:
            InputValidationError: Missing or non-http(s) URL.
            FetchTimeoutError: Remote page did not answer in time.
            UpstreamFetchError: Remote page answered with an error.
            ExtractionExhaustedError: No strategy found any question.
        """
        url = validate_url(url)

        self._transition(PipelineState.FETCHING)
        try:
            html = fetch_document(
                url,
                timeout=self.config.fetch_timeout,
                user_agent=self.config.user_agent,
            )
        except Exception:
            self._transition(PipelineState.FAILED)
            raise

        return self.score_html(html, url)

    def score_html(self, html: str, url: str = "") -> ScoreResult:
        """Score an already-downloaded answer-key page."""
        start_time = time.time()

        try:
            # ── Step 1: Parse ─────────────────────────────────────────────
            self._transition(PipelineState.PARSING)
            doc = load_document(html, source_url=url or None)
            meta = extract_meta(doc)
            sections_info = detect_sections(doc)

            # ── Step 2: Extract with fallbacks ────────────────────────────
            self._transition(PipelineState.EXTRACTING)
            strategy, questions = extract_questions(doc)
            if not questions:
                raise ExtractionExhaustedError()

            # ── Step 3: Sections ──────────────────────────────────────────
            self._transition(PipelineState.ASSIGNING)
            if sections_info:
                questions = assign_sections(questions, sections_info)

            # ── Step 4: Score ─────────────────────────────────────────────
            self._transition(PipelineState.SCORING)
            summary = compute_score(questions)
        except Exception:
            self._transition(PipelineState.FAILED)
            raise

        overall = summary.overall
        result = ScoreResult(
            url=url,
            total=overall.total,
            correct=overall.correct,
            wrong=overall.wrong,
            blank=overall.blank,
            attempted=overall.attempted,
            questions=len(questions),
            sections=[
                SectionScore.from_tally(name, tally)
                for name, tally in summary.sections.items()
            ],
            sections_detected=[
                DetectedSection(name=s.name, questions=s.question_count)
                for s in sections_info
            ],
            meta=meta,
            strategy=strategy,
        )

        # ── Step 5: Archive ───────────────────────────────────────────────
        if self.config.archive_enabled:
            self._transition(PipelineState.ARCHIVING)
            if url or exam_slot_filename(meta):
                self._archive(html, url, meta)
            else:
                # key-<hash> names need a source URL
                logger.info("No source URL or exam slot, archive skipped")

        self._transition(PipelineState.DONE)
        elapsed = time.time() - start_time
        logger.info(
            f"Scoring complete in {elapsed:.2f}s, "
            f"{result.questions} questions, total {result.total}"
        )
        return result

    def _archive(self, html: str, url: str, meta: ExamMeta):
        """Save a redacted copy, on a daemon thread unless configured inline."""
        if self.config.background_archive:
            thread = threading.Thread(
                target=self._save_sanitized_copy,
                args=(html, url, meta),
                daemon=True,
            )
            thread.start()
        else:
            self._save_sanitized_copy(html, url, meta)

    def _save_sanitized_copy(self, html: str, url: str, meta: ExamMeta):
        try:
            sanitized = redact_personal_fields(html, meta)
            self.archive.save(sanitized, url, meta)
        except Exception as e:
            logger.error(f"Failed to archive answer key: {e}")
