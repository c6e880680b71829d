"""
Error Taxonomy
==============
Exceptions raised by the scoring pipeline. Each carries the HTTP status
the service layer answers with and a short message safe to show users.
"""

from __future__ import annotations

from typing import Optional


class AnswerKeyError(Exception):
    """Base class for all user-facing scoring failures."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InputValidationError(AnswerKeyError):
    """Missing or malformed answer-key URL."""

    status_code = 400


class UpstreamFetchError(AnswerKeyError):
    """Remote server answered with a non-success status or was unreachable."""

    status_code = 500


class FetchTimeoutError(AnswerKeyError):
    """Remote server did not answer within the fetch timeout."""

    status_code = 504


class ExtractionExhaustedError(AnswerKeyError):
    """None of the extraction strategies found a single question."""

    status_code = 422

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Could not detect any questions in the provided page. "
            "Please upload the HTML or try another link."
        )


class FileNotAllowedError(AnswerKeyError):
    """Archive filename outside the generated-name allow-list."""

    status_code = 404

    def __init__(self, filename: str):
        super().__init__("Not found")
        self.filename = filename


class ArchivalError(AnswerKeyError):
    """Saving the sanitized copy failed. Logged, never returned to callers."""
