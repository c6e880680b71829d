"""
Answer-Key Document
===================
Parses fetched HTML once and hands the same tree to every extractor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup

HTML_PARSER = "html.parser"


@dataclass
class AnswerKeyDocument:
    """Fetched page: raw HTML, parsed tree and flattened text."""

    html: str
    soup: BeautifulSoup
    source_url: Optional[str] = None
    _text: Optional[str] = field(default=None, repr=False)

    @property
    def text(self) -> str:
        """Plain text content of the whole document (tags stripped)."""
        if self._text is None:
            self._text = self.soup.get_text()
        return self._text


def load_document(html: str, source_url: Optional[str] = None) -> AnswerKeyDocument:
    """Parse an HTML string into an AnswerKeyDocument."""
    return AnswerKeyDocument(
        html=html,
        soup=BeautifulSoup(html, HTML_PARSER),
        source_url=source_url,
    )
