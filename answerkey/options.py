"""
Option Normalizer
=================
Canonicalizes any textual answer option ("Option 2", "b)", "3. Paris")
into one of A, B, C, D or "" (blank).
"""

from __future__ import annotations

import re
from typing import Optional


_OPTION_WORD = re.compile(r"option", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)

# "1.", "2)", "3-", "4 " at the start of the option text
_DIGIT_PREFIX = re.compile(r"^\s*([1-4])[\s.)\-]")

# "A", "b.", "C)" at the start; not the first letter of a word like "Delhi"
_LETTER_PREFIX = re.compile(r"^\s*([A-D])(?![A-Za-z])", re.IGNORECASE)

DIGIT_TO_LETTER = {"1": "A", "2": "B", "3": "C", "4": "D"}

BLANK_PLACEHOLDER = "--"


def normalize_option(raw: Optional[str]) -> str:
    """
    Strip "option", drop non-alphanumerics, uppercase, map 1-4 to A-D.

    Anything else passes through uppercased. Empty or None yields "".
    Never raises.
    """
    if not raw:
        return ""
    cleaned = _NON_ALNUM.sub("", _OPTION_WORD.sub("", raw)).strip().upper()
    return DIGIT_TO_LETTER.get(cleaned, cleaned)


def option_text_to_letter(text: Optional[str]) -> str:
    """Read a leading "1." / "A)" style prefix. Returns "" when absent."""
    if not text:
        return ""
    num = _DIGIT_PREFIX.match(text)
    if num:
        return DIGIT_TO_LETTER[num.group(1)]
    letter = _LETTER_PREFIX.match(text)
    return letter.group(1).upper() if letter else ""


def resolve_option(text: Optional[str]) -> str:
    """Prefix detection first, then the normalizer; "--" is blank."""
    if text is None:
        return ""
    text = text.strip()
    if text == BLANK_PLACEHOLDER:
        return ""
    return option_text_to_letter(text) or normalize_option(text)
