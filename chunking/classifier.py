"""
Lightweight chunk type classification.

Rules are checked in order; the first match wins:
    footer     short page-number / copyright / confidentiality lines
    header     short text that is all caps or title case
    list       leading bullet or number marker
    table      double tabs or runs of 4+ spaces (column alignment)
    paragraph  everything else
"""

import re

from .models import ChunkType

SHORT_TEXT_CHARS = 100

_FOOTER_PATTERNS = [
    re.compile(r"^\d{1,4}$"),
    re.compile(r"^[-–—]\s*\d{1,4}\s*[-–—]$"),
    re.compile(r"^page\s+\d+(\s+of\s+\d+)?$", re.IGNORECASE),
    re.compile(r"^(©|\(c\)|copyright)\s", re.IGNORECASE),
    re.compile(r"^(strictly\s+)?confidential\b", re.IGNORECASE),
]
_TITLE_CASE = re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*$")
_LIST_MARKER = re.compile(r"^\s*(?:[-•*·]\s+|\d+[.)]\s+)")
_TABLE_SPACING = re.compile(r"\t\t|[ \t]{4,}")


def classify_chunk(text: str) -> ChunkType:
    trimmed = text.strip()
    if not trimmed:
        return ChunkType.PARAGRAPH

    if len(trimmed) < SHORT_TEXT_CHARS:
        if any(p.search(trimmed) for p in _FOOTER_PATTERNS):
            return ChunkType.FOOTER
        has_letters = any(c.isalpha() for c in trimmed)
        if has_letters and (trimmed == trimmed.upper() or _TITLE_CASE.match(trimmed)):
            return ChunkType.HEADER

    if _LIST_MARKER.match(trimmed):
        return ChunkType.LIST

    if _TABLE_SPACING.search(trimmed):
        return ChunkType.TABLE

    return ChunkType.PARAGRAPH
