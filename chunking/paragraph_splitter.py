"""
Paragraph splitting and text cleanup for the chunking pipeline.

Paragraphs are separated by blank lines (a newline, optional whitespace,
another newline). Cleanup is applied per paragraph after classification,
so layout signals such as runs of spaces are still visible to the
classifier.

Usage:
    from chunking.paragraph_splitter import split_paragraphs, clean_text

    paragraphs = split_paragraphs("First block.\\n\\nSecond block.")
    # ["First block.", "Second block."]
"""

import re

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def split_paragraphs(text: str) -> list[str]:
    """
    Split text on blank-line boundaries.

    Returns:
        Non-empty paragraphs with surrounding whitespace removed.
    """
    if not text or not text.strip():
        return []
    return [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]


def clean_text(text: str) -> str:
    """
    Normalize extracted text for storage and retrieval.

    - control characters removed
    - whitespace runs collapsed to a single space
    - curly quotes replaced by straight quotes
    - no space before , . ; : ! ?
    """
    if not text:
        return ""
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _WHITESPACE.sub(" ", cleaned)
    cleaned = cleaned.replace("“", '"').replace("”", '"')
    cleaned = cleaned.replace("‘", "'").replace("’", "'")
    cleaned = re.sub(r"\s+([,.;:!?])", r"\1", cleaned)
    return cleaned.strip()


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()
