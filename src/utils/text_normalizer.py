"""Whitespace normalization for document text before chunking.

Two operations:

1. **normalize** -- collapse every run of whitespace (spaces, tabs,
   newlines) into a single space and trim the ends.

2. **split_paragraphs** -- split on blank-line boundaries *before*
   collapsing, then normalize each paragraph on its own.  Collapsing first
   would erase the blank lines the chunker relies on for natural
   boundaries.
"""

import re

_WHITESPACE = re.compile(r"\s+")

# A paragraph break is a newline, optional whitespace, then another newline.
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def normalize(text: str | None) -> str:
    """Collapse whitespace runs to one space and trim.

    ``None`` and whitespace-only input both normalize to ``""``.
    """
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def split_paragraphs(text: str | None) -> list[str]:
    """Split *text* into normalized, non-empty paragraphs."""
    if not text:
        return []
    paragraphs = (normalize(p) for p in _PARAGRAPH_BREAK.split(text))
    return [p for p in paragraphs if p]
