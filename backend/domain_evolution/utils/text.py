"""Text normalisation and identifier helpers."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RUN = re.compile(r"\s+")
_SAFE_IDENTIFIER = re.compile(r"^[a-z][a-z0-9_]*$")
_CODE_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_CODE_FENCE_CLOSE = re.compile(r"\s*```$")

MAX_IDENTIFIER_LENGTH = 48
MAX_TABLE_NAME_LENGTH = 64


def collapse_whitespace(text: str) -> str:
    """Collapse consecutive whitespace characters into single spaces."""

    if not text:
        return ""
    return _WHITESPACE_RUN.sub(" ", text).strip()


def normalise_for_embedding(text: str) -> str:
    """Return the NFKC-normalised, whitespace-collapsed form sent to the embedding model."""

    return unicodedata.normalize("NFKC", collapse_whitespace(text))


def normalise_identifier(name: str) -> str:
    """Lowercase a model- or reviewer-supplied name and turn whitespace runs into underscores."""

    return _WHITESPACE_RUN.sub("_", name.strip()).lower()


def is_safe_identifier(name: str, max_length: int = MAX_IDENTIFIER_LENGTH) -> bool:
    """Allow-list check applied before a name may reach a schema-definition statement."""

    return bool(_SAFE_IDENTIFIER.match(name)) and len(name) <= max_length


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```) if present."""

    cleaned = text.strip()
    cleaned = _CODE_FENCE_OPEN.sub("", cleaned)
    cleaned = _CODE_FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()
