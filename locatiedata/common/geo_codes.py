"""Dutch regional code normalisation and classification."""

from __future__ import annotations

import re

from locatiedata.common.constants import LEVEL_TYPES

NATIONAL_CODE_RE = re.compile(r"^NL\d{2}$")
MUNICIPALITY_CODE_RE = re.compile(r"^GM\d{4}$")
DISTRICT_CODE_RE = re.compile(r"^WK\d{6}$")
NEIGHBORHOOD_CODE_RE = re.compile(r"^BU\d{8}$")

_LEVEL_PATTERNS = tuple(
    zip(LEVEL_TYPES, (NATIONAL_CODE_RE, MUNICIPALITY_CODE_RE, DISTRICT_CODE_RE, NEIGHBORHOOD_CODE_RE))
)

_WHITESPACE_RE = re.compile(r"\s+")


def normalise_code(raw: str | None) -> str | None:
    if raw is None:
        return None
    cleaned = _WHITESPACE_RE.sub("", str(raw)).upper()
    if not cleaned:
        return None
    return cleaned


def classify_code(code: str | None) -> str | None:
    """Return the geographic level a code belongs to, or None for unknown formats."""
    cleaned = normalise_code(code)
    if cleaned is None:
        return None
    for level_type, pattern in _LEVEL_PATTERNS:
        if pattern.match(cleaned):
            return level_type
    return None


def is_valid_code(code: str | None, level_type: str) -> bool:
    return classify_code(code) == level_type
