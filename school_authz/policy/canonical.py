"""Canonical form for place names used as scope keys."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"[^\W_]+")


def canonical_place_key(value: str | None) -> str | None:
    """
    Normalize a municipality/province name once, at write time.

    "  luanda   SUL " -> "Luanda Sul"

    Equality checks in the authorization path compare these strings exactly,
    so every writer of a scope key must go through this function.
    """

    if value is None:
        return None
    text = unicodedata.normalize("NFC", value)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    if not text:
        return None
    return _WORD_RE.sub(lambda m: m.group(0).capitalize(), text)
