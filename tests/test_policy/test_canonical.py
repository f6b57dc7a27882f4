"""Tests for place-key canonicalization."""

import pytest

from school_authz.policy import canonical_place_key


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Luanda", "Luanda"),
        ("  luanda  ", "Luanda"),
        ("LUANDA SUL", "Luanda Sul"),
        ("luanda\t  sul", "Luanda Sul"),
        ("ndalatando-sul", "Ndalatando-Sul"),
        ("Moçâmedes", "Moçâmedes"),
    ],
)
def test_canonical_place_key(raw, expected):
    assert canonical_place_key(raw) == expected


def test_canonical_place_key_is_stable():
    once = canonical_place_key("  cAZENGA ")
    assert canonical_place_key(once) == once


def test_canonical_place_key_empty_values():
    assert canonical_place_key(None) is None
    assert canonical_place_key("   ") is None


def test_canonical_place_key_unicode_forms_match():
    composed = "Mo\u00e7amedes"
    decomposed = "Moc\u0327amedes"
    assert canonical_place_key(decomposed) == canonical_place_key(composed) == composed
