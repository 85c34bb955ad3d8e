from __future__ import annotations

import pytest

from tenure_reconcile.domain.matching import (
    full_name_similarity,
    genders_match,
    name_similarity,
    normalize_arabic,
    normalize_phone,
    phones_match,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("أحمد", "احمد"),
        ("إبراهيم", "ابراهيم"),
        ("آمنة", "امنه"),
        ("مُحَمَّد", "محمد"),
        ("علـــي", "علي"),
        ("  مصطفى   الحلبي ", "مصطفي الحلبي"),
        (None, ""),
    ],
)
def test_normalize_arabic_folds_letter_variants(raw: str | None, expected: str) -> None:
    assert normalize_arabic(raw) == expected


def test_name_similarity_bounds() -> None:
    assert name_similarity("أحمد", "احمد") == 100.0
    assert name_similarity("", "احمد") == 0.0
    assert name_similarity(None, None) == 0.0
    assert 0.0 < name_similarity("محمد", "محمود") < 100.0


def test_full_name_similarity_weights_family_name_most() -> None:
    base = ("محمد", "أحمد", "الخطيب")

    family_differs = full_name_similarity(base, ("محمد", "أحمد", "زززززز"))
    first_differs = full_name_similarity(base, ("زززز", "أحمد", "الخطيب"))

    assert full_name_similarity(base, base) == 100.0
    assert family_differs < first_differs


@pytest.mark.parametrize(
    ("first", "second", "expected"),
    [
        ("0933 123 456", "+963 933123456", True),
        ("00963933123456", "0933123456", False),
        ("0933123456", "0944123456", False),
        ("", "0933123456", False),
        (None, None, False),
    ],
)
def test_phones_match_after_normalisation(
    first: str | None, second: str | None, expected: bool
) -> None:
    assert phones_match(first, second) is expected


def test_normalize_phone_strips_country_and_trunk_prefix() -> None:
    assert normalize_phone("+963-933-123-456") == "933123456"
    assert normalize_phone("0933123456") == "933123456"


def test_genders_match_across_spellings() -> None:
    assert genders_match("M", "ذكر")
    assert genders_match("female", "أنثى")
    assert not genders_match("M", "F")
    assert not genders_match(None, "M")
