"""Normalization and similarity helpers for Arabic names, phones and genders."""

from __future__ import annotations

import re
import unicodedata
from typing import Final

from rapidfuzz.distance import Levenshtein

TATWEEL: Final[str] = "ـ"
# fathatan through sukun, plus the superscript alef
HARAKAT: Final[str] = "".join(chr(code) for code in (*range(0x064B, 0x0653), 0x0670))
_MARK_CATEGORIES: Final[frozenset[str]] = frozenset({"Mn", "Me"})
LETTER_FOLDS: Final[dict[str, str]] = {
    "أ": "ا",  # alef with hamza above
    "إ": "ا",  # alef with hamza below
    "آ": "ا",  # alef with madda
    "ٱ": "ا",  # alef wasla
    "ة": "ه",  # taa marbuta
    "ى": "ي",  # alef maksura
}
_LETTER_TABLE: Final[dict[int, str]] = str.maketrans(LETTER_FOLDS)
_WHITESPACE = re.compile(r"\s+")

NAME_PART_WEIGHTS: Final[tuple[float, float, float]] = (0.30, 0.30, 0.40)

_MALE: Final[frozenset[str]] = frozenset({"M", "MALE", "ذكر"})
_FEMALE: Final[frozenset[str]] = frozenset({"F", "FEMALE", "أنثى", "انثى"})


def normalize_arabic(value: str | None) -> str:
    if not value:
        return ""
    kept = (
        char
        for char in value
        if char != TATWEEL and unicodedata.category(char) not in _MARK_CATEGORIES
    )
    folded = "".join(kept).translate(_LETTER_TABLE)
    return _WHITESPACE.sub(" ", folded).strip()


def name_similarity(first: str | None, second: str | None) -> float:
    """Edit-distance similarity in ``[0, 100]`` after normalization."""

    left = normalize_arabic(first)
    right = normalize_arabic(second)
    if not left or not right:
        return 0.0
    if left == right:
        return 100.0
    distance = Levenshtein.distance(left, right)
    similarity = (1.0 - distance / max(len(left), len(right))) * 100.0
    return max(0.0, round(similarity, 1))


def full_name_similarity(
    first: tuple[str | None, str | None, str | None],
    second: tuple[str | None, str | None, str | None],
) -> float:
    """Weighted similarity over ``(first, father, family)`` name parts."""

    total = sum(
        weight * name_similarity(left, right)
        for weight, left, right in zip(NAME_PART_WEIGHTS, first, second, strict=True)
    )
    return round(total, 1)


def normalize_phone(value: str | None) -> str:
    digits = "".join(char for char in value or "" if char.isdigit())
    if digits.startswith("963") and len(digits) > 9:
        digits = digits[3:]
    if digits.startswith("0") and len(digits) > 9:
        digits = digits[1:]
    return digits


def phones_match(first: str | None, second: str | None) -> bool:
    if not first or not first.strip() or not second or not second.strip():
        return False
    left = normalize_phone(first)
    return bool(left) and left == normalize_phone(second)


def normalize_gender(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    token = value.strip().upper()
    if token in _MALE:
        return "M"
    if token in _FEMALE:
        return "F"
    return token


def genders_match(first: str | None, second: str | None) -> bool:
    left = normalize_gender(first)
    return left is not None and left == normalize_gender(second)
