"""
Model / part-number candidates pulled from OCR text.

Each heuristic is an independent function text → candidates; combine()
merges them in registration order, drops duplicates and applies the cap.
Add a heuristic by appending to HEURISTICS.
"""
from __future__ import annotations

import re
from typing import Callable, Iterable

MAX_HINTS = 10

_CATALOG_NUMBER = re.compile(r"\b[0-9]{4,6}\b")
_SAMSUNG_MODEL = re.compile(r"\bSM-[A-Z0-9-]+\b", re.IGNORECASE)
_ALNUM_MODEL = re.compile(
    r"\b(?=[A-Z0-9-]*[0-9])(?=[A-Z0-9-]*[A-Z])[A-Z0-9-]{5,}\b",
    re.IGNORECASE,
)

Heuristic = Callable[[str], Iterable[str]]


def catalog_numbers(text: str) -> list[str]:
    """Bare 4–6 digit tokens (LEGO sets, part numbers)."""
    return _CATALOG_NUMBER.findall(text)


def vendor_prefixed(text: str) -> list[str]:
    return [m.upper() for m in _SAMSUNG_MODEL.findall(text)]


def alphanumeric_models(text: str) -> list[str]:
    """Tokens of 5+ chars mixing letters and digits, e.g. KD55X85J."""
    return [m.upper() for m in _ALNUM_MODEL.findall(text)]


HEURISTICS: list[Heuristic] = [catalog_numbers, vendor_prefixed, alphanumeric_models]


def combine(text: str, heuristics: Iterable[Heuristic] = HEURISTICS, cap: int = MAX_HINTS) -> list[str]:
    hints: dict[str, None] = {}
    for heuristic in heuristics:
        for candidate in heuristic(text or ""):
            hints.setdefault(candidate, None)
    return list(hints)[:cap]
