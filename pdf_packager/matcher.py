"""Fuzzy resolution of person names to PDF file names."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, List, Optional

from unidecode import unidecode

from .utils import raise_if_cancelled

LAST_NAME_SCORE = 20
FIRST_NAME_SCORE = 10
BOTH_NAMES_BONUS = 100
CLOSE_PROXIMITY_BONUS = 5
LOOSE_PROXIMITY_BONUS = 2
LAST_FIRST_ORDER_BONUS = 3
FIRST_LAST_ORDER_BONUS = 1

_APOSTROPHES = re.compile(r"['’]")
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")
_PATH_OR_PATTERN = re.compile(r"[\\/*?.]")


def _collapse(value: str) -> str:
    value = unidecode(value.strip()).lower()
    value = _APOSTROPHES.sub("", value)
    return _NON_ALPHANUMERIC.sub(" ", value).strip()


def normalize_name_token(value: str) -> str:
    """``"Jean-Marc"`` -> ``"jean marc"``."""

    if not value:
        return ""
    return _collapse(value)


def normalize_candidate_token(value: str) -> str:
    """File stem padded with spaces so that whole tokens match with ``in``."""

    if not value:
        return ""
    collapsed = _collapse(value)
    return f" {collapsed} " if collapsed else ""


def looks_like_name_reference(value: str) -> bool:
    """True for free text such as ``"Jean Dupont"``; false for paths and patterns."""

    trimmed = value.strip() if value else ""
    if not trimmed or " " not in trimmed:
        return False
    return _PATH_OR_PATTERN.search(trimmed) is None


@dataclass(frozen=True)
class _Candidate:
    original: str
    normalized: str


class PdfFileMatcher:
    """Pick the PDF whose name best matches a (first name, last name) query."""

    def __init__(self, files: Iterable[str], *, cancel_event: Optional[threading.Event] = None) -> None:
        self.cancel_event = cancel_event
        self._candidates: List[_Candidate] = []
        for file in files:
            if not file.lower().endswith(".pdf"):
                continue
            stem = PurePosixPath(file.replace("\\", "/")).stem
            normalized = normalize_candidate_token(stem)
            if normalized:
                self._candidates.append(_Candidate(original=file, normalized=normalized))

    def find_best_match(self, first_name: str, last_name: str) -> Optional[str]:
        first = normalize_name_token(first_name)
        last = normalize_name_token(last_name)
        if not first and not last:
            return None

        best_score = 0
        best_match: Optional[str] = None

        for candidate in self._candidates:
            raise_if_cancelled(self.cancel_event)
            score = score_candidate(candidate.normalized, first, last)
            if score == 0:
                continue
            if (
                best_match is None
                or score > best_score
                or (score == best_score and _is_better_candidate(candidate.original, best_match))
            ):
                best_score = score
                best_match = candidate.original

        return best_match

    def find_by_name_reference(self, reference: str) -> Optional[str]:
        """Resolve ``"First Last"`` (or ``"Last First"``) free text to a file."""

        normalized = _WHITESPACE.sub(" ", reference or "").strip()
        if not normalized:
            return None

        if " " not in normalized:
            return self.find_best_match(normalized, "") or self.find_best_match("", normalized)

        first_part, rest = normalized.split(" ", 1)
        return (
            self.find_best_match(first_part, rest)
            or self.find_best_match(rest, first_part)
            or self.find_best_match(normalized, "")
        )


def score_candidate(candidate: str, first_name: str, last_name: str) -> int:
    """Score a padded candidate token against normalised name tokens.

    When both names are given, both must occur as whole tokens.
    """

    first_pattern = f" {first_name} " if first_name else ""
    last_pattern = f" {last_name} " if last_name else ""
    has_first = bool(first_pattern) and first_pattern in candidate
    has_last = bool(last_pattern) and last_pattern in candidate

    if not has_first and not has_last:
        return 0
    if first_pattern and last_pattern and not (has_first and has_last):
        return 0

    score = 0
    if has_last:
        score += LAST_NAME_SCORE
    if has_first:
        score += FIRST_NAME_SCORE

    if has_first and has_last:
        score += BOTH_NAMES_BONUS
        first_index = candidate.index(first_pattern) + 1
        last_index = candidate.index(last_pattern) + 1
        distance = abs(first_index - last_index)

        if distance <= max(len(first_name), len(last_name)):
            score += CLOSE_PROXIMITY_BONUS
        elif distance <= len(candidate) / 2:
            score += LOOSE_PROXIMITY_BONUS

        if last_index <= first_index:
            score += LAST_FIRST_ORDER_BONUS
        else:
            score += FIRST_LAST_ORDER_BONUS

    return score


def _is_better_candidate(candidate: str, current: str) -> bool:
    if len(candidate) != len(current):
        return len(candidate) < len(current)
    return candidate.casefold() < current.casefold()
