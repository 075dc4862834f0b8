"""Fuzzy matching of free-text equipment names against the catalog."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, TypeVar


class CatalogItem(Protocol):
    """Anything with a catalog name and description."""

    name: str
    description: str | None


T = TypeVar("T", bound=CatalogItem)


@dataclass(frozen=True)
class MatchCandidate:
    """A catalog entry with its similarity score."""

    index: int
    entry: CatalogItem
    score: Decimal


class EquipmentMatcher:
    """Scores catalog entries against an extracted equipment name.

    Scoring (per catalog entry, starting at 0):
    - +0.8 if the catalog name contains the extracted name,
      else +0.7 if the extracted name contains the catalog name
    - +0.5 if the description contains the extracted name
    - per extracted word of 3+ chars: +0.3 if a name word contains it or is
      contained by it, +0.2 likewise for description words (words are split
      on whitespace runs, keeping empty words)
    - +0.1 if the name lengths differ by less than 5

    An exact case-insensitive name match wins outright. Otherwise an entry
    becomes the best match only when its score strictly exceeds both the
    running best and THRESHOLD, so the first entry wins ties.
    """

    NAME_CONTAINS_EXTRACTED = Decimal("0.8")
    EXTRACTED_CONTAINS_NAME = Decimal("0.7")
    DESCRIPTION_CONTAINS_EXTRACTED = Decimal("0.5")
    NAME_WORD_MATCH = Decimal("0.3")
    DESCRIPTION_WORD_MATCH = Decimal("0.2")
    LENGTH_SIMILARITY = Decimal("0.1")
    THRESHOLD = Decimal("0.3")

    MIN_WORD_LENGTH = 3
    MAX_LENGTH_DIFF = 5

    _WHITESPACE = re.compile(r"\s+")

    @staticmethod
    def normalize(text: str | None) -> str:
        return (text or "").lower().strip()

    @staticmethod
    def fold(text: str | None) -> str:
        """Lowercase catalog text without trimming it."""
        return (text or "").lower()

    @classmethod
    def words(cls, text: str) -> list[str]:
        # Empty text and edge whitespace yield "" words, which every word contains
        return cls._WHITESPACE.split(text)

    @staticmethod
    def _word_hit(word: str, candidates: list[str]) -> bool:
        return any(word in c or c in word for c in candidates)

    @classmethod
    def score(cls, extracted_name: str, entry: CatalogItem) -> Decimal:
        """Similarity score of one catalog entry (exact matches excluded).

        Only the extracted name is trimmed. A catalog entry without a
        description splits into a single empty word, so every extracted word
        of 3+ chars earns the description word bonus against it.
        """
        extracted = cls.normalize(extracted_name)
        name = cls.fold(entry.name)
        description = cls.fold(entry.description)

        score = Decimal("0")

        if extracted in name:
            score += cls.NAME_CONTAINS_EXTRACTED
        elif name in extracted:
            score += cls.EXTRACTED_CONTAINS_NAME

        if extracted in description:
            score += cls.DESCRIPTION_CONTAINS_EXTRACTED

        name_words = cls.words(name)
        description_words = cls.words(description)
        for word in cls.words(extracted):
            if len(word) < cls.MIN_WORD_LENGTH:
                continue
            if cls._word_hit(word, name_words):
                score += cls.NAME_WORD_MATCH
            if cls._word_hit(word, description_words):
                score += cls.DESCRIPTION_WORD_MATCH

        if abs(len(name) - len(extracted)) < cls.MAX_LENGTH_DIFF:
            score += cls.LENGTH_SIMILARITY

        return score

    @classmethod
    def find_exact(cls, extracted_name: str, catalog: Sequence[T]) -> T | None:
        extracted = cls.normalize(extracted_name)
        for entry in catalog:
            if cls.fold(entry.name) == extracted:
                return entry
        return None

    @classmethod
    def rank(cls, extracted_name: str, catalog: Sequence[CatalogItem]) -> list[MatchCandidate]:
        """All entries with their scores, highest first, catalog order on ties."""
        candidates = [
            MatchCandidate(index=i, entry=entry, score=cls.score(extracted_name, entry))
            for i, entry in enumerate(catalog)
        ]
        return sorted(candidates, key=lambda c: (-c.score, c.index))

    @classmethod
    def find_closest(cls, extracted_name: str | None, catalog: Sequence[T]) -> T | None:
        """Best catalog match for extracted_name, or None below the threshold."""
        if not extracted_name or not catalog:
            return None

        exact = cls.find_exact(extracted_name, catalog)
        if exact is not None:
            return exact

        best_match: T | None = None
        best_score = Decimal("0")
        for entry in catalog:
            score = cls.score(extracted_name, entry)
            if score > best_score and score > cls.THRESHOLD:
                best_score = score
                best_match = entry

        return best_match


def find_closest_equipment(extracted_name: str | None, catalog: Sequence[T]) -> T | None:
    """Resolve a free-text equipment name to a catalog entry, or None."""
    return EquipmentMatcher.find_closest(extracted_name, catalog)


def rank_equipment(extracted_name: str, catalog: Sequence[CatalogItem]) -> list[MatchCandidate]:
    return EquipmentMatcher.rank(extracted_name, catalog)
