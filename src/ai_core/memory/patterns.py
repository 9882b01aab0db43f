"""Keyword pattern index derived from experiences.

The index is rebuilt from scratch for every analysis pass instead of being
maintained incrementally. Scanning the whole store costs O(total content
size), which stays cheap because the store is small and in memory.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .store import Experience

MIN_KEYWORD_LENGTH = 3


def normalize_token(token: str) -> str:
    """Lowercase and strip leading/trailing non-alphanumeric characters."""
    lowered = token.lower()
    start, end = 0, len(lowered)
    while start < end and not lowered[start].isalnum():
        start += 1
    while end > start and not lowered[end - 1].isalnum():
        end -= 1
    return lowered[start:end]


def tokenize(text: str) -> list[str]:
    """Split text into normalized keywords longer than two characters."""
    words = (normalize_token(raw) for raw in text.split())
    return [w for w in words if len(w) >= MIN_KEYWORD_LENGTH]


@dataclass
class Pattern:
    """Frequency statistic for one keyword."""

    keyword: str
    frequency: int = 0
    experience_ids: list[str] = field(default_factory=list)

    @property
    def experience_count(self) -> int:
        return len(self.experience_ids)


class PatternIndex:
    """Inverted index of keyword -> Pattern.

    Not thread-safe: build one per call from data already copied out of
    the store.
    """

    def __init__(self) -> None:
        self._patterns: dict[str, Pattern] = {}

    @classmethod
    def build(cls, experiences: Iterable["Experience"]) -> "PatternIndex":
        """Create a fresh index over the given experiences."""
        index = cls()
        for exp in experiences:
            index.analyze(exp)
        return index

    def reset(self) -> None:
        """Discard all indexed state."""
        self._patterns.clear()

    def analyze(self, experience: "Experience") -> None:
        """Count every keyword occurrence in one experience.

        Analyzing the same experience twice counts its keywords twice.
        """
        for word in tokenize(experience.content):
            pattern = self._patterns.get(word)
            if pattern is None:
                pattern = Pattern(keyword=word)
                self._patterns[word] = pattern
            pattern.frequency += 1
            if experience.id not in pattern.experience_ids:
                pattern.experience_ids.append(experience.id)

    def top(self, n: int) -> list[Pattern]:
        """Most frequent patterns, highest first.

        Equal frequencies keep the order in which keywords were first seen.
        """
        if n <= 0:
            return []
        ranked = sorted(self._patterns.values(), key=lambda p: p.frequency, reverse=True)
        return ranked[:n]

    def get(self, keyword: str) -> Optional[Pattern]:
        return self._patterns.get(keyword.lower())

    def all(self) -> Mapping[str, Pattern]:
        return MappingProxyType(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def summary(self, n: int = 10) -> list[str]:
        """Human-readable lines for the top patterns."""
        return [
            f"'{p.keyword}': {p.frequency} occurrences in {p.experience_count} experiences"
            for p in self.top(n)
        ]
