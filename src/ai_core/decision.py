"""Heuristic decisions over the experience store and its patterns."""
from __future__ import annotations

from typing import Protocol, Sequence, TYPE_CHECKING

from .schemas import Decision

if TYPE_CHECKING:
    from .memory.patterns import PatternIndex
    from .memory.store import Experience

# Policy breakpoints
EMPTY_CONFIDENCE = 0.5
HIGH_EXPERIENCE_COUNT = 10
HIGH_PATTERN_COUNT = 20
HIGH_CONFIDENCE = 0.9
MEDIUM_EXPERIENCE_COUNT = 5
MEDIUM_CONFIDENCE = 0.7
LOW_CONFIDENCE = 0.6
NO_MATCH_CONFIDENCE = 0.3
MATCHES_FOR_FULL_CONFIDENCE = 10.0
MAX_QUERY_CONFIDENCE = 0.95


class SearchableStore(Protocol):
    def count(self) -> int: ...

    def search(self, query: str) -> Sequence["Experience"]: ...


def decide(store: SearchableStore, patterns: "PatternIndex") -> Decision:
    """Recommend what to do next based on how much has been learned."""
    exp_count = store.count()

    if exp_count == 0:
        return Decision(
            action="default",
            confidence=EMPTY_CONFIDENCE,
            reasoning="No previous experiences available. Using default behavior.",
            based_on_experiences=0,
        )

    total_patterns = len(patterns)
    if exp_count > HIGH_EXPERIENCE_COUNT and total_patterns > HIGH_PATTERN_COUNT:
        confidence = HIGH_CONFIDENCE
    elif exp_count > MEDIUM_EXPERIENCE_COUNT:
        confidence = MEDIUM_CONFIDENCE
    else:
        confidence = LOW_CONFIDENCE

    top = patterns.top(1)
    if top:
        reasoning = (
            f"Based on {exp_count} experiences and {total_patterns} recognized patterns. "
            f"Top pattern: '{top[0].keyword}'"
        )
    else:
        reasoning = f"Based on {exp_count} experiences with limited pattern recognition"

    return Decision(
        action="continue_learning",
        confidence=confidence,
        reasoning=reasoning,
        based_on_experiences=exp_count,
    )


def decide_for_query(store: SearchableStore, query: str) -> Decision:
    """Decide whether a query can be answered from memory."""
    count = len(store.search(query))

    if count == 0:
        return Decision(
            action="ask_for_clarification",
            confidence=NO_MATCH_CONFIDENCE,
            reasoning=f"No relevant experiences found for query: '{query}'",
            based_on_experiences=0,
        )

    return Decision(
        action="provide_response",
        confidence=min(count / MATCHES_FOR_FULL_CONFIDENCE, MAX_QUERY_CONFIDENCE),
        reasoning=f"Found {count} relevant experiences for query: '{query}'",
        based_on_experiences=count,
    )
