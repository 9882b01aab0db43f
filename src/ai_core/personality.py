"""Mood traits nudged by keywords in user input."""
from __future__ import annotations

from dataclasses import dataclass

HAPPY_WORDS = ("halo", "hello", "terima kasih")
CURIOUS_WORDS = ("apa", "mengapa", "bagaimana")
CAUTION_WORDS = ("bahaya", "error", "warning")

TRAIT_THRESHOLD = 0.7


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass
class Personality:
    """Trait levels in [0, 1], balanced at 0.5."""
    curiosity: float = 0.5
    happiness: float = 0.5
    caution: float = 0.5

    def update(self, text: str) -> None:
        """Shift traits based on words found in ``text``."""
        lowered = text.lower()
        if any(w in lowered for w in HAPPY_WORDS):
            self.happiness += 0.1
        if any(w in lowered for w in CURIOUS_WORDS):
            self.curiosity += 0.1
        if any(w in lowered for w in CAUTION_WORDS):
            self.caution += 0.2

        self.happiness = _clamp(self.happiness)
        self.curiosity = _clamp(self.curiosity)
        self.caution = _clamp(self.caution)

    def influence_response(self, reply: str) -> str:
        if self.happiness > TRAIT_THRESHOLD:
            return f"😊 {reply}"
        if self.curiosity > TRAIT_THRESHOLD:
            return f"🤔 {reply}"
        if self.caution > TRAIT_THRESHOLD:
            return f"⚠️ {reply}"
        return reply

    def dominant_trait(self) -> str:
        if self.happiness >= self.curiosity and self.happiness >= self.caution:
            return "happy"
        if self.curiosity >= self.caution:
            return "curious"
        return "cautious"
