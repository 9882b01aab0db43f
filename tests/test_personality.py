"""Tests for personality traits."""
from __future__ import annotations

import pytest

from ai_core.personality import Personality


class TestPersonality:

    def test_defaults(self):
        p = Personality()
        assert (p.curiosity, p.happiness, p.caution) == (0.5, 0.5, 0.5)
        assert p.dominant_trait() == "happy"

    def test_happy_words(self):
        p = Personality()
        p.update("Hello there")
        assert p.happiness == pytest.approx(0.6)
        assert p.curiosity == 0.5

    def test_curious_words(self):
        p = Personality()
        p.update("Mengapa langit biru?")
        assert p.curiosity == pytest.approx(0.6)
        assert p.dominant_trait() == "curious"

    def test_caution_words(self):
        p = Personality()
        p.update("ERROR in module")
        assert p.caution == pytest.approx(0.7)
        assert p.dominant_trait() == "cautious"

    def test_values_are_clamped(self):
        p = Personality(caution=0.95)
        p.update("warning")
        assert p.caution == 1.0

    def test_influence_response(self):
        assert Personality().influence_response("ok") == "ok"
        assert Personality(happiness=0.8).influence_response("ok") == "😊 ok"
        assert Personality(curiosity=0.8).influence_response("ok") == "🤔 ok"
        assert Personality(caution=0.8).influence_response("ok") == "⚠️ ok"

    def test_happiness_wins_prefix(self):
        p = Personality(happiness=0.9, curiosity=0.9)
        assert p.influence_response("ok").startswith("😊")
