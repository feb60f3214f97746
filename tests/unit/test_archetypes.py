"""Tests for lookbook.core.archetypes — the closed archetype set."""

from __future__ import annotations

import pytest

from lookbook.core.archetypes import ALL_ARCHETYPES, Archetype
from lookbook.core.errors import UnknownArchetypeError


class TestArchetype:
    """Test labels, prompts and label lookup."""

    def test_five_archetypes(self):
        assert len(ALL_ARCHETYPES) == 5
        assert Archetype.labels() == [
            "Kiez-König",
            "Luden-Larry",
            "Gold-Zahn Günther",
            "Disco Dieter",
            "Porsche-Paul",
        ]

    def test_every_archetype_has_a_prompt(self):
        for archetype in Archetype:
            assert archetype.prompt
            assert "photo" in archetype.prompt

    def test_prompts_are_distinct(self):
        prompts = {archetype.prompt for archetype in Archetype}
        assert len(prompts) == len(Archetype)

    def test_from_label(self):
        assert Archetype.from_label("Disco Dieter") is Archetype.DISCO_DIETER

    def test_from_label_unknown(self):
        with pytest.raises(UnknownArchetypeError) as exc_info:
            Archetype.from_label("Kiez-Kaiser")
        assert exc_info.value.label == "Kiez-Kaiser"
        assert str(exc_info.value) == "No prompt found for archetype: Kiez-Kaiser"

    def test_unknown_archetype_is_key_error(self):
        with pytest.raises(KeyError):
            Archetype.from_label("")

    def test_slug(self):
        assert Archetype.GOLD_ZAHN_GUENTHER.slug == "gold-zahn-günther"
        assert Archetype.DISCO_DIETER.slug == "disco-dieter"

    def test_str_is_label(self):
        assert str(Archetype.PORSCHE_PAUL) == "Porsche-Paul"
