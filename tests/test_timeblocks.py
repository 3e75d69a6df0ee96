"""Tests for fate_engine.timeblocks."""

import pytest

from conftest import FixedRandom
from fate_engine.models import ProceduralBackground, Stats, TimeBlockAllocation
from fate_engine.timeblocks import (
    PRESETS,
    allocation_for_choice,
    apply_time_block_effects,
    decode_early_life_choice,
    early_life_choices,
    encode_allocation,
    is_balanced,
    parse_time_block_choice,
    time_block_effects,
)

ACADEMIC = TimeBlockAllocation(physical=1, cognitive=4, social=2, creative=1, emotional=2)


class TestEffects:
    def test_balanced_allocation(self) -> None:
        effect = time_block_effects(TimeBlockAllocation())
        assert effect.stat_modifiers == {
            "strength": 8, "health": 5, "intelligence": 10,
            "charisma": 10, "creativity": 12, "luck": 18,
        }
        assert ("well-rounded", 0.8) in effect.trait_odds
        assert effect.themes == ["balanced_upbringing"]

    def test_academic_focus(self) -> None:
        effect = time_block_effects(ACADEMIC)
        assert effect.stat_modifiers == {
            "strength": -5, "intelligence": 20, "creativity": -5, "charisma": 10, "luck": 8,
        }
        assert effect.themes == ["academic_excellence", "early_genius"]
        assert all(trait != "well-rounded" for trait, _ in effect.trait_odds)

    def test_later_category_wins_shared_stat(self) -> None:
        allocation = TimeBlockAllocation(physical=3, cognitive=1, social=1, creative=2, emotional=3)
        assert time_block_effects(allocation).stat_modifiers["health"] == 5

    def test_only_even_split_is_balanced(self) -> None:
        assert is_balanced(TimeBlockAllocation())
        assert not is_balanced(ACADEMIC)


class TestApplyEffects:
    def test_stats_and_rolled_traits(self) -> None:
        stats, traits = apply_time_block_effects(Stats(), TimeBlockAllocation(), FixedRandom(0.45))
        assert stats == Stats(
            intelligence=60, charisma=60, strength=58, creativity=62, luck=68, health=55, wealth=50,
        )
        assert traits == ["inquisitive", "friendly", "creative", "well-rounded"]

    def test_stats_clamped(self) -> None:
        stats, _ = apply_time_block_effects(Stats(intelligence=95), ACADEMIC, FixedRandom(0.99))
        assert stats.intelligence == 100

    def test_no_traits_when_rolls_fail(self) -> None:
        _, traits = apply_time_block_effects(Stats(), ACADEMIC, FixedRandom(0.95))
        assert traits == []


class TestEarlyLifeChoices:
    def test_one_choice_per_focus(self) -> None:
        choices = early_life_choices(None, FixedRandom(0.0))
        assert [c.id for c in choices] == [
            "early_sports_p4c1s2r1e2",
            "early_books_p1c4s2r1e2",
            "early_friends_p1c1s4r2e2",
            "early_arts_p1c1s2r4e2",
        ]
        assert all(c.tags[0] == "early_life" for c in choices)

    def test_labels_follow_background(self) -> None:
        background = ProceduralBackground(socioeconomic_status="wealthy", birthplace_type="rural")
        labels = [c.label for c in early_life_choices(background, FixedRandom(0.0))]
        assert labels[0] == "Exploring the countryside and helping on the farm"
        assert labels[1] == "Reading in your personal library"

    def test_encode(self) -> None:
        assert encode_allocation(ACADEMIC) == "p1c4s2r1e2"


class TestDecoding:
    def test_early_life_id(self) -> None:
        assert decode_early_life_choice("early_books_p1c4s2r1e2") == ACADEMIC

    def test_not_an_early_life_choice(self) -> None:
        assert decode_early_life_choice("school_eager") is None

    @pytest.mark.parametrize("choice_id", ["early_books", "early_books_p4c4s4r4e4"])
    def test_undecodable_early_life_id_is_balanced(self, choice_id: str) -> None:
        assert decode_early_life_choice(choice_id) == TimeBlockAllocation()

    def test_time_block_id(self) -> None:
        choice_id = "timeblock_physical:1_cognitive:4_social:2_creative:1_emotional:2"
        assert parse_time_block_choice(choice_id) == ACADEMIC

    def test_missing_categories_stay_at_two(self) -> None:
        allocation = parse_time_block_choice("timeblock_physical:3_cognitive:1")
        assert allocation == TimeBlockAllocation(physical=3, cognitive=1)

    @pytest.mark.parametrize("choice_id", ["timeblock_physical:x", "timeblock_physical:4"])
    def test_bad_time_block_id_is_balanced(self, choice_id: str) -> None:
        assert parse_time_block_choice(choice_id) == TimeBlockAllocation()

    def test_allocation_for_choice(self) -> None:
        assert allocation_for_choice("academic") == PRESETS["academic"]["allocation"]
        assert allocation_for_choice("early_books_p1c4s2r1e2") == ACADEMIC
        assert allocation_for_choice("timeblock_physical:1_cognitive:4_creative:1") == ACADEMIC
        assert allocation_for_choice("nap") == TimeBlockAllocation()
