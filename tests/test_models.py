"""Tests for fate_engine.models."""

import pytest
from pydantic import ValidationError

from conftest import make_character, make_event, make_state
from fate_engine.models import (
    GameState,
    LifeEvent,
    Memory,
    RelStats,
    Stats,
    TimeBlockAllocation,
    TransitionInfo,
    TurnResult,
)


class TestStats:
    def test_defaults_to_fifty(self) -> None:
        stats = Stats()
        assert stats.intelligence == 50
        assert stats.wealth == 50

    def test_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Stats(health=101)
        with pytest.raises(ValidationError):
            Stats(luck=-1)

    def test_rel_stats_defaults(self) -> None:
        rel = RelStats()
        assert (rel.intimacy, rel.trust, rel.attraction, rel.conflict) == (50, 50, 0, 0)


class TestCharacter:
    def test_birth_year_from_dob(self) -> None:
        assert make_character(dob="1987-11-02").birth_year == 1987

    def test_traits_default_empty(self) -> None:
        assert make_character().traits == []


class TestLifeEvent:
    def test_frozen(self) -> None:
        event = make_event()
        with pytest.raises(ValidationError):
            event.title = "Changed"

    def test_optional_fields_default_empty(self) -> None:
        event = LifeEvent(id="e", year=2000, title="t", description="d")
        assert event.stat_changes == {}
        assert event.tags == []
        assert event.affected_relationships == []


class TestTimeBlockAllocation:
    def test_default_is_balanced(self) -> None:
        allocation = TimeBlockAllocation()
        assert allocation.model_dump() == {
            "physical": 2, "cognitive": 2, "social": 2, "creative": 2, "emotional": 2,
        }

    def test_total_must_be_ten(self) -> None:
        with pytest.raises(ValidationError, match="total 10"):
            TimeBlockAllocation(physical=3)

    def test_each_category_between_one_and_four(self) -> None:
        with pytest.raises(ValidationError):
            TimeBlockAllocation(physical=5, cognitive=1, social=1, creative=1, emotional=2)


class TestMemory:
    def test_valence_bounded(self) -> None:
        with pytest.raises(ValidationError):
            Memory(id="m", event_id="e", emotional_valence=1.5, last_accessed=2000, age=0)


class TestGameState:
    def test_age_derived_from_year(self) -> None:
        assert make_state(age=12).age == 12

    def test_serialise_roundtrip(self) -> None:
        state = make_state(age=3, events=[make_event(tags=["family"])])
        restored = GameState.model_validate_json(state.model_dump_json())
        assert restored == state

    def test_pressure_bounded(self) -> None:
        with pytest.raises(ValidationError):
            make_state(narrative_pressure=1.2)


class TestTurnResult:
    def test_transition_defaults(self) -> None:
        result = TurnResult(new_state=make_state())
        assert result.narrative_lines == []
        assert result.transition_info == TransitionInfo()
        assert result.transition_info.turn_type == "normal"
        assert result.transition_info.phase_transition is None
