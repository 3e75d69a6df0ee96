"""Tests for fate_engine.memory.evaluator."""

import pytest

from conftest import BIRTH_YEAR, FixedRandom, make_event, make_state
from fate_engine.memory.evaluator import (
    MAX_ASSOCIATIONS,
    emotional_valence,
    evaluate_event,
    find_associations,
    is_associated,
    memory_type,
    significance,
)
from fate_engine.models import LifeEvent, Memory, MemorySystem, RelationshipDelta


def _state_remembering(events: list[LifeEvent], age: int):
    memories = {
        f"mem_{e.id}": Memory(
            id=f"mem_{e.id}", event_id=e.id, last_accessed=e.year, age=e.year - BIRTH_YEAR
        )
        for e in events
    }
    return make_state(age=age, events=events, memory_system=MemorySystem(memories=memories))


class TestSignificance:
    def test_stat_contribution_capped_at_half(self) -> None:
        event = make_event(stat_changes={"health": 15, "wealth": -15})
        assert significance(event, 25, FixedRandom(0.0)) == pytest.approx(0.5)

    def test_significant_tag(self) -> None:
        event = make_event(stat_changes={"intelligence": 20}, tags=["graduation"])
        assert significance(event, 25, FixedRandom(0.0)) == pytest.approx(0.9)

    def test_memorable_age_weighted_for_childhood(self) -> None:
        assert significance(make_event(), 5, FixedRandom(0.0)) == pytest.approx(0.39)

    def test_relationships_capped_at_two(self) -> None:
        rels = [RelationshipDelta(npc_id=f"npc_{i}") for i in range(4)]
        assert significance(make_event(relationships=rels), 25, FixedRandom(0.0)) == pytest.approx(0.4)

    def test_jitter_added(self) -> None:
        assert significance(make_event(), 25, FixedRandom(0.5)) == pytest.approx(0.05)

    def test_clamped_to_one(self) -> None:
        event = make_event(stat_changes={"health": 20}, tags=["trauma"])
        assert significance(event, 5, FixedRandom(0.5)) == 1.0


class TestMemoryType:
    @pytest.mark.parametrize(
        ("score", "age", "expected"),
        [
            (0.75, 8, "core"),
            (0.75, 15, "significant"),
            (0.85, 15, "core"),
            (0.85, 30, "significant"),
            (0.95, 30, "core"),
            (0.4, 30, "ordinary"),
        ],
    )
    def test_age_dependent_thresholds(self, score: float, age: int, expected: str) -> None:
        assert memory_type(score, age) == expected


class TestEmotionalValence:
    def test_stat_weights(self) -> None:
        assert emotional_valence(make_event(stat_changes={"health": 10})) == pytest.approx(0.2)

    def test_emotional_tags(self) -> None:
        assert emotional_valence(make_event(tags=["joy"])) == pytest.approx(0.3)
        assert emotional_valence(make_event(tags=["loss", "crisis"])) == pytest.approx(-0.6)

    def test_relationship_deltas(self) -> None:
        rel = RelationshipDelta(npc_id="p", rel_stat_deltas={"intimacy": 10, "conflict": 5})
        assert emotional_valence(make_event(relationships=[rel])) == pytest.approx(0.05)

    def test_clamped(self) -> None:
        assert emotional_valence(make_event(stat_changes={"health": 80})) == 1.0


class TestAssociations:
    def test_graduations_a_year_apart_link_both_ways(self) -> None:
        high_school = make_event("evt_hs", year=BIRTH_YEAR + 18, title="High School Graduation", tags=["graduation"])
        college = make_event("evt_col", year=BIRTH_YEAR + 19, title="Diploma", tags=["graduation"])
        assert is_associated(high_school, college)
        assert is_associated(college, high_school)

        assert find_associations(college, _state_remembering([high_school, college], 19)) == ["mem_evt_hs"]
        assert find_associations(high_school, _state_remembering([college, high_school], 19)) == ["mem_evt_col"]

    def test_one_shared_tag_far_apart_not_linked(self) -> None:
        a = make_event("a", year=BIRTH_YEAR, tags=["graduation"])
        b = make_event("b", year=BIRTH_YEAR + 4, tags=["graduation"])
        assert not is_associated(a, b)

    def test_shared_npc_links(self) -> None:
        a = make_event("a", year=BIRTH_YEAR, relationships=[RelationshipDelta(npc_id="mom")])
        b = make_event("b", year=BIRTH_YEAR + 30, relationships=[RelationshipDelta(npc_id="mom")])
        assert is_associated(a, b)

    def test_first_five_found_kept(self) -> None:
        older = [
            make_event(f"e{i}", year=BIRTH_YEAR + i, tags=["music", "friends"]) for i in range(7)
        ]
        new = make_event("new", year=BIRTH_YEAR + 20, tags=["music", "friends"])
        state = _state_remembering([*older, new], 20)
        found = find_associations(new, state)
        assert len(found) == MAX_ASSOCIATIONS
        assert found == [f"mem_e{i}" for i in range(5)]

    def test_no_memory_system(self) -> None:
        assert find_associations(make_event(), make_state()) == []


class TestEvaluateEvent:
    def test_memory_fields(self) -> None:
        event = make_event("evt_2010_3", year=BIRTH_YEAR + 10, tags=["achievement"])
        state = make_state(age=10, events=[event])
        memory = evaluate_event(event, state, FixedRandom(0.0))
        assert memory.id == "mem_evt_2010_3"
        assert memory.event_id == "evt_2010_3"
        assert memory.age == 10
        assert memory.last_accessed == BIRTH_YEAR + 10
        assert memory.access_count == 0
        assert memory.emotional_valence == pytest.approx(0.3)
        assert memory.intensity == pytest.approx(0.52)
        assert memory.type == "significant"
