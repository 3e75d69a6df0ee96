"""Tests for fate_engine.progression.

The sub-turn cap and the pressure formula are empirically tuned; the exact
values below are pinned on purpose.
"""

import random

import pytest

from conftest import BIRTH_YEAR, FixedRandom, make_event, make_state
from fate_engine.models import StageConfig, TimeBlockAllocation, TurnContext
from fate_engine.progression import (
    EARLY_LIFE_START,
    TIME_BLOCK_ALLOCATION,
    advance_time,
    calculate_turn,
    clamp_to_next_milestone,
    find_sub_turn_trigger,
    narrative_pressure,
    recent_events,
    sub_turn_name,
    years_to_progress,
)
from fate_engine.stages import STAGES, milestone_ages, stage_for_age

NORMAL = StageConfig(name="normal", turn_span=3)


def _crisis_state(age: int, index: int = 0):
    event = make_event(year=BIRTH_YEAR + age - 1, title="Parents Argue", tags=["family_crisis"])
    return make_state(
        age=age,
        events=[event],
        stage_local_index=index,
        time_block_allocation=TimeBlockAllocation(),
    )


class TestSpecialAges:
    def test_birth_starts_early_life(self) -> None:
        context = calculate_turn(make_state(age=0), FixedRandom())
        assert context.triggered_by == EARLY_LIFE_START
        assert context.years_progressed == 0

    def test_allocation_pending_after_birth(self) -> None:
        context = calculate_turn(make_state(age=0, events=[make_event()]), FixedRandom())
        assert context.triggered_by == TIME_BLOCK_ALLOCATION
        assert context.years_progressed == 0

    def test_allocation_done_jumps_eight_years(self) -> None:
        state = make_state(age=0, events=[make_event()], time_block_allocation=TimeBlockAllocation())
        context = calculate_turn(state, FixedRandom())
        assert context.years_progressed == 8
        assert context.triggered_by is None

    def test_age_eight_is_four_year_milestone(self) -> None:
        state = make_state(age=8, time_block_allocation=TimeBlockAllocation())
        context = calculate_turn(state, FixedRandom())
        assert context.is_milestone is True
        assert context.years_progressed == 4
        assert context.triggered_by is None


class TestSubTurns:
    def test_family_crisis_at_seven_opens_sub_turn(self) -> None:
        context = calculate_turn(_crisis_state(7), FixedRandom())
        assert context.is_sub_turn is True
        assert context.years_progressed == 0
        assert context.triggered_by == "family_crisis"
        assert context.sub_turn_name == "Crisis Unfolds"

    def test_second_sub_turn_uses_next_beat(self) -> None:
        context = calculate_turn(_crisis_state(7, index=1), FixedRandom())
        assert context.years_progressed == 0
        assert context.sub_turn_name == "Dealing With It"

    def test_cap_of_two_forces_a_real_advance(self) -> None:
        context = calculate_turn(_crisis_state(5, index=2), FixedRandom())
        assert context.is_sub_turn is True
        assert context.years_progressed == 3

    def test_unknown_trigger_uses_default_beats(self) -> None:
        assert sub_turn_name("mystery", 0) == "Beginning"
        assert sub_turn_name("mystery", 4) == "Middle"

    def test_first_matching_tag_wins(self) -> None:
        stage = stage_for_age(6)
        events = [make_event(tags=["best_friend"]), make_event(tags=["family_crisis"])]
        assert find_sub_turn_trigger(events, stage) == "best_friend"

    def test_trigger_must_be_recent(self) -> None:
        state = make_state(age=7, events=[make_event(year=BIRTH_YEAR, tags=["family_crisis"])])
        assert recent_events(state) == []


class TestNarrativePressure:
    def test_quiet_stretch_adds_two_tenths(self) -> None:
        assert narrative_pressure(0.0, [], NORMAL, FixedRandom(0.5)) == pytest.approx(0.2)

    def test_jitter_is_symmetric_tenth(self) -> None:
        assert narrative_pressure(0.0, [], NORMAL, FixedRandom(0.0)) == pytest.approx(0.1)

    def test_one_significant_event_adds_one_tenth(self) -> None:
        events = [make_event(stat_changes={"health": -12})]
        assert narrative_pressure(0.3, events, NORMAL, FixedRandom(0.5)) == pytest.approx(0.4)

    def test_two_significant_events_add_nothing(self) -> None:
        events = [make_event(stat_changes={"health": -12}), make_event(stat_changes={"wealth": 10})]
        assert narrative_pressure(0.3, events, NORMAL, FixedRandom(0.5)) == pytest.approx(0.3)

    def test_density_scaling(self) -> None:
        dense = StageConfig(name="d", turn_span=1, event_density="dense")
        sparse = StageConfig(name="s", turn_span=1, event_density="sparse")
        assert narrative_pressure(0.0, [], dense, FixedRandom(0.5)) == pytest.approx(0.26)
        assert narrative_pressure(0.0, [], sparse, FixedRandom(0.5)) == pytest.approx(0.14)

    def test_clamped_to_one(self) -> None:
        assert narrative_pressure(0.95, [], NORMAL, FixedRandom(0.5)) == 1.0


class TestYearsToProgress:
    def _years(self, **kwargs) -> int:
        values = {
            "is_milestone": False,
            "sub_turn_trigger": None,
            "stage_local_index": 0,
            "pressure": 0.0,
            "stage": NORMAL,
            "rng": FixedRandom(0.5),
        }
        values.update(kwargs)
        return years_to_progress(**values)

    def test_milestone_is_one_year(self) -> None:
        assert self._years(is_milestone=True, sub_turn_trigger="loss") == 1

    def test_turn_span(self) -> None:
        assert self._years() == 3

    def test_high_pressure_shortens(self) -> None:
        assert self._years(pressure=0.8) == 2

    def test_variance(self) -> None:
        stage = StageConfig(name="v", turn_span=3, turn_span_variance=2)
        assert self._years(stage=stage, rng=FixedRandom(0.0)) == 1
        assert self._years(stage=stage, rng=FixedRandom(0.75)) == 4

    def test_never_below_one(self) -> None:
        stage = StageConfig(name="short", turn_span=1)
        assert self._years(stage=stage, pressure=0.9) == 1


class TestMilestoneClamp:
    def test_lands_on_nearest_milestone(self) -> None:
        assert clamp_to_next_milestone(9, 4, stage_for_age(9)) == 3

    def test_no_milestone_in_range(self) -> None:
        assert clamp_to_next_milestone(31, 3, stage_for_age(31)) == 3

    def test_zero_years_untouched(self) -> None:
        assert clamp_to_next_milestone(17, 0, stage_for_age(17)) == 0

    @pytest.mark.parametrize("seed", range(20))
    def test_no_milestone_is_ever_skipped(self, seed: int) -> None:
        rng = random.Random(seed)
        state = make_state(age=1, time_block_allocation=TimeBlockAllocation())
        visited = {state.age}
        while state.age < 90:
            context = calculate_turn(state, rng)
            state = advance_time(state, context)
            visited.add(state.age)

        every_milestone = set().union(*(milestone_ages(stage) for stage in STAGES))
        assert {age for age in every_milestone if 1 <= age <= 90} <= visited


class TestAdvanceTime:
    def test_sub_turn_keeps_the_year(self) -> None:
        state = make_state(age=7)
        context = TurnContext(is_sub_turn=True, sub_turn_name="Aftermath", years_progressed=0)
        updated = advance_time(state, context)
        assert updated.current_year == state.current_year
        assert updated.stage_local_index == 1
        assert updated.current_sub_turn == "Aftermath"

    def test_normal_advance_resets_sub_turns(self) -> None:
        state = make_state(age=7, stage_local_index=2, current_sub_turn="Aftermath")
        updated = advance_time(state, TurnContext(years_progressed=3, narrative_pressure=0.4))
        assert updated.age == 10
        assert updated.stage_local_index == 0
        assert updated.current_sub_turn is None
        assert updated.narrative_pressure == 0.4

    def test_milestone_records_age(self) -> None:
        state = make_state(age=17)
        updated = advance_time(state, TurnContext(is_milestone=True, years_progressed=1))
        assert updated.last_milestone_age == 18
