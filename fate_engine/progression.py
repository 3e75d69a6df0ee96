"""Turn and time progression.

calculate_turn() decides how the next turn is paced. Evaluation order:
  1. Age 0, no events, no time-block allocation  -> "early_life_start", 0 years
  2. Age 0, events recorded, no allocation        -> "time_block_allocation", 0 years
  3. Age 0 with an allocation                     -> jump 8 years
  4. Age 8                                        -> milestone, jump 4 years
  5. Otherwise:
       milestone age (stage or global set)        -> exactly 1 year
       sub-turn tag in the last 5 years, and fewer
         than 2 sub-turns taken in this span      -> 0 years
       else turn span ± variance, -1 when narrative pressure > 0.7, min 1
     then the candidate is clamped so it never jumps past a milestone age.

Narrative pressure (0-1) is carried over between turns:
  +0.2 when no event in the last 5 years swung a stat by 10 or more,
  +0.1 when only one did; scaled x0.7 (sparse stage) or x1.3 (dense stage);
  plus uniform jitter in [-0.1, 0.1]. It is a hint for the narrative oracle,
  never a trigger by itself.

advance_time() applies a turn context to a game state.
"""

from __future__ import annotations

import logging
import math
import random

from fate_engine.models import GameState, LifeEvent, StageConfig, TurnContext
from fate_engine.stages import milestone_ages, stage_for_age

logger = logging.getLogger(__name__)

EARLY_LIFE_START = "early_life_start"
TIME_BLOCK_ALLOCATION = "time_block_allocation"
SPECIAL_TRIGGERS = frozenset({EARLY_LIFE_START, TIME_BLOCK_ALLOCATION})

RECENT_WINDOW_YEARS = 5
SIGNIFICANT_STAT_SWING = 10
HIGH_PRESSURE = 0.7
MAX_SUB_TURNS_PER_SPAN = 2

EARLY_CHILDHOOD_JUMP = 8
CHILDHOOD_JUMP = 4

SUB_TURN_NAMES: dict[str, tuple[str, str, str]] = {
    # Early life
    "major_childhood_event": ("Building Up", "The Moment", "Looking Back"),
    "family_crisis": ("Crisis Unfolds", "Dealing With It", "Aftermath"),
    "formative_moment": ("Before", "During", "After"),
    "health_scare": ("Emergency", "Hospital Stay", "Recovery"),
    "first_day_school": ("First Week", "Settling In", "New Routines"),
    # Tween
    "first_crush": ("Butterflies", "Getting to Know Them", "What Happens Next"),
    "major_conflict": ("Tensions Rise", "Confrontation", "Resolution"),
    "identity_moment": ("Questioning", "Exploring", "Finding Yourself"),
    "school_transition": ("Last Days", "The Change", "New Beginning"),
    "friendship_drama": ("Tensions Build", "The Fallout", "Moving Forward"),
    # High school
    "relationship_start": ("Early Days", "Getting Closer", "Defining Moments"),
    "college_prep": ("Applications", "Waiting", "Decisions"),
    "major_decision": ("Weighing Options", "Making the Choice", "Living With It"),
    # Young adult
    "graduation": ("Final Semester", "Graduation Day", "Next Steps"),
    "first_job": ("First Day", "Learning Period", "Finding Your Place"),
    "engagement": ("The Proposal", "Planning", "Big Day Approaches"),
    "career_change": ("Contemplating", "Making the Leap", "New Beginning"),
    # Adult
    "marriage": ("Wedding Day", "Honeymoon", "Settling In"),
    "childbirth": ("Pregnancy", "Birth", "First Months"),
    "divorce": ("Growing Apart", "The Decision", "Moving On"),
    "career_milestone": ("Building Up", "Achievement", "What's Next"),
    "loss": ("The News", "Grieving", "Moving Forward"),
    # Senior
    "retirement": ("Final Year", "Retirement Day", "New Chapter"),
    "grandchild": ("Announcement", "Birth", "Bonding"),
    "health_crisis": ("Diagnosis", "Treatment", "Recovery"),
    "loss_of_spouse": ("Final Days", "Saying Goodbye", "Life After"),
}
DEFAULT_SUB_TURN_NAMES = ("Beginning", "Middle", "Resolution")


def recent_events(state: GameState, years: int = RECENT_WINDOW_YEARS) -> list[LifeEvent]:
    """Events from the trailing `years` years, oldest first."""
    cutoff = state.current_year - years
    return [e for e in state.events if e.year >= cutoff]


def is_significant_event(event: LifeEvent) -> bool:
    return any(abs(delta) >= SIGNIFICANT_STAT_SWING for delta in event.stat_changes.values())


def narrative_pressure(
    carried: float, recent: list[LifeEvent], stage: StageConfig, rng: random.Random
) -> float:
    pressure = carried
    significant = sum(1 for e in recent if is_significant_event(e))
    if significant == 0:
        pressure += 0.2
    elif significant < 2:
        pressure += 0.1

    if stage.event_density == "sparse":
        pressure *= 0.7
    elif stage.event_density == "dense":
        pressure *= 1.3

    pressure += (rng.random() - 0.5) * 0.2
    return max(0.0, min(1.0, pressure))


def is_milestone_age(age: int, stage: StageConfig) -> bool:
    return age in milestone_ages(stage)


def sub_turn_name(trigger: str, index: int) -> str:
    names = SUB_TURN_NAMES.get(trigger, DEFAULT_SUB_TURN_NAMES)
    return names[index % len(names)]


def find_sub_turn_trigger(recent: list[LifeEvent], stage: StageConfig) -> str | None:
    """Return the first tag in `recent` that the stage lists as a sub-turn trigger."""
    for event in recent:
        for tag in event.tags:
            if tag in stage.sub_turn_triggers:
                return tag
    return None


def years_to_progress(
    *,
    is_milestone: bool,
    sub_turn_trigger: str | None,
    stage_local_index: int,
    pressure: float,
    stage: StageConfig,
    rng: random.Random,
) -> int:
    if is_milestone:
        return 1
    if sub_turn_trigger and stage_local_index < MAX_SUB_TURNS_PER_SPAN:
        return 0

    years = stage.turn_span
    if stage.turn_span_variance:
        years += math.floor((rng.random() - 0.5) * 2 * stage.turn_span_variance)
    if pressure > HIGH_PRESSURE:
        years = max(1, years - 1)
    return max(1, years)


def clamp_to_next_milestone(age: int, years: int, stage: StageConfig) -> int:
    """Shorten `years` so the jump lands on the first milestone after `age`.

    Milestones strictly after `age` and up to the target are candidates; a
    zero-year turn never moves past anything.
    """
    target = age + years
    upcoming = sorted(m for m in milestone_ages(stage) if age < m <= target)
    if upcoming:
        return upcoming[0] - age
    return years


def calculate_turn(state: GameState, rng: random.Random) -> TurnContext:
    """Compute the pacing of the turn about to be played from `state`."""
    age = state.age

    if age == 0:
        if state.time_block_allocation is None:
            trigger = EARLY_LIFE_START if not state.events else TIME_BLOCK_ALLOCATION
            return TurnContext(years_progressed=0, triggered_by=trigger)
        return TurnContext(years_progressed=EARLY_CHILDHOOD_JUMP)
    if age == 8:
        return TurnContext(is_milestone=True, years_progressed=CHILDHOOD_JUMP)

    stage = stage_for_age(age)
    recent = recent_events(state)
    pressure = narrative_pressure(state.narrative_pressure, recent, stage, rng)
    milestone = is_milestone_age(age, stage)
    trigger = find_sub_turn_trigger(recent, stage)

    years = years_to_progress(
        is_milestone=milestone,
        sub_turn_trigger=trigger,
        stage_local_index=state.stage_local_index,
        pressure=pressure,
        stage=stage,
        rng=rng,
    )
    years = clamp_to_next_milestone(age, years, stage)

    context = TurnContext(
        is_milestone=milestone,
        is_sub_turn=trigger is not None,
        sub_turn_name=sub_turn_name(trigger, state.stage_local_index) if trigger else None,
        years_progressed=years,
        narrative_pressure=pressure,
        triggered_by=trigger,
    )
    logger.debug(
        "turn context age=%d stage=%s milestone=%s sub_turn=%s years=%d pressure=%.2f",
        age, stage.name, milestone, trigger, years, pressure,
    )
    return context


def advance_time(state: GameState, context: TurnContext) -> GameState:
    """Move the clock according to `context` and return the new state."""
    if context.is_sub_turn and context.years_progressed == 0:
        return state.model_copy(update={
            "stage_local_index": state.stage_local_index + 1,
            "current_sub_turn": context.sub_turn_name,
        })

    new_year = state.current_year + context.years_progressed
    update = {
        "current_year": new_year,
        "stage_local_index": 0,
        "current_sub_turn": None,
        "narrative_pressure": context.narrative_pressure,
    }
    if context.is_milestone:
        update["last_milestone_age"] = new_year - state.character.birth_year
    return state.model_copy(update=update)
