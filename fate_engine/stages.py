"""Life stages and phases.

Stage table (turn span ± variance / density / milestone ages):
  infancy      0-2    3     normal  1, 3
  earlyChild   3-4    2     normal  5
  middleChild  5-7    3     normal  8
  tween        8-12   4     normal  12
  highSchool   13-17  1     dense   16, 18
  youngAdult   18-24  2±1   normal  21, 25
  adult        25-64  3±2   normal  30, 40, 50
  senior       65+    2±1   normal  65, 70, 80

Each stage also lists the event tags that can open a sub-turn and the prompt
tags handed to the narrative oracle.

Phases are coarser than stages and drive which turn handler runs.
"""

from __future__ import annotations

from fate_engine.models import GamePhase, StageConfig

# Ages that are milestones regardless of stage.
GLOBAL_MILESTONE_AGES: frozenset[int] = frozenset({8, 12, 13, 16, 18, 21, 30, 40, 50, 65, 70, 80})

STAGES: tuple[StageConfig, ...] = (
    StageConfig(
        name="infancy",
        turn_span=3,
        prompt_tags=("baby", "toddler", "early development", "first words", "first steps", "parent perspective"),
        event_density="normal",
        milestone_ages=(1, 3),
        sub_turn_triggers=("first_words", "first_steps", "health_scare", "family_change"),
    ),
    StageConfig(
        name="earlyChild",
        turn_span=2,
        prompt_tags=("preschool", "early childhood", "learning", "play", "family life", "emerging personality"),
        event_density="normal",
        milestone_ages=(5,),
        sub_turn_triggers=("preschool_start", "sibling_birth", "family_move", "early_talent"),
    ),
    StageConfig(
        name="middleChild",
        turn_span=3,
        prompt_tags=("elementary school", "friendships", "hobbies", "family dynamics", "growing independence"),
        event_density="normal",
        milestone_ages=(8,),
        sub_turn_triggers=("first_day_school", "best_friend", "family_crisis", "formative_moment"),
    ),
    StageConfig(
        name="tween",
        turn_span=4,
        prompt_tags=("pre-teen", "identity formation", "school life", "growing independence", "peer relationships"),
        event_density="normal",
        milestone_ages=(12,),
        sub_turn_triggers=("first_crush", "major_conflict", "identity_moment", "school_transition", "friendship_drama"),
    ),
    StageConfig(
        name="highSchool",
        turn_span=1,
        prompt_tags=("academics", "romance", "future planning", "social life"),
        event_density="dense",
        milestone_ages=(16, 18),
        sub_turn_triggers=("relationship_start", "college_prep", "major_decision"),
    ),
    StageConfig(
        name="youngAdult",
        turn_span=2,
        turn_span_variance=1,
        prompt_tags=("career", "independence", "relationships", "education"),
        event_density="normal",
        milestone_ages=(21, 25),
        sub_turn_triggers=("graduation", "first_job", "engagement", "career_change"),
    ),
    StageConfig(
        name="adult",
        turn_span=3,
        turn_span_variance=2,
        prompt_tags=("career", "family", "stability", "achievements"),
        event_density="normal",
        milestone_ages=(30, 40, 50),
        sub_turn_triggers=("marriage", "childbirth", "divorce", "career_milestone", "loss"),
    ),
    StageConfig(
        name="senior",
        turn_span=2,
        turn_span_variance=1,
        prompt_tags=("legacy", "reflection", "health", "wisdom"),
        event_density="normal",
        milestone_ages=(65, 70, 80),
        sub_turn_triggers=("retirement", "grandchild", "health_crisis", "loss_of_spouse"),
    ),
)

# Exclusive upper age bound of each stage, in STAGES order. senior is open-ended.
_STAGE_BOUNDS = (3, 5, 8, 13, 18, 25, 65)


def stage_for_age(age: int) -> StageConfig:
    for bound, stage in zip(_STAGE_BOUNDS, STAGES):
        if age < bound:
            return stage
    return STAGES[-1]


def milestone_ages(stage: StageConfig) -> frozenset[int]:
    """All milestone ages that apply while in `stage`: its own plus the global set."""
    return GLOBAL_MILESTONE_AGES | frozenset(stage.milestone_ages)


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------

PHASES: tuple[GamePhase, ...] = (
    "early_childhood",
    "childhood",
    "adolescence",
    "young_adult",
    "adult",
    "senior",
)

# (inclusive max age, phase)
_PHASE_BOUNDS: tuple[tuple[int, GamePhase], ...] = (
    (8, "early_childhood"),
    (12, "childhood"),
    (17, "adolescence"),
    (25, "young_adult"),
    (64, "adult"),
)


def phase_for_age(age: int) -> GamePhase:
    for max_age, phase in _PHASE_BOUNDS:
        if age <= max_age:
            return phase
    return "senior"


def next_phase(current: GamePhase | None, age: int) -> GamePhase | None:
    """Return the phase to move into at `age`, or None if no transition is due.

    Phases only move forward; a character never drops back to an earlier phase.
    """
    target = phase_for_age(age)
    if current is None:
        return target
    if PHASES.index(target) > PHASES.index(current):
        return target
    return None
