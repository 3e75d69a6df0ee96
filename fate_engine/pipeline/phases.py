"""Phase handlers — one pure async function per life phase.

Every handler has the same shape:

    async def handler(state, choice, context, *, oracle, rng) -> TurnResult

`context` is the TurnContext the orchestrator computed for `state`. Handlers
never touch storage and never mutate `state`; they return a new one inside
the TurnResult. build_phase_handlers() returns the closed GamePhase → handler
map that the orchestrator is given at startup.

Standard turn:
  1. ask the oracle (fallback_response() on OracleError)
  2. record the event, fold it into memory
  3. surface up to two memory callbacks, touching the memories used
  4. advance the clock with a context recomputed from the updated event log
  5. assemble narrative lines and transition info

Early childhood adds two oracle-free turns before the standard one:
  early_life_start       birth narrative + birth event + hobby choices
  time_block_allocation  decode the hobby choice, apply time-block effects,
                         jump to age 8
"""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable

from fate_engine.memory import (
    format_callback,
    generate_callbacks,
    relevant_memories,
    remember_event,
    strongest_thematic_callback,
    touch_memory,
)
from fate_engine.memory.callbacks import MAX_CALLBACKS
from fate_engine.memory.evaluator import memory_id_for
from fate_engine.memory.retriever import NARRATIVE_LIMIT
from fate_engine.models import (
    AgeChange,
    Choice,
    GamePhase,
    GameState,
    LifeEvent,
    PlayerChoice,
    TurnContext,
    TurnResult,
)
from fate_engine.narrative import (
    age_change_narrative,
    birth_narrative,
    early_childhood_narrative,
    event_line,
    relationship_lines,
    split_narrative,
    transition_info,
)
from fate_engine.oracle import Oracle, OracleError, build_request, fallback_response
from fate_engine.progression import (
    EARLY_LIFE_START,
    TIME_BLOCK_ALLOCATION,
    advance_time,
    calculate_turn,
)
from fate_engine.stages import PHASES, stage_for_age
from fate_engine.state import build_game_context, next_event_id, record_event
from fate_engine.timeblocks import (
    allocation_for_choice,
    apply_time_block_effects,
    early_life_choices,
    time_block_effects,
)

logger = logging.getLogger(__name__)

PhaseHandler = Callable[..., Awaitable[TurnResult]]

CHILDHOOD_CHOICES: tuple[Choice, ...] = (
    Choice(
        id="school_eager",
        label="Excel academically - throw yourself into schoolwork and learning",
        tags=["academic", "eager", "childhood"],
    ),
    Choice(
        id="make_friend",
        label="Build deep friendships - focus on social connections and relationships",
        tags=["social", "friendship", "childhood"],
    ),
    Choice(
        id="explore_interest",
        label="Develop hobbies - pursue your interests and creative passions",
        tags=["independent", "hobby", "childhood"],
    ),
    Choice(
        id="help_family",
        label="Support your family - take on responsibilities at home",
        tags=["responsible", "family", "childhood"],
    ),
)


# ---------------------------------------------------------------------------
# Shared steps
# ---------------------------------------------------------------------------

def surface_callbacks(
    state: GameState, event: LifeEvent, rng: random.Random
) -> tuple[GameState, list[str]]:
    """Memory callbacks for the turn that just recorded `event`.

    The memory formed from `event` itself is never a candidate. Memories that
    surface are touched, so the returned state carries a new memory system.
    """
    if state.memory_system is None:
        return state, []

    context = build_game_context(state)
    system = state.memory_system.model_copy(deep=True)
    candidates = relevant_memories(
        context, system, NARRATIVE_LIMIT, exclude=frozenset({memory_id_for(event)})
    )
    callbacks = generate_callbacks(candidates, context, state, rng)
    if len(callbacks) < MAX_CALLBACKS:
        thematic = strongest_thematic_callback(state)
        if thematic is not None:
            callbacks.append(thematic)

    for callback in callbacks:
        if callback.memory_id and callback.memory_id in system.memories:
            touch_memory(system.memories[callback.memory_id], state.current_year)

    updated = state.model_copy(update={"memory_system": system})
    return updated, [format_callback(c) for c in callbacks]


def _age_change(
    previous_age: int, state: GameState, context: TurnContext, rng: random.Random
) -> AgeChange | None:
    if state.age == previous_age:
        return None
    return AgeChange(
        previous_age=previous_age,
        new_age=state.age,
        narrative=age_change_narrative(state.age, context, rng),
    )


def _birthplace(state: GameState) -> str:
    background = state.procedural_background
    return (background.birthplace_name if background else "") or state.character.birthplace


def _choice_label(state: GameState, choice: PlayerChoice) -> str | None:
    if choice.label:
        return choice.label
    for pending in state.pending_choices:
        if pending.id == choice.id:
            return pending.label
    return None


# ---------------------------------------------------------------------------
# Standard turn
# ---------------------------------------------------------------------------

async def standard_turn(
    state: GameState,
    choice: PlayerChoice,
    context: TurnContext,
    *,
    oracle: Oracle,
    rng: random.Random,
) -> TurnResult:
    previous_age = state.age
    choice = choice.model_copy(update={"label": _choice_label(state, choice)})
    request = build_request(state, choice, stage_for_age(previous_age), context)
    try:
        response = await oracle(request)
    except OracleError as e:
        logger.warning("oracle failed at age %d, using fallback: %s", previous_age, e)
        response = fallback_response(previous_age)

    event = response.to_event(next_event_id(state), state.current_year)
    updated = record_event(state, event)
    updated = remember_event(updated, event, rng)
    updated, callback_lines = surface_callbacks(updated, event, rng)

    advance_context = calculate_turn(updated, rng)
    updated = advance_time(updated, advance_context)
    updated = updated.model_copy(update={"pending_choices": response.choices()})

    lines = [event_line(event), *callback_lines, *split_narrative(response.narrative)]
    rel_lines = relationship_lines(event, updated.relationships)
    if rel_lines:
        lines += ["", *rel_lines]

    info = transition_info(advance_context)
    info.age_change = _age_change(previous_age, updated, advance_context, rng)
    return TurnResult(narrative_lines=lines, transition_info=info, new_state=updated)


# ---------------------------------------------------------------------------
# Early childhood
# ---------------------------------------------------------------------------

def early_life_start_turn(state: GameState, rng: random.Random) -> TurnResult:
    """Birth: narrative, a birth event and the hobby choices. The clock does not move."""
    background = state.procedural_background
    place = _birthplace(state)
    event = LifeEvent(
        id=next_event_id(state),
        year=state.current_year,
        title=f"Born in {place}" if place else "Born",
        description=(background.family_story if background else "") or "You enter the world.",
        tags=["birth", "family"],
    )
    updated = record_event(state, event)
    updated = remember_event(updated, event, rng)
    updated = updated.model_copy(update={
        "pending_choices": early_life_choices(background, rng),
        "phase_data": {**updated.phase_data, "early_childhood": {"birth_shown": True}},
    })
    logger.info("early life start for %s", state.character.name)
    return TurnResult(
        narrative_lines=birth_narrative(state.character, background),
        transition_info=transition_info(TurnContext()),
        new_state=updated,
    )


def time_block_allocation_turn(state: GameState, choice: PlayerChoice, rng: random.Random) -> TurnResult:
    """Turn the hobby choice into an allocation and play out ages 0 to 8."""
    previous_age = state.age
    allocation = allocation_for_choice(choice.id)
    stats, rolled = apply_time_block_effects(state.character.stats, allocation, rng)
    character = state.character.model_copy(update={
        "stats": stats,
        "traits": list(dict.fromkeys([*state.character.traits, *rolled])),
    })
    label = _choice_label(state, choice)
    phase_data = {
        **state.phase_data,
        "early_childhood": {
            **state.phase_data.get("early_childhood", {}),
            "hobby_choice": choice.id,
            "hobby_label": label,
            "development_focus": allocation.model_dump(),
            "themes": time_block_effects(allocation).themes,
        },
    }
    updated = state.model_copy(update={
        "character": character,
        "time_block_allocation": allocation,
        "phase_data": phase_data,
    })

    event = LifeEvent(
        id=next_event_id(updated),
        year=updated.current_year,
        title="Early Childhood Years",
        description=f"Your early years were defined by {(label or 'your chosen hobby').lower()}. "
                    "This shaped who you would become.",
        stat_changes={
            "intelligence": allocation.cognitive * 2,
            "charisma": allocation.social * 2,
            "strength": allocation.physical * 2,
            "creativity": allocation.creative * 2,
            "health": allocation.physical,
        },
        tags=["childhood", "development", "hobby"],
    )
    updated = record_event(updated, event)
    updated = remember_event(updated, event, rng)

    advance_context = calculate_turn(updated, rng)
    updated = advance_time(updated, advance_context)
    updated = updated.model_copy(update={"pending_choices": list(CHILDHOOD_CHOICES)})
    logger.info("time blocks allocated for %s: %s", state.character.name, allocation.model_dump())

    background = state.procedural_background
    lines = early_childhood_narrative(
        _birthplace(state) or "your hometown",
        label,
        choice.id,
        background.socioeconomic_status if background else "middle",
        allocation,
    )
    info = transition_info(advance_context)
    info.age_change = _age_change(previous_age, updated, advance_context, rng)
    return TurnResult(narrative_lines=lines, transition_info=info, new_state=updated)


async def early_childhood_turn(
    state: GameState,
    choice: PlayerChoice,
    context: TurnContext,
    *,
    oracle: Oracle,
    rng: random.Random,
) -> TurnResult:
    if context.triggered_by == EARLY_LIFE_START:
        return early_life_start_turn(state, rng)
    if context.triggered_by == TIME_BLOCK_ALLOCATION:
        return time_block_allocation_turn(state, choice, rng)
    return await standard_turn(state, choice, context, oracle=oracle, rng=rng)


def build_phase_handlers() -> dict[GamePhase, PhaseHandler]:
    handlers: dict[GamePhase, PhaseHandler] = {phase: standard_turn for phase in PHASES}
    handlers["early_childhood"] = early_childhood_turn
    return handlers
