"""GameState construction and small derived views used by every turn."""

from __future__ import annotations

import random

from fate_engine.memory.evaluator import memory_id_for
from fate_engine.models import (
    Character,
    Choice,
    GameContext,
    GameState,
    LifeEvent,
    ProceduralBackground,
    RecentEventSummary,
    Relationship,
)
from fate_engine.mutations import apply_event
from fate_engine.progression import EARLY_LIFE_START
from fate_engine.stages import phase_for_age, stage_for_age

RECENT_EVENT_COUNT = 5
NARRATIVE_HISTORY_LIMIT = 200

START_CHOICE = Choice(id=EARLY_LIFE_START, label="Begin your life", tags=["start"])


def new_game_state(
    character: Character,
    *,
    seed: str,
    relationships: list[Relationship] | None = None,
    background: ProceduralBackground | None = None,
) -> GameState:
    """A game at the moment of birth, waiting for the first turn."""
    if background is not None and background.traits:
        traits = list(dict.fromkeys([*character.traits, *background.traits]))
        character = character.model_copy(update={"traits": traits})
    return GameState(
        seed=seed,
        current_year=character.birth_year,
        character=character,
        relationships=relationships or [],
        pending_choices=[START_CHOICE],
        procedural_background=background,
        last_milestone_age=0,
        current_phase=phase_for_age(0),
        narrative_history=[],
    )


def turn_rng(state: GameState) -> random.Random:
    """Deterministic generator for the turn about to be played from `state`."""
    return random.Random(
        f"{state.seed}:{state.current_year}:{state.stage_local_index}:{len(state.events)}"
    )


def next_event_id(state: GameState) -> str:
    return f"evt_{state.current_year}_{len(state.events) + 1}"


def record_event(state: GameState, event: LifeEvent) -> GameState:
    """Apply `event`'s deltas and append it to the event log."""
    updated = apply_event(state, event)
    return updated.model_copy(update={"events": [*updated.events, event]})


def append_narrative(state: GameState, lines: list[str]) -> GameState:
    history = [*(state.narrative_history or []), *lines]
    return state.model_copy(update={"narrative_history": history[-NARRATIVE_HISTORY_LIMIT:]})


def active_relationship_ids(state: GameState) -> list[str]:
    return [r.npc.id for r in state.relationships if r.status == "active"]


def current_emotional_state(state: GameState) -> float | None:
    """Valence of the most recently formed memory, if any."""
    system = state.memory_system
    if system is None:
        return None
    for event in reversed(state.events):
        memory = system.memories.get(memory_id_for(event))
        if memory is not None:
            return memory.emotional_valence
    return None


def recent_event_summaries(state: GameState, count: int = RECENT_EVENT_COUNT) -> list[RecentEventSummary]:
    memories = state.memory_system.memories if state.memory_system else {}
    summaries = []
    for event in state.events[-count:]:
        memory = memories.get(memory_id_for(event))
        summaries.append(RecentEventSummary(
            title=event.title,
            tags=list(event.tags),
            emotional_impact=memory.emotional_valence if memory else None,
        ))
    return summaries


def build_game_context(state: GameState) -> GameContext:
    age = state.age
    return GameContext(
        current_year=state.current_year,
        current_age=age,
        current_stage=stage_for_age(age).name,
        recent_events=recent_event_summaries(state),
        active_relationships=active_relationship_ids(state),
        current_emotional_state=current_emotional_state(state),
    )
