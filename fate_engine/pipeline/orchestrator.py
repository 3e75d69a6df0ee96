"""Pipeline orchestrator — runs one player turn end-to-end.

Turn flow:
  1. Derive the turn's seeded generator from the state.
  2. Compute the turn context (progression calculator).
  3. Dispatch to the handler for the game's current phase; it returns a
     TurnResult holding the new state.
  4. Move the game into a later phase when the new age calls for it.
  5. Append the turn's lines to the narrative history.

play_turn() wraps run_turn() with storage: load, claim the game, run, save.
Nothing is written when any step raises.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping

from fate_engine.models import GamePhase, GameState, PhaseTransition, PlayerChoice, TurnResult
from fate_engine.oracle import Oracle
from fate_engine.pipeline.phases import PhaseHandler, build_phase_handlers
from fate_engine.progression import calculate_turn
from fate_engine.stages import next_phase, phase_for_age
from fate_engine.state import append_narrative, turn_rng
from fate_engine.storage import Storage

logger = logging.getLogger(__name__)


async def run_turn(
    state: GameState,
    choice: PlayerChoice,
    *,
    oracle: Oracle,
    handlers: Mapping[GamePhase, PhaseHandler],
    rng: random.Random | None = None,
) -> TurnResult:
    """Play `choice` from `state` and return the turn's result. `state` is not modified."""
    rng = rng or turn_rng(state)
    phase = state.current_phase or phase_for_age(state.age)
    context = calculate_turn(state, rng)
    logger.debug(
        "turn phase=%s age=%d choice=%s trigger=%s", phase, state.age, choice.id, context.triggered_by
    )

    result = await handlers[phase](state, choice, context, oracle=oracle, rng=rng)
    new_state = result.new_state
    info = result.transition_info

    target = next_phase(phase, new_state.age)
    if target is not None:
        logger.info("phase transition %s -> %s at age %d", phase, target, new_state.age)
        info = info.model_copy(update={
            "phase_transition": PhaseTransition(from_phase=phase, to_phase=target),
        })
        new_state = new_state.model_copy(update={"current_phase": target})
    elif new_state.current_phase is None:
        new_state = new_state.model_copy(update={"current_phase": phase})

    new_state = append_narrative(new_state, result.narrative_lines)
    return TurnResult(
        narrative_lines=result.narrative_lines,
        transition_info=info,
        new_state=new_state,
    )


async def play_turn(
    storage: Storage,
    game_id: str,
    choice: PlayerChoice,
    *,
    oracle: Oracle,
    handlers: Mapping[GamePhase, PhaseHandler] | None = None,
) -> TurnResult:
    """Load, run and save one turn. Only one turn per game may be in flight."""
    with storage.claim_turn(game_id):
        state = storage.load(game_id)
        result = await run_turn(
            state, choice, oracle=oracle, handlers=handlers or build_phase_handlers()
        )
        storage.save(game_id, result.new_state)
    return result
