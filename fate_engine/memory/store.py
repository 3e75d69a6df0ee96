"""Memory store bookkeeping: capacity, core set, and the per-event pipeline.

Invariants kept after every insertion:
  at most MAX_MEMORIES memories are stored
  at most MAX_CORE_MEMORIES ids are in core_memory_ids; overflow demotes the
    oldest core memory to "significant" and never deletes it
  no theme, core id list or association list refers to an evicted memory
"""

from __future__ import annotations

import logging
import random

from fate_engine.memory.evaluator import evaluate_event
from fate_engine.memory.themes import detect_themes, update_themes
from fate_engine.models import GameState, LifeEvent, Memory, MemorySystem

logger = logging.getLogger(__name__)

MAX_MEMORIES = 100
MAX_CORE_MEMORIES = 10
RECENCY_PENALTY_PER_YEAR = 0.1


def new_memory_system() -> MemorySystem:
    return MemorySystem()


def retention_score(memory: Memory, current_year: int) -> float:
    return memory.intensity - RECENCY_PENALTY_PER_YEAR * (current_year - memory.last_accessed)


def update_core_memories(system: MemorySystem, memory: Memory) -> None:
    """Track a new core memory, demoting the oldest one past the cap."""
    if memory.type != "core" or memory.id in system.core_memory_ids:
        return
    system.core_memory_ids.append(memory.id)
    while len(system.core_memory_ids) > MAX_CORE_MEMORIES:
        demoted_id = system.core_memory_ids.pop(0)
        demoted = system.memories.get(demoted_id)
        if demoted is not None:
            demoted.type = "significant"
        logger.debug("core memory %s demoted to significant", demoted_id)


def _eviction_order(memories: list[Memory], current_year: int) -> list[Memory]:
    return sorted(memories, key=lambda m: retention_score(m, current_year))


def evict_memories(system: MemorySystem, current_year: int) -> list[str]:
    """Drop the lowest-scoring memories until the store fits, returning their ids.

    Ordinary memories go first. Significant ones are only considered when there
    are not enough ordinary memories to restore the cap; core memories stay.
    """
    surplus = len(system.memories) - MAX_MEMORIES
    if surplus <= 0:
        return []

    candidates = _eviction_order(
        [m for m in system.memories.values() if m.type == "ordinary"], current_year
    )
    if len(candidates) < surplus:
        candidates += _eviction_order(
            [m for m in system.memories.values() if m.type == "significant"], current_year
        )

    evicted = {m.id for m in candidates[:surplus]}
    for memory_id in evicted:
        del system.memories[memory_id]

    system.core_memory_ids = [i for i in system.core_memory_ids if i not in evicted]
    for theme in system.themes.values():
        theme.related_memories = [i for i in theme.related_memories if i not in evicted]
    for memory in system.memories.values():
        if evicted.intersection(memory.associations):
            memory.associations = [i for i in memory.associations if i not in evicted]

    logger.debug("evicted %d memories: %s", len(evicted), sorted(evicted))
    return sorted(evicted)


def store_memory(system: MemorySystem, memory: Memory, event: LifeEvent, current_year: int) -> None:
    """Insert `memory` and run core tracking, theme detection and eviction in place."""
    system.memories[memory.id] = memory
    update_core_memories(system, memory)
    update_themes(system, memory, detect_themes(event), current_year)
    evict_memories(system, current_year)


def remember_event(state: GameState, event: LifeEvent, rng: random.Random) -> GameState:
    """Fold `event` into the game's memory system and return the new state.

    The event should already be in state.events. The memory system is created
    on the first event and copied before it is modified.
    """
    memory = evaluate_event(event, state, rng)
    if state.memory_system is None:
        system = new_memory_system()
    else:
        system = state.memory_system.model_copy(deep=True)

    store_memory(system, memory, event, state.current_year)
    logger.debug(
        "remembered %s as %s (intensity=%.2f valence=%.2f)",
        event.id, memory.type, memory.intensity, memory.emotional_valence,
    )
    return state.model_copy(update={"memory_system": system})
