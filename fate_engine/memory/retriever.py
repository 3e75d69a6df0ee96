"""Rank stored memories by how relevant they are to the current moment.

Relevance of one memory, summed:
  base           0.5 core, 0.3 significant, 0 ordinary
  recency        0.3 x max(0, 1 - years since last accessed / 20)
  age            +0.2 formed within 2 years of the current age, +0.1 within 5
  themes         0.3 x strength for every active theme the memory belongs to
  emotion        0.2 x (1 - |valence - current emotional state|), when known
  anniversary    +0.4 when the memory is exactly 1, 5, 10, 20, 25 or 50 years old
  transition     +0.3 when both ages are life-stage transition ages
  intensity      0.2 x intensity

Ranking is a stable sort, so equal scores keep storage order.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from fate_engine.memory.themes import active_themes
from fate_engine.models import GameContext, Memory, MemorySystem, Theme

CORE_BASE = 0.5
SIGNIFICANT_BASE = 0.3
RECENCY_WEIGHT = 0.3
RECENCY_HORIZON_YEARS = 20
THEME_WEIGHT = 0.3
EMOTION_WEIGHT = 0.2
ANNIVERSARY_BONUS = 0.4
TRANSITION_BONUS = 0.3
INTENSITY_WEIGHT = 0.2

ANNIVERSARY_YEARS = frozenset({1, 5, 10, 20, 25, 50})
TRANSITION_AGES = frozenset({5, 13, 18, 21, 30, 40, 50, 65})

DEFAULT_LIMIT = 10
NARRATIVE_LIMIT = 5
EMOTION_TOLERANCE = 0.3


class NarrativeMemories(BaseModel):
    core_memories: list[Memory] = Field(default_factory=list)
    relevant_memories: list[Memory] = Field(default_factory=list)
    active_themes: list[Theme] = Field(default_factory=list)


def relevance_score(memory: Memory, context: GameContext, system: MemorySystem) -> float:
    score = 0.0

    if memory.type == "core":
        score += CORE_BASE
    elif memory.type == "significant":
        score += SIGNIFICANT_BASE

    years_since_access = context.current_year - memory.last_accessed
    score += max(0.0, 1 - years_since_access / RECENCY_HORIZON_YEARS) * RECENCY_WEIGHT

    age_diff = abs(memory.age - context.current_age)
    if age_diff <= 2:
        score += 0.2
    elif age_diff <= 5:
        score += 0.1

    for theme in active_themes(system):
        if memory.id in theme.related_memories:
            score += THEME_WEIGHT * theme.strength

    if context.current_emotional_state is not None:
        match = 1 - abs(memory.emotional_valence - context.current_emotional_state)
        score += match * EMOTION_WEIGHT

    if context.current_age - memory.age in ANNIVERSARY_YEARS:
        score += ANNIVERSARY_BONUS

    if context.current_age in TRANSITION_AGES and memory.age in TRANSITION_AGES:
        score += TRANSITION_BONUS

    score += memory.intensity * INTENSITY_WEIGHT
    return score


def relevant_memories(
    context: GameContext,
    system: MemorySystem,
    limit: int = DEFAULT_LIMIT,
    exclude: frozenset[str] = frozenset(),
) -> list[Memory]:
    """Top `limit` memories by relevance, ignoring ids in `exclude`."""
    candidates = [m for m in system.memories.values() if m.id not in exclude]
    ranked = sorted(candidates, key=lambda m: relevance_score(m, context, system), reverse=True)
    return ranked[:limit]


def core_memories(system: MemorySystem) -> list[Memory]:
    """Core memories in the order they were formed."""
    memories = [system.memories[i] for i in system.core_memory_ids if i in system.memories]
    return sorted(memories, key=lambda m: m.age)


def thematic_memories(
    theme_id: str, system: MemorySystem, limit: int | None = None
) -> list[Memory]:
    theme = system.themes.get(theme_id)
    if theme is None:
        return []
    memories = [system.memories[i] for i in theme.related_memories if i in system.memories]
    memories.sort(key=lambda m: m.intensity, reverse=True)
    return memories[:limit] if limit else memories


def memories_by_emotion(
    target_valence: float, system: MemorySystem, tolerance: float = EMOTION_TOLERANCE
) -> list[Memory]:
    matches = [
        m for m in system.memories.values()
        if abs(m.emotional_valence - target_valence) <= tolerance
    ]
    return sorted(matches, key=lambda m: m.intensity, reverse=True)


def associated_memories(memory: Memory, system: MemorySystem, depth: int = 1) -> list[Memory]:
    """Memories reachable through association links, breadth first up to `depth` hops."""
    found: list[str] = []
    seen = {memory.id}
    frontier = [memory.id]
    for _ in range(depth):
        next_frontier: list[str] = []
        for memory_id in frontier:
            current = system.memories.get(memory_id)
            if current is None:
                continue
            for linked in current.associations:
                if linked in seen:
                    continue
                seen.add(linked)
                found.append(linked)
                next_frontier.append(linked)
        frontier = next_frontier
    return [system.memories[i] for i in found if i in system.memories]


def memories_for_narrative(
    system: MemorySystem | None, context: GameContext, limit: int = NARRATIVE_LIMIT
) -> NarrativeMemories:
    if system is None:
        return NarrativeMemories()
    return NarrativeMemories(
        core_memories=core_memories(system),
        relevant_memories=relevant_memories(context, system, limit),
        active_themes=active_themes(system),
    )


def touch_memory(memory: Memory, current_year: int) -> None:
    """Record that `memory` was surfaced in the narrative."""
    memory.last_accessed = current_year
    memory.access_count += 1
