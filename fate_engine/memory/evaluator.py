"""Turn a new life event into a memory.

Significance (0-1):
  total |stat delta| / 40, at most 0.5
  0.2 per affected relationship, at most 0.4
  +0.3 at a memorable age, +0.4 for a significant tag
  x1.3 up to age 10, x1.15 up to age 18
  + jitter in [0, 0.1)

Memory type by significance and age:
  core         >= 0.7 (age <= 10), >= 0.8 (age <= 18), >= 0.9 otherwise
  significant  >= 0.5
  ordinary     below that
"""

from __future__ import annotations

import random

from fate_engine.models import GameState, LifeEvent, Memory, MemoryType

SIGNIFICANT_EVENT_TAGS = frozenset({
    "first_love",
    "graduation",
    "marriage",
    "divorce",
    "childbirth",
    "loss",
    "achievement",
    "trauma",
    "milestone",
    "breakthrough",
    "crisis",
    "transformation",
})

# Ages at which any event is more memorable. Not the same set as turn milestones.
MEMORABLE_AGES = frozenset({1, 5, 13, 16, 18, 21, 30, 40, 50, 65, 70, 80})

POSITIVE_EMOTIONAL_TAGS = frozenset({"achievement", "love", "success", "joy", "celebration"})
NEGATIVE_EMOTIONAL_TAGS = frozenset({"loss", "failure", "conflict", "trauma", "crisis"})

STAT_VALENCE_WEIGHTS: dict[str, float] = {
    "health": 0.02,
    "wealth": 0.01,
    "charisma": 0.015,
    "intelligence": 0.01,
    "creativity": 0.01,
    "luck": 0.015,
}
REL_VALENCE_WEIGHTS: dict[str, float] = {
    "intimacy": 0.01,
    "trust": 0.01,
    "conflict": -0.01,
}
EMOTIONAL_TAG_WEIGHT = 0.3

MAX_ASSOCIATIONS = 5


def memory_id_for(event: LifeEvent) -> str:
    return f"mem_{event.id}"


def significance(event: LifeEvent, age: int, rng: random.Random) -> float:
    score = 0.0

    total_change = sum(abs(v) for v in event.stat_changes.values())
    score += min(total_change / 40, 0.5)

    if event.affected_relationships:
        score += 0.2 * min(len(event.affected_relationships), 2)

    if age in MEMORABLE_AGES:
        score += 0.3

    if any(tag in SIGNIFICANT_EVENT_TAGS for tag in event.tags):
        score += 0.4

    # Early life is more formative
    if age <= 10:
        score *= 1.3
    elif age <= 18:
        score *= 1.15

    score += rng.random() * 0.1
    return max(0.0, min(score, 1.0))


def memory_type(score: float, age: int) -> MemoryType:
    if age <= 10:
        core_threshold = 0.7
    elif age <= 18:
        core_threshold = 0.8
    else:
        core_threshold = 0.9

    if score >= core_threshold:
        return "core"
    if score >= 0.5:
        return "significant"
    return "ordinary"


def emotional_valence(event: LifeEvent) -> float:
    valence = 0.0
    for stat, weight in STAT_VALENCE_WEIGHTS.items():
        valence += event.stat_changes.get(stat, 0) * weight
    for rel in event.affected_relationships:
        for stat, weight in REL_VALENCE_WEIGHTS.items():
            valence += rel.rel_stat_deltas.get(stat, 0) * weight

    valence += EMOTIONAL_TAG_WEIGHT * sum(1 for t in event.tags if t in POSITIVE_EMOTIONAL_TAGS)
    valence -= EMOTIONAL_TAG_WEIGHT * sum(1 for t in event.tags if t in NEGATIVE_EMOTIONAL_TAGS)
    return max(-1.0, min(1.0, valence))


def is_associated(event: LifeEvent, other: LifeEvent) -> bool:
    """Two events are linked by 2+ shared tags, a shared npc, or 1+ shared tag within a year."""
    shared_tags = set(event.tags) & set(other.tags)
    if len(shared_tags) >= 2:
        return True
    npcs = {r.npc_id for r in event.affected_relationships}
    if npcs & {r.npc_id for r in other.affected_relationships}:
        return True
    return abs(event.year - other.year) <= 1 and bool(shared_tags)


def find_associations(event: LifeEvent, state: GameState) -> list[str]:
    """Ids of stored memories linked to `event`, in storage order, at most five.

    The first five links found are kept, not the five strongest.
    """
    if state.memory_system is None:
        return []

    events_by_id = {e.id: e for e in state.events}
    associations: list[str] = []
    for memory in state.memory_system.memories.values():
        other = events_by_id.get(memory.event_id)
        if other is None or other.id == event.id:
            continue
        if is_associated(event, other):
            associations.append(memory.id)
            if len(associations) == MAX_ASSOCIATIONS:
                break
    return associations


def evaluate_event(event: LifeEvent, state: GameState, rng: random.Random) -> Memory:
    """Score `event` as experienced at the character's current age in `state`."""
    age = state.age
    score = significance(event, age, rng)
    return Memory(
        id=memory_id_for(event),
        event_id=event.id,
        type=memory_type(score, age),
        emotional_valence=emotional_valence(event),
        intensity=score,
        associations=find_associations(event, state),
        last_accessed=state.current_year,
        access_count=0,
        age=age,
    )
