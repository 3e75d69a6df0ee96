"""Stat and relationship mutation.

Rules:
  every stat and relationship stat is clamped to [0, 100] after a delta
  deltas are sparse; unknown keys are ignored
  a touched relationship whose intimacy < 20 or conflict > 80 becomes
    "estranged"; the flip is one-way and only applies to active relationships

All functions return new values and leave their inputs untouched.
"""

from __future__ import annotations

import logging
from typing import Mapping, TypeVar

from fate_engine.models import (
    GameState,
    LifeEvent,
    RelStats,
    Relationship,
    RelationshipDelta,
    Stats,
)

logger = logging.getLogger(__name__)

STAT_MIN = 0
STAT_MAX = 100

ESTRANGED_INTIMACY_BELOW = 20
ESTRANGED_CONFLICT_ABOVE = 80

_M = TypeVar("_M", Stats, RelStats)


def clamp_stat(value: float) -> int:
    return int(max(STAT_MIN, min(STAT_MAX, round(value))))


def _apply_deltas(values: _M, deltas: Mapping[str, float]) -> _M:
    updated = values.model_dump()
    for key, delta in deltas.items():
        if key in updated and delta is not None:
            updated[key] = clamp_stat(updated[key] + delta)
    return type(values).model_validate(updated)


def apply_stat_changes(stats: Stats, changes: Mapping[str, float]) -> Stats:
    """Return `stats` with the sparse `changes` added and clamped."""
    return _apply_deltas(stats, changes)


def apply_rel_stat_changes(rel_stats: RelStats, deltas: Mapping[str, float]) -> RelStats:
    return _apply_deltas(rel_stats, deltas)


def is_estranged(rel_stats: RelStats) -> bool:
    return (
        rel_stats.intimacy < ESTRANGED_INTIMACY_BELOW
        or rel_stats.conflict > ESTRANGED_CONFLICT_ABOVE
    )


def apply_relationship_changes(
    relationships: list[Relationship],
    changes: list[RelationshipDelta],
    event: LifeEvent | None = None,
) -> list[Relationship]:
    """Apply relationship deltas by npc id and re-check estrangement.

    Deltas for unknown npc ids are skipped. When `event` is given it is
    appended to the history of every relationship it touched.
    """
    updated = [r.model_copy(deep=True) for r in relationships]
    by_id = {r.npc.id: r for r in updated}

    for change in changes:
        rel = by_id.get(change.npc_id)
        if rel is None:
            logger.debug("relationship delta for unknown npc %r skipped", change.npc_id)
            continue
        rel.rel_stats = apply_rel_stat_changes(rel.rel_stats, change.rel_stat_deltas)
        if rel.status == "active" and is_estranged(rel.rel_stats):
            logger.info("relationship with %s is now estranged", rel.npc.id)
            rel.status = "estranged"
        if event is not None and all(h.id != event.id for h in rel.history):
            rel.history.append(event)

    return updated


def apply_event(state: GameState, event: LifeEvent) -> GameState:
    """Apply an event's stat and relationship deltas to a copy of `state`."""
    character = state.character.model_copy(
        update={"stats": apply_stat_changes(state.character.stats, event.stat_changes)}
    )
    relationships = apply_relationship_changes(
        state.relationships, event.affected_relationships, event
    )
    return state.model_copy(update={"character": character, "relationships": relationships})
