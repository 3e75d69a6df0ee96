"""Shared test helpers and fixtures.

make_character / make_state / make_event build domain objects with sensible
defaults. FixedRandom pins random() so jitter, trait rolls and template picks are exact.
StubLLM returns queued responses per stage, like a scripted backend.
"""

import json
import random

import pytest

from fate_engine.models import (
    NPC,
    Character,
    GameState,
    LifeEvent,
    ProceduralBackground,
    Relationship,
    RelationshipDelta,
    RelStats,
    Stats,
)

BIRTH_YEAR = 2000


class FixedRandom(random.Random):
    """random() always returns `value`. choice() is driven by random() too, so 0.0 picks the first item."""

    def __init__(self, value: float = 0.5) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    Raises if a stage is called more times than responses were provided.
    """

    def __init__(self, responses: dict[str, list[str]]) -> None:
        self._queues: dict[str, list[str]] = {k: list(v) for k, v in responses.items()}
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {len(self.calls)}"
            )
        return queue.pop(0)

    def assert_exhausted(self) -> None:
        """Assert every queued response was consumed — catches missing LLM calls."""
        leftover = {k: v for k, v in self._queues.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


def make_character(**overrides) -> Character:
    values = {
        "id": "char_ada",
        "name": "Ada",
        "gender": "female",
        "dob": f"{BIRTH_YEAR}-03-14",
        "birthplace": "Millbrook",
        "stats": Stats(),
    }
    values.update(overrides)
    return Character(**values)


def make_parent(npc_id: str = "parent_jessica", name: str = "Jessica", **rel_stats) -> Relationship:
    return Relationship(
        npc=NPC(id=npc_id, name=name, age=30, gender="female"),
        rel_type="parent",
        rel_stats=RelStats(**{"intimacy": 70, "trust": 70, **rel_stats}),
    )


def make_event(
    event_id: str = "evt_1",
    year: int = BIRTH_YEAR,
    title: str = "A Quiet Day",
    description: str = "Nothing much happened.",
    tags: list[str] | None = None,
    stat_changes: dict[str, int] | None = None,
    relationships: list[RelationshipDelta] | None = None,
) -> LifeEvent:
    return LifeEvent(
        id=event_id,
        year=year,
        title=title,
        description=description,
        stat_changes=stat_changes or {},
        tags=tags or [],
        affected_relationships=relationships or [],
    )


def make_state(age: int = 0, **overrides) -> GameState:
    values = {
        "seed": "test-seed",
        "current_year": BIRTH_YEAR + age,
        "character": make_character(),
    }
    values.update(overrides)
    return GameState(**values)


def oracle_json(
    title: str = "A New Friend",
    narrative: str = "You meet someone new at school.",
    stat_changes: dict | None = None,
    tags: list[str] | None = None,
    relationships: list[dict] | None = None,
    choices: list[dict] | None = None,
) -> str:
    return json.dumps({
        "narrative": narrative,
        "appliedEvent": {
            "title": title,
            "description": narrative,
            "statChanges": stat_changes if stat_changes is not None else {"charisma": 3},
            "tags": tags if tags is not None else ["social"],
            "affectedRelationships": relationships or [],
        },
        "nextChoices": choices or [
            {"id": "study", "label": "Hit the books", "tags": ["academic"]},
            {"id": "play", "label": "Play outside", "tags": ["physical"]},
        ],
    })


@pytest.fixture
def background() -> ProceduralBackground:
    return ProceduralBackground(
        traits=["curious"],
        birthplace_name="Millbrook",
        birthplace_type="small_town",
        socioeconomic_status="middle",
        era_name="the turn of the millennium",
        family_story="Your parents run the bakery on Main Street.",
        environment_description="The town smells of bread every morning.",
    )


@pytest.fixture
def parent() -> Relationship:
    return make_parent()
