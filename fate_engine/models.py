"""Core domain models.

Every stage of the turn pipeline and the storage adapter operate on these
types. Pydantic is used for validation and serialisation at every data
boundary; the oracle's camelCase payload is converted into these models in
fate_engine.oracle and never flows further in its raw shape.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

StatName = Literal[
    "intelligence",
    "charisma",
    "strength",
    "creativity",
    "luck",
    "health",
    "wealth",
]

STAT_NAMES: tuple[str, ...] = (
    "intelligence",
    "charisma",
    "strength",
    "creativity",
    "luck",
    "health",
    "wealth",
)

REL_STAT_NAMES: tuple[str, ...] = ("intimacy", "trust", "attraction", "conflict")

RelType = Literal[
    "parent",
    "sibling",
    "friend",
    "rival",
    "mentor",
    "romantic",
    "spouse",
    "coworker",
    "child",
]

RelationshipStatus = Literal["active", "estranged", "ended", "deceased"]

MemoryType = Literal["core", "significant", "ordinary"]

EventDensity = Literal["sparse", "normal", "dense"]

TurnType = Literal["normal", "milestone", "sub-turn", "time-skip"]

GamePhase = Literal[
    "early_childhood",
    "childhood",
    "adolescence",
    "young_adult",
    "adult",
    "senior",
]


# ---------------------------------------------------------------------------
# Character and relationships
# ---------------------------------------------------------------------------

class Stats(BaseModel):
    """The seven bounded character stats, each in [0, 100]."""

    intelligence: int = Field(default=50, ge=0, le=100)
    charisma: int = Field(default=50, ge=0, le=100)
    strength: int = Field(default=50, ge=0, le=100)
    creativity: int = Field(default=50, ge=0, le=100)
    luck: int = Field(default=50, ge=0, le=100)
    health: int = Field(default=50, ge=0, le=100)
    wealth: int = Field(default=50, ge=0, le=100)


class RelStats(BaseModel):
    intimacy: int = Field(default=50, ge=0, le=100)
    trust: int = Field(default=50, ge=0, le=100)
    attraction: int = Field(default=0, ge=0, le=100)
    conflict: int = Field(default=0, ge=0, le=100)


class Character(BaseModel):
    """The player character. Created once, mutated by every turn."""

    id: str
    name: str
    gender: str
    dob: str  # ISO date, "YYYY-MM-DD"
    birthplace: str = ""
    stats: Stats = Field(default_factory=Stats)
    traits: list[str] = Field(default_factory=list)
    inventory: dict[str, int] = Field(default_factory=dict)

    @property
    def birth_year(self) -> int:
        return date.fromisoformat(self.dob).year


class NPC(BaseModel):
    id: str
    name: str
    age: int
    gender: str
    traits: list[str] = Field(default_factory=list)
    stats: dict[str, int] = Field(default_factory=dict)  # partial Stats


class RelationshipDelta(BaseModel):
    """One relationship change carried by a life event."""

    npc_id: str
    rel_stat_deltas: dict[str, int] = Field(default_factory=dict)
    narrative_impact: str = ""


class LifeEvent(BaseModel):
    """A single entry in the character's append-only event log."""

    model_config = ConfigDict(frozen=True)

    id: str
    year: int
    title: str
    description: str
    stat_changes: dict[str, int] = Field(default_factory=dict)  # sparse
    tags: list[str] = Field(default_factory=list)
    affected_relationships: list[RelationshipDelta] = Field(default_factory=list)


class Relationship(BaseModel):
    npc: NPC
    rel_type: RelType
    rel_stats: RelStats = Field(default_factory=RelStats)
    history: list[LifeEvent] = Field(default_factory=list)
    status: RelationshipStatus = "active"


# ---------------------------------------------------------------------------
# Choices
# ---------------------------------------------------------------------------

class Choice(BaseModel):
    """A choice offered to the player for the next turn."""

    id: str
    label: str
    tags: list[str] = Field(default_factory=list)


class PlayerChoice(BaseModel):
    """What the player picked (or typed, when is_custom is set)."""

    id: str
    label: str | None = None
    is_custom: bool = False


# ---------------------------------------------------------------------------
# Memory system
# ---------------------------------------------------------------------------

class Memory(BaseModel):
    """A remembered life event. Derived 1:1 from a LifeEvent."""

    id: str
    event_id: str
    type: MemoryType = "ordinary"
    emotional_valence: float = Field(default=0.0, ge=-1.0, le=1.0)
    intensity: float = Field(default=0.0, ge=0.0, le=1.0)
    associations: list[str] = Field(default_factory=list)
    last_accessed: int  # year
    access_count: int = 0
    age: int  # character age when formed


class Theme(BaseModel):
    """A recurring motif across memories, with a decaying strength."""

    id: str
    name: str
    related_memories: list[str] = Field(default_factory=list)
    strength: float = 0.2
    first_appeared: int
    last_reinforced: int


class MemorySystem(BaseModel):
    memories: dict[str, Memory] = Field(default_factory=dict)
    themes: dict[str, Theme] = Field(default_factory=dict)
    core_memory_ids: list[str] = Field(default_factory=list)


class RecentEventSummary(BaseModel):
    title: str
    tags: list[str] = Field(default_factory=list)
    emotional_impact: float | None = None


class GameContext(BaseModel):
    """The situation memories are scored against."""

    current_year: int
    current_age: int
    current_stage: str
    recent_events: list[RecentEventSummary] = Field(default_factory=list)
    active_relationships: list[str] = Field(default_factory=list)
    current_emotional_state: float | None = None


# ---------------------------------------------------------------------------
# Time blocks, stages, turn context
# ---------------------------------------------------------------------------

class TimeBlockAllocation(BaseModel):
    """Early-childhood focus distribution: five categories, 1-4 each, total 10."""

    physical: int = Field(default=2, ge=1, le=4)
    cognitive: int = Field(default=2, ge=1, le=4)
    social: int = Field(default=2, ge=1, le=4)
    creative: int = Field(default=2, ge=1, le=4)
    emotional: int = Field(default=2, ge=1, le=4)

    @model_validator(mode="after")
    def _total_is_ten(self) -> TimeBlockAllocation:
        total = self.physical + self.cognitive + self.social + self.creative + self.emotional
        if total != 10:
            raise ValueError(f"time blocks must total 10, got {total}")
        return self


class StageConfig(BaseModel):
    """Pacing rules for one age bracket."""

    model_config = ConfigDict(frozen=True)

    name: str
    turn_span: int
    turn_span_variance: int = 0
    prompt_tags: tuple[str, ...] = ()
    event_density: EventDensity = "normal"
    milestone_ages: tuple[int, ...] = ()
    sub_turn_triggers: tuple[str, ...] = ()


class TurnContext(BaseModel):
    """How the next turn should be paced. Computed fresh for every turn."""

    is_milestone: bool = False
    is_sub_turn: bool = False
    sub_turn_name: str | None = None
    years_progressed: int = 0
    narrative_pressure: float = 0.0
    triggered_by: str | None = None


class ProceduralBackground(BaseModel):
    """Read-only output of the background generator, consumed by the first turns."""

    traits: list[str] = Field(default_factory=list)
    birthplace_name: str = ""
    birthplace_type: str = ""  # major_city | small_town | rural | suburb | urban
    birthplace_description: str = ""
    socioeconomic_status: str = "middle"
    era_name: str = ""
    family_story: str = ""
    environment_description: str = ""
    cultural_context: str = ""
    special_circumstances: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------

class GameState(BaseModel):
    """Everything about one game. Each turn derives a new value from the last."""

    seed: str
    current_year: int
    stage_local_index: int = 0
    character: Character
    relationships: list[Relationship] = Field(default_factory=list)
    events: list[LifeEvent] = Field(default_factory=list)
    pending_choices: list[Choice] = Field(default_factory=list)
    procedural_background: ProceduralBackground | None = None
    narrative_pressure: float = Field(default=0.0, ge=0.0, le=1.0)
    last_milestone_age: int | None = None
    current_sub_turn: str | None = None
    memory_system: MemorySystem | None = None
    time_block_allocation: TimeBlockAllocation | None = None
    current_phase: GamePhase | None = None
    phase_data: dict[str, dict[str, Any]] = Field(default_factory=dict)
    narrative_history: list[str] | None = None

    @property
    def age(self) -> int:
        return self.current_year - self.character.birth_year


# ---------------------------------------------------------------------------
# Turn result
# ---------------------------------------------------------------------------

class AgeChange(BaseModel):
    previous_age: int
    new_age: int
    narrative: str


class PhaseTransition(BaseModel):
    from_phase: GamePhase
    to_phase: GamePhase


class TransitionInfo(BaseModel):
    age_change: AgeChange | None = None
    turn_type: TurnType = "normal"
    time_span: str | None = None
    years_progressed: int = 0
    phase_transition: PhaseTransition | None = None


class TurnResult(BaseModel):
    """The single result type every turn path returns."""

    narrative_lines: list[str] = Field(default_factory=list)
    transition_info: TransitionInfo = Field(default_factory=TransitionInfo)
    new_state: GameState
