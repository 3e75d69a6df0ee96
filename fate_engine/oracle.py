"""Narrative oracle — asks the LLM what happens next.

Flow for one call:
  1. build_request()    gathers the character, recent events, relationships,
                        stage, turn context, memory and time-block context
  2. render_prompt()    turns the request into one text prompt that spells out
                        the JSON contract
  3. the LLM is awaited under a bounded timeout (no retry)
  4. repair_payload()   best-effort structural repair of the raw text
  5. OracleResponse     validation; camelCase on the wire, snake_case in Python

Any failure in 3-5 raises OracleError. The caller decides what to do about
it; the turn pipeline substitutes fallback_response().

Response contract:

    {
      "narrative": "...",                    at most 500 characters
      "appliedEvent": {
        "title": "...", "description": "...",
        "statChanges": {"health": 5},        each clamped to [-20, 20]
        "tags": ["..."],
        "affectedRelationships": [
          {"npcId": "...", "relStatDeltas": {"trust": 3}, "narrativeImpact": "..."}
        ]
      },
      "nextChoices": [{"id": "...", "label": "...", "tags": []}]   1 to 5
    }
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fate_engine.llm import LLM, LLMError
from fate_engine.memory import emerging_themes, memories_for_narrative, theme_narrative
from fate_engine.models import (
    Character,
    Choice,
    GameState,
    LifeEvent,
    Memory,
    PlayerChoice,
    ProceduralBackground,
    RelationshipDelta,
    RelStats,
    StageConfig,
    TimeBlockAllocation,
    TurnContext,
)
from fate_engine.state import build_game_context

logger = logging.getLogger(__name__)

MAX_NARRATIVE_CHARS = 500
MAX_STAT_DELTA = 20
MIN_CHOICES = 1
MAX_CHOICES = 5
DEFAULT_TIMEOUT = 90.0


class OracleError(RuntimeError):
    """Raised when the oracle fails, times out, or returns an unusable payload."""


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class PromptEvent(BaseModel):
    year: int
    title: str
    tags: list[str] = Field(default_factory=list)


class PromptRelationship(BaseModel):
    id: str
    name: str
    type: str
    stats: RelStats


class MemoryNote(BaseModel):
    title: str
    age: int
    years_ago: int
    positive: bool


class ThemeNote(BaseModel):
    narrative: str
    strength: float


class OracleRequest(BaseModel):
    character: Character
    age: int
    recent_events: list[PromptEvent] = Field(default_factory=list)
    relationships: list[PromptRelationship] = Field(default_factory=list)
    stage: StageConfig
    context: TurnContext
    core_memories: list[MemoryNote] = Field(default_factory=list)
    relevant_memories: list[MemoryNote] = Field(default_factory=list)
    active_themes: list[ThemeNote] = Field(default_factory=list)
    emerging_themes: list[str] = Field(default_factory=list)
    time_blocks: TimeBlockAllocation | None = None
    background: ProceduralBackground | None = None
    choice: PlayerChoice


def build_request(
    state: GameState, choice: PlayerChoice, stage: StageConfig, context: TurnContext
) -> OracleRequest:
    events_by_id = {e.id: e for e in state.events}

    def note(memory: Memory) -> MemoryNote:
        event = events_by_id.get(memory.event_id)
        return MemoryNote(
            title=event.title if event else "Unknown",
            age=memory.age,
            years_ago=state.current_year - (event.year if event else state.current_year),
            positive=memory.emotional_valence > 0,
        )

    narrative = memories_for_narrative(state.memory_system, build_game_context(state))
    emerging = (
        emerging_themes(narrative.relevant_memories, state.memory_system, state.events)
        if state.memory_system is not None
        else []
    )

    return OracleRequest(
        character=state.character,
        age=state.age,
        recent_events=[
            PromptEvent(year=e.year, title=e.title, tags=list(e.tags)) for e in state.events[-5:]
        ],
        relationships=[
            PromptRelationship(id=r.npc.id, name=r.npc.name, type=r.rel_type, stats=r.rel_stats)
            for r in state.relationships
            if r.status == "active"
        ],
        stage=stage,
        context=context,
        core_memories=[note(m) for m in narrative.core_memories],
        relevant_memories=[note(m) for m in narrative.relevant_memories],
        active_themes=[
            ThemeNote(narrative=theme_narrative(t), strength=t.strength)
            for t in narrative.active_themes
        ],
        emerging_themes=emerging,
        time_blocks=state.time_block_allocation,
        background=state.procedural_background,
        choice=choice,
    )


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_CONTRACT = """\
Return ONLY valid JSON with these THREE top-level fields:

{
  "narrative": "story text here",
  "appliedEvent": {
    "title": "event title",
    "description": "event description",
    "statChanges": {"intelligence": 2, "health": 5},
    "tags": ["tag1", "tag2"],
    "affectedRelationships": [
      {
        "npcId": "parent_jessica",
        "relStatDeltas": {"intimacy": 5, "trust": 3},
        "narrativeImpact": "Your bond with Jessica grows stronger."
      }
    ]
  },
  "nextChoices": [
    {"id": "choice1", "label": "Choice text", "tags": ["tag1"]},
    {"id": "choice2", "label": "Choice text", "tags": []},
    {"id": "choice3", "label": "Choice text", "tags": []}
  ]
}

IMPORTANT: nextChoices must be at the ROOT level, NOT inside appliedEvent!
- In statChanges, use plain numbers like {"health": 5} NOT {"health": +5}
- For affectedRelationships, use npcId NOT name, and relStatDeltas NOT statChanges
"""

_FOCUS_PHRASES = {
    "physical": "physical development and active play",
    "cognitive": "learning and cognitive stimulation",
    "social": "social interaction and relationships",
    "creative": "creative expression and imagination",
    "emotional": "emotional security and attachment",
}


def pressure_directive(pressure: float) -> str:
    if pressure > 0.7:
        return "HIGH - make something significant happen!"
    if pressure > 0.4:
        return "MEDIUM - include meaningful developments"
    return "LOW - ordinary life moments are fine"


def _turn_section(context: TurnContext) -> list[str]:
    if context.is_milestone:
        kind = "MILESTONE AGE"
    elif context.is_sub_turn:
        kind = "SUB-TURN"
    else:
        kind = "NORMAL"
    lines = [
        "Turn Context:",
        f"- Turn Type: {kind}",
        f"- Years Progressing: {context.years_progressed}",
        f"- Narrative Pressure: {pressure_directive(context.narrative_pressure)}",
    ]
    if context.is_sub_turn:
        lines.append(f'- Sub-turn: "{context.sub_turn_name}" triggered by "{context.triggered_by}"')
    if context.is_milestone:
        lines.append("- This is a MAJOR LIFE MILESTONE - make it memorable and significant!")
    if context.years_progressed > 1:
        lines.append("- Multiple years passing - summarize the time span appropriately")
    return lines


def _background_section(background: ProceduralBackground, traits: list[str]) -> list[str]:
    circumstances = ", ".join(background.special_circumstances) or "None"
    lines = [
        "Background Context:",
        f"- Birthplace: {background.birthplace_name} ({background.birthplace_type})"
        f" - {background.birthplace_description}",
        f"- Family: {background.family_story}",
        f"- Era: {background.era_name} - {background.cultural_context}",
        f"- Environment: {background.environment_description}",
        f"- Family Status: {background.socioeconomic_status.replace('_', ' ')}",
        f"- Special Circumstances: {circumstances}",
    ]
    if traits:
        lines += ["", "Character Traits (use these to shape narrative and choices):"]
        lines += [f"- {t}" for t in traits]
    return lines


def _memory_section(request: OracleRequest) -> list[str]:
    lines: list[str] = []
    if request.core_memories:
        lines.append("Core Memories (formative experiences):")
        lines += [
            f"- Age {m.age}: {m.title} ({'positive' if m.positive else 'negative'})"
            for m in request.core_memories
        ]
    if request.relevant_memories:
        lines.append("Relevant Past Experiences:")
        lines += [
            f"- {m.title} ({m.years_ago} years ago, {'positive' if m.positive else 'negative'} memory)"
            for m in request.relevant_memories
        ]
    if request.active_themes:
        lines.append("Recurring Life Themes:")
        lines += [f"- {t.narrative} (strength: {round(t.strength * 100)}%)" for t in request.active_themes]
    if request.emerging_themes:
        lines.append("Emerging Themes: " + ", ".join(t.replace("_", " ") for t in request.emerging_themes))
    return lines


def _time_block_section(blocks: TimeBlockAllocation) -> list[str]:
    values = blocks.model_dump()
    focuses = [_FOCUS_PHRASES[c] for c, v in values.items() if v >= 3]
    lines = ["Early Childhood Focus Areas:"]
    lines += [f"- {c.capitalize()}: {v}/4 blocks" for c, v in values.items()]
    lines.append(f"Primary focuses: {', '.join(focuses) if focuses else 'balanced development'}")
    return lines


def _json_list(items: list[BaseModel]) -> str:
    return json.dumps([i.model_dump() for i in items])


def render_prompt(request: OracleRequest) -> str:
    character = request.character
    stage = request.stage

    sections: list[list[str]] = [
        ["You are FateEngine, narrator and referee for a life simulation game.", _CONTRACT],
        [
            "Rules:",
            f"- Character is {request.age} years old, in {stage.name} life stage",
            f"- Stage tags: {', '.join(stage.prompt_tags)}",
            "- Total stat changes must sum to -20 to +20",
            "- Each relationship stat delta must be -20 to +20",
            "- Romantic/sexual content only if all involved are 18+",
            "- No hate speech, no sexual violence, no incest",
            "- Provide 3-5 meaningful, age-appropriate choices",
            "- Reference core memories and themes when relevant to create narrative continuity",
            "- Keep narrative under 120 words (500 characters max)",
        ],
        _turn_section(request.context),
        [
            "Current game state:",
            f"Character: {character.name}, {character.gender}, {request.age} years old",
            f"Stats: {character.stats.model_dump_json()}",
            f"Traits: {', '.join(character.traits)}",
            f"Recent events: {_json_list(request.recent_events)}",
            f"Active relationships: {_json_list(request.relationships)}",
        ],
    ]
    if request.background is not None:
        sections.append(_background_section(request.background, character.traits))
    memory = _memory_section(request)
    if memory:
        sections.append(memory)
    if request.time_blocks is not None:
        sections.append(_time_block_section(request.time_blocks))

    sections.append(
        ["IMPORTANT NPC IDs for relationships:"]
        + [f'- {r.name}: use npcId "{r.id}" ({r.type})' for r in request.relationships]
    )

    choice = request.choice
    chosen = [f'Player chose: "{choice.label or choice.id}"' + (" (CUSTOM ACTION)" if choice.is_custom else "")]
    if choice.is_custom:
        chosen += [
            "This is a custom action typed by the player.",
            "- Interpret their intent generously but age-appropriately",
            "- If the action is impossible or inappropriate, narrate a failed attempt or redirect",
        ]
    sections.append(chosen)
    sections.append([
        "Generate the narrative consequence, stat changes, and next choices.",
        "Remember to use the exact npcId values listed above for any affectedRelationships.",
    ])
    return "\n\n".join("\n".join(s) for s in sections)


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------

_PLUS_NUMBER = re.compile(r'("\s*:\s*)\+(\d)')
_LEADING_ZEROS = re.compile(r'("\s*:\s*)0+(\d)')
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_WHITESPACE = re.compile(r"\s+")


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if match is None:
            raise OracleError("No JSON object found in oracle output") from None
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise OracleError(f"Oracle returned invalid JSON: {e}") from e


def _numeric_map(value: Any) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    cleaned: dict[str, float] = {}
    for key, raw in value.items():
        if isinstance(raw, bool):
            continue
        if isinstance(raw, str):
            try:
                raw = float(raw.strip().lstrip("+"))
            except ValueError:
                continue
        if isinstance(raw, int):
            cleaned[key] = raw
        elif isinstance(raw, float) and math.isfinite(raw):
            cleaned[key] = raw
    return cleaned


def _repair_relationship(rel: Any, repairs: list[str]) -> dict | None:
    if not isinstance(rel, dict):
        repairs.append("dropped non-object relationship entry")
        return None
    if rel.get("name") and not rel.get("npcId"):
        name = str(rel["name"])
        repairs.append(f"mapped relationship name {name!r} to npcId")
        return {
            "npcId": f"{rel.get('type') or 'npc'}_{_WHITESPACE.sub('_', name.lower())}",
            "relStatDeltas": _numeric_map(rel.get("statChanges") or rel.get("relStatDeltas")),
            "narrativeImpact": rel.get("narrativeImpact") or f"Your relationship with {name} changes.",
        }
    if "relStatDeltas" not in rel and "statChanges" in rel:
        repairs.append("renamed relationship statChanges to relStatDeltas")
    return {
        "npcId": rel.get("npcId") or "unknown_npc",
        "relStatDeltas": _numeric_map(rel.get("relStatDeltas", rel.get("statChanges"))),
        "narrativeImpact": rel.get("narrativeImpact") or "Your relationship changes.",
    }


def repair_payload(text: str) -> dict:
    """Parse raw oracle output into a dict, fixing the known LLM mistakes.

    Raises OracleError only when no JSON object can be recovered at all;
    schema problems that survive repair are left for validation.
    """
    cleaned = _strip_fences(text)
    cleaned = _PLUS_NUMBER.sub(r"\1\2", cleaned)
    cleaned = _LEADING_ZEROS.sub(r"\1\2", cleaned)

    payload = _loads(cleaned)
    if not isinstance(payload, dict):
        raise OracleError(f"Oracle output must be a JSON object, got {type(payload).__name__}")

    repairs: list[str] = []
    event = payload.get("appliedEvent")
    if isinstance(event, dict):
        if "nextChoices" in event:
            nested = event.pop("nextChoices")
            if "nextChoices" not in payload:
                payload["nextChoices"] = nested
                repairs.append("moved nextChoices to the root")
        if "statChanges" in event:
            event["statChanges"] = _numeric_map(event["statChanges"])
        rels = event.get("affectedRelationships")
        if isinstance(rels, list):
            event["affectedRelationships"] = [
                r for r in (_repair_relationship(rel, repairs) for rel in rels) if r is not None
            ]
        elif rels is not None:
            event["affectedRelationships"] = []
            repairs.append("dropped malformed affectedRelationships")

    narrative = payload.get("narrative")
    if isinstance(narrative, str) and len(narrative) > MAX_NARRATIVE_CHARS:
        payload["narrative"] = narrative[:MAX_NARRATIVE_CHARS]
        repairs.append("truncated narrative")

    choices = payload.get("nextChoices")
    if isinstance(choices, list) and len(choices) > MAX_CHOICES:
        payload["nextChoices"] = choices[:MAX_CHOICES]
        repairs.append("truncated nextChoices")

    if repairs:
        logger.warning("repaired oracle payload: %s", "; ".join(repairs))
    return payload


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

def _rounded(values: Any, limit: int) -> Any:
    if not isinstance(values, dict):
        return values
    result = {}
    for key, value in _numeric_map(values).items():
        value = max(-limit, min(limit, value))
        result[key] = int(round(value))
    return result


class AppliedRelationship(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    npc_id: str = Field(alias="npcId")
    rel_stat_deltas: dict[str, int] = Field(default_factory=dict, alias="relStatDeltas")
    narrative_impact: str = Field(default="", alias="narrativeImpact")

    @field_validator("rel_stat_deltas", mode="before")
    @classmethod
    def _round_deltas(cls, value: Any) -> Any:
        return _rounded(value, MAX_STAT_DELTA)


class AppliedEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    stat_changes: dict[str, int] = Field(default_factory=dict, alias="statChanges")
    tags: list[str] = Field(default_factory=list)
    affected_relationships: list[AppliedRelationship] = Field(
        default_factory=list, alias="affectedRelationships"
    )

    @field_validator("stat_changes", mode="before")
    @classmethod
    def _clamp_changes(cls, value: Any) -> Any:
        return _rounded(value, MAX_STAT_DELTA)


class OracleChoice(BaseModel):
    id: str
    label: str
    tags: list[str] = Field(default_factory=list)


class OracleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    narrative: str = Field(max_length=MAX_NARRATIVE_CHARS)
    applied_event: AppliedEvent = Field(alias="appliedEvent")
    next_choices: list[OracleChoice] = Field(
        alias="nextChoices", min_length=MIN_CHOICES, max_length=MAX_CHOICES
    )

    def to_event(self, event_id: str, year: int) -> LifeEvent:
        applied = self.applied_event
        return LifeEvent(
            id=event_id,
            year=year,
            title=applied.title,
            description=applied.description,
            stat_changes=dict(applied.stat_changes),
            tags=list(applied.tags),
            affected_relationships=[
                RelationshipDelta(
                    npc_id=r.npc_id,
                    rel_stat_deltas=dict(r.rel_stat_deltas),
                    narrative_impact=r.narrative_impact,
                )
                for r in applied.affected_relationships
            ],
        )

    def choices(self) -> list[Choice]:
        return [Choice(id=c.id, label=c.label, tags=list(c.tags)) for c in self.next_choices]


def parse_response(text: str) -> OracleResponse:
    payload = repair_payload(text)
    try:
        return OracleResponse.model_validate(payload)
    except ValidationError as e:
        raise OracleError(f"Oracle response failed validation: {e.error_count()} error(s)") from e


# ---------------------------------------------------------------------------
# Oracle
# ---------------------------------------------------------------------------

class Oracle(Protocol):
    async def __call__(self, request: OracleRequest) -> OracleResponse: ...


class NarrativeOracle:
    """Callable that turns an OracleRequest into a validated OracleResponse."""

    def __init__(self, llm: LLM, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._llm = llm
        self._timeout = timeout

    async def __call__(self, request: OracleRequest) -> OracleResponse:
        prompt = render_prompt(request)
        logger.debug("oracle call age=%d stage=%s prompt_len=%d", request.age, request.stage.name, len(prompt))
        try:
            text = await asyncio.wait_for(self._llm("narrator", prompt), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise OracleError(f"Oracle timed out after {self._timeout}s") from e
        except LLMError as e:
            raise OracleError(str(e)) from e

        response = parse_response(text)
        logger.debug("oracle response title=%r choices=%d",
                     response.applied_event.title, len(response.next_choices))
        return response


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

def _fallback_choices(*choices: tuple[str, str, str]) -> list[OracleChoice]:
    return [OracleChoice(id=i, label=label, tags=[tag]) for i, label, tag in choices]


def fallback_response(age: int) -> OracleResponse:
    """Deterministic stand-in used whenever the oracle cannot answer."""
    if age < 3:
        title = "Early Discovery"
        narrative = (
            "You explore your surroundings with innocent curiosity. "
            "Your parents watch over you with loving care."
        )
        choices = _fallback_choices(
            ("play", "Play with your toys", "play"),
            ("explore", "Crawl around and explore", "exploration"),
            ("cry", "Cry for attention", "social"),
            ("sleep", "Take a nap", "rest"),
        )
    elif age < 6:
        title = "Childhood Wonder"
        narrative = "Your world is full of wonder and imagination. Every day brings new adventures."
        choices = _fallback_choices(
            ("play", "Play make-believe games", "imagination"),
            ("learn", "Ask your parents questions", "learning"),
            ("friends", "Play with neighborhood kids", "social"),
            ("adventure", "Explore the backyard", "exploration"),
        )
    elif age < 12:
        title = "Growing Up"
        narrative = "School days blend together as you grow and learn. Friendships form and change."
        choices = _fallback_choices(
            ("study", "Focus on schoolwork", "academic"),
            ("friends", "Hang out with friends", "social"),
            ("hobby", "Pursue a hobby", "interests"),
            ("family", "Spend time with family", "family"),
        )
    else:
        title = "A Peaceful Moment"
        narrative = "Time passes quietly."
        choices = _fallback_choices(
            ("continue", "Continue with daily life", "default"),
            ("reflect", "Take time to reflect", "introspective"),
            ("social", "Reach out to someone", "social"),
            ("change", "Try something new", "adventure"),
        )

    return OracleResponse(
        narrative=narrative,
        applied_event=AppliedEvent(title=title, description=narrative, tags=["fallback"]),
        next_choices=choices,
    )
