"""Narrative callbacks to earlier memories.

Checked per memory, in order:
  anniversary  the source event is exactly 5, 10, 20, 25 or 50 years old, or
               the memory formed at the current age in an earlier year
  parallel     2+ tags shared with the recent-events window
  emotional    valence within 0.2 of the current state (echo) or more than
               1.5 away (contrast), only for memories with intensity > 0.7

At most two callbacks surface per turn, first found first. Every rendered
callback starts with CALLBACK_MARKER so the renderer can style it.
"""

from __future__ import annotations

import random
from typing import Literal

from pydantic import BaseModel

from fate_engine.memory.themes import active_themes
from fate_engine.models import GameContext, GameState, LifeEvent, Memory

CALLBACK_MARKER = "[MEMORY_CALLBACK]"
MAX_CALLBACKS = 2

ANNIVERSARY_YEARS = frozenset({5, 10, 20, 25, 50})
PARALLEL_SHARED_TAGS = 2
ECHO_DISTANCE = 0.2
CONTRAST_DISTANCE = 1.5
EMOTIONAL_INTENSITY = 0.7

THEME_DESCRIPTIONS: dict[str, str] = {
    "academic_excellence": "pursuit of knowledge",
    "rebellious_spirit": "defiance of authority",
    "family_loyalty": "dedication to family",
    "romantic_journey": "search for love",
    "creative_expression": "artistic endeavors",
    "athletic_prowess": "physical achievements",
    "social_butterfly": "social connections",
    "intellectual_curiosity": "quest for understanding",
    "career_ambition": "professional growth",
    "adventurous_spirit": "thirst for adventure",
}

CallbackType = Literal["anniversary", "parallel", "emotional", "thematic"]


class MemoryCallback(BaseModel):
    type: CallbackType
    memory_id: str | None = None
    text: str


def emotion_word(valence: float) -> str:
    if valence > 0.7:
        return "joyful"
    if valence > 0.3:
        return "content"
    if valence > -0.3:
        return "uncertain"
    if valence > -0.7:
        return "troubled"
    return "devastated"


def anniversary_text(
    memory: Memory, event: LifeEvent, context: GameContext, rng: random.Random
) -> str | None:
    years = context.current_year - event.year
    what = event.title.lower()
    if years in ANNIVERSARY_YEARS:
        return rng.choice((
            f"It's been {years} years since {what}.",
            f"{years} years have passed since {what}.",
            f"Today marks {years} years since {what}.",
            f"A {years}-year anniversary: {what}.",
        ))
    if memory.age == context.current_age and years > 0:
        return f"At this same age {years} years ago, {what}."
    return None


def parallel_text(
    memory: Memory, event: LifeEvent, context: GameContext, rng: random.Random
) -> str | None:
    current_tags = {tag for recent in context.recent_events for tag in recent.tags}
    shared = set(event.tags) & current_tags
    if len(shared) < PARALLEL_SHARED_TAGS:
        return None

    when = f"when you were {memory.age}" if memory.age < 10 else f"at age {memory.age}"
    what = event.title.lower()
    return rng.choice((
        f"This reminds you of {when}, when {what}.",
        f"Just like {when}, when {what}.",
        f"You recall a similar moment {when}: {what}.",
        f"The echoes of the past resurface from {when}, when {what}.",
    ))


def emotional_text(
    memory: Memory, event: LifeEvent, context: GameContext, rng: random.Random
) -> str | None:
    if context.current_emotional_state is None or memory.intensity <= EMOTIONAL_INTENSITY:
        return None

    distance = abs(memory.emotional_valence - context.current_emotional_state)
    what = event.title.lower()
    if distance < ECHO_DISTANCE:
        feeling = emotion_word(memory.emotional_valence)
        return rng.choice((
            f"You haven't felt this {feeling} since {what}.",
            f"This {feeling} feeling takes you back to when {what}.",
            f"The last time you felt this {feeling} was when {what}.",
        ))
    if distance > CONTRAST_DISTANCE:
        past = emotion_word(memory.emotional_valence)
        now = emotion_word(context.current_emotional_state)
        return f"How different from the {past} days when {what}. Now you feel {now}."
    return None


_CHECKS = (
    ("anniversary", anniversary_text),
    ("parallel", parallel_text),
    ("emotional", emotional_text),
)


def generate_callbacks(
    memories: list[Memory], context: GameContext, state: GameState, rng: random.Random
) -> list[MemoryCallback]:
    """Callbacks for `memories` in the order given, at most MAX_CALLBACKS."""
    events_by_id = {e.id: e for e in state.events}
    callbacks: list[MemoryCallback] = []
    for memory in memories:
        event = events_by_id.get(memory.event_id)
        if event is None:
            continue
        for kind, check in _CHECKS:
            text = check(memory, event, context, rng)
            if text:
                callbacks.append(MemoryCallback(type=kind, memory_id=memory.id, text=text))
            if len(callbacks) == MAX_CALLBACKS:
                return callbacks
    return callbacks


def thematic_callback(theme_id: str, memories: list[Memory], state: GameState) -> str | None:
    """One line tying together the first and last events behind a theme."""
    events_by_id = {e.id: e for e in state.events}
    events = [events_by_id[m.event_id] for m in memories if m.event_id in events_by_id]
    if len(events) < 2:
        return None
    description = THEME_DESCRIPTIONS.get(theme_id, theme_id.replace("_", " "))
    return (
        f"Your {description} has been a constant thread, "
        f"from {events[0].title.lower()} to {events[-1].title.lower()}."
    )


def strongest_thematic_callback(state: GameState) -> MemoryCallback | None:
    system = state.memory_system
    if system is None:
        return None
    themes = active_themes(system)
    if not themes:
        return None
    theme = themes[0]
    memories = [system.memories[i] for i in theme.related_memories if i in system.memories]
    memories.sort(key=lambda m: m.age)
    text = thematic_callback(theme.id, memories, state)
    if text is None:
        return None
    return MemoryCallback(type="thematic", text=text)


def format_callback(callback: MemoryCallback) -> str:
    return f"{CALLBACK_MARKER} {callback.text}"
