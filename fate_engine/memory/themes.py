"""Recurring life themes.

An event scores 2 points per theme keyword found in its tags and 1 point per
keyword found anywhere in its title or description; 2 points detect the theme.

Theme lifecycle:
  created at strength 0.2, +0.1 per reinforcement (max 1.0)
  unreinforced for more than 5 years: strength -= 0.05 x years since reinforced
    on every decay pass
  removed once strength < 0.1
  active (used for retrieval) at strength >= 0.3

The update functions work in place on the MemorySystem they are given; the
memory pipeline hands them a private copy for the turn.
"""

from __future__ import annotations

import logging

from fate_engine.models import LifeEvent, Memory, MemorySystem, Theme

logger = logging.getLogger(__name__)

THEME_PATTERNS: dict[str, tuple[str, ...]] = {
    "academic_excellence": ("study", "achievement", "academic", "scholarship", "grades", "learning"),
    "rebellious_spirit": ("rebel", "conflict", "defiant", "independent", "challenge", "resist"),
    "family_loyalty": ("family", "parent", "sibling", "home", "relative", "household"),
    "romantic_journey": ("love", "romance", "relationship", "heartbreak", "dating", "partner"),
    "creative_expression": ("art", "creative", "music", "writing", "imagination", "artistic"),
    "athletic_prowess": ("sport", "athletic", "competition", "physical", "fitness", "team"),
    "social_butterfly": ("friend", "social", "party", "popular", "group", "network"),
    "intellectual_curiosity": ("question", "explore", "discover", "research", "understand", "curious"),
    "career_ambition": ("career", "job", "work", "professional", "ambition", "success"),
    "adventurous_spirit": ("adventure", "travel", "explore", "risk", "new", "exciting"),
}

THEME_NARRATIVES: dict[str, str] = {
    "academic_excellence": "Your dedication to learning and achievement",
    "rebellious_spirit": "Your tendency to challenge authority and norms",
    "family_loyalty": "Your deep connections to family",
    "romantic_journey": "Your experiences with love and relationships",
    "creative_expression": "Your artistic and creative pursuits",
    "athletic_prowess": "Your physical abilities and competitive spirit",
    "social_butterfly": "Your vibrant social life and connections",
    "intellectual_curiosity": "Your quest for knowledge and understanding",
    "career_ambition": "Your professional drive and aspirations",
    "adventurous_spirit": "Your love of exploration and new experiences",
}

DETECTION_THRESHOLD = 2
EMERGING_THRESHOLD = 3
EMERGING_MAX_STRENGTH = 0.5

INITIAL_STRENGTH = 0.2
REINFORCEMENT = 0.1
MAX_STRENGTH = 1.0
DECAY_GRACE_YEARS = 5
DECAY_PER_YEAR = 0.05
REMOVAL_STRENGTH = 0.1
ACTIVE_STRENGTH = 0.3


def theme_score(event: LifeEvent, keywords: tuple[str, ...]) -> int:
    score = 0
    for keyword in keywords:
        if keyword in event.tags:
            score += 2
    content = f"{event.title.lower()} {event.description.lower()}"
    for keyword in keywords:
        if keyword in content:
            score += 1
    return score


def detect_themes(event: LifeEvent) -> list[str]:
    return [
        theme_id
        for theme_id, keywords in THEME_PATTERNS.items()
        if theme_score(event, keywords) >= DETECTION_THRESHOLD
    ]


def update_themes(
    system: MemorySystem, memory: Memory, detected: list[str], current_year: int
) -> None:
    """Create or reinforce each detected theme, then run a decay pass."""
    for theme_id in detected:
        theme = system.themes.get(theme_id)
        if theme is None:
            logger.debug("theme %s appeared in %d", theme_id, current_year)
            system.themes[theme_id] = Theme(
                id=theme_id,
                name=theme_id,
                related_memories=[memory.id],
                strength=INITIAL_STRENGTH,
                first_appeared=current_year,
                last_reinforced=current_year,
            )
            continue

        if memory.id not in theme.related_memories:
            theme.related_memories.append(memory.id)
        theme.strength = min(MAX_STRENGTH, theme.strength + REINFORCEMENT)
        theme.last_reinforced = current_year

    decay_themes(system, current_year)


def decay_themes(system: MemorySystem, current_year: int) -> None:
    for theme_id, theme in list(system.themes.items()):
        idle = current_year - theme.last_reinforced
        if idle > DECAY_GRACE_YEARS:
            theme.strength = max(0.0, theme.strength - DECAY_PER_YEAR * idle)
        if theme.strength < REMOVAL_STRENGTH:
            logger.debug("theme %s faded out", theme_id)
            del system.themes[theme_id]


def active_themes(system: MemorySystem) -> list[Theme]:
    """Themes at strength 0.3 or more, strongest first."""
    themes = [t for t in system.themes.values() if t.strength >= ACTIVE_STRENGTH]
    return sorted(themes, key=lambda t: t.strength, reverse=True)


def theme_narrative(theme: Theme) -> str:
    return THEME_NARRATIVES.get(theme.id, f"Your experience with {theme.name.replace('_', ' ')}")


def emerging_themes(
    recent_memories: list[Memory], system: MemorySystem, events: list[LifeEvent]
) -> list[str]:
    """Themes that keep surfacing in recent memories but are not yet strong."""
    events_by_id = {e.id: e for e in events}
    counts: dict[str, int] = {}
    for memory in recent_memories:
        event = events_by_id.get(memory.event_id)
        if event is None:
            continue
        for theme_id, keywords in THEME_PATTERNS.items():
            existing = system.themes.get(theme_id)
            if existing is not None and existing.strength > EMERGING_MAX_STRENGTH:
                continue
            score = theme_score(event, keywords)
            if score > 0:
                counts[theme_id] = counts.get(theme_id, 0) + score
    return [theme_id for theme_id, count in counts.items() if count >= EMERGING_THRESHOLD]
