"""Deterministic narrative text.

Everything here is template-driven; the only randomness is template choice,
drawn from the injected generator.

Age-change text is chosen by the first rule that applies:
  1. age 8 after an 8-year jump, or age 12 after a 4-year jump
  2. milestone turn at an age with its own line
  3. multi-year jump: time-skip template
  4. sub-turn: its label
  5. age-banded generic line
"""

from __future__ import annotations

import random

from fate_engine.models import (
    Character,
    LifeEvent,
    ProceduralBackground,
    Relationship,
    TimeBlockAllocation,
    TransitionInfo,
    TurnContext,
    TurnType,
)
from fate_engine.timeblocks import EARLY_LIFE_QUESTION

MILESTONE_NARRATIVES: dict[int, str] = {
    8: "Eight years old - the golden age of childhood, where imagination still reigns but understanding deepens.",
    12: "Twelve years old - standing at the threshold between childhood and the teenage years.",
    13: "The transformation begins - adolescence arrives with all its complexities and promise.",
    16: "Sweet sixteen brings new freedoms, new responsibilities, and a taste of independence.",
    18: "The legal threshold of adulthood - society now sees you differently.",
    21: "Full legal adulthood arrives in all jurisdictions - the training wheels are officially off.",
    25: "A quarter-century of life - young enough for adventures, old enough for wisdom.",
    30: "A new decade dawns - time to reflect on youth while embracing maturity.",
    40: "The milestone of middle age - life's experiences have shaped who you've become.",
    50: "Half a century of memories, relationships, and accumulated wisdom.",
    65: "The traditional retirement age - a time for new chapters and reflection.",
    70: "Seven decades of life - each year now a precious gift to be savored.",
    80: "An octogenarian milestone - few reach this summit of human experience.",
}

EARLY_CHILDHOOD_COMPLETE = (
    "Eight years of childhood have shaped who you are. Your early interests and hobbies "
    "have laid the foundation for the person you're becoming."
)
CHILDHOOD_COMPLETE = (
    "The bridge between childhood and adolescence crosses beneath you. Four formative years "
    "of growing independence, deepening friendships, and discovering your own interests have "
    "prepared you for the teenage years ahead."
)


def time_skip_narrative(years: int, rng: random.Random) -> str:
    if years <= 1:
        return ""
    if years == 8:
        return "Eight formative years of childhood pass by..."
    if years == 4:
        return "Four transformative years shape your journey from child to young teenager..."
    return rng.choice((
        f"{years} years pass in a blur of ordinary moments...",
        f"Time flows steadily forward, carrying you through {years} years...",
        f"The next {years} years unfold with quiet consistency...",
        f"Life settles into familiar rhythms for {years} years...",
    ))


def age_change_narrative(age: int, context: TurnContext, rng: random.Random) -> str:
    years = context.years_progressed
    if age == 8 and years == 8:
        return EARLY_CHILDHOOD_COMPLETE
    if age == 12 and years == 4:
        return CHILDHOOD_COMPLETE

    if context.is_milestone and age in MILESTONE_NARRATIVES:
        return MILESTONE_NARRATIVES[age]

    if years > 1:
        return time_skip_narrative(years, rng)

    if context.is_sub_turn and context.sub_turn_name:
        return f"[{context.sub_turn_name}]"

    if age < 10:
        return f"You turn {age}, each day bringing new growth and discovery."
    if age < 20:
        return f"Age {age} arrives, another step in your journey through youth."
    if age < 40:
        return f"You reach {age}, steadily building the foundation of your adult life."
    if age < 65:
        return f"At {age}, you navigate life with accumulated experience and wisdom."
    return f"You mark {age} years of life, each one a chapter in your unique story."


def turn_type(context: TurnContext) -> TurnType:
    if context.is_milestone:
        return "milestone"
    if context.is_sub_turn:
        return "sub-turn"
    if context.years_progressed > 1:
        return "time-skip"
    return "normal"


def time_span(context: TurnContext) -> str | None:
    if context.is_sub_turn:
        return context.sub_turn_name
    if context.years_progressed > 1:
        return f"{context.years_progressed} years"
    return None


def transition_info(context: TurnContext) -> TransitionInfo:
    return TransitionInfo(
        turn_type=turn_type(context),
        time_span=time_span(context),
        years_progressed=context.years_progressed,
    )


# ---------------------------------------------------------------------------
# Turn presentation
# ---------------------------------------------------------------------------

def signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def event_line(event: LifeEvent) -> str:
    """Render as [Title: STAT +N, ...], or [Title] when no stat moved."""
    changes = ", ".join(f"{stat.upper()} {signed(v)}" for stat, v in event.stat_changes.items())
    return f"[{event.title}: {changes}]" if changes else f"[{event.title}]"


def relationship_lines(event: LifeEvent, relationships: list[Relationship]) -> list[str]:
    by_id = {r.npc.id: r for r in relationships}
    lines = []
    for change in event.affected_relationships:
        rel = by_id.get(change.npc_id)
        if rel is None:
            continue
        deltas = ", ".join(f"{stat} {signed(v)}" for stat, v in change.rel_stat_deltas.items())
        lines.append(f"- {rel.npc.name}: {change.narrative_impact} ({deltas})")
    if not lines:
        return []
    return ["[Relationships]", *lines]


def split_narrative(text: str) -> list[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


# ---------------------------------------------------------------------------
# Early life
# ---------------------------------------------------------------------------

def birth_narrative(character: Character, background: ProceduralBackground | None) -> list[str]:
    if background is None:
        place = character.birthplace or "a place you will come to call home"
        lines = [f"[Born in {place}]", ""]
    else:
        place = background.birthplace_name or character.birthplace
        header = f"[Born in {place}, {background.era_name}]" if background.era_name else f"[Born in {place}]"
        lines = [header, ""]
        for paragraph in (background.family_story, background.environment_description):
            if paragraph:
                lines += [paragraph, ""]

    if character.traits:
        lines += [f"Your traits: {', '.join(character.traits)}", ""]
    lines += [
        "[AGE 0-8]",
        "",
        "Your earliest years stretch before you, full of potential. "
        "Every choice your family makes will shape who you become.",
        "",
        EARLY_LIFE_QUESTION,
    ]
    return lines


def allocation_narrative(allocation: TimeBlockAllocation) -> list[str]:
    """One sentence per category, highest allocation first."""
    values = allocation.model_dump()
    ordered = sorted(values.items(), key=lambda item: item[1], reverse=True)
    lines = []
    for category, value in ordered:
        if value >= 4:
            lines.append(
                f"You'll focus heavily on {category} development, "
                "making it a cornerstone of your parenting approach."
            )
        elif value >= 3:
            lines.append(f"{category.capitalize()} growth will be a significant priority in your household.")
        elif value >= 2:
            lines.append(f"You'll ensure adequate attention to {category} development.")
        else:
            lines.append(f"While not neglected, {category} development will receive less emphasis.")
    return lines


CHILDHOOD_DESCRIPTIONS: dict[str, dict[str, str]] = {
    "wealthy": {
        "sports": "Private coaches guided your athletic development at exclusive clubs.",
        "books": "Your family library and private tutors nurtured your love of learning.",
        "friends": "Playdates with children from prominent families filled your social calendar.",
        "arts": "Professional instructors cultivated your creative talents from an early age.",
    },
    "middle": {
        "sports": "You spent countless hours at local fields and community centers.",
        "books": "The public library became your second home, each book a new adventure.",
        "friends": "The neighborhood kids became your chosen family, inseparable through the years.",
        "arts": "You expressed yourself through any creative medium you could find.",
    },
    "working_class": {
        "sports": "You played wherever you could, turning any space into your arena.",
        "books": "You treasured every book you could get your hands on.",
        "friends": "Your tight-knit community provided endless adventures and deep bonds.",
        "arts": "You found beauty and created art with whatever materials were available.",
    },
    "poor": {
        "sports": "You found joy in movement despite limited resources.",
        "books": "Each rare book was read and re-read until you knew every word.",
        "friends": "The friends who understood your struggles became everything to you.",
        "arts": "You learned to create beauty from the simplest things.",
    },
}

_HOBBY_KEYWORDS = (
    ("sports", ("sports", "physical")),
    ("books", ("books", "cognitive")),
    ("friends", ("friends", "social")),
    ("arts", ("arts", "creative")),
)


def hobby_type(choice_id: str) -> str:
    for hobby, keywords in _HOBBY_KEYWORDS:
        if any(k in choice_id for k in keywords):
            return hobby
    return "general"


def childhood_description(choice_id: str, socioeconomic_status: str) -> str:
    by_hobby = CHILDHOOD_DESCRIPTIONS.get(socioeconomic_status, CHILDHOOD_DESCRIPTIONS["middle"])
    return by_hobby.get(hobby_type(choice_id), "Your childhood was filled with exploration and growth.")


def early_childhood_narrative(
    birthplace: str,
    hobby_label: str | None,
    choice_id: str,
    socioeconomic_status: str,
    allocation: TimeBlockAllocation,
) -> list[str]:
    hobby = (hobby_label or "your chosen hobby").lower()
    return [
        "[Early Childhood Years]",
        "",
        f"Your earliest years in {birthplace} were shaped by {hobby}.",
        "",
        childhood_description(choice_id, socioeconomic_status),
        "",
        *allocation_narrative(allocation),
        "",
        "As you grew, these early experiences laid the foundation for who you would become.",
        "",
        "Eight years pass in a blur of discovery, growth, and childhood wonder...",
        "",
        "You stand at the threshold of your next phase of childhood.",
        "",
        "What path will you choose for these formative years?",
    ]
