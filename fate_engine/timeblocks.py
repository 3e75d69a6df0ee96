"""Early-childhood time blocks.

Ten blocks of attention are split across five categories (1-4 each). Each
category's tier sets stat modifiers and trait odds:

  tier    value
  high    >= 3
  medium  2
  low     1

Categories are applied in order physical, cognitive, social, creative,
emotional; when two categories set the same stat the later one wins. A
balanced split (max - min <= 1) adds +10 luck and a chance of "well-rounded".

Choices offered at birth carry their allocation in the id:

    early_<descriptor>_p4c1s2r1e2

and the explicit allocation screen uses

    timeblock_physical:2_cognitive:2_social:2_creative:2_emotional:2

Both decoders fall back to the balanced allocation rather than failing.
"""

from __future__ import annotations

import logging
import random
import re

from pydantic import BaseModel, Field, ValidationError

from fate_engine.models import Choice, ProceduralBackground, Stats, TimeBlockAllocation
from fate_engine.mutations import apply_stat_changes

logger = logging.getLogger(__name__)

CATEGORIES = ("physical", "cognitive", "social", "creative", "emotional")


class TimeBlockEffect(BaseModel):
    stat_modifiers: dict[str, int] = Field(default_factory=dict)
    trait_odds: list[tuple[str, float]] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)


# category -> (high, medium, low)
EFFECT_TABLE: dict[str, tuple[TimeBlockEffect, TimeBlockEffect, TimeBlockEffect]] = {
    "physical": (
        TimeBlockEffect(
            stat_modifiers={"strength": 15, "health": 10},
            trait_odds=[("athletic", 0.7), ("energetic", 0.6)],
            themes=["athletic_childhood", "physical_prowess"],
        ),
        TimeBlockEffect(stat_modifiers={"strength": 8, "health": 5}, trait_odds=[("active", 0.4)]),
        TimeBlockEffect(stat_modifiers={"strength": -5}, trait_odds=[("bookish", 0.3)]),
    ),
    "cognitive": (
        TimeBlockEffect(
            stat_modifiers={"intelligence": 20, "creativity": 5},
            trait_odds=[("brilliant", 0.6), ("curious", 0.8)],
            themes=["academic_excellence", "early_genius"],
        ),
        TimeBlockEffect(stat_modifiers={"intelligence": 10}, trait_odds=[("inquisitive", 0.5)]),
        TimeBlockEffect(stat_modifiers={"intelligence": -5, "creativity": 5}),
    ),
    "social": (
        TimeBlockEffect(
            stat_modifiers={"charisma": 20},
            trait_odds=[("charismatic", 0.7), ("empathetic", 0.6)],
            themes=["social_butterfly", "natural_leader"],
        ),
        TimeBlockEffect(stat_modifiers={"charisma": 10}, trait_odds=[("friendly", 0.5)]),
        TimeBlockEffect(stat_modifiers={"charisma": -5}, trait_odds=[("shy", 0.4)]),
    ),
    "creative": (
        TimeBlockEffect(
            stat_modifiers={"creativity": 25, "intelligence": 5},
            trait_odds=[("artistic", 0.8), ("imaginative", 0.7)],
            themes=["artistic_prodigy", "creative_spirit"],
        ),
        TimeBlockEffect(stat_modifiers={"creativity": 12}, trait_odds=[("creative", 0.5)]),
        TimeBlockEffect(stat_modifiers={"creativity": -5}, trait_odds=[("practical", 0.3)]),
    ),
    "emotional": (
        TimeBlockEffect(
            stat_modifiers={"luck": 15, "health": 5},
            trait_odds=[("confident", 0.7), ("resilient", 0.6)],
            themes=["emotional_stability", "secure_attachment"],
        ),
        TimeBlockEffect(stat_modifiers={"luck": 8}, trait_odds=[("optimistic", 0.4)]),
        TimeBlockEffect(stat_modifiers={"luck": -10}, trait_odds=[("anxious", 0.4), ("sensitive", 0.5)]),
    ),
}

BALANCED_LUCK_BONUS = 10

PRESETS: dict[str, dict] = {
    "balanced": {
        "name": "Balanced Development",
        "description": "Equal focus across all areas",
        "allocation": TimeBlockAllocation(),
    },
    "academic": {
        "name": "Academic Focus",
        "description": "Emphasis on learning and cognitive development",
        "allocation": TimeBlockAllocation(physical=1, cognitive=4, social=2, creative=1, emotional=2),
    },
    "athletic": {
        "name": "Athletic Focus",
        "description": "Strong emphasis on physical development and health",
        "allocation": TimeBlockAllocation(physical=4, cognitive=1, social=2, creative=1, emotional=2),
    },
    "creative": {
        "name": "Creative Focus",
        "description": "Nurturing artistic expression and imagination",
        "allocation": TimeBlockAllocation(physical=1, cognitive=1, social=2, creative=4, emotional=2),
    },
    "social": {
        "name": "Social Focus",
        "description": "Building strong relationships and social skills",
        "allocation": TimeBlockAllocation(physical=1, cognitive=1, social=4, creative=2, emotional=2),
    },
}


def allocation_values(allocation: TimeBlockAllocation) -> list[int]:
    return [getattr(allocation, c) for c in CATEGORIES]


def is_balanced(allocation: TimeBlockAllocation) -> bool:
    values = allocation_values(allocation)
    return max(values) - min(values) <= 1


def _tier(value: int) -> int:
    if value >= 3:
        return 0
    if value >= 2:
        return 1
    return 2


def time_block_effects(allocation: TimeBlockAllocation) -> TimeBlockEffect:
    effect = TimeBlockEffect()
    for category in CATEGORIES:
        tier = EFFECT_TABLE[category][_tier(getattr(allocation, category))]
        effect.stat_modifiers.update(tier.stat_modifiers)
        effect.trait_odds.extend(tier.trait_odds)
        effect.themes.extend(tier.themes)

    if is_balanced(allocation):
        effect.stat_modifiers["luck"] = effect.stat_modifiers.get("luck", 0) + BALANCED_LUCK_BONUS
        effect.trait_odds.append(("well-rounded", 0.8))
        effect.themes.append("balanced_upbringing")
    return effect


def apply_time_block_effects(
    stats: Stats, allocation: TimeBlockAllocation, rng: random.Random
) -> tuple[Stats, list[str]]:
    """Return the adjusted stats and the traits rolled for `allocation`."""
    effect = time_block_effects(allocation)
    traits = [trait for trait, odds in effect.trait_odds if rng.random() < odds]
    return apply_stat_changes(stats, effect.stat_modifiers), traits


# ---------------------------------------------------------------------------
# Early-life choices
# ---------------------------------------------------------------------------

class EarlyLifeTemplate(BaseModel):
    descriptor: str
    label: str
    tags: list[str]
    allocation: TimeBlockAllocation


def _template(
    descriptor: str, label: str, tags: list[str], p: int, c: int, s: int, r: int, e: int
) -> EarlyLifeTemplate:
    return EarlyLifeTemplate(
        descriptor=descriptor,
        label=label,
        tags=tags,
        allocation=TimeBlockAllocation(physical=p, cognitive=c, social=s, creative=r, emotional=e),
    )


EARLY_LIFE_TEMPLATES: dict[str, list[EarlyLifeTemplate]] = {
    "physical": [
        _template("sports", "Playing sports and running around outside", ["physical", "sports", "active"], 4, 1, 2, 1, 2),
        _template("adventure", "Climbing trees and exploring nature", ["physical", "outdoor", "adventure"], 4, 1, 2, 1, 2),
        _template("bikes", "Riding bikes and playing active games", ["physical", "bikes", "play"], 3, 2, 1, 2, 2),
    ],
    "cognitive": [
        _template("books", "Reading books and solving puzzles", ["cognitive", "reading", "learning"], 1, 4, 2, 1, 2),
        _template("science", "Doing science experiments and taking things apart", ["cognitive", "science", "discovery"], 1, 4, 1, 2, 2),
        _template("collecting", "Collecting things and organizing collections", ["cognitive", "collecting", "organizing"], 1, 4, 2, 1, 2),
    ],
    "social": [
        _template("friends", "Playing with friends and making up games", ["social", "friends", "play"], 1, 1, 4, 2, 2),
        _template("groups", "Joining clubs and group activities", ["social", "groups", "activities"], 1, 1, 4, 2, 2),
        _template("helping", "Helping others and being part of a team", ["social", "teamwork", "helping"], 2, 1, 4, 1, 2),
    ],
    "creative": [
        _template("arts", "Drawing, painting, and making art", ["creative", "arts", "visual"], 1, 1, 2, 4, 2),
        _template("building", "Building with blocks and creating things", ["creative", "building", "making"], 1, 1, 2, 4, 2),
        _template("music", "Playing music and putting on shows", ["creative", "music", "performance"], 2, 1, 1, 4, 2),
    ],
    "balanced": [
        _template("variety", "Trying lots of different activities", ["balanced", "diverse", "variety"], 2, 2, 2, 2, 2),
        _template("curious", "Following your curiosity wherever it leads", ["balanced", "curious", "exploring"], 2, 2, 2, 2, 2),
    ],
}

EARLY_LIFE_QUESTION = "What will your main hobby as a child be?"

_ALLOCATION_CODE = re.compile(r"p(\d)c(\d)s(\d)r(\d)e(\d)")


def encode_allocation(allocation: TimeBlockAllocation) -> str:
    return (
        f"p{allocation.physical}c{allocation.cognitive}s{allocation.social}"
        f"r{allocation.creative}e{allocation.emotional}"
    )


def _background_labels(background: ProceduralBackground | None) -> dict[str, str]:
    labels: dict[str, str] = {}
    if background is None:
        return labels

    status = background.socioeconomic_status
    if status == "wealthy":
        labels["cognitive"] = "Reading in your personal library"
        labels["creative"] = "Taking piano and art lessons"
        labels["physical"] = "Playing tennis at the country club"
    elif status == "working_class":
        labels["physical"] = "Playing street games with neighborhood kids"
        labels["social"] = "Hanging out on the block with friends"
        labels["cognitive"] = "Reading library books over and over"
    elif status == "poor":
        labels["physical"] = "Running around wherever you can"
        labels["creative"] = "Making up games with whatever you find"

    if background.birthplace_type == "rural":
        labels["physical"] = "Exploring the countryside and helping on the farm"
        labels["creative"] = "Making up stories and building forts"
    elif background.birthplace_type == "urban":
        labels["social"] = "Making friends at the playground"
        labels["physical"] = "Playing in parks and on the streets"
    return labels


def early_life_choices(
    background: ProceduralBackground | None, rng: random.Random
) -> list[Choice]:
    """One hobby choice per focus, labelled for the family's circumstances."""
    labels = _background_labels(background)
    choices = []
    for focus in ("physical", "cognitive", "social", "creative"):
        template = rng.choice(EARLY_LIFE_TEMPLATES[focus])
        choices.append(Choice(
            id=f"early_{template.descriptor}_{encode_allocation(template.allocation)}",
            label=labels.get(focus, template.label),
            tags=["early_life", *template.tags],
        ))
    return choices


def decode_early_life_choice(choice_id: str) -> TimeBlockAllocation | None:
    """Allocation encoded in an early-life choice id.

    Returns None when the id is not an early-life choice at all, and the
    balanced allocation when it is one but cannot be decoded.
    """
    if not choice_id.startswith("early_"):
        return None
    match = _ALLOCATION_CODE.search(choice_id)
    if match is None:
        logger.warning("early-life choice %r has no allocation; using balanced", choice_id)
        return TimeBlockAllocation()
    values = dict(zip(CATEGORIES, (int(v) for v in match.groups())))
    try:
        return TimeBlockAllocation(**values)
    except ValidationError:
        logger.warning("early-life choice %r has an invalid allocation; using balanced", choice_id)
        return TimeBlockAllocation()


def parse_time_block_choice(choice_id: str) -> TimeBlockAllocation:
    """Parse "timeblock_physical:2_cognitive:2_..." into an allocation.

    Missing categories keep the balanced value of 2. Any malformed part or an
    allocation that breaks the 1-4 / total-10 rules yields the balanced one.
    """
    values = {c: 2 for c in CATEGORIES}
    for part in choice_id.split("_")[1:]:
        category, sep, raw = part.partition(":")
        if not sep or category not in values:
            continue
        try:
            values[category] = int(raw)
        except ValueError:
            logger.warning("time block choice %r is malformed; using balanced", choice_id)
            return TimeBlockAllocation()
    try:
        return TimeBlockAllocation(**values)
    except ValidationError:
        logger.warning("time block choice %r is out of range; using balanced", choice_id)
        return TimeBlockAllocation()


def allocation_for_choice(choice_id: str) -> TimeBlockAllocation:
    """Allocation for whatever choice the player made on the allocation turn."""
    if choice_id.startswith("timeblock_"):
        return parse_time_block_choice(choice_id)
    if choice_id in PRESETS:
        return PRESETS[choice_id]["allocation"]
    decoded = decode_early_life_choice(choice_id)
    if decoded is None:
        logger.warning("choice %r carries no allocation; using balanced", choice_id)
        return TimeBlockAllocation()
    return decoded
