"""Interaction subjects tagged on relationship:subject events.

The list is a closed wire enumeration: external tooling matches on these
strings, so entries may be added but never renamed or removed.
"""

from __future__ import annotations

from typing import Literal, get_args

Subject = Literal[
    # conversation
    "conversation",
    "confession",
    "argument",
    "negotiation",
    # discovery
    "discovery",
    "secret_shared",
    "secret_revealed",
    # emotional
    "emotional",
    "emotionally_intimate",
    "supportive",
    "rejection",
    "comfort",
    "apology",
    "forgiveness",
    # bonding
    "laugh",
    "gift",
    "compliment",
    "tease",
    "flirt",
    "date",
    "i_love_you",
    "sleepover",
    "shared_meal",
    "shared_activity",
    # intimacy
    "intimate_touch",
    "intimate_kiss",
    "intimate_embrace",
    "intimate_heated",
    "intimate_foreplay",
    "intimate_oral",
    "intimate_manual",
    "intimate_penetrative",
    "intimate_climax",
    # action
    "action",
    "combat",
    "danger",
    # commitment
    "decision",
    "promise",
    "betrayal",
    "lied",
    "exclusivity",
    "marriage",
    # life events
    "pregnancy",
    "childbirth",
    # social
    "social",
    "achievement",
    # support
    "helped",
    "common_interest",
    "outing",
    "defended",
    "crisis_together",
    "vulnerability",
    "shared_vulnerability",
    "entrusted",
]

SUBJECTS: tuple[str, ...] = get_args(Subject)

SUBJECT_GROUPS: dict[str, tuple[str, ...]] = {
    "conversation": ("conversation", "confession", "argument", "negotiation"),
    "discovery": ("discovery", "secret_shared", "secret_revealed"),
    "emotional": (
        "emotional",
        "emotionally_intimate",
        "supportive",
        "rejection",
        "comfort",
        "apology",
        "forgiveness",
    ),
    "bonding": (
        "laugh",
        "gift",
        "compliment",
        "tease",
        "flirt",
        "date",
        "i_love_you",
        "sleepover",
        "shared_meal",
        "shared_activity",
    ),
    "intimacy_romantic": ("intimate_touch", "intimate_kiss", "intimate_embrace"),
    "intimacy_sexual": (
        "intimate_heated",
        "intimate_foreplay",
        "intimate_oral",
        "intimate_manual",
        "intimate_penetrative",
        "intimate_climax",
    ),
    "action": ("action", "combat", "danger"),
    "commitment": ("decision", "promise", "betrayal", "lied", "exclusivity"),
    "life_events": ("marriage", "pregnancy", "childbirth"),
    "social": ("social", "achievement"),
    "support": (
        "helped",
        "common_interest",
        "outing",
        "defended",
        "crisis_together",
        "vulnerability",
        "shared_vulnerability",
        "entrusted",
    ),
}

# Subjects whose first occurrence between a pair is worth recording as a milestone.
MILESTONE_WORTHY_SUBJECTS: frozenset[str] = frozenset(
    {
        "confession",
        "secret_shared",
        "secret_revealed",
        "emotionally_intimate",
        "apology",
        "forgiveness",
        "gift",
        "date",
        "i_love_you",
        "sleepover",
        "intimate_touch",
        "intimate_kiss",
        "intimate_embrace",
        "intimate_heated",
        "intimate_foreplay",
        "intimate_oral",
        "intimate_manual",
        "intimate_penetrative",
        "intimate_climax",
        "promise",
        "betrayal",
        "exclusivity",
        "marriage",
        "pregnancy",
        "childbirth",
        "defended",
        "crisis_together",
        "shared_vulnerability",
        "entrusted",
    }
)

_DISPLAY_OVERRIDES = {
    "i_love_you": "First 'I love you'",
    "intimate_kiss": "First kiss",
    "intimate_embrace": "First embrace",
    "intimate_touch": "First touch",
    "shared_meal": "First shared meal",
    "date": "First date",
    "lied": "First lie",
}


def is_milestone_worthy(subject: str) -> bool:
    return subject in MILESTONE_WORTHY_SUBJECTS


def subject_group(subject: str) -> str | None:
    for group, members in SUBJECT_GROUPS.items():
        if subject in members:
            return group
    return None


def subject_display_name(subject: str) -> str:
    """Human-readable label for a milestone, e.g. "secret_shared" -> "Secret shared"."""
    if subject in _DISPLAY_OVERRIDES:
        return _DISPLAY_OVERRIDES[subject]
    return subject.replace("_", " ").capitalize()
