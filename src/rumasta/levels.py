"""Fixed curriculum: three proficiency tiers with three sub-levels each."""

from typing import Dict, List, Optional

from .config import settings

LEVELS: List[str] = [
    "A1-1",
    "A1-2",
    "A1-3",
    "A2-1",
    "A2-2",
    "A2-3",
    "B1-1",
    "B1-2",
    "B1-3",
]

TIER_NAMES: Dict[str, str] = {
    "A1": "Beginner",
    "A2": "Elementary",
    "B1": "Intermediate",
}

LEVEL_TOPICS: Dict[str, str] = {
    "A1-1": "Basic Nouns & Gender",
    "A1-2": "Simple Verbs",
    "A1-3": "Basic Sentences",
    "A2-1": "Past Tense",
    "A2-2": "Future Tense",
    "A2-3": "Complex Sentences",
    "B1-1": "Advanced Grammar",
    "B1-2": "Conversation",
    "B1-3": "Fluency",
}


def is_valid_level(level: Optional[str]) -> bool:
    return level in LEVELS


def next_level(level: str) -> Optional[str]:
    """Returns the successor of ``level``, or None for the last level.

    Unknown tokens are treated like the start of the curriculum and yield
    the first level.
    """
    if level not in LEVELS:
        return LEVELS[0]
    position = LEVELS.index(level)
    if position == len(LEVELS) - 1:
        return None
    return LEVELS[position + 1]


def display_name(level: str) -> str:
    tier = TIER_NAMES.get(level.split("-")[0])
    return f"{tier} {level}" if tier else level


def topic_title(level: Optional[str]) -> str:
    if level not in LEVEL_TOPICS:
        return level or ""
    return f"Russian {level}: {LEVEL_TOPICS[level]}"


def resolve_level(requested: Optional[str], stored: Optional[str]) -> str:
    """Picks the level to use from an external request and the saved preference.

    A valid requested token wins. Otherwise the stored preference is used if it
    is still a known level, and the default level after that.
    """
    if is_valid_level(requested):
        return requested
    if is_valid_level(stored):
        return stored
    return settings.DEFAULT_LEVEL


def list_levels() -> List[Dict[str, str]]:
    return [
        {"id": level, "name": display_name(level), "topic": topic_title(level)}
        for level in LEVELS
    ]
