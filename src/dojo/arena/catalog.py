"""Arena challenge catalog. Rewards live here, never in the request."""

from __future__ import annotations

from dataclasses import dataclass

from dojo.errors import ValidationError

DEFAULT_BASE_XP = 15


@dataclass(frozen=True)
class ArenaChallenge:
    key: str
    name: str
    icon: str
    category: str
    base_xp: int = DEFAULT_BASE_XP


def _entries(category: str, icon: str, items: list[tuple[str, str]]) -> list[ArenaChallenge]:
    return [ArenaChallenge(key=k, name=n, icon=icon, category=category) for k, n in items]


ARENA_CHALLENGES: dict[str, ArenaChallenge] = {
    c.key: c
    for c in [
        *_entries("Power", "💪", [
            ("pushup_master", "Push-up Master"),
            ("squat_challenge", "Squat Challenge"),
            ("burpee_blast", "Burpee Blast"),
            ("abs_of_steel", "Abs of Steel"),
        ]),
        *_entries("Technique", "🎯", [
            ("100_kicks", "100 Kicks Marathon"),
            ("speed_punches", "Speed Punches"),
            ("horse_stance", "Iron Horse Stance"),
            ("jump_rope", "Jump Rope Ninja"),
        ]),
        *_entries("Flexibility", "🧘", [
            ("plank_hold", "Plank Hold"),
            ("touch_toes", "Touch Your Toes"),
            ("wall_sit", "The Wall Sit"),
            ("one_leg_balance", "One-Leg Balance"),
        ]),
        *_entries("Family", "👨‍👧", [
            ("family_form_practice", "Family Form Practice"),
            ("family_stretch", "Family Stretch"),
            ("family_kicks", "Family Kicks"),
        ]),
    ]
}


def get_arena_challenge(key: str) -> ArenaChallenge:
    """Look up a challenge by key. Unknown keys are a ValidationError."""
    try:
        return ARENA_CHALLENGES[key]
    except KeyError:
        raise ValidationError(f"Unknown challenge '{key}'") from None
