"""Home Dojo catalogs: preset habits and parent-vs-kid family challenges."""

from __future__ import annotations

from dataclasses import dataclass

from dojo.errors import ValidationError


@dataclass(frozen=True)
class HabitPreset:
    key: str
    title: str
    icon: str


@dataclass(frozen=True)
class FamilyChallenge:
    key: str
    name: str
    base_xp: int


HABIT_PRESETS: dict[str, HabitPreset] = {
    h.key: h
    for h in [
        HabitPreset("homework", "Finish my homework", "📚"),
        HabitPreset("limit_screentime", "Limit screen time", "📵"),
        HabitPreset("eat_vegetables", "Eat my vegetables", "🥦"),
        HabitPreset("help_chores", "Help with chores", "🧹"),
        HabitPreset("act_of_kindness", "Do an act of kindness", "💛"),
        HabitPreset("get_ready_alone", "Get ready on my own", "👕"),
        HabitPreset("make_bed", "Make my bed", "🛏️"),
        HabitPreset("practice_forms", "Practice my forms", "🥋"),
    ]
}

FAMILY_CHALLENGES: dict[str, FamilyChallenge] = {
    c.key: c
    for c in [
        # Hard
        FamilyChallenge("family_pushups", "Parent vs Kid: Pushups", 100),
        FamilyChallenge("family_plank", "Family Plank-Off", 120),
        FamilyChallenge("family_squat_hold", "The Squat Showdown", 100),
        # Medium
        FamilyChallenge("family_statue", "The Statue Challenge", 80),
        FamilyChallenge("family_kicks", "Kick Count Battle", 90),
        FamilyChallenge("family_balance", "Flamingo Stand-Off", 80),
        FamilyChallenge("family_situps", "Sit-Up Showdown", 90),
        FamilyChallenge("family_reaction", "Reaction Time Test", 85),
        FamilyChallenge("family_mirror", "Mirror Challenge", 75),
        # Easy
        FamilyChallenge("family_dance", "Martial Arts Dance-Off", 70),
        FamilyChallenge("family_stretch", "Stretch Together", 60),
        FamilyChallenge("family_breathing", "Calm Warrior Breathing", 50),
    ]
}


def get_family_challenge(key: str) -> FamilyChallenge:
    try:
        return FAMILY_CHALLENGES[key]
    except KeyError:
        raise ValidationError(f"Unknown family challenge '{key}'") from None
