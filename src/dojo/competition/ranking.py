"""Deterministic club ranking.

Students are ranked by all-time XP, highest first. Ties keep the order
the students were passed in (enrollment order), since Python's sort is
stable. Rank is the 1-based position; tied students get distinct ranks.
"""

from __future__ import annotations

from typing import Any


def rank_students(students: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Rank students by ``total_xp`` DESC.

    Input: list of dicts with at least ``total_xp: int``, in enrollment order.

    Output: the same dicts sorted and augmented with ``rank: int`` (1-indexed).
    """
    if not students:
        return []

    ranked = sorted(students, key=lambda s: -s.get("total_xp", 0))
    for idx, s in enumerate(ranked):
        s["rank"] = idx + 1
    return ranked
