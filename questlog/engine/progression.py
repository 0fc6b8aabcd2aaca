"""
questlog.engine.progression — Leveling Formula
===============================================

THE single canonical implementation of the XP → level rules.  Every caller
(client hook, local authority, database authority, HTTP endpoint) imports
from here so a level-up preview can never disagree with the authoritative
check.

Pure functions — no I/O, total over every integer.  Below zero the usual
floor-division / modulo pair is used, so ``xp == (level - 1) * XP_PER_LEVEL
+ remainder`` holds for negative XP too::

    level_for_xp(-1)   == 0
    progress_within_level(-1) == 0.99
"""

from __future__ import annotations

from dataclasses import dataclass

from questlog.constants import XP_PER_LEVEL

__all__ = [
    "MemberProgress",
    "did_level_up",
    "level_for_xp",
    "member_progress",
    "progress_within_level",
    "xp_threshold_for_next_level",
    "xp_to_next_level",
]


def level_for_xp(xp: int) -> int:
    """Level 1 covers ``[0, XP_PER_LEVEL)``; each further block adds one."""
    return 1 + xp // XP_PER_LEVEL


def progress_within_level(xp: int) -> float:
    """Fraction of the current level already earned, in ``[0, 1)``."""
    return (xp % XP_PER_LEVEL) / XP_PER_LEVEL


def xp_threshold_for_next_level(xp: int) -> int:
    """Total XP at which the next level starts."""
    return level_for_xp(xp) * XP_PER_LEVEL


def xp_to_next_level(xp: int) -> int:
    """XP still missing before the next level (always ``>= 1``)."""
    return xp_threshold_for_next_level(xp) - xp


def did_level_up(old_xp: int, new_xp: int) -> bool:
    """True when moving from *old_xp* to *new_xp* crosses a level boundary upward."""
    return level_for_xp(new_xp) > level_for_xp(old_xp)


@dataclass(frozen=True, slots=True)
class MemberProgress:
    """Progress bar data for one member."""

    level: int
    xp: int
    progress: float
    xp_for_next_level: int

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "xp": self.xp,
            "progress": self.progress,
            "xpForNextLevel": self.xp_for_next_level,
        }


def member_progress(xp: int) -> MemberProgress:
    """Bundle level, progress fraction and next threshold for *xp*."""
    return MemberProgress(
        level=level_for_xp(xp),
        xp=xp,
        progress=progress_within_level(xp),
        xp_for_next_level=xp_threshold_for_next_level(xp),
    )
