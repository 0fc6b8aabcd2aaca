"""
questlog.services.achievement_service — Unlock Bookkeeping
===========================================================

Persists unlocked achievements in the ``achievements`` collection as
``{achievementId, memberId, unlockedAt}`` records.  Unlocking is
idempotent per (achievement, member) pair.
"""

from __future__ import annotations

import logging

from questlog.constants import ACHIEVEMENTS
from questlog.engine.achievements import ACHIEVEMENTS_BY_ID, check_achievements
from questlog.entities import Member, Task, utc_now_iso
from questlog.errors import ValidationError
from questlog.store.collections import CollectionStore

logger = logging.getLogger(__name__)


class AchievementService:
    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    def get_unlocked(self) -> list[dict]:
        return self.store.get(ACHIEVEMENTS)

    def get_member_achievements(self, member_id: str) -> list[str]:
        return [
            r["achievementId"] for r in self.get_unlocked() if r.get("memberId") == member_id
        ]

    def unlock(self, achievement_id: str, member_id: str) -> bool:
        """Record an unlock.  Returns False if it was already recorded."""
        if achievement_id not in ACHIEVEMENTS_BY_ID:
            raise ValidationError(f"Unknown achievement: {achievement_id}")
        unlocked = self.get_unlocked()
        for r in unlocked:
            if r.get("achievementId") == achievement_id and r.get("memberId") == member_id:
                return False
        unlocked.append({
            "achievementId": achievement_id,
            "memberId": member_id,
            "unlockedAt": utc_now_iso(),
        })
        self.store.save(ACHIEVEMENTS, unlocked)
        logger.info("Achievement '%s' unlocked for %s", achievement_id, member_id)
        return True

    def check_and_unlock(self, member: Member, tasks: list[Task]) -> list[str]:
        """Evaluate the catalogue for *member* and record anything new."""
        already = set(self.get_member_achievements(member.id))
        earned = check_achievements(member, tasks, already)
        return [a for a in earned if self.unlock(a, member.id)]
