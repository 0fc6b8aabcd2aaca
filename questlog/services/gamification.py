"""
questlog.services.gamification — XP Hook
=========================================

The outward-facing "add XP to member X" operation.  Every change goes
through one :class:`~questlog.services.xp_authority.XpAuthority` call;
the caller never reads XP between issuing the request and getting the
result.

``add_xp`` returns the updated member **only** on a level-up and ``None``
otherwise.  Transport failures are logged and also come back as ``None``.
Callers that need to tell the two apart use :meth:`apply_xp`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from questlog.engine.progression import MemberProgress, member_progress
from questlog.entities import Member
from questlog.errors import NotFound, TransportFailure, ValidationError
from questlog.services.xp_authority import XpAuthority, XpResult

logger = logging.getLogger(__name__)


class GamificationService:
    def __init__(
        self,
        authority: XpAuthority,
        *,
        on_level_up: Callable[[Member], None] | None = None,
    ) -> None:
        self.authority = authority
        self.on_level_up = on_level_up

    def apply_xp(self, member_id: str, amount: int) -> XpResult:
        """Atomic increment; errors propagate."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("XP amount must be an integer")
        if not member_id:
            raise ValidationError("Member ID is required")
        return self.authority.increment(member_id, amount)

    def add_xp(self, member_id: str, amount: int) -> Member | None:
        """Add *amount* XP; return the member only if they levelled up."""
        try:
            result = self.apply_xp(member_id, amount)
        except (TransportFailure, NotFound) as exc:
            logger.warning("XP update %+d for %s failed: %s", amount, member_id, exc)
            return None

        if not result.was_level_up:
            return None

        member = result.member
        logger.info("Member %s reached level %d (%d XP)", member.id, member.level, member.xp)
        if self.on_level_up is not None:
            try:
                self.on_level_up(member)
            except Exception:
                logger.exception("Level-up callback failed for %s", member.id)
        return member

    def remove_xp(self, member_id: str, amount: int) -> Member | None:
        return self.add_xp(member_id, -amount)

    @staticmethod
    def get_member_progress(member: Member) -> MemberProgress:
        return member_progress(member.xp)
