"""
questlog.repositories.members — Member Repository
==================================================

Member CRUD over the ``members`` collection.  ``level`` is never taken
from the caller: it is recomputed from ``xp`` on every write so a stored
member can never carry a stale level.
"""

from __future__ import annotations

import logging
from typing import Any

from questlog.constants import MEMBERS
from questlog.engine.progression import level_for_xp
from questlog.entities import Member
from questlog.errors import ValidationError
from questlog.repositories.base import CollectionRepository

logger = logging.getLogger(__name__)


class MemberRepository(CollectionRepository[Member]):
    collection = MEMBERS
    kind = "member"
    entity_cls = Member

    def create(
        self,
        name: str,
        user_id: str,
        *,
        email: str = "",
        avatar: str | None = None,
    ) -> str:
        """Add a member with ``xp=0, level=1`` and return its id."""
        errors = []
        if not name or not name.strip():
            errors.append("Member name is required")
        if not user_id or not user_id.strip():
            errors.append("User ID is required")
        if errors:
            raise ValidationError(errors)

        member = Member(
            id=self.new_id(),
            name=name.strip(),
            user_id=user_id,
            email=email,
            avatar=avatar,
            xp=0,
            level=1,
        )
        self._append(member)
        return member.id

    def get_by_user_id(self, user_id: str) -> Member | None:
        for member in self.get_all():
            if member.user_id == user_id:
                return member
        return None

    def increment_xp(
        self, member_id: str, amount: int, *, floor: int | None = None
    ) -> tuple[int, Member]:
        """Add *amount* to a member's XP in one read-modify-write.

        Returns ``(old_xp, updated_member)``.  When *floor* is given the
        stored XP never drops below it.
        """
        old: list[int] = []

        def _apply(member: Member) -> Member:
            old.append(member.xp)
            new_xp = member.xp + amount
            if floor is not None:
                new_xp = max(floor, new_xp)
            member.xp = new_xp
            member.level = level_for_xp(new_xp)
            return member

        updated = self._modify(member_id, _apply)
        return old[0], updated

    # -------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------
    def _coerce(self, name: str, value: Any) -> Any:
        if name == "name" and isinstance(value, str):
            return value.strip()
        if name == "xp":
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"XP must be an integer, got {value!r}")
            return value
        return value

    def _validate(self, member: Member) -> None:
        errors = []
        if not member.name:
            errors.append("Member name cannot be empty")
        if not member.user_id or not member.user_id.strip():
            errors.append("User ID is required")
        if errors:
            raise ValidationError(errors)

    def _before_save(self, member: Member, changes: dict[str, Any]) -> None:
        member.level = level_for_xp(member.xp)
