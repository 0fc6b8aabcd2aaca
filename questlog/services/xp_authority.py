"""
questlog.services.xp_authority — Authoritative XP Increment
============================================================

Level-up detection has to compare an atomic before/after pair, not two
reads that raced each other.  An ``XpAuthority`` owns the point of truth
for a member's XP and performs read → add → recompute level → persist
xp+level → report level-up as one unit.

Implementations:
- :class:`HttpXpAuthority`     — ``POST /api/members/{id}/xp`` on a remote server
- :class:`DatabaseXpAuthority` — row-locked transaction on ``member_profiles``
- :class:`LocalXpAuthority`    — legacy local store, serialized by a lock
- :class:`MirroredXpAuthority` — wraps the HTTP or database authority for
  collection members and writes the result back into ``members``

The first three clamp stored XP at ``floor`` (default ``0``; ``None`` disables
it).  The progression engine itself is unclamped.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol
from urllib.parse import quote

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from questlog.database.engine import get_session
from questlog.database.models import MemberProfile, User
from questlog.engine.progression import did_level_up, level_for_xp
from questlog.entities import Member
from questlog.errors import NotFound, TransportFailure

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from questlog.repositories.members import MemberRepository

logger = logging.getLogger(__name__)

DEFAULT_XP_FLOOR = 0


@dataclass(frozen=True, slots=True)
class XpResult:
    """Outcome of one atomic increment."""

    member: Member
    was_level_up: bool

    def to_dict(self) -> dict:
        return {"member": self.member.to_record(), "wasLevelUp": self.was_level_up}


class XpAuthority(Protocol):
    def increment(self, member_id: str, amount: int) -> XpResult: ...


def _clamp(xp: int, floor: int | None) -> int:
    return xp if floor is None else max(floor, xp)


# ---------------------------------------------------------------------------
# Local collection store
# ---------------------------------------------------------------------------
class LocalXpAuthority:
    """Point of truth = the ``members`` collection of this process.

    The lock makes this the single writer among local XP updates; other
    writers to the same collection are not covered.
    """

    def __init__(
        self, members: MemberRepository, *, floor: int | None = DEFAULT_XP_FLOOR
    ) -> None:
        self._members = members
        self._floor = floor
        self._lock = threading.Lock()

    def increment(self, member_id: str, amount: int) -> XpResult:
        with self._lock:
            old_xp, member = self._members.increment_xp(
                member_id, amount, floor=self._floor
            )
        return XpResult(member=member, was_level_up=did_level_up(old_xp, member.xp))


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
def _member_from_rows(user: User, profile: MemberProfile) -> Member:
    return Member(
        id=user.id,
        name=user.name or user.email.split("@")[0] or "User",
        email=user.email,
        user_id=user.id,
        avatar=user.avatar or None,
        xp=profile.xp,
        level=profile.level,
    )


def _lock_profile(session: Session, user_id: str) -> MemberProfile:
    """Return the locked profile row for *user_id*, creating it if missing.

    Two first-use increments can both miss the row; the loser of the
    insert gets an IntegrityError inside its SAVEPOINT and re-selects the
    winner's row.
    """
    stmt = (
        select(MemberProfile)
        .where(MemberProfile.user_id == user_id)
        .with_for_update()
    )
    profile = session.scalar(stmt)
    if profile is not None:
        return profile

    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(MemberProfile(user_id=user_id, xp=0, level=1))
            session.flush()
    except IntegrityError:
        logger.debug("Profile for %s created concurrently, re-selecting", user_id)
    return session.scalar(stmt)


class DatabaseXpAuthority:
    """Point of truth = ``member_profiles``; member id is the user id.

    The profile row is locked with ``SELECT … FOR UPDATE`` for the whole
    read-add-write, and created on first use.
    """

    def __init__(self, engine: Engine, *, floor: int | None = DEFAULT_XP_FLOOR) -> None:
        self._engine = engine
        self._floor = floor

    def increment(self, member_id: str, amount: int) -> XpResult:
        with get_session(self._engine) as session:
            user = session.get(User, member_id)
            if user is None:
                raise NotFound("member", member_id)

            profile = _lock_profile(session, member_id)

            old_xp = profile.xp
            new_xp = _clamp(old_xp + amount, self._floor)
            profile.xp = new_xp
            profile.level = level_for_xp(new_xp)
            session.flush()

            result = XpResult(
                member=_member_from_rows(user, profile),
                was_level_up=did_level_up(old_xp, new_xp),
            )
        logger.debug(
            "XP %+d for %s: %d → %d (level-up: %s)",
            amount, member_id, old_xp, new_xp, result.was_level_up,
        )
        return result

    def get_member(self, member_id: str) -> Member | None:
        """Current member view; a user without a profile reads as 0 XP."""
        with Session(self._engine) as session:
            user = session.get(User, member_id)
            if user is None:
                return None
            profile = user.profile or MemberProfile(user_id=member_id, xp=0, level=1)
            return _member_from_rows(user, profile)


# ---------------------------------------------------------------------------
# Remote HTTP
# ---------------------------------------------------------------------------
class HttpXpAuthority:
    """Point of truth = a remote server exposing ``POST /api/members/{id}/xp``.

    Network errors, non-2xx responses and malformed bodies raise
    :class:`TransportFailure`; 404 raises :class:`NotFound`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        # Requests use absolute URLs and a per-request timeout, so an
        # injected client still talks to *base_url* with *timeout*.
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def increment(self, member_id: str, amount: int) -> XpResult:
        url = f"{self.base_url}/api/members/{quote(member_id, safe='')}/xp"
        try:
            resp = self._client.post(url, json={"amount": amount}, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise TransportFailure(f"XP request for {member_id} failed: {exc}") from exc

        if resp.status_code == 404:
            raise NotFound("member", member_id)
        if not resp.is_success:
            raise TransportFailure(
                f"XP request for {member_id} returned {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
            return XpResult(
                member=Member.from_record(body["member"]),
                was_level_up=bool(body["wasLevelUp"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise TransportFailure(
                f"Malformed XP response for {member_id}", status_code=resp.status_code
            ) from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


# ---------------------------------------------------------------------------
# Collection mirror
# ---------------------------------------------------------------------------
class MirroredXpAuthority:
    """Route a collection member's XP through an upstream authority.

    Collection members carry ``member-…`` ids while the database and the
    HTTP endpoint key XP by user id.  This resolves ``member.user_id``,
    increments upstream, then writes the authoritative XP back into the
    ``members`` collection so polled views see it.  The upstream result
    decides ``was_level_up``.
    """

    def __init__(self, members: MemberRepository, upstream: XpAuthority) -> None:
        self._members = members
        self.upstream = upstream

    def increment(self, member_id: str, amount: int) -> XpResult:
        member = self._members.get_by_id(member_id)
        if member is None or not member.user_id:
            raise NotFound("member", member_id)

        result = self.upstream.increment(member.user_id, amount)
        updated = self._members.update(member_id, xp=result.member.xp)
        logger.debug(
            "Mirrored XP for %s (user %s): %d XP, level %d",
            member_id, member.user_id, updated.xp, updated.level,
        )
        return XpResult(member=updated, was_level_up=result.was_level_up)

    def close(self) -> None:
        close = getattr(self.upstream, "close", None)
        if close is not None:
            close()
