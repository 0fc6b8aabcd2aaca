"""
questlog.api.routes.members — Authoritative XP endpoint
========================================================

``POST /api/members/{user_id}/xp`` is the point of truth that
:class:`~questlog.services.xp_authority.HttpXpAuthority` talks to.  The
increment, the level recomputation and the level-up comparison happen in
one database transaction.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, StrictInt

from questlog.api.deps import get_xp_authority
from questlog.database.engine import run_db
from questlog.engine.progression import member_progress
from questlog.errors import NotFound
from questlog.services.xp_authority import DatabaseXpAuthority

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/members", tags=["members"])


class XpRequest(BaseModel):
    amount: StrictInt


@router.post("/{user_id}/xp")
async def add_member_xp(
    user_id: str,
    body: XpRequest,
    authority: Annotated[DatabaseXpAuthority, Depends(get_xp_authority)],
):
    """Add (or, with a negative amount, remove) XP.

    Returns ``{"member": {...}, "wasLevelUp": bool}``.
    """
    try:
        result = await run_db(authority.increment, user_id, body.amount)
    except NotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except Exception:
        logger.exception("XP update failed for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to update XP")
    return result.to_dict()


@router.get("/{user_id}")
async def get_member(
    user_id: str,
    authority: Annotated[DatabaseXpAuthority, Depends(get_xp_authority)],
):
    member = await run_db(authority.get_member, user_id)
    if member is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {
        "member": member.to_record(),
        "progress": member_progress(member.xp).to_dict(),
    }
