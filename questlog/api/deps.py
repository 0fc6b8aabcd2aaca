"""
questlog.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy import Engine

from questlog.database.engine import create_db_engine
from questlog.services.xp_authority import DatabaseXpAuthority


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


def get_xp_authority(
    engine: Annotated[Engine, Depends(get_engine)],
) -> DatabaseXpAuthority:
    return DatabaseXpAuthority(engine)
