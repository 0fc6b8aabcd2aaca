"""
questlog.app — Application Wiring
==================================

Builds the object graph once at startup and tears it down at shutdown.
Nothing in questlog is a module-level singleton; every store,
repository and service is constructed here and passed by reference.

Wiring:
1. Blob backend (memory / file / database) from config.
2. CollectionStore over the blob.
3. Member and task repositories.
4. SyncFacade with the configured interval and overlap rule.
5. XP authority: HTTP if ``xp_api_url`` is set, database if the storage
   backend is ``database``, else the local collection.  The HTTP and
   database authorities key XP by user id, so they are wrapped in
   :class:`MirroredXpAuthority`, which resolves the member's user id and
   writes the result back into the ``members`` collection.
6. Gamification, task and achievement services.

Usage::

    configure_logging()
    with Application.from_config(load_config()) as app:
        sub = app.sync.subscribe_tasks(render)
        app.gamification.add_xp(member_id, 20)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from questlog.config import QuestlogConfig
from questlog.database.engine import create_db_engine, init_db
from questlog.repositories.members import MemberRepository
from questlog.repositories.tasks import TaskRepository
from questlog.services.achievement_service import AchievementService
from questlog.services.gamification import GamificationService
from questlog.services.task_service import TaskService
from questlog.services.xp_authority import (
    DatabaseXpAuthority,
    HttpXpAuthority,
    LocalXpAuthority,
    MirroredXpAuthority,
    XpAuthority,
)
from questlog.store.blob import BlobStore, DatabaseBlobStore, FileBlobStore, MemoryBlobStore
from questlog.store.collections import CollectionStore
from questlog.sync.poller import SyncFacade

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Install the questlog log format on the root logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")


@dataclass
class Application:
    """The wired object graph.  Close it (or use ``with``) on shutdown."""

    config: QuestlogConfig
    store: CollectionStore
    members: MemberRepository
    tasks: TaskRepository
    sync: SyncFacade
    authority: XpAuthority
    gamification: GamificationService
    task_service: TaskService
    achievements: AchievementService
    engine: Engine | None = None

    @classmethod
    def from_config(
        cls,
        cfg: QuestlogConfig,
        *,
        engine: Engine | None = None,
        blob: BlobStore | None = None,
    ) -> Application:
        if cfg.storage_backend == "database" and engine is None:
            engine = create_db_engine()
            init_db(engine)

        if blob is None:
            if cfg.storage_backend == "memory":
                blob = MemoryBlobStore()
            elif cfg.storage_backend == "database":
                blob = DatabaseBlobStore(engine)
            else:
                blob = FileBlobStore(cfg.storage_dir)

        store = CollectionStore(blob)
        members = MemberRepository(store)
        tasks = TaskRepository(store)
        sync = SyncFacade(
            store,
            poll_interval_ms=cfg.poll_interval_ms,
            skip_overlapping_ticks=cfg.skip_overlapping_ticks,
        )

        authority: XpAuthority
        if cfg.xp_api_url:
            authority = MirroredXpAuthority(
                members, HttpXpAuthority(cfg.xp_api_url, timeout=cfg.xp_api_timeout)
            )
        elif engine is not None:
            authority = MirroredXpAuthority(
                members, DatabaseXpAuthority(engine, floor=cfg.xp_floor)
            )
        else:
            authority = LocalXpAuthority(members, floor=cfg.xp_floor)

        gamification = GamificationService(authority)
        app = cls(
            config=cfg,
            store=store,
            members=members,
            tasks=tasks,
            sync=sync,
            authority=authority,
            gamification=gamification,
            task_service=TaskService(tasks, gamification),
            achievements=AchievementService(store),
            engine=engine,
        )
        logger.info(
            "questlog ready: storage=%s, xp=%s, poll=%dms",
            cfg.storage_backend, type(authority).__name__, cfg.poll_interval_ms,
        )
        return app

    def close(self) -> None:
        self.sync.close()
        if isinstance(self.authority, MirroredXpAuthority):
            self.authority.close()
        logger.info("questlog shut down")

    def __enter__(self) -> Application:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
