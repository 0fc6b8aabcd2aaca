"""
Questlog — Member Progression & Live Collections for a Gamified Task Manager
=============================================================================
Turns finished tasks into XP and levels, keeps a local store of tasks and
members, and keeps in-memory views of both "live" by polling.

Package layout::

    questlog/
    ├── constants.py       # XP tuning + collection names
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # ValidationError / NotFound / TransportFailure
    ├── entities.py        # Member, Task, Subtask dataclasses
    ├── app.py             # Application wiring + logging setup
    ├── engine/
    │   ├── progression.py # Level formula (THE canonical one)
    │   └── achievements.py # Achievement conditions
    ├── store/
    │   ├── blob.py        # Memory / file / database blob backends
    │   └── collections.py # Whole-collection get/save over a blob
    ├── repositories/
    │   ├── base.py        # Read-modify-write repository base
    │   ├── members.py     # Member CRUD
    │   └── tasks.py       # Task CRUD + TaskFilter
    ├── sync/
    │   └── poller.py      # Polling subscriptions (SyncFacade)
    ├── services/
    │   ├── xp_authority.py     # Atomic XP increment (HTTP / DB / local)
    │   ├── gamification.py     # add_xp / remove_xp / progress
    │   ├── task_service.py     # Completion workflow + XP rewards
    │   ├── achievement_service.py # Unlock persistence
    │   └── backup.py           # JSON export / import
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # users, member_profiles, blobs
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency injection
        └── routes/members.py  # Authoritative XP endpoint
"""

__version__ = "0.1.0"
