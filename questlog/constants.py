"""
questlog.constants — Shared Constants
======================================

Single source of truth for XP tuning and collection naming.
Import from here instead of duplicating in services, repositories, and
the API layer.  ``XP_PER_LEVEL`` is deliberately not a config key: the
client preview and the authoritative server check must agree on it.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# XP tuning
# ---------------------------------------------------------------------------
XP_PER_LEVEL: int = 100
TASK_COMPLETE_XP: int = 50
SUBTASK_COMPLETE_XP: int = 10

# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------
TASKS: str = "tasks"
MEMBERS: str = "members"
ACHIEVEMENTS: str = "achievements"

KNOWN_COLLECTIONS: frozenset[str] = frozenset({TASKS, MEMBERS, ACHIEVEMENTS})

# Blob keys are namespaced so several apps can share one backend.
STORAGE_KEY_PREFIX: str = "questlog-"
SELECTED_MEMBER_KEY: str = STORAGE_KEY_PREFIX + "selected-member"

# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------
DEFAULT_POLL_INTERVAL_MS: int = 2000

# ---------------------------------------------------------------------------
# Backup format
# ---------------------------------------------------------------------------
BACKUP_VERSION: str = "1.0"
