"""
questlog.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for storage and sync tuning.  Secrets and
infrastructure URLs (``DATABASE_URL``) come from the environment / ``.env``
instead.  XP tuning is not configurable: see :mod:`questlog.constants`.

Usage::

    from questlog.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.poll_interval_ms)      # 2000
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from questlog.constants import DEFAULT_POLL_INTERVAL_MS

STORAGE_BACKENDS: frozenset[str] = frozenset({"file", "memory", "database"})


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class QuestlogConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Storage
    storage_backend: str = "file"
    storage_dir: str = ".questlog"

    # Sync
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    skip_overlapping_ticks: bool = True

    # Authoritative XP
    xp_api_url: str | None = None  # when set, XP goes through the HTTP endpoint
    xp_api_timeout: float = 5.0
    xp_floor: int | None = 0  # None → stored XP may go negative

    def __post_init__(self) -> None:
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"storage_backend must be one of {sorted(STORAGE_BACKENDS)}, "
                f"got {self.storage_backend!r}"
            )
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        if self.xp_api_timeout <= 0:
            raise ValueError("xp_api_timeout must be positive")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> QuestlogConfig:
    """Read *path* and return a :class:`QuestlogConfig` instance.

    Every key is optional; missing keys keep their defaults.  An explicit
    ``xp_floor: null`` disables the XP floor.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a value is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.example.yaml → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = QuestlogConfig()
    return QuestlogConfig(
        storage_backend=str(raw.get("storage_backend", defaults.storage_backend)),
        storage_dir=str(raw.get("storage_dir", defaults.storage_dir)),
        poll_interval_ms=int(raw.get("poll_interval_ms", defaults.poll_interval_ms)),
        skip_overlapping_ticks=bool(
            raw.get("skip_overlapping_ticks", defaults.skip_overlapping_ticks)
        ),
        xp_api_url=raw.get("xp_api_url") or None,
        xp_api_timeout=float(raw.get("xp_api_timeout", defaults.xp_api_timeout)),
        xp_floor=(
            int(raw["xp_floor"]) if raw.get("xp_floor") is not None
            else (None if "xp_floor" in raw else defaults.xp_floor)
        ),
    )
