"""
questlog.services.backup — JSON Export / Import
================================================

Whole-store snapshot for data safety::

    {
      "tasks": [...], "members": [...], "selectedMemberId": "...",
      "exportDate": "2026-01-15T12:00:00.000Z", "version": "1.0"
    }

Import validates the shape of each section before writing it; sections
absent from the file are left untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from questlog.constants import BACKUP_VERSION, MEMBERS, TASKS
from questlog.engine.progression import level_for_xp
from questlog.entities import utc_now_iso
from questlog.store.collections import CollectionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImportResult:
    success: bool
    error: str | None = None


def _normalize_member(record: dict) -> dict:
    """Re-derive ``level`` from ``xp``; imported levels are never trusted."""
    try:
        xp = int(record.get("xp") or 0)
    except (TypeError, ValueError):
        xp = 0
    return {**record, "xp": xp, "level": level_for_xp(xp)}


def export_data(store: CollectionStore) -> str:
    data = {
        "tasks": store.get(TASKS),
        "members": store.get(MEMBERS),
        "selectedMemberId": store.get_selected_member_id(),
        "exportDate": utc_now_iso(),
        "version": BACKUP_VERSION,
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def import_data(store: CollectionStore, json_text: str) -> ImportResult:
    """Restore collections from an :func:`export_data` document."""
    if not isinstance(json_text, str) or not json_text.strip():
        return ImportResult(False, "Empty or invalid JSON data")

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as exc:
        logger.warning("Backup import rejected: %s", exc)
        return ImportResult(False, f"Invalid JSON format: {exc.msg}")

    if not isinstance(data, dict):
        return ImportResult(False, "Invalid backup file: data must be an object")

    for section in (TASKS, MEMBERS):
        if section in data and not isinstance(data[section], list):
            return ImportResult(False, f"Invalid backup file: {section} must be an array")

    for section in (TASKS, MEMBERS):
        if section in data and not all(isinstance(r, dict) for r in data[section]):
            return ImportResult(False, f"Invalid backup file: {section} must hold objects")

    if MEMBERS in data:
        data[MEMBERS] = [_normalize_member(r) for r in data[MEMBERS]]

    for section in (TASKS, MEMBERS):
        if section in data:
            store.save(section, data[section])
            logger.info("Imported %d %s", len(data[section]), section)

    if "selectedMemberId" in data:
        selected = data["selectedMemberId"]
        store.save_selected_member_id(selected if isinstance(selected, str) else None)

    return ImportResult(True)
