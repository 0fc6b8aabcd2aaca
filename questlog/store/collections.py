"""
questlog.store.collections — Whole-Collection Store
====================================================

The sole persistence primitive the repositories see.  A collection is a
JSON array of records written as one blob; there is no partial update
and no transaction boundary.  Every mutation above this layer is
read-whole-collection → modify → write-whole-collection, so two writers
that read the same pre-image can clobber each other.  That lost-update
window is accepted for the local store; the authoritative XP path does
not go through here.
"""

from __future__ import annotations

import json
import logging

from questlog.constants import (
    KNOWN_COLLECTIONS,
    SELECTED_MEMBER_KEY,
    STORAGE_KEY_PREFIX,
)
from questlog.store.blob import BlobStore

logger = logging.getLogger(__name__)


class CollectionStore:
    """Get/replace access to named collections backed by a :class:`BlobStore`.

    Usage::

        store = CollectionStore(FileBlobStore(".questlog"))
        tasks = store.get("tasks")
        tasks.append(new_record)
        store.save("tasks", tasks)
    """

    def __init__(self, blob: BlobStore) -> None:
        self._blob = blob

    @staticmethod
    def _key(name: str) -> str:
        if not name:
            raise ValueError("Collection name must not be empty")
        return STORAGE_KEY_PREFIX + name

    # -------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------
    def get(self, name: str) -> list[dict]:
        """Return every record of *name*; ``[]`` when absent or unreadable."""
        raw = self._blob.read(self._key(name))
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error("Collection '%s' is not valid JSON, treating as empty", name)
            return []
        if not isinstance(data, list):
            logger.error(
                "Collection '%s' holds %s, expected a list, treating as empty",
                name, type(data).__name__,
            )
            return []
        return data

    def save(self, name: str, records: list[dict]) -> None:
        """Overwrite *name* with *records*."""
        payload = json.dumps(list(records), ensure_ascii=False, separators=(",", ":"))
        self._blob.write(self._key(name), payload.encode("utf-8"))
        logger.debug("Saved collection '%s' (%d records)", name, len(records))

    # -------------------------------------------------------------------
    # Selected member
    # -------------------------------------------------------------------
    def get_selected_member_id(self) -> str | None:
        raw = self._blob.read(SELECTED_MEMBER_KEY)
        if not raw:
            return None
        return raw.decode("utf-8")

    def save_selected_member_id(self, member_id: str | None) -> None:
        if member_id:
            self._blob.write(SELECTED_MEMBER_KEY, member_id.encode("utf-8"))
        else:
            self._blob.delete(SELECTED_MEMBER_KEY)

    def clear_all(self) -> None:
        """Drop every known collection and the selected member."""
        for name in sorted(KNOWN_COLLECTIONS):
            self._blob.delete(self._key(name))
        self._blob.delete(SELECTED_MEMBER_KEY)
        logger.info("All collections cleared")
