"""
questlog.store.blob — Persistent Blob Backends
===============================================

The opaque key → bytes layer underneath :class:`CollectionStore`.

Backends:
- :class:`MemoryBlobStore`   — process-local dict (tests, browser-storage analogue)
- :class:`FileBlobStore`     — one file per key, replaced atomically
- :class:`DatabaseBlobStore` — ``blobs`` table via SQLAlchemy
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from questlog.database.engine import get_session
from questlog.database.models import BlobRecord

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


@runtime_checkable
class BlobStore(Protocol):
    """Minimal persistence primitive: read, write, delete by key."""

    def read(self, key: str) -> bytes | None: ...

    def write(self, key: str, data: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------
class MemoryBlobStore:
    """Dict-backed blob store.  Lost when the process exits."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(data)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------
class FileBlobStore:
    """Stores each key as ``<root>/<key>.json``.

    Writes go to a temp file in the same directory and are moved into
    place with :func:`os.replace`, so a reader never sees a half-written
    blob.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        logger.debug("File blob store rooted at %s", self.root.resolve())

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self.root / f"{key}.json"

    def read(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
class DatabaseBlobStore:
    """Stores blobs as rows of the ``blobs`` table (payload is UTF-8 text)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def read(self, key: str) -> bytes | None:
        with Session(self._engine) as session:
            row = session.get(BlobRecord, key)
            if row is None:
                return None
            return row.payload.encode("utf-8")

    def write(self, key: str, data: bytes) -> None:
        payload = data.decode("utf-8")
        with get_session(self._engine) as session:
            row = session.get(BlobRecord, key)
            if row is None:
                session.add(BlobRecord(key=key, payload=payload))
            else:
                row.payload = payload

    def delete(self, key: str) -> None:
        with get_session(self._engine) as session:
            row = session.get(BlobRecord, key)
            if row is not None:
                session.delete(row)
