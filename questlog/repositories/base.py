"""
questlog.repositories.base — Read-Modify-Write Repository Base
===============================================================

Every operation reads the whole collection from the
:class:`~questlog.store.collections.CollectionStore`, applies exactly one
logical change, and writes the whole collection back.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from collections.abc import Callable
from typing import Any, ClassVar, Generic, TypeVar

from questlog.errors import NotFound, ValidationError
from questlog.store.collections import CollectionStore

logger = logging.getLogger(__name__)

E = TypeVar("E")

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_SUFFIX_LENGTH = 9

# Never overwritten by update()
IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "created_at"})


def generate_id(kind: str) -> str:
    """``<kind>-<epoch ms>-<9 random base36 chars>``.

    Collisions are negligible under ordinary client load, not impossible.
    """
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"{kind}-{int(time.time() * 1000)}-{suffix}"


class CollectionRepository(Generic[E]):
    """CRUD over one named collection.

    Subclasses set :attr:`collection`, :attr:`kind` and :attr:`entity_cls`,
    and override :meth:`_validate` / :meth:`_before_save`.
    """

    collection: ClassVar[str]
    kind: ClassVar[str]
    entity_cls: ClassVar[Any]

    def __init__(self, store: CollectionStore) -> None:
        self.store = store

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_all(self) -> list[E]:
        return [self.entity_cls.from_record(r) for r in self.store.get(self.collection)]

    def get_by_id(self, entity_id: str) -> E | None:
        for record in self.store.get(self.collection):
            if record.get("id") == entity_id:
                return self.entity_cls.from_record(record)
        return None

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def new_id(self) -> str:
        return generate_id(self.kind)

    def _append(self, entity: E) -> None:
        records = self.store.get(self.collection)
        records.append(entity.to_record())
        self.store.save(self.collection, records)
        logger.info("Created %s %s", self.kind, entity.id)

    def update(self, entity_id: str, **fields: Any) -> E:
        """Merge *fields* (attribute names) over the stored record.

        Raises
        ------
        NotFound
            If *entity_id* is absent; the collection is left untouched.
        ValidationError
            If a field is unknown or a required field becomes invalid.
        """
        unknown = sorted(set(fields) - set(self.entity_cls.FIELD_KEYS))
        if unknown:
            raise ValidationError([f"Unknown {self.kind} field: {name}" for name in unknown])
        changes = {k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS}

        def _merge(entity: E) -> E:
            for name, value in changes.items():
                setattr(entity, name, self._coerce(name, value))
            self._validate(entity)
            self._before_save(entity, changes)
            return entity

        return self._modify(entity_id, _merge)

    def _modify(self, entity_id: str, mutate: Callable[[E], E]) -> E:
        """Apply *mutate* to one record and save the collection."""
        records = self.store.get(self.collection)
        for index, record in enumerate(records):
            if record.get("id") == entity_id:
                entity = mutate(self.entity_cls.from_record(record))
                records[index] = entity.to_record()
                self.store.save(self.collection, records)
                return entity
        raise NotFound(self.kind, entity_id)

    def delete(self, entity_id: str) -> None:
        """Remove *entity_id*; a missing id is a no-op."""
        records = self.store.get(self.collection)
        kept = [r for r in records if r.get("id") != entity_id]
        if len(kept) == len(records):
            logger.debug("Delete of unknown %s %s ignored", self.kind, entity_id)
            return
        self.store.save(self.collection, kept)
        logger.info("Deleted %s %s", self.kind, entity_id)

    # -------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------
    def _coerce(self, name: str, value: Any) -> Any:
        return value

    def _validate(self, entity: E) -> None:
        return None

    def _before_save(self, entity: E, changes: dict[str, Any]) -> None:
        return None
