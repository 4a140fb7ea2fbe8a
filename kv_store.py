"""Key/value storage used by the game store.

The game keeps all state as JSON values under string keys plus two kinds of
collections: sets (team ids of a session) and append-only lists (decision
ids). ``SqlKeyValueStore`` persists through SQLAlchemy; ``MemoryKeyValueStore``
keeps everything in process and is used by tests and local development.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from models import KVEntry, KVListItem, KVSetMember

logger = logging.getLogger(__name__)


def resolve_range(items: List[str], start: int, end: int) -> List[str]:
    """Redis LRANGE semantics: inclusive end, negative indices count from the back."""
    size = len(items)
    lo = max(size + start, 0) if start < 0 else min(start, size)
    hi = min(size + end if end < 0 else end, size - 1)
    if hi < lo:
        return []
    return items[lo : hi + 1]


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def sadd(self, key: str, member: str) -> int:
        """Add ``member`` to the set; returns 1 if it was new, else 0."""

    @abstractmethod
    def smembers(self, key: str) -> List[str]:
        ...

    @abstractmethod
    def rpush(self, key: str, value: str) -> int:
        """Append to the list; returns the new length."""

    @abstractmethod
    def lrange(self, key: str, start: int, end: int) -> List[str]:
        ...


class MemoryKeyValueStore(KeyValueStore):
    """In-process store. Values are JSON round-tripped like the SQL backend."""

    def __init__(self):
        self._values: Dict[str, str] = {}
        self._sets: Dict[str, List[str]] = {}
        self._lists: Dict[str, List[str]] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._values.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._values[key] = json.dumps(value)

    def sadd(self, key: str, member: str) -> int:
        members = self._sets.setdefault(key, [])
        if member in members:
            return 0
        members.append(member)
        return 1

    def smembers(self, key: str) -> List[str]:
        return list(self._sets.get(key, []))

    def rpush(self, key: str, value: str) -> int:
        items = self._lists.setdefault(key, [])
        items.append(value)
        return len(items)

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        return resolve_range(self._lists.get(key, []), start, end)


class SqlKeyValueStore(KeyValueStore):
    """Durable store on the ``kv_*`` tables. One short transaction per call."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _write(self, op: str, key: str, fn):
        db = self._session_factory()
        try:
            result = fn(db)
            db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("KV %s failed for %s: %s", op, key, e)
            raise
        finally:
            db.close()

    def get(self, key: str) -> Optional[Any]:
        db = self._session_factory()
        try:
            entry = db.get(KVEntry, key)
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        def _do(db):
            entry = db.get(KVEntry, key)
            if entry is None:
                db.add(KVEntry(key=key, value=value))
            else:
                entry.value = value

        self._write("set", key, _do)

    def sadd(self, key: str, member: str) -> int:
        def _do(db):
            exists = db.execute(
                select(KVSetMember.id).where(KVSetMember.key == key, KVSetMember.member == member)
            ).first()
            if exists:
                return 0
            db.add(KVSetMember(key=key, member=member))
            return 1

        return self._write("sadd", key, _do)

    def smembers(self, key: str) -> List[str]:
        db = self._session_factory()
        try:
            rows = db.execute(
                select(KVSetMember.member).where(KVSetMember.key == key).order_by(KVSetMember.id)
            )
            return [row[0] for row in rows]
        finally:
            db.close()

    def rpush(self, key: str, value: str) -> int:
        def _do(db):
            last = db.execute(select(func.max(KVListItem.position)).where(KVListItem.key == key)).scalar()
            position = 0 if last is None else last + 1
            db.add(KVListItem(key=key, position=position, value=value))
            return position + 1

        return self._write("rpush", key, _do)

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        db = self._session_factory()
        try:
            rows = db.execute(
                select(KVListItem.value).where(KVListItem.key == key).order_by(KVListItem.position)
            )
            return resolve_range([row[0] for row in rows], start, end)
        finally:
            db.close()


def create_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build the store selected by ``KV_BACKEND`` (``sql`` or ``memory``)."""
    backend = (backend or os.getenv("KV_BACKEND", "sql")).lower()
    if backend == "memory":
        logger.info("Using in-memory key/value store; state is lost on restart")
        return MemoryKeyValueStore()
    if backend != "sql":
        raise ValueError(f"Unknown KV_BACKEND {backend!r}")

    from database import SessionLocal

    return SqlKeyValueStore(SessionLocal)
