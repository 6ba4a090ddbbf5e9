from __future__ import annotations

import copy
import logging
from threading import Lock
from typing import Any, Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flexform.models.common import utcnow
from flexform.models.kv_entry import KeyValueEntry

_LOG = logging.getLogger("flexform.kv")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    def __init__(self):
        self._data: dict[str, Any] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            value = self._data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data.keys())


class SqlKeyValueStore:
    """Key/value persistence on top of the ``kv_entries`` table.

    Writes are last-writer-wins: two portals saving the same draft key simply
    overwrite each other.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Any | None:
        with self.session_factory() as db:
            row = db.get(KeyValueEntry, key)
            return None if row is None else row.value

    def set(self, key: str, value: Any) -> None:
        with self.session_factory() as db:
            row = db.get(KeyValueEntry, key)
            if row is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                row.value = value
                row.updated_at = utcnow()
                db.add(row)
            db.commit()

    def delete(self, key: str) -> None:
        with self.session_factory() as db:
            row = db.get(KeyValueEntry, key)
            if row is None:
                return
            db.delete(row)
            db.commit()


_cached_store: KeyValueStore | None = None


def _build_store() -> KeyValueStore:
    from flexform.db.session import SessionLocal, engine

    try:
        KeyValueEntry.__table__.create(bind=engine, checkfirst=True)
        return SqlKeyValueStore(SessionLocal)
    except SQLAlchemyError:
        _LOG.warning("kv_entries table unavailable; fallback to in-memory key/value store")
        return InMemoryKeyValueStore()


def get_kv_store() -> KeyValueStore:
    global _cached_store
    if _cached_store is None:
        _cached_store = _build_store()
    return _cached_store


def reset_kv_store_for_tests() -> None:
    global _cached_store
    _cached_store = None
