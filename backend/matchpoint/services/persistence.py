"""Persistence collaborator for the match store.

The store itself is synchronous and never does I/O. This module snapshots
it after every change and writes the snapshot, as JSON under one key, to an
async key/value backend. Read and write failures are logged and reported,
then degrade to an empty or in-memory state; they never reach the store.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable, Dict, Optional, Protocol

import redis.asyncio as redis
import sentry_sdk
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import REDIS_URL, STORAGE_KEY
from ..db import create_engine, create_schema, session_factory
from ..exceptions import PersistenceError, SchemaVersionError
from ..models import KeyValueEntry
from ..schemas import PersistedState
from .match_store import MatchStore
from .migrations import migrate

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqlKeyValueStore:
    """Key/value pairs in the ``kv_entry`` table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessions = session_factory(engine)

    @classmethod
    async def connect(cls, database_url: Optional[str] = None) -> "SqlKeyValueStore":
        engine = create_engine(database_url)
        await create_schema(engine)
        return cls(engine)

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self._sessions() as session:
                entry = await session.get(KeyValueEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"read of {key!r} failed: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            async with self._sessions() as session:
                entry = await session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"write of {key!r} failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            async with self._sessions() as session:
                entry = await session.get(KeyValueEntry, key)
                if entry is not None:
                    await session.delete(entry)
                    await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"delete of {key!r} failed: {exc}") from exc

    async def dispose(self) -> None:
        await self._engine.dispose()


class RedisKeyValueStore:
    def __init__(self, client: "redis.Redis") -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str = REDIS_URL) -> "RedisKeyValueStore":
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except redis.RedisError as exc:
            raise PersistenceError(f"read of {key!r} failed: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(key, value)
        except redis.RedisError as exc:
            raise PersistenceError(f"write of {key!r} failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except redis.RedisError as exc:
            raise PersistenceError(f"delete of {key!r} failed: {exc}") from exc


def _report(exc: Exception, action: str) -> None:
    logger.warning("Could not %s persisted matches: %s", action, exc)
    sentry_sdk.capture_exception(exc)


class MatchRepository:
    """Loads and saves the whole store state under one namespaced key."""

    def __init__(self, kv: KeyValueStore, key: str = STORAGE_KEY) -> None:
        self._kv = kv
        self.key = key

    async def load(self) -> Optional[PersistedState]:
        """Return the persisted state, or ``None`` if missing or unusable."""
        try:
            raw = await self._kv.get(self.key)
        except PersistenceError as exc:
            _report(exc, "read")
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("persisted state is not an object")
            return PersistedState.model_validate(migrate(data))
        except (ValueError, TypeError, KeyError, ValidationError, SchemaVersionError) as exc:
            _report(exc, "decode")
            return None

    async def save(self, state: PersistedState) -> bool:
        try:
            await self._kv.set(self.key, state.model_dump_json())
        except PersistenceError as exc:
            _report(exc, "write")
            return False
        return True

    async def clear(self) -> bool:
        try:
            await self._kv.delete(self.key)
        except PersistenceError as exc:
            _report(exc, "delete")
            return False
        return True


class MatchPersistence:
    """Keeps a :class:`MatchStore` and a :class:`MatchRepository` in sync.

    Call :meth:`hydrate` once at startup and wait for it before querying
    the store; until then the store is empty and ``ready`` is ``False``.
    Afterwards every store change schedules a save on the running event
    loop. Changes made with no loop running are written by :meth:`flush`.
    """

    def __init__(self, store: MatchStore, repository: MatchRepository) -> None:
        self.store = store
        self.repository = repository
        self.ready = False
        self._dirty = False
        self._pending: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def hydrate(self) -> bool:
        state = await self.repository.load()
        if state is not None:
            self.store.replace_state(state)
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_change)
        self.ready = True
        return state is not None

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, store: MatchStore) -> None:
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._pending is None or self._pending.done():
            self._pending = loop.create_task(self._write())

    async def flush(self) -> bool:
        pending = self._pending
        if pending is not None and not pending.done() and pending is not asyncio.current_task():
            await pending
        return await self._write()

    async def _write(self) -> bool:
        ok = True
        while self._dirty:
            self._dirty = False
            ok = await self.repository.save(self.store.export_state())
        return ok
