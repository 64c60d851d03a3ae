"""Persistence contract for agent memories and three implementations.

* ``InMemoryStore`` — volatile, per-process; loads return independent copies.
* ``FileMemoryStore`` — one JSON file per party under ``<base_dir>/<game>/``.
* ``RedisMemoryStore`` — JSON strings keyed by
  ``{prefix}:memory:{game}:{party}`` with an optional TTL.
"""

from __future__ import annotations

import asyncio
import logging
import os
from functools import partial
from pathlib import Path
from typing import Protocol
from typing import runtime_checkable

from redis.asyncio import Redis  # type: ignore[import-untyped]

from trustledger.config import StoreConfig
from trustledger.memory.serialization import deserialize_memory
from trustledger.memory.serialization import serialize_memory
from trustledger.models.game import Party
from trustledger.models.memory import AgentMemory

logger = logging.getLogger(__name__)


def memory_key(party: Party, game_id: str) -> str:
    return f"{game_id}:{party}"


@runtime_checkable
class MemoryStore(Protocol):
    """Save/load/exists/delete a memory record by (party, game)."""

    async def save(self, memory: AgentMemory) -> None: ...

    async def load(self, party: Party, game_id: str) -> AgentMemory | None: ...

    async def exists(self, party: Party, game_id: str) -> bool: ...

    async def delete(self, party: Party, game_id: str) -> None: ...


# ---------------------------------------------------------------------------
# In-process
# ---------------------------------------------------------------------------


class InMemoryStore:
    """Volatile store holding serialized documents; used in tests."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    async def save(self, memory: AgentMemory) -> None:
        self._documents[memory_key(memory.party, memory.game_id)] = serialize_memory(
            memory
        )

    async def load(self, party: Party, game_id: str) -> AgentMemory | None:
        raw = self._documents.get(memory_key(party, game_id))
        return deserialize_memory(raw) if raw is not None else None

    async def exists(self, party: Party, game_id: str) -> bool:
        return memory_key(party, game_id) in self._documents

    async def delete(self, party: Party, game_id: str) -> None:
        self._documents.pop(memory_key(party, game_id), None)

    def clear(self) -> None:
        self._documents.clear()


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------


class FileMemoryStore:
    """JSON files on disk, written atomically via a temp file.

    Blocking file operations run in ``asyncio.to_thread`` so the event
    loop keeps serving other parties. A per-file lock serializes saves,
    loads and deletes of the same record.
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        self.config = config or StoreConfig()
        self._base = Path(self.config.base_dir)
        self._locks: dict[str, asyncio.Lock] = {}

    def path_for(self, party: Party, game_id: str) -> Path:
        return self._base / game_id / f"{party}.json"

    def _lock_for(self, party: Party, game_id: str) -> asyncio.Lock:
        key = memory_key(party, game_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def save(self, memory: AgentMemory) -> None:
        path = self.path_for(memory.party, memory.game_id)
        data = serialize_memory(memory)
        async with self._lock_for(memory.party, memory.game_id):
            await asyncio.to_thread(partial(self._write, path, data))

    @staticmethod
    def _write(path: Path, data: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(data, encoding="utf-8")
        os.replace(tmp, path)

    @staticmethod
    def _read(path: Path) -> str | None:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    async def load(self, party: Party, game_id: str) -> AgentMemory | None:
        path = self.path_for(party, game_id)
        async with self._lock_for(party, game_id):
            raw = await asyncio.to_thread(self._read, path)
        return deserialize_memory(raw) if raw is not None else None

    async def exists(self, party: Party, game_id: str) -> bool:
        return await asyncio.to_thread(self.path_for(party, game_id).exists)

    async def delete(self, party: Party, game_id: str) -> None:
        path = self.path_for(party, game_id)
        async with self._lock_for(party, game_id):
            await asyncio.to_thread(partial(path.unlink, missing_ok=True))


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class RedisMemoryStore:
    """Redis-backed store, one JSON string per (game, party)."""

    def __init__(self, redis: Redis, config: StoreConfig | None = None) -> None:
        self._redis = redis
        self.config = config or StoreConfig()

    def key_for(self, party: Party, game_id: str) -> str:
        return f"{self.config.key_prefix}:memory:{game_id}:{party}"

    async def save(self, memory: AgentMemory) -> None:
        await self._redis.set(
            self.key_for(memory.party, memory.game_id),
            serialize_memory(memory),
            ex=self.config.ttl_seconds,
        )

    async def load(self, party: Party, game_id: str) -> AgentMemory | None:
        raw = await self._redis.get(self.key_for(party, game_id))
        if raw is None:
            return None
        return deserialize_memory(raw)

    async def exists(self, party: Party, game_id: str) -> bool:
        return bool(await self._redis.exists(self.key_for(party, game_id)))

    async def delete(self, party: Party, game_id: str) -> None:
        await self._redis.delete(self.key_for(party, game_id))

    async def game_parties(self, game_id: str) -> list[Party]:
        """List parties with a stored memory for *game_id*."""
        prefix = self.key_for("", game_id)
        parties: list[Party] = []
        async for key in self._redis.scan_iter(match=f"{prefix}*"):
            text = key.decode() if isinstance(key, bytes) else key
            parties.append(text[len(prefix) :])
        return sorted(parties)
