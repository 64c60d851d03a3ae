"""Per-(party, game) memory cache brokering reads and writes to a store."""

from __future__ import annotations

import asyncio
import logging

from trustledger.memory.ledger import create_initial_memory
from trustledger.memory.store import memory_key
from trustledger.memory.store import MemoryStore
from trustledger.models.game import DEFAULT_ROSTER
from trustledger.models.game import Party
from trustledger.models.memory import AgentMemory
from trustledger.observability import timed

logger = logging.getLogger(__name__)


class MemoryManager:
    """Cache one ``AgentMemory`` per key, loading or creating on first use.

    Concurrent first accesses to the same key are single-flighted by a
    per-key ``asyncio.Lock``: exactly one load/create happens and every
    caller receives the same instance.
    """

    def __init__(
        self,
        store: MemoryStore,
        *,
        roster: tuple[Party, ...] | list[Party] = DEFAULT_ROSTER,
    ) -> None:
        self._store = store
        self._roster = tuple(roster)
        self._memories: dict[str, AgentMemory] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def get_memory(self, party: Party, game_id: str) -> AgentMemory:
        key = memory_key(party, game_id)
        cached = self._memories.get(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._memories.get(key)
            if cached is not None:
                return cached

            with timed("store.load"):
                stored = await self._store.load(party, game_id)

            if stored is not None:
                logger.debug("Loaded memory for %s", key)
                memory = stored
            else:
                logger.debug("Creating memory for %s", key)
                memory = create_initial_memory(party, game_id, self._roster)
            self._memories[key] = memory
            return memory

    async def save_memory(self, memory: AgentMemory) -> None:
        """Cache *memory* and write it through to the store."""
        self._memories[memory_key(memory.party, memory.game_id)] = memory
        with timed("store.save"):
            await self._store.save(memory)

    async def save_all(self) -> None:
        """Persist every cached memory concurrently."""
        await asyncio.gather(*(self.save_memory(m) for m in list(self._memories.values())))

    def cached_keys(self) -> list[str]:
        return sorted(self._memories)

    def clear_cache(self) -> None:
        """Forget cached memories; persistent storage is untouched."""
        self._memories.clear()
        self._locks.clear()
