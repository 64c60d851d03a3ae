"""Per-party agent sessions for one game.

A session pairs a party's ``AgentMemory`` (shared through the
``MemoryManager`` cache) with its own ``ConversationWindow``.  Sessions
of different parties share nothing mutable.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from typing import Any

from trustledger.config import ConversationConfig
from trustledger.conversation.window import ConversationWindow
from trustledger.engine.llm_adapters import LLMAdapter
from trustledger.memory.manager import MemoryManager
from trustledger.memory.store import MemoryStore
from trustledger.models.conversation import ConversationMessage
from trustledger.models.conversation import Role
from trustledger.models.game import DEFAULT_ROSTER
from trustledger.models.game import Party
from trustledger.models.memory import AgentMemory

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AgentSession:
    """One party's live state within a game."""

    party: Party
    memory: AgentMemory
    window: ConversationWindow
    id: str = field(default_factory=lambda: f"session_{uuid.uuid4().hex}")
    created_at: datetime = field(default_factory=_utcnow)
    last_active_at: datetime = field(default_factory=_utcnow)
    is_active: bool = True

    @property
    def messages(self) -> list[ConversationMessage]:
        return self.window.messages


class AgentSessionManager:
    """Creates and tracks one ``AgentSession`` per party.

    Operations addressed to a party without a session are ignored and
    logged, matching how the ledger treats unknown parties.
    """

    def __init__(
        self,
        game_id: str,
        store: MemoryStore,
        llm: LLMAdapter | None = None,
        conversation_config: ConversationConfig | None = None,
        *,
        roster: tuple[Party, ...] | list[Party] = DEFAULT_ROSTER,
    ) -> None:
        self.game_id = game_id
        self.llm = llm
        self.conversation_config = conversation_config or ConversationConfig()
        self.roster = tuple(roster)
        self.memory_manager = MemoryManager(store, roster=self.roster)
        self._sessions: dict[Party, AgentSession] = {}

    # -- lifecycle --

    async def create_session(self, party: Party) -> AgentSession:
        memory = await self.memory_manager.get_memory(party, self.game_id)
        session = AgentSession(
            party=party,
            memory=memory,
            window=ConversationWindow(self.conversation_config),
        )
        self._sessions[party] = session
        logger.info("Created session %s for %s in %s", session.id, party, self.game_id)
        return session

    async def create_all_sessions(self) -> dict[Party, AgentSession]:
        return {party: await self.create_session(party) for party in self.roster}

    def get_session(self, party: Party) -> AgentSession | None:
        return self._sessions.get(party)

    def get_all_sessions(self) -> list[AgentSession]:
        """Active sessions only."""
        return [s for s in self._sessions.values() if s.is_active]

    def deactivate_session(self, party: Party) -> None:
        session = self._require(party)
        if session is not None:
            session.is_active = False

    def reactivate_session(self, party: Party) -> None:
        session = self._require(party)
        if session is not None:
            session.is_active = True

    def destroy_session(self, party: Party) -> None:
        self._sessions.pop(party, None)

    def destroy_all(self) -> None:
        for session in self._sessions.values():
            session.window.clear(keep_system=False)
            session.is_active = False
        self._sessions.clear()

    # -- conversation --

    def add_message(
        self, party: Party, role: Role | str, content: str
    ) -> list[ConversationMessage]:
        """Append to the party's window; return any evicted messages."""
        session = self._require(party)
        if session is None:
            return []
        session.last_active_at = _utcnow()
        return session.window.append(role, content)

    def clear_history(self, party: Party, keep_system: bool = True) -> None:
        session = self._require(party)
        if session is not None:
            session.window.clear(keep_system=keep_system)

    # -- memory --

    async def update_memory(self, party: Party, **updates: Any) -> None:
        """Assign memory fields by name, then persist the memory."""
        session = self._require(party)
        if session is None:
            return
        unknown = set(updates) - set(AgentMemory.model_fields)
        if unknown:
            raise ValueError(f"Unknown memory fields: {sorted(unknown)}")
        for name, value in updates.items():
            setattr(session.memory, name, value)
        await self.memory_manager.save_memory(session.memory)

    async def save_all_memories(self) -> None:
        await self.memory_manager.save_all()

    def get_stats(self) -> dict[str, Any]:
        sessions = list(self._sessions.values())
        return {
            "game_id": self.game_id,
            "total_sessions": len(sessions),
            "active_sessions": sum(1 for s in sessions if s.is_active),
            "total_messages": sum(len(s.window) for s in sessions),
            "sessions_by_party": {
                s.party: {
                    "is_active": s.is_active,
                    "message_count": len(s.window),
                    "evicted_count": s.window.evicted_count,
                    "estimated_tokens": s.window.estimated_tokens(),
                    "last_active": s.last_active_at.isoformat(),
                }
                for s in sessions
            },
        }

    def _require(self, party: Party) -> AgentSession | None:
        session = self._sessions.get(party)
        if session is None:
            logger.warning("No session for %s in %s; ignoring", party, self.game_id)
        return session
