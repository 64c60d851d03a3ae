"""Models domain — game coordinates, agent memory and conversation types."""

from __future__ import annotations

from trustledger.models.conversation import Completion
from trustledger.models.conversation import ConversationMessage
from trustledger.models.conversation import Role
from trustledger.models.conversation import TokenUsage
from trustledger.models.game import DEFAULT_ROSTER
from trustledger.models.game import OrderResult
from trustledger.models.game import Party
from trustledger.models.game import Phase
from trustledger.models.game import PhaseRef
from trustledger.models.game import Season
from trustledger.models.game import turn_ordinal
from trustledger.models.game import TurnRef
from trustledger.models.memory import AgentMemory
from trustledger.models.memory import ALLY_THRESHOLD
from trustledger.models.memory import BETRAYAL_TYPES
from trustledger.models.memory import Commitment
from trustledger.models.memory import ConsolidatedBlock
from trustledger.models.memory import DiaryEntry
from trustledger.models.memory import DiaryEntryType
from trustledger.models.memory import ENEMY_THRESHOLD
from trustledger.models.memory import EventType
from trustledger.models.memory import MemoryEvent
from trustledger.models.memory import NotePriority
from trustledger.models.memory import Relationship
from trustledger.models.memory import StrategicNote
from trustledger.models.memory import TRUST_AFFECTING_TYPES
from trustledger.models.memory import TRUST_MAX
from trustledger.models.memory import TRUST_MIN
from trustledger.models.memory import TrustAffectingEvent
from trustledger.models.memory import TurnSummary
from trustledger.models.memory import YearSummary

__all__ = [
    # Game
    "DEFAULT_ROSTER",
    "OrderResult",
    "Party",
    "Phase",
    "PhaseRef",
    "Season",
    "TurnRef",
    "turn_ordinal",
    # Memory
    "ALLY_THRESHOLD",
    "AgentMemory",
    "BETRAYAL_TYPES",
    "Commitment",
    "ConsolidatedBlock",
    "DiaryEntry",
    "DiaryEntryType",
    "ENEMY_THRESHOLD",
    "EventType",
    "MemoryEvent",
    "NotePriority",
    "Relationship",
    "StrategicNote",
    "TRUST_AFFECTING_TYPES",
    "TRUST_MAX",
    "TRUST_MIN",
    "TrustAffectingEvent",
    "TurnSummary",
    "YearSummary",
    # Conversation
    "Completion",
    "ConversationMessage",
    "Role",
    "TokenUsage",
]
