"""Memory domain — ledger mutators, persistence and the memory cache."""

from trustledger.memory.ledger import add_commitment
from trustledger.memory.ledger import add_strategic_note
from trustledger.memory.ledger import add_turn_summary
from trustledger.memory.ledger import break_commitment
from trustledger.memory.ledger import build_turn_summary
from trustledger.memory.ledger import cleanup_expired_commitments
from trustledger.memory.ledger import create_initial_memory
from trustledger.memory.ledger import fulfill_commitment
from trustledger.memory.ledger import get_relationship_summary
from trustledger.memory.ledger import record_event
from trustledger.memory.ledger import update_trust
from trustledger.memory.manager import MemoryManager
from trustledger.memory.serialization import deserialize_memory
from trustledger.memory.serialization import serialize_memory
from trustledger.memory.store import FileMemoryStore
from trustledger.memory.store import InMemoryStore
from trustledger.memory.store import MemoryStore
from trustledger.memory.store import RedisMemoryStore

__all__ = [
    "FileMemoryStore",
    "InMemoryStore",
    "MemoryManager",
    "MemoryStore",
    "RedisMemoryStore",
    "add_commitment",
    "add_strategic_note",
    "add_turn_summary",
    "break_commitment",
    "build_turn_summary",
    "cleanup_expired_commitments",
    "create_initial_memory",
    "deserialize_memory",
    "fulfill_commitment",
    "get_relationship_summary",
    "record_event",
    "serialize_memory",
    "update_trust",
]
