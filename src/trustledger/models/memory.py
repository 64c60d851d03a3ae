"""Pydantic models for an agent's persistent memory.

``AgentMemory`` is the aggregate root, one per (party, game).  It owns
the trust ledger, the append-only event log, commitments, strategic
notes, the two-tier turn history (recent ``TurnSummary`` records plus
compacted ``ConsolidatedBlock`` records) and the private diary.

Commitments are stored once in ``AgentMemory.commitments`` keyed by id;
``Relationship.commitment_ids`` only references them.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from datetime import timezone
from enum import Enum

from pydantic import BaseModel
from pydantic import computed_field
from pydantic import Field

from trustledger.models.game import Party
from trustledger.models.game import PhaseRef
from trustledger.models.game import Season
from trustledger.models.game import turn_ordinal
from trustledger.models.game import TurnRef

TRUST_MIN = -1.0
TRUST_MAX = 1.0
ALLY_THRESHOLD = 0.5
ENEMY_THRESHOLD = -0.5

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventType(str, Enum):
    """Classification tag of a remembered event."""

    alliance_formed = "alliance_formed"
    alliance_broken = "alliance_broken"
    betrayal = "betrayal"
    cooperation = "cooperation"
    attack = "attack"
    support_given = "support_given"
    support_received = "support_received"
    promise_made = "promise_made"
    promise_kept = "promise_kept"
    promise_broken = "promise_broken"


# Tags that materially move trust and must survive consolidation.
TRUST_AFFECTING_TYPES: frozenset[EventType] = frozenset(
    {
        EventType.betrayal,
        EventType.promise_kept,
        EventType.promise_broken,
        EventType.alliance_formed,
        EventType.alliance_broken,
    }
)

# Subset counted as betrayals in block summaries.
BETRAYAL_TYPES: frozenset[EventType] = frozenset(
    {
        EventType.betrayal,
        EventType.promise_broken,
        EventType.alliance_broken,
    }
)


class NotePriority(str, Enum):
    """Priority of a strategic note."""

    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

    @property
    def rank(self) -> int:
        """0 for critical up to 3 for low."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    NotePriority.critical: 0,
    NotePriority.high: 1,
    NotePriority.medium: 2,
    NotePriority.low: 3,
}


class DiaryEntryType(str, Enum):
    """Kind of private diary entry."""

    negotiation = "negotiation"
    orders = "orders"
    reflection = "reflection"
    consolidation = "consolidation"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class _TurnStamped(BaseModel):
    """Mixin for records pinned to a (year, season)."""

    year: int = Field(description="Game year of the record.")
    season: Season = Field(description="Season of the record.")

    @property
    def turn(self) -> TurnRef:
        return TurnRef(year=self.year, season=self.season)

    @property
    def ordinal(self) -> int:
        return turn_ordinal(self.year, self.season)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class MemoryEvent(_TurnStamped):
    """An immutable remembered fact, appended to the event log."""

    model_config = {"frozen": True}

    type: EventType = Field(description="Classification tag.")
    parties: list[Party] = Field(
        default_factory=list,
        description="Parties involved in the event.",
    )
    description: str = Field(description="Free-text description.")
    trust_delta: float = Field(
        default=0.0,
        description="Trust change applied to each involved party.",
    )

    @property
    def is_trust_affecting(self) -> bool:
        return self.type in TRUST_AFFECTING_TYPES


class TrustAffectingEvent(_TurnStamped):
    """A trust-moving fact preserved through every consolidation round."""

    model_config = {"frozen": True}

    type: EventType
    parties: list[Party] = Field(default_factory=list)
    description: str
    trust_delta: float = 0.0

    @classmethod
    def from_event(cls, event: MemoryEvent) -> TrustAffectingEvent:
        return cls(
            year=event.year,
            season=event.season,
            type=event.type,
            parties=list(event.parties),
            description=event.description,
            trust_delta=event.trust_delta,
        )

    @property
    def dedup_key(self) -> tuple[int, Season, str]:
        return (self.year, self.season, self.description)


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


class Commitment(_TurnStamped):
    """A promise from one party to another."""

    id: str = Field(default_factory=lambda: new_id("commitment"))
    from_party: Party
    to_party: Party
    description: str
    expires_year: int | None = None
    expires_season: Season | None = None
    fulfilled: bool = False
    broken: bool = False

    @property
    def is_open(self) -> bool:
        return not (self.fulfilled or self.broken)


class StrategicNote(_TurnStamped):
    """A prioritized observation; ``subject`` drives deduplication."""

    id: str = Field(default_factory=lambda: new_id("note"))
    subject: str
    content: str
    priority: NotePriority = NotePriority.medium


class Relationship(BaseModel):
    """This agent's view of one counterpart."""

    party: Party
    trust_level: float = 0.0
    last_interaction: TurnRef | None = None
    commitment_ids: list[str] = Field(
        default_factory=list,
        description="References into AgentMemory.commitments.",
    )
    notes: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_ally(self) -> bool:
        return self.trust_level >= ALLY_THRESHOLD

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_enemy(self) -> bool:
        return self.trust_level <= ENEMY_THRESHOLD


# ---------------------------------------------------------------------------
# Turn history
# ---------------------------------------------------------------------------


class TurnSummary(_TurnStamped):
    """Factual digest of one completed turn, awaiting consolidation."""

    orders_submitted: list[str] = Field(default_factory=list)
    orders_succeeded: list[str] = Field(default_factory=list)
    orders_failed: list[str] = Field(default_factory=list)
    territories_gained: list[str] = Field(default_factory=list)
    territories_lost: list[str] = Field(default_factory=list)
    units_built: int = 0
    units_lost: int = 0
    diplomatic_highlights: list[str] = Field(default_factory=list)


class ConsolidatedBlock(BaseModel):
    """A compacted span of turns replacing the summaries it was built from."""

    from_year: int
    from_season: Season
    to_year: int
    to_season: Season
    summary: str
    trust_events: list[TrustAffectingEvent] = Field(default_factory=list)
    net_territories_gained: list[str] = Field(default_factory=list)
    net_territories_lost: list[str] = Field(default_factory=list)
    consolidated_at: datetime = Field(default_factory=_utcnow)
    fallback: bool = Field(
        default=False,
        description="True when the summary came from the deterministic template.",
    )

    @property
    def from_ordinal(self) -> int:
        return turn_ordinal(self.from_year, self.from_season)

    @property
    def to_ordinal(self) -> int:
        return turn_ordinal(self.to_year, self.to_season)

    @property
    def span_label(self) -> str:
        return (
            f"{self.from_year} {self.from_season.value.upper()} - "
            f"{self.to_year} {self.to_season.value.upper()}"
        )


# ---------------------------------------------------------------------------
# Diary
# ---------------------------------------------------------------------------


class DiaryEntry(BaseModel):
    """One private diary entry, e.g. phase ``[S1901M]``."""

    phase: str
    type: DiaryEntryType
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class YearSummary(BaseModel):
    """Consolidated summary of one completed game year."""

    year: int
    summary: str
    territorial_changes: list[str] = Field(default_factory=list)
    diplomatic_changes: list[str] = Field(default_factory=list)
    consolidated_at: datetime = Field(default_factory=_utcnow)
    fallback: bool = False


# ---------------------------------------------------------------------------
# Aggregate root
# ---------------------------------------------------------------------------


class AgentMemory(BaseModel):
    """Everything one party remembers about one game."""

    party: Party
    game_id: str
    roster: list[Party] = Field(
        default_factory=list,
        description="Ordered list of every party in the game, self included.",
    )
    last_updated: PhaseRef = Field(default_factory=PhaseRef)
    trust_levels: dict[Party, float] = Field(default_factory=dict)
    relationships: dict[Party, Relationship] = Field(default_factory=dict)
    events: list[MemoryEvent] = Field(default_factory=list)
    commitments: dict[str, Commitment] = Field(
        default_factory=dict,
        description="Single owner of every tracked commitment, keyed by id.",
    )
    strategic_notes: list[StrategicNote] = Field(default_factory=list)
    strategic_goals: list[str] = Field(default_factory=list)
    territory_priorities: list[str] = Field(default_factory=list)
    current_allies: list[Party] = Field(default_factory=list)
    current_enemies: list[Party] = Field(default_factory=list)
    turn_summaries: list[TurnSummary] = Field(default_factory=list)
    consolidated_blocks: list[ConsolidatedBlock] = Field(default_factory=list)
    full_private_diary: list[DiaryEntry] = Field(default_factory=list)
    year_summaries: list[YearSummary] = Field(default_factory=list)
    current_year_diary: list[DiaryEntry] = Field(default_factory=list)

    @property
    def key(self) -> tuple[str, Party]:
        return (self.game_id, self.party)
