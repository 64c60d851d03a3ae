"""Trust and relationship ledger — mutators over ``AgentMemory``.

Every trust change flows through ``update_trust`` which clamps to
[-1, 1]; ``record_event`` is the only path by which events move trust.
Ledger anomalies (unknown parties, unknown commitment ids, NaN deltas)
are logged and ignored so a misbehaving caller cannot halt a game.
"""

from __future__ import annotations

import logging
import math

from trustledger.models.game import DEFAULT_ROSTER
from trustledger.models.game import OrderResult
from trustledger.models.game import Party
from trustledger.models.game import Phase
from trustledger.models.game import PhaseRef
from trustledger.models.game import Season
from trustledger.models.game import turn_ordinal
from trustledger.models.game import TurnRef
from trustledger.models.memory import AgentMemory
from trustledger.models.memory import Commitment
from trustledger.models.memory import EventType
from trustledger.models.memory import MemoryEvent
from trustledger.models.memory import NotePriority
from trustledger.models.memory import Relationship
from trustledger.models.memory import StrategicNote
from trustledger.models.memory import TRUST_MAX
from trustledger.models.memory import TRUST_MIN
from trustledger.models.memory import TurnSummary

logger = logging.getLogger(__name__)

PROMISE_KEPT_DELTA = 0.1
PROMISE_BROKEN_DELTA = -0.3

# Highlight keywords classified as betrayals when a summary is recorded.
BETRAYAL_KEYWORDS: tuple[str, ...] = ("betray", "broken", "stab")

_HIGH_PRIORITIES = {NotePriority.high, NotePriority.critical}


def clamp_trust(value: float) -> float:
    return max(TRUST_MIN, min(TRUST_MAX, value))


def mentions_betrayal(text: str) -> bool:
    lower = text.lower()
    return any(word in lower for word in BETRAYAL_KEYWORDS)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def create_initial_memory(
    party: Party,
    game_id: str,
    roster: tuple[Party, ...] | list[Party] = DEFAULT_ROSTER,
) -> AgentMemory:
    """Create a fresh memory with neutral trust toward every other party."""
    if party not in roster:
        raise ValueError(f"party {party!r} is not in the roster {list(roster)}")

    others = [p for p in roster if p != party]
    return AgentMemory(
        party=party,
        game_id=game_id,
        roster=list(roster),
        trust_levels={p: 0.0 for p in others},
        relationships={p: Relationship(party=p) for p in others},
    )


# ---------------------------------------------------------------------------
# Trust
# ---------------------------------------------------------------------------


def update_trust(
    memory: AgentMemory,
    target: Party,
    delta: float,
    turn: TurnRef,
) -> float | None:
    """Apply *delta* to the trust toward *target* and return the new level.

    The result is clamped to [-1, 1].  Ally and enemy sets are recomputed
    by scanning every relationship in roster order.
    """
    if target == memory.party:
        logger.warning("Ignoring self-targeted trust change for %s", target)
        return None
    relationship = memory.relationships.get(target)
    if relationship is None:
        logger.warning(
            "Ignoring trust change for %s: not a counterpart of %s",
            target,
            memory.party,
        )
        return None
    if math.isnan(delta):
        logger.warning("Ignoring NaN trust delta for %s", target)
        delta = 0.0

    new_trust = clamp_trust(memory.trust_levels.get(target, 0.0) + delta)
    memory.trust_levels[target] = new_trust
    relationship.trust_level = new_trust
    relationship.last_interaction = turn

    _recompute_alignment(memory)
    return new_trust


def _recompute_alignment(memory: AgentMemory) -> None:
    allies: list[Party] = []
    enemies: list[Party] = []
    for party in memory.roster:
        rel = memory.relationships.get(party)
        if rel is None:
            continue
        if rel.is_ally:
            allies.append(party)
        elif rel.is_enemy:
            enemies.append(party)
    memory.current_allies = allies
    memory.current_enemies = enemies


def record_event(
    memory: AgentMemory,
    turn: TurnRef,
    event_type: EventType,
    parties: list[Party],
    description: str,
    trust_delta: float = 0.0,
) -> MemoryEvent:
    """Append an event and apply *trust_delta* to each involved counterpart."""
    event = MemoryEvent(
        year=turn.year,
        season=turn.season,
        type=event_type,
        parties=list(parties),
        description=description,
        trust_delta=trust_delta,
    )
    memory.events.append(event)

    for party in dict.fromkeys(event.parties):
        if party != memory.party:
            update_trust(memory, party, trust_delta, turn)
    return event


# ---------------------------------------------------------------------------
# Commitments
# ---------------------------------------------------------------------------


def add_commitment(
    memory: AgentMemory,
    *,
    turn: TurnRef,
    from_party: Party,
    to_party: Party,
    description: str,
    expires: TurnRef | None = None,
) -> Commitment:
    """Store a commitment once and reference it from the counterpart."""
    commitment = Commitment(
        year=turn.year,
        season=turn.season,
        from_party=from_party,
        to_party=to_party,
        description=description,
        expires_year=expires.year if expires else None,
        expires_season=expires.season if expires else None,
    )
    memory.commitments[commitment.id] = commitment

    # The counterpart is whichever side is not us
    counterpart = to_party if to_party != memory.party else from_party
    relationship = memory.relationships.get(counterpart)
    if relationship is not None:
        relationship.commitment_ids.append(commitment.id)
    return commitment


def _lookup_commitment(memory: AgentMemory, commitment_id: str) -> Commitment | None:
    commitment = memory.commitments.get(commitment_id)
    if commitment is None:
        logger.warning("Unknown commitment id %s for %s", commitment_id, memory.party)
    return commitment


def fulfill_commitment(
    memory: AgentMemory,
    commitment_id: str,
    turn: TurnRef,
) -> Commitment | None:
    """Mark a commitment kept and raise trust by a fixed amount."""
    commitment = _lookup_commitment(memory, commitment_id)
    if commitment is None:
        return None
    commitment.fulfilled = True
    record_event(
        memory,
        turn,
        EventType.promise_kept,
        [commitment.from_party, commitment.to_party],
        f"Commitment fulfilled: {commitment.description}",
        PROMISE_KEPT_DELTA,
    )
    return commitment


def break_commitment(
    memory: AgentMemory,
    commitment_id: str,
    turn: TurnRef,
) -> Commitment | None:
    """Mark a commitment broken and lower trust by a fixed amount."""
    commitment = _lookup_commitment(memory, commitment_id)
    if commitment is None:
        return None
    commitment.broken = True
    record_event(
        memory,
        turn,
        EventType.promise_broken,
        [commitment.from_party, commitment.to_party],
        f"Commitment broken: {commitment.description}",
        PROMISE_BROKEN_DELTA,
    )
    return commitment


def cleanup_expired_commitments(memory: AgentMemory, turn: TurnRef) -> list[str]:
    """Drop settled commitments and those expiring on or before *turn*.

    Returns the removed ids.  Relationship references are pruned too.
    """
    current = turn.ordinal
    removed: list[str] = []
    for commitment_id, commitment in list(memory.commitments.items()):
        expired = False
        if commitment.expires_year is not None:
            expires_order = turn_ordinal(
                commitment.expires_year,
                commitment.expires_season or Season.winter,
            )
            expired = expires_order <= current
        if not commitment.is_open or expired:
            del memory.commitments[commitment_id]
            removed.append(commitment_id)

    if removed:
        gone = set(removed)
        for relationship in memory.relationships.values():
            relationship.commitment_ids = [
                cid for cid in relationship.commitment_ids if cid not in gone
            ]
    return removed


def active_commitments(memory: AgentMemory) -> list[Commitment]:
    return list(memory.commitments.values())


def relationship_commitments(memory: AgentMemory, party: Party) -> list[Commitment]:
    relationship = memory.relationships.get(party)
    if relationship is None:
        return []
    return [
        memory.commitments[cid]
        for cid in relationship.commitment_ids
        if cid in memory.commitments
    ]


# ---------------------------------------------------------------------------
# Notes and turn history
# ---------------------------------------------------------------------------


def add_strategic_note(
    memory: AgentMemory,
    *,
    turn: TurnRef,
    subject: str,
    content: str,
    priority: NotePriority = NotePriority.medium,
) -> StrategicNote:
    """Append a note verbatim; capping is the consolidation engine's job."""
    note = StrategicNote(
        year=turn.year,
        season=turn.season,
        subject=subject,
        content=content,
        priority=priority,
    )
    memory.strategic_notes.append(note)
    return note


def add_turn_summary(memory: AgentMemory, summary: TurnSummary) -> None:
    """Append a turn summary and tag betrayal highlights as explicit events.

    Each highlight mentioning a betrayal is recorded once, here, as a
    zero-delta ``betrayal`` event so consolidation does not have to
    sniff free text later.
    """
    memory.turn_summaries.append(summary)

    known = {
        (e.year, e.season, e.description)
        for e in memory.events
        if e.type is EventType.betrayal
    }
    for highlight in summary.diplomatic_highlights:
        key = (summary.year, summary.season, highlight)
        if key in known or not mentions_betrayal(highlight):
            continue
        record_event(memory, summary.turn, EventType.betrayal, [], highlight, 0.0)
        known.add(key)


def build_turn_summary(
    year: int,
    season: Season,
    order_results: list[OrderResult],
    *,
    centers_before: list[str],
    centers_after: list[str],
    units_before: int,
    units_after: int,
    highlights: list[str] | None = None,
) -> TurnSummary:
    """Digest adjudicator output for one turn into a ``TurnSummary``."""
    before = set(centers_before)
    after = set(centers_after)
    unit_delta = units_after - units_before
    return TurnSummary(
        year=year,
        season=season,
        orders_submitted=[r.order for r in order_results],
        orders_succeeded=[r.order for r in order_results if r.success],
        orders_failed=[r.order for r in order_results if not r.success],
        territories_gained=[c for c in centers_after if c not in before],
        territories_lost=[c for c in centers_before if c not in after],
        units_built=max(unit_delta, 0),
        units_lost=max(-unit_delta, 0),
        diplomatic_highlights=list(highlights or []),
    )


def update_memory_timestamp(
    memory: AgentMemory,
    year: int,
    season: Season,
    phase: Phase,
) -> None:
    memory.last_updated = PhaseRef(year=year, season=season, phase=phase)


# ---------------------------------------------------------------------------
# Read helpers for prompt building
# ---------------------------------------------------------------------------


def get_trust_description(trust: float) -> str:
    """Convert a trust level to a human-readable band."""
    if trust >= 0.8:
        return "Very High"
    if trust >= 0.5:
        return "High"
    if trust >= 0.2:
        return "Moderate"
    if trust >= -0.2:
        return "Neutral"
    if trust >= -0.5:
        return "Low"
    if trust >= -0.8:
        return "Very Low"
    return "Hostile"


def get_relationship_summary(memory: AgentMemory) -> str:
    """Render one line per counterpart, plus open-commitment counts."""
    lines: list[str] = []
    for party, rel in memory.relationships.items():
        status = " (ALLY)" if rel.is_ally else " (ENEMY)" if rel.is_enemy else ""
        lines.append(
            f"- {party}: Trust {rel.trust_level:.2f} "
            f"({get_trust_description(rel.trust_level)}){status}"
        )
        open_count = sum(1 for c in relationship_commitments(memory, party) if c.is_open)
        if open_count:
            lines.append(f"  Active commitments: {open_count}")
    return "\n".join(lines)


def get_recent_events(memory: AgentMemory, count: int = 10) -> list[MemoryEvent]:
    return memory.events[-count:] if count > 0 else []


def get_high_priority_notes(memory: AgentMemory) -> list[StrategicNote]:
    return [n for n in memory.strategic_notes if n.priority in _HIGH_PRIORITIES]


def estimate_tokens(text: str) -> int:
    """Rough token estimate at four characters per token."""
    return math.ceil(len(text) / 4)
