"""Turn-history consolidation — the two-tier memory compactor.

Turn summaries form a young tier that is replayed verbatim into
prompts.  Once it grows past ``consolidation_threshold`` the older part
is compacted into a ``ConsolidatedBlock`` (old tier) and only the most
recent ``recent_turns_to_keep`` summaries stay live.  Blocks are merged
pairwise, oldest first, to hold a constant block ceiling, and strategic
notes are merged by subject to hold a note ceiling.

Trust-affecting events are copied into a block before the summaries
they came from are dropped, which is what keeps a first-turn betrayal
answerable for the rest of the game (see ``get_all_trust_events``).

Block prose comes from the optional backend; any failure falls back to
a deterministic template, flagged with ``ConsolidatedBlock.fallback``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from itertools import chain

from trustledger.config import ConsolidationConfig
from trustledger.config import LLMConfig
from trustledger.engine.llm_adapters import LLMAdapter
from trustledger.engine.prompt_builder import as_messages
from trustledger.engine.prompt_builder import build_turn_consolidation_prompt
from trustledger.memory.ledger import mentions_betrayal
from trustledger.models.game import Party
from trustledger.models.memory import AgentMemory
from trustledger.models.memory import BETRAYAL_TYPES
from trustledger.models.memory import ConsolidatedBlock
from trustledger.models.memory import EventType
from trustledger.models.memory import MemoryEvent
from trustledger.models.memory import StrategicNote
from trustledger.models.memory import TrustAffectingEvent
from trustledger.models.memory import TurnSummary
from trustledger.observability import timed

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR = " | "

# Strip Markdown code fences wrapping a backend reply
_CODE_FENCE_RE = re.compile(
    r"^\s*```(?:\w+)?\s*\n?(.*?)\n?\s*```\s*$",
    re.DOTALL,
)

# A merged note carries one flat suffix of at most this many absorbed notes
_MAX_MERGED_EXTRAS = 3
_ALSO_RE = re.compile(r"^(.*?) \[Also: (.*)\]$", re.DOTALL)


class EmptyConsolidationError(ValueError):
    """Raised when a block is requested from zero turn summaries."""


@dataclass
class ConsolidationReport:
    """Which consolidation steps actually changed the memory."""

    turn_block: ConsolidatedBlock | None = None
    blocks_merged: int = 0
    notes_merged: bool = False

    @property
    def operations(self) -> list[str]:
        ran: list[str] = []
        if self.turn_block is not None:
            ran.append("turns")
        if self.blocks_merged:
            ran.append("blocks")
        if self.notes_merged:
            ran.append("notes")
        return ran


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def should_consolidate_turns(
    memory: AgentMemory,
    config: ConsolidationConfig | None = None,
) -> bool:
    """True iff the live turn summaries exceed the consolidation threshold."""
    threshold = (config or ConsolidationConfig()).consolidation_threshold
    return len(memory.turn_summaries) > threshold


def net_territory_changes(
    gained: list[str],
    lost: list[str],
) -> tuple[list[str], list[str]]:
    """Cancel territories present on both sides; keep first-seen order."""
    all_gained = dict.fromkeys(gained)
    all_lost = dict.fromkeys(lost)
    return (
        [t for t in all_gained if t not in all_lost],
        [t for t in all_lost if t not in all_gained],
    )


def extract_trust_events(
    summaries: list[TurnSummary],
    events: list[MemoryEvent],
    *,
    scan_highlights: bool = True,
) -> list[TrustAffectingEvent]:
    """Collect trust-affecting events inside the summaries' turn range.

    With *scan_highlights*, highlights mentioning a betrayal that have no
    matching (turn, description) event are added as synthetic betrayal
    events.  This only matters for summaries that bypassed
    ``add_turn_summary``, which classifies highlights when recorded.
    """
    if not summaries:
        return []

    ordinals = [s.ordinal for s in summaries]
    low, high = min(ordinals), max(ordinals)

    found = [
        TrustAffectingEvent.from_event(e)
        for e in events
        if e.is_trust_affecting and low <= e.ordinal <= high
    ]
    if not scan_highlights:
        return found

    seen = {e.dedup_key for e in found}
    for summary in summaries:
        for highlight in summary.diplomatic_highlights:
            key = (summary.year, summary.season, highlight)
            if key in seen or not mentions_betrayal(highlight):
                continue
            found.append(
                TrustAffectingEvent(
                    year=summary.year,
                    season=summary.season,
                    type=EventType.betrayal,
                    description=highlight,
                )
            )
            seen.add(key)
    return found


def create_fallback_block(
    summaries: list[TurnSummary],
    trust_events: list[TrustAffectingEvent],
    *,
    max_highlights: int = 3,
) -> ConsolidatedBlock:
    """Build a block from a fixed template, no backend involved."""
    if not summaries:
        raise EmptyConsolidationError("Cannot consolidate empty turn summaries")

    first, last = summaries[0], summaries[-1]
    net_gained, net_lost = _net_for(summaries)

    total_orders = sum(len(s.orders_submitted) for s in summaries)
    total_failed = sum(len(s.orders_failed) for s in summaries)
    total_built = sum(s.units_built for s in summaries)
    total_lost_units = sum(s.units_lost for s in summaries)
    highlights = [
        f"{s.turn}: {h}" for s in summaries for h in s.diplomatic_highlights
    ]

    parts = [f"{first.turn} - {last.turn}:"]
    if net_gained:
        parts.append(f"Gained {', '.join(net_gained)}.")
    if net_lost:
        parts.append(f"Lost {', '.join(net_lost)}.")
    parts.append(f"{total_orders} orders ({total_failed} failed).")
    if total_built or total_lost_units:
        parts.append(f"Units: +{total_built}/-{total_lost_units}.")
    betrayals = sum(1 for e in trust_events if e.type in BETRAYAL_TYPES)
    if betrayals:
        parts.append(f"{betrayals} betrayal(s) recorded.")
    if highlights and max_highlights > 0:
        parts.append(f"Key: {'; '.join(highlights[:max_highlights])}.")

    return _block(summaries, trust_events, " ".join(parts), fallback=True)


def parse_consolidation_response(text: str) -> str:
    """Best-effort cleanup of a backend reply; may return an empty string."""
    text = text.strip()
    match = _CODE_FENCE_RE.match(text)
    if match:
        text = match.group(1).strip()
    return text


def merge_oldest_blocks(memory: AgentMemory) -> bool:
    """Merge the two oldest blocks into one; no-op under two blocks."""
    if len(memory.consolidated_blocks) < 2:
        return False

    first, second, *rest = memory.consolidated_blocks

    trust_events = list(first.trust_events)
    for event in second.trust_events:
        if event not in trust_events:
            trust_events.append(event)

    gained, lost = net_territory_changes(
        first.net_territories_gained + second.net_territories_gained,
        first.net_territories_lost + second.net_territories_lost,
    )
    merged = ConsolidatedBlock(
        from_year=first.from_year,
        from_season=first.from_season,
        to_year=second.to_year,
        to_season=second.to_season,
        summary=f"{first.summary}{_BLOCK_SEPARATOR}{second.summary}",
        trust_events=trust_events,
        net_territories_gained=gained,
        net_territories_lost=lost,
        fallback=first.fallback or second.fallback,
    )
    memory.consolidated_blocks = [merged, *rest]
    return True


def merge_strategic_notes(memory: AgentMemory, max_notes: int = 20) -> bool:
    """Merge same-subject notes, then truncate to *max_notes* if needed.

    Within a subject group the survivor is the highest-priority note,
    most recent on ties; the others' content is appended as an
    ``[Also: ...]`` suffix.  Truncation ranks by priority, then recency,
    then insertion order, and survivors keep their relative order.
    """
    notes = memory.strategic_notes
    if len(notes) <= max_notes:
        return False

    groups: dict[str, list[StrategicNote]] = {}
    for note in notes:
        groups.setdefault(note.subject.strip().lower(), []).append(note)

    merged: list[StrategicNote] = []
    for group in groups.values():
        if len(group) == 1:
            merged.append(group[0])
            continue
        best, *others = sorted(group, key=_note_rank)
        merged.append(best.model_copy(update={"content": _merge_note_content(best, others)}))

    if len(merged) > max_notes:
        ranked = sorted(
            range(len(merged)),
            key=lambda i: (*_note_rank(merged[i]), i),
        )
        merged = [merged[i] for i in sorted(ranked[: max(max_notes, 0)])]

    memory.strategic_notes = merged
    return True


def get_all_trust_events(memory: AgentMemory) -> list[TrustAffectingEvent]:
    """Every trust-affecting event still known, oldest turn first.

    Union of the blocks' preserved events and the live event log,
    deduplicated by (turn, description).
    """
    candidates = chain(
        (e for block in memory.consolidated_blocks for e in block.trust_events),
        (TrustAffectingEvent.from_event(e) for e in memory.events if e.is_trust_affecting),
    )
    seen: set[tuple] = set()
    unique: list[TrustAffectingEvent] = []
    for event in candidates:
        if event.dedup_key in seen:
            continue
        seen.add(event.dedup_key)
        unique.append(event)
    unique.sort(key=lambda e: e.ordinal)
    return unique


def format_consolidated_memory(memory: AgentMemory) -> str:
    """Render historical blocks and recent turns as prompt text."""
    sections: list[str] = []

    if memory.consolidated_blocks:
        sections.append("## Historical Summary")
        for block in memory.consolidated_blocks:
            sections.append(f"**{block.span_label}:** {block.summary}")
            for event in block.trust_events:
                sections.append(
                    f"  ! {event.turn}: {event.description} "
                    f"[{event.type.value.upper()}]"
                )

    if memory.turn_summaries:
        sections.append("\n## Recent Turns" if sections else "## Recent Turns")
        for s in memory.turn_summaries:
            parts = [f"**{s.turn}:**"]
            if s.territories_gained:
                parts.append(f"+{', '.join(s.territories_gained)}")
            if s.territories_lost:
                parts.append(f"-{', '.join(s.territories_lost)}")
            if s.diplomatic_highlights:
                parts.append("; ".join(s.diplomatic_highlights))
            sections.append(" ".join(parts))

    return "\n".join(sections)


def _note_rank(note: StrategicNote) -> tuple[int, int]:
    return (note.priority.rank, -note.ordinal)


def _split_note_content(content: str) -> tuple[str, list[str]]:
    match = _ALSO_RE.match(content)
    if match is None:
        return content, []
    return match.group(1), match.group(2).split("; ")


def _merge_note_content(best: StrategicNote, others: list[StrategicNote]) -> str:
    """Fold *others* into *best* as one flat, bounded ``[Also: ...]`` suffix.

    Suffixes from earlier merges are flattened rather than nested, newer
    absorbed content comes first, and only ``_MAX_MERGED_EXTRAS`` distinct
    items survive, so repeated merges do not grow a note without bound.
    """
    base, previous = _split_note_content(best.content)
    extras: list[str] = []
    for note in others:
        other_base, other_extras = _split_note_content(note.content)
        extras.append(other_base)
        extras.extend(other_extras)
    extras.extend(previous)

    unique = [e for e in dict.fromkeys(extras) if e and e != base]
    if not unique:
        return base
    return f"{base} [Also: {'; '.join(unique[:_MAX_MERGED_EXTRAS])}]"


def _net_for(summaries: list[TurnSummary]) -> tuple[list[str], list[str]]:
    return net_territory_changes(
        [t for s in summaries for t in s.territories_gained],
        [t for s in summaries for t in s.territories_lost],
    )


def _block(
    summaries: list[TurnSummary],
    trust_events: list[TrustAffectingEvent],
    text: str,
    *,
    fallback: bool,
) -> ConsolidatedBlock:
    first, last = summaries[0], summaries[-1]
    net_gained, net_lost = _net_for(summaries)
    return ConsolidatedBlock(
        from_year=first.year,
        from_season=first.season,
        to_year=last.year,
        to_season=last.season,
        summary=text,
        trust_events=list(trust_events),
        net_territories_gained=net_gained,
        net_territories_lost=net_lost,
        fallback=fallback,
    )


def _fold_consumed_events(memory: AgentMemory, block: ConsolidatedBlock) -> int:
    """Drop live events the block now accounts for; return how many.

    Events inside the block's span go, as do informational events older
    than it.  Older trust-affecting events are never in a block's range,
    so they stay live.
    """
    low, high = block.from_ordinal, block.to_ordinal
    kept = [
        e
        for e in memory.events
        if e.ordinal > high or (e.ordinal < low and e.is_trust_affecting)
    ]
    dropped = len(memory.events) - len(kept)
    memory.events = kept
    return dropped


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ConsolidationEngine:
    """Runs consolidation passes, optionally backed by a completion model.

    One pass per (game, party) at a time: passes for the same memory
    are serialized by a per-key lock, passes for different parties run
    concurrently.
    """

    def __init__(
        self,
        llm: LLMAdapter | None = None,
        llm_config: LLMConfig | None = None,
        consolidation_config: ConsolidationConfig | None = None,
    ) -> None:
        self._llm = llm
        self._llm_config = llm_config or LLMConfig()
        self.config = consolidation_config or ConsolidationConfig()
        if self.config.max_consolidated_blocks < 1:
            raise ValueError("max_consolidated_blocks must be at least 1")
        if not 0 <= self.config.recent_turns_to_keep <= self.config.consolidation_threshold:
            raise ValueError(
                "recent_turns_to_keep must be between 0 and consolidation_threshold"
            )
        self._locks: dict[tuple[str, Party], asyncio.Lock] = {}

    def _lock_for(self, memory: AgentMemory) -> asyncio.Lock:
        return self._locks.setdefault(memory.key, asyncio.Lock())

    # -- block production --

    async def build_block(
        self,
        party: Party,
        summaries: list[TurnSummary],
        trust_events: list[TrustAffectingEvent],
    ) -> ConsolidatedBlock:
        """Produce a block, preferring backend prose over the template."""
        if not summaries:
            raise EmptyConsolidationError("Cannot consolidate empty turn summaries")

        if self._llm is not None:
            try:
                text = await self._summarize(party, summaries)
            except Exception:
                logger.exception(
                    "Block summary call failed for %s; using fallback", party
                )
            else:
                if text:
                    return _block(summaries, trust_events, text, fallback=False)
                logger.warning(
                    "Empty block summary from backend for %s; using fallback", party
                )

        return create_fallback_block(
            summaries,
            trust_events,
            max_highlights=self.config.max_block_highlights,
        )

    async def _summarize(self, party: Party, summaries: list[TurnSummary]) -> str:
        assert self._llm is not None
        call = self._llm.complete(
            as_messages(build_turn_consolidation_prompt(party, summaries)),
            temperature=self._llm_config.temperature,
            max_tokens=self._llm_config.max_tokens,
            timeout_seconds=self._llm_config.timeout_seconds,
        )
        timeout = self.config.backend_timeout_seconds
        completion = await (asyncio.wait_for(call, timeout) if timeout else call)
        return parse_consolidation_response(completion.text)

    # -- passes --

    async def consolidate_turn_summaries(
        self, memory: AgentMemory
    ) -> ConsolidatedBlock | None:
        """Compact older turn summaries into a block.

        Returns ``None`` and leaves memory untouched when the threshold
        is not exceeded.  Otherwise appends one block, keeps the most
        recent summaries, and merges oldest blocks down to the ceiling.
        """
        async with self._lock_for(memory):
            block = await self._consolidate_turns(memory)
            if block is not None:
                self._enforce_block_ceiling(memory)
            return block

    async def consolidate_memory(self, memory: AgentMemory) -> ConsolidationReport:
        """Run turn consolidation, block merging and note merging."""
        async with self._lock_for(memory):
            report = ConsolidationReport()
            with timed("consolidation.memory") as sample:
                report.turn_block = await self._consolidate_turns(memory)
                report.blocks_merged = self._enforce_block_ceiling(memory)
                if len(memory.strategic_notes) > self.config.max_strategic_notes:
                    report.notes_merged = merge_strategic_notes(
                        memory, self.config.max_strategic_notes
                    )
                sample.fallback = bool(report.turn_block and report.turn_block.fallback)

        if report.operations:
            logger.info(
                "Consolidated memory for %s/%s: %s",
                memory.game_id,
                memory.party,
                ", ".join(report.operations),
            )
        return report

    async def _consolidate_turns(self, memory: AgentMemory) -> ConsolidatedBlock | None:
        if not should_consolidate_turns(memory, self.config):
            return None

        keep = self.config.recent_turns_to_keep
        if keep > 0:
            older = memory.turn_summaries[:-keep]
            recent = memory.turn_summaries[-keep:]
        else:
            older, recent = list(memory.turn_summaries), []
        if not older:
            return None

        trust_events = extract_trust_events(
            older,
            memory.events,
            scan_highlights=self.config.scan_highlights_for_betrayal,
        )
        with timed("consolidation.turns") as sample:
            block = await self.build_block(memory.party, older, trust_events)
            sample.fallback = block.fallback

        memory.consolidated_blocks.append(block)
        memory.turn_summaries = recent
        if self.config.fold_consumed_events:
            folded = _fold_consumed_events(memory, block)
            logger.debug("Folded %d consumed events for %s", folded, memory.party)
        return block

    def _enforce_block_ceiling(self, memory: AgentMemory) -> int:
        merges = 0
        while len(memory.consolidated_blocks) > self.config.max_consolidated_blocks:
            if not merge_oldest_blocks(memory):
                break
            merges += 1
        return merges
