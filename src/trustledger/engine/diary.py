"""Private diary with year-end consolidation.

Two layers: ``full_private_diary`` is the permanent, unabridged record;
``current_year_diary`` holds the entries of the year in progress.  After
the year's last build phase the current-year entries are folded into a
``YearSummary`` and cleared, so prompt context stays proportional to one
year of detail plus one line per past year.
"""

from __future__ import annotations

import logging
import re

from trustledger.config import DiaryConfig
from trustledger.config import LLMConfig
from trustledger.engine.llm_adapters import LLMAdapter
from trustledger.engine.prompt_builder import as_messages
from trustledger.engine.prompt_builder import build_diary_consolidation_prompt
from trustledger.memory.ledger import estimate_tokens
from trustledger.models.game import Phase
from trustledger.models.game import Season
from trustledger.models.memory import AgentMemory
from trustledger.models.memory import DiaryEntry
from trustledger.models.memory import DiaryEntryType
from trustledger.models.memory import YearSummary
from trustledger.observability import timed

logger = logging.getLogger(__name__)

_SUMMARY_RE = re.compile(r"SUMMARY:\s*(.+?)(?=TERRITORIAL:|$)", re.DOTALL)
_TERRITORIAL_RE = re.compile(r"TERRITORIAL:\s*(.+?)(?=DIPLOMATIC:|$)", re.DOTALL)
_DIPLOMATIC_RE = re.compile(r"DIPLOMATIC:\s*(.+?)$", re.DOTALL)
_PHASE_ID_RE = re.compile(r"\[([SFW])(\d{4})")

# Phases after which a year counts as finished.
_YEAR_END = {(Season.fall, Phase.build), (Season.winter, Phase.build)}


def format_phase_id(year: int, season: Season, phase: Phase) -> str:
    """``(1901, spring, movement)`` -> ``"[S1901M]"``."""
    return f"[{Season(season).code}{year}{Phase(phase).code}]"


def year_from_phase_id(phase_id: str) -> int | None:
    match = _PHASE_ID_RE.match(phase_id)
    return int(match.group(2)) if match else None


def create_diary_entry(
    year: int,
    season: Season,
    phase: Phase,
    entry_type: DiaryEntryType,
    content: str,
) -> DiaryEntry:
    return DiaryEntry(
        phase=format_phase_id(year, season, phase),
        type=entry_type,
        content=content,
    )


def add_diary_entry(memory: AgentMemory, entry: DiaryEntry) -> None:
    """Record *entry* in both the permanent and the current-year diary."""
    memory.full_private_diary.append(entry)
    memory.current_year_diary.append(entry)


def should_consolidate_diary(
    year: int,
    season: Season,
    phase: Phase,
    memory: AgentMemory,
) -> bool:
    """True once per finished year that has unconsolidated entries."""
    if (Season(season), Phase(phase)) not in _YEAR_END:
        return False
    if any(s.year == year for s in memory.year_summaries):
        return False
    return bool(memory.current_year_diary)


def parse_year_summary_response(response: str, year: int) -> YearSummary:
    """Parse a ``SUMMARY:/TERRITORIAL:/DIPLOMATIC:`` reply field by field.

    A missing summary field becomes ``"Year N completed."`` when the
    reply is otherwise structured, and the raw reply when it is not.
    Missing or ``None`` list fields parse as empty lists.
    """
    summary_match = _SUMMARY_RE.search(response)
    territorial_match = _TERRITORIAL_RE.search(response)
    diplomatic_match = _DIPLOMATIC_RE.search(response)

    structured = bool(summary_match or territorial_match or diplomatic_match)
    summary = summary_match.group(1).strip() if summary_match else ""
    if not summary:
        summary = f"Year {year} completed." if structured else response.strip()

    return YearSummary(
        year=year,
        summary=summary,
        territorial_changes=_split_field(territorial_match),
        diplomatic_changes=_split_field(diplomatic_match),
    )


def _split_field(match: re.Match[str] | None) -> list[str]:
    text = match.group(1).strip() if match else ""
    if not text or text.strip('"').lower() == "none":
        return []
    return [part.strip() for part in text.split(",") if part.strip()]


def create_fallback_year_summary(year: int, entries: list[DiaryEntry]) -> YearSummary:
    negotiations = sum(1 for e in entries if e.type is DiaryEntryType.negotiation)
    orders = sum(1 for e in entries if e.type is DiaryEntryType.orders)
    return YearSummary(
        year=year,
        summary=(
            f"Year {year}: {negotiations} diplomatic exchanges, "
            f"{orders} order phases completed."
        ),
        fallback=True,
    )


def get_context_diary(memory: AgentMemory, max_entries: int = 10) -> str:
    """Render past-year summaries plus the latest current-year entries."""
    sections: list[str] = []

    if memory.year_summaries:
        sections.append("## Past Years Summary")
        for summary in memory.year_summaries:
            sections.append(f"**Year {summary.year}:** {summary.summary}")
            if summary.territorial_changes:
                sections.append(f"  Territorial: {', '.join(summary.territorial_changes)}")
            if summary.diplomatic_changes:
                sections.append(f"  Diplomatic: {', '.join(summary.diplomatic_changes)}")

    entries = memory.current_year_diary
    if entries:
        sections.append("\n## Current Year Diary" if sections else "## Current Year Diary")
        recent = entries[-max_entries:] if max_entries > 0 else []
        for entry in recent:
            sections.append(f"{entry.phase} [{entry.type.value}]: {entry.content}")
        hidden = len(entries) - len(recent)
        if hidden > 0:
            sections.append(f"... and {hidden} earlier entries this year")

    return "\n".join(sections)


def get_diary_stats(memory: AgentMemory, max_entries: int = 10) -> dict[str, int]:
    return {
        "full_diary_entries": len(memory.full_private_diary),
        "year_summaries": len(memory.year_summaries),
        "current_year_entries": len(memory.current_year_diary),
        "estimated_tokens": estimate_tokens(get_context_diary(memory, max_entries)),
    }


class DiaryConsolidator:
    """Folds a finished year's diary entries into a ``YearSummary``."""

    def __init__(
        self,
        llm: LLMAdapter | None = None,
        llm_config: LLMConfig | None = None,
        diary_config: DiaryConfig | None = None,
    ) -> None:
        self._llm = llm
        self._llm_config = llm_config or LLMConfig()
        self.config = diary_config or DiaryConfig()

    async def summarize_year(self, year: int, entries: list[DiaryEntry]) -> YearSummary:
        """Summarize *entries* without touching memory."""
        if not entries:
            return YearSummary(
                year=year,
                summary=f"Year {year}: No significant events recorded.",
                fallback=True,
            )
        if self._llm is None:
            return create_fallback_year_summary(year, entries)

        try:
            completion = await self._llm.complete(
                as_messages(build_diary_consolidation_prompt(year, entries)),
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                timeout_seconds=self._llm_config.timeout_seconds,
            )
            text = completion.text.strip()
        except Exception:
            logger.exception("Diary consolidation failed for year %d", year)
            return create_fallback_year_summary(year, entries)

        if not text:
            logger.warning("Empty diary summary for year %d; using fallback", year)
            return create_fallback_year_summary(year, entries)
        return parse_year_summary_response(text, year)

    async def consolidate_year(self, memory: AgentMemory, year: int) -> YearSummary:
        """Summarize the current-year diary, archive it, and start a new year."""
        with timed("diary.consolidate_year") as sample:
            summary = await self.summarize_year(year, list(memory.current_year_diary))
            sample.fallback = summary.fallback

        memory.full_private_diary.append(
            create_diary_entry(
                year,
                Season.winter,
                Phase.build,
                DiaryEntryType.consolidation,
                f"Year {year} consolidated: {summary.summary}",
            )
        )
        memory.year_summaries.append(summary)
        memory.current_year_diary = []
        logger.info(
            "Consolidated diary year %d for %s/%s", year, memory.game_id, memory.party
        )
        return summary

    def get_context_diary(self, memory: AgentMemory) -> str:
        return get_context_diary(memory, self.config.max_context_entries)

    def get_diary_stats(self, memory: AgentMemory) -> dict[str, int]:
        return get_diary_stats(memory, self.config.max_context_entries)
