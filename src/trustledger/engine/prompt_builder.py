"""Prompt construction for backend-assisted summaries.

Kept apart from the engines because wording evolves independently of
the compaction rules.
"""

from __future__ import annotations

from trustledger.models.conversation import ConversationMessage
from trustledger.models.conversation import Role
from trustledger.models.game import Party
from trustledger.models.memory import DiaryEntry
from trustledger.models.memory import TurnSummary


def _format_turn(summary: TurnSummary) -> str:
    lines = [f"{summary.turn}:"]
    if summary.orders_succeeded:
        lines.append(f"  Succeeded: {', '.join(summary.orders_succeeded)}")
    if summary.orders_failed:
        lines.append(f"  Failed: {', '.join(summary.orders_failed)}")
    if summary.territories_gained:
        lines.append(f"  Gained: {', '.join(summary.territories_gained)}")
    if summary.territories_lost:
        lines.append(f"  Lost: {', '.join(summary.territories_lost)}")
    if summary.units_built or summary.units_lost:
        lines.append(f"  Units: +{summary.units_built}/-{summary.units_lost}")
    if summary.diplomatic_highlights:
        lines.append(f"  Diplomacy: {'; '.join(summary.diplomatic_highlights)}")
    return "\n".join(lines)


def build_turn_consolidation_prompt(party: Party, summaries: list[TurnSummary]) -> str:
    """Ask for a short paragraph covering a span of turns."""
    turns = "\n\n".join(_format_turn(s) for s in summaries)
    return (
        f"Consolidate these turn summaries for {party} into a concise "
        "strategic summary.\n\n"
        f"TURNS TO CONSOLIDATE:\n{turns}\n\n"
        "Create a brief summary (3-5 sentences) that captures:\n"
        "1. Net territorial changes (territories gained/lost overall)\n"
        "2. Key military outcomes\n"
        "3. Important diplomatic developments\n"
        "4. Strategic trajectory (expanding/contracting/stable)\n\n"
        "Format your response as a single paragraph summary. Be concise."
    )


def build_diary_consolidation_prompt(year: int, entries: list[DiaryEntry]) -> str:
    """Ask for a structured SUMMARY / TERRITORIAL / DIPLOMATIC digest."""
    body = "\n\n".join(f"{e.phase} [{e.type.value}]: {e.content}" for e in entries)
    return (
        f"You are consolidating a strategy agent's private diary for year {year}.\n\n"
        "Review these diary entries and create a concise summary "
        "(2-3 key points maximum).\n\n"
        f"DIARY ENTRIES FOR {year}:\n{body}\n\n"
        "Create a summary that captures:\n"
        "1. Major territorial changes\n"
        "2. Key diplomatic developments (alliances formed/broken, betrayals)\n"
        "3. Strategic shifts or important decisions\n\n"
        "Format your response EXACTLY as:\n"
        "SUMMARY: [2-3 sentence summary of the year]\n"
        'TERRITORIAL: [comma-separated list of territorial changes, or "None"]\n'
        'DIPLOMATIC: [comma-separated list of diplomatic changes, or "None"]\n\n'
        "Keep it concise - this will be used for context in future turns."
    )


def as_messages(prompt: str) -> list[ConversationMessage]:
    """Wrap a single prompt as a one-turn conversation."""
    return [ConversationMessage(role=Role.user, content=prompt)]
