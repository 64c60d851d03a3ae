"""Bounded conversation transcript with eviction-time summarization.

Layout of a full window::

    [system]  [summary]  recent, recent, ..., recent

The system message keeps its slot forever, one slot holds the single
synthetic summary, and the rest hold the newest exchanges.  Whatever is
pushed out is folded into the summary at the moment it is evicted, with
plain text extraction only; no backend call is made.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from trustledger.config import ConversationConfig
from trustledger.memory.ledger import estimate_tokens
from trustledger.models.conversation import ConversationMessage
from trustledger.models.conversation import Role

logger = logging.getLogger(__name__)

SUMMARY_MARKER = "[CONVERSATION SUMMARY]"
_ELLIPSIS = "..."

# "Y:1901 S:SPRING P:MOVEMENT"
_TURN_HEADER_RE = re.compile(r"Y:(\d{4})\s+S:([A-Za-z]+)\s+P:([A-Za-z]+)")
# A bare section header such as "ORDERS:" or "DIPLOMACY:"
_SECTION_RE = re.compile(r"^([A-Z_]+):\s*(.*)$")
_ANALYSIS_PREFIXES = ("REASONING:", "ANALYSIS:")


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: max(limit - 3, 0)] + _ELLIPSIS


def _extract_orders(content: str, max_lines: int) -> list[str]:
    """Lines of the last ``ORDERS:`` section, comments skipped."""
    lines = content.splitlines()
    start = None
    for i, line in enumerate(lines):
        match = _SECTION_RE.match(line.strip())
        if match and match.group(1) == "ORDERS":
            start = i
    if start is None:
        return []

    orders: list[str] = []
    inline = _SECTION_RE.match(lines[start].strip()).group(2).strip()
    if inline:
        orders.append(inline)
    for line in lines[start + 1 :]:
        stripped = line.strip()
        if not stripped or _SECTION_RE.match(stripped):
            break
        if stripped.startswith("#"):
            continue
        orders.append(stripped)
    return orders[:max_lines]


def _strip_marker(text: str) -> str:
    text = text.strip()
    if text.startswith(SUMMARY_MARKER):
        text = text[len(SUMMARY_MARKER) :].lstrip("\n")
    return text


def summarize_evicted_messages(
    evicted: Sequence[ConversationMessage],
    previous_summary_text: str = "",
    config: ConversationConfig | None = None,
) -> str:
    """Fold *evicted* into the running summary and return the message body.

    Assistant turns contribute their latest orders, a few diplomacy
    ``SEND`` lines and analysis lines; user turns contribute turn
    headers.  Only the most recent items of each kind are kept.  The
    result, marker included, never exceeds ``max_summary_chars``; when
    it would, the oldest text is dropped and the tail kept behind an
    ellipsis.
    """
    cfg = config or ConversationConfig()

    order_sets: list[str] = []
    sends: list[str] = []
    context: list[str] = []
    for message in evicted:
        if message.is_summary or message.role is Role.system:
            continue
        if message.role is Role.user:
            header = _TURN_HEADER_RE.search(message.content)
            if header:
                year, season, phase = header.groups()
                context.append(f"Turn: {year} {season.upper()} {phase.upper()}")
            continue

        orders = _extract_orders(message.content, cfg.max_order_lines)
        if orders:
            order_sets.append(", ".join(orders))
        message_sends = 0
        for line in message.content.splitlines():
            stripped = line.strip()
            upper = stripped.upper()
            if upper.startswith("SEND ") and message_sends < cfg.max_sends_per_message:
                sends.append(_truncate(stripped, cfg.diplomacy_snippet_chars))
                message_sends += 1
            elif upper.startswith(_ANALYSIS_PREFIXES):
                context.append(_truncate(stripped, cfg.analysis_line_chars))

    parts: list[str] = []
    if context:
        parts.append("Context: " + " | ".join(context[-cfg.max_context_lines :]))
    if order_sets:
        parts.append("Orders: " + " | ".join(order_sets[-cfg.max_order_sets :]))
    if sends:
        parts.append("Diplomacy: " + " | ".join(sends[-cfg.max_diplomacy_snippets :]))
    if not parts and evicted:
        parts.append(f"Earlier exchanges: {len(evicted)} messages omitted.")

    body = "\n".join(p for p in (_strip_marker(previous_summary_text), *parts) if p)

    budget = cfg.max_summary_chars - len(SUMMARY_MARKER) - 1
    if len(body) > budget:
        body = _ELLIPSIS + body[-(budget - len(_ELLIPSIS)) :]
    return f"{SUMMARY_MARKER}\n{body}"


class ConversationWindow:
    """Fixed-capacity transcript for one party.

    ``append`` never lets the window exceed ``max_messages``; evicted
    messages are returned to the caller after being summarized.
    """

    def __init__(self, config: ConversationConfig | None = None) -> None:
        self.config = config or ConversationConfig()
        if self.config.max_messages < 3:
            raise ValueError("max_messages must be at least 3")
        self._system: ConversationMessage | None = None
        self._summary: ConversationMessage | None = None
        self._recent: list[ConversationMessage] = []
        self.evicted_count = 0

    @property
    def messages(self) -> list[ConversationMessage]:
        head = [m for m in (self._system, self._summary) if m is not None]
        return head + self._recent

    @property
    def system_message(self) -> ConversationMessage | None:
        return self._system

    @property
    def summary_text(self) -> str:
        """Summary body without its marker; empty before the first eviction."""
        if self._summary is None:
            return ""
        return _strip_marker(self._summary.content)

    def __len__(self) -> int:
        return len(self.messages)

    def append(self, role: Role | str, content: str) -> list[ConversationMessage]:
        """Add a message; return whatever was evicted to make room."""
        message = ConversationMessage(role=Role(role), content=content)
        if message.role is Role.system and self._system is None:
            self._system = message
        else:
            self._recent.append(message)
        return self._evict()

    def _evict(self) -> list[ConversationMessage]:
        if len(self) <= self.config.max_messages:
            return []

        slots = self.config.max_messages - 1 - (1 if self._system else 0)
        evicted = self._recent[:-slots]
        self._recent = self._recent[-slots:]
        self._summary = ConversationMessage(
            role=Role.user,
            content=summarize_evicted_messages(evicted, self.summary_text, self.config),
            is_summary=True,
        )
        self.evicted_count += len(evicted)
        logger.debug(
            "Evicted %d messages into summary (%d chars)",
            len(evicted),
            len(self._summary.content),
        )
        return evicted

    def clear(self, keep_system: bool = True) -> None:
        self._summary = None
        self._recent = []
        if not keep_system:
            self._system = None

    def as_payload(self) -> list[dict[str, str]]:
        """Messages in the ``{"role", "content"}`` shape completion APIs expect."""
        return [{"role": m.role.value, "content": m.content} for m in self.messages]

    def estimated_tokens(self) -> int:
        return sum(estimate_tokens(m.content) for m in self.messages)
