"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.
No env-var loading or YAML parsing — just plain defaults that can
be overridden at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LLMConfig:
    """Text-completion backend settings used for block and diary summaries."""

    provider: str = "openai"
    model: str = "gpt-4"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.3
    max_tokens: int = 300
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ConsolidationConfig:
    """Tuneable parameters for turn-summary consolidation."""

    consolidation_threshold: int = 10
    recent_turns_to_keep: int = 5
    max_consolidated_blocks: int = 6
    max_strategic_notes: int = 20
    max_block_highlights: int = 3
    # None leaves timeouts to the caller
    backend_timeout_seconds: float | None = None
    scan_highlights_for_betrayal: bool = True
    fold_consumed_events: bool = True


@dataclass(frozen=True)
class ConversationConfig:
    """Limits for the sliding conversation window and its eviction summary."""

    max_messages: int = 10
    max_summary_chars: int = 2000
    # Kept across one evicted batch
    max_order_sets: int = 3
    max_diplomacy_snippets: int = 4
    max_context_lines: int = 3
    # Per assistant message
    max_order_lines: int = 5
    max_sends_per_message: int = 3
    diplomacy_snippet_chars: int = 80
    analysis_line_chars: int = 120


@dataclass(frozen=True)
class DiaryConfig:
    """Settings for yearly diary consolidation."""

    max_context_entries: int = 10
    max_tokens: int = 500
    temperature: float = 0.3


@dataclass(frozen=True)
class StoreConfig:
    """Settings shared by the persistent memory stores."""

    key_prefix: str = "trustledger"
    ttl_seconds: int | None = None
    base_dir: str = "memories"
