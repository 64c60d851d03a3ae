"""Unit tests for configuration dataclasses."""

from dataclasses import FrozenInstanceError

import pytest

from trustledger.config import ConsolidationConfig
from trustledger.config import ConversationConfig
from trustledger.config import DiaryConfig
from trustledger.config import LLMConfig
from trustledger.config import StoreConfig


# ---------------------------------------------------------------------------
# LLMConfig
# ---------------------------------------------------------------------------


class TestLLMConfig:
    def test_defaults(self):
        cfg = LLMConfig()
        assert cfg.provider == "openai"
        assert cfg.model == "gpt-4"
        assert cfg.api_key is None
        assert cfg.base_url == "https://api.openai.com/v1"
        assert cfg.temperature == 0.3
        assert cfg.max_tokens == 300
        assert cfg.timeout_seconds == 30.0

    def test_frozen(self):
        cfg = LLMConfig()
        with pytest.raises(FrozenInstanceError):
            cfg.model = "other"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# ConsolidationConfig
# ---------------------------------------------------------------------------


class TestConsolidationConfig:
    def test_defaults(self):
        cfg = ConsolidationConfig()
        assert cfg.consolidation_threshold == 10
        assert cfg.recent_turns_to_keep == 5
        assert cfg.max_consolidated_blocks == 6
        assert cfg.max_strategic_notes == 20
        assert cfg.max_block_highlights == 3
        assert cfg.backend_timeout_seconds is None
        assert cfg.scan_highlights_for_betrayal is True
        assert cfg.fold_consumed_events is True

    def test_custom_values(self):
        cfg = ConsolidationConfig(consolidation_threshold=4, recent_turns_to_keep=2)
        assert cfg.consolidation_threshold == 4
        assert cfg.recent_turns_to_keep == 2


# ---------------------------------------------------------------------------
# Conversation, diary and store
# ---------------------------------------------------------------------------


class TestConversationConfig:
    def test_defaults(self):
        cfg = ConversationConfig()
        assert cfg.max_messages == 10
        assert cfg.max_summary_chars == 2000
        assert cfg.max_order_sets == 3
        assert cfg.max_diplomacy_snippets == 4
        assert cfg.max_context_lines == 3
        assert cfg.max_order_lines == 5
        assert cfg.max_sends_per_message == 3
        assert cfg.diplomacy_snippet_chars == 80
        assert cfg.analysis_line_chars == 120


class TestDiaryConfig:
    def test_defaults(self):
        cfg = DiaryConfig()
        assert cfg.max_context_entries == 10
        assert cfg.max_tokens == 500
        assert cfg.temperature == 0.3


class TestStoreConfig:
    def test_defaults(self):
        cfg = StoreConfig()
        assert cfg.key_prefix == "trustledger"
        assert cfg.ttl_seconds is None
        assert cfg.base_dir == "memories"
