"""Engine domain — backend adapters, consolidation and the diary."""

from trustledger.engine.consolidation import ConsolidationEngine
from trustledger.engine.consolidation import ConsolidationReport
from trustledger.engine.consolidation import create_fallback_block
from trustledger.engine.consolidation import EmptyConsolidationError
from trustledger.engine.consolidation import extract_trust_events
from trustledger.engine.consolidation import format_consolidated_memory
from trustledger.engine.consolidation import get_all_trust_events
from trustledger.engine.consolidation import merge_oldest_blocks
from trustledger.engine.consolidation import merge_strategic_notes
from trustledger.engine.consolidation import should_consolidate_turns
from trustledger.engine.diary import add_diary_entry
from trustledger.engine.diary import create_diary_entry
from trustledger.engine.diary import DiaryConsolidator
from trustledger.engine.diary import get_context_diary
from trustledger.engine.diary import get_diary_stats
from trustledger.engine.diary import should_consolidate_diary
from trustledger.engine.llm_adapters import build_llm_adapter
from trustledger.engine.llm_adapters import LLMAdapter
from trustledger.engine.llm_adapters import LLMError
from trustledger.engine.llm_adapters import NoopLLMAdapter
from trustledger.engine.llm_adapters import OpenAICompatibleLLMAdapter

__all__ = [
    "ConsolidationEngine",
    "ConsolidationReport",
    "DiaryConsolidator",
    "EmptyConsolidationError",
    "LLMAdapter",
    "LLMError",
    "NoopLLMAdapter",
    "OpenAICompatibleLLMAdapter",
    "add_diary_entry",
    "build_llm_adapter",
    "create_diary_entry",
    "create_fallback_block",
    "extract_trust_events",
    "format_consolidated_memory",
    "get_all_trust_events",
    "get_context_diary",
    "get_diary_stats",
    "merge_oldest_blocks",
    "merge_strategic_notes",
    "should_consolidate_diary",
    "should_consolidate_turns",
]
