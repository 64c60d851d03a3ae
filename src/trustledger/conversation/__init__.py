"""Conversation domain — the bounded per-party transcript."""

from trustledger.conversation.window import ConversationWindow
from trustledger.conversation.window import SUMMARY_MARKER
from trustledger.conversation.window import summarize_evicted_messages

__all__ = [
    "ConversationWindow",
    "SUMMARY_MARKER",
    "summarize_evicted_messages",
]
