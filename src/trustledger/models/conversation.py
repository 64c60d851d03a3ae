"""Conversation transcript models."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from enum import Enum

from pydantic import BaseModel
from pydantic import Field


class Role(str, Enum):
    """Speaker of a conversation message."""

    system = "system"
    user = "user"
    assistant = "assistant"


class ConversationMessage(BaseModel):
    """One turn of the transcript exchanged with the completion backend."""

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_summary: bool = Field(
        default=False,
        description="Marks the synthetic summary of evicted messages.",
    )


class TokenUsage(BaseModel):
    """Token accounting reported by the backend."""

    input_tokens: int = 0
    output_tokens: int = 0


class Completion(BaseModel):
    """Result of one text-completion call."""

    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    stop_reason: str | None = None
