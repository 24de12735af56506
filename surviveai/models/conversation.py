"""Conversation and chat message models."""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant", "system"]
ResponseSource = Literal["model", "knowledge-grounded"]

TITLE_MAX_LENGTH = 50
PREVIEW_LENGTH = 100


def generate_id(prefix: str) -> str:
    """Generate a unique, time-ordered identifier."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class PerformanceMetrics:
    """Inference performance for one turn (both tool rounds combined)."""

    tokens_per_second: float = 0.0
    time_to_first_token_ms: float = 0.0
    total_time_ms: float = 0.0
    total_tokens: int = 0

    def combine(self, other: "PerformanceMetrics") -> "PerformanceMetrics":
        """Accumulate a later round into this one.

        Totals are summed, time-to-first-token stays with the first round and
        throughput is recomputed from the summed totals.

        Args:
            other: Metrics from the later round

        Returns:
            Combined metrics
        """
        total_tokens = self.total_tokens + other.total_tokens
        total_time_ms = self.total_time_ms + other.total_time_ms
        tokens_per_second = (
            total_tokens / (total_time_ms / 1000) if total_time_ms > 0 else 0.0
        )
        return PerformanceMetrics(
            tokens_per_second=tokens_per_second,
            time_to_first_token_ms=self.time_to_first_token_ms,
            total_time_ms=total_time_ms,
            total_tokens=total_tokens,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokens_per_second": self.tokens_per_second,
            "time_to_first_token_ms": self.time_to_first_token_ms,
            "total_time_ms": self.total_time_ms,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PerformanceMetrics":
        return cls(
            tokens_per_second=data.get("tokens_per_second", 0.0),
            time_to_first_token_ms=data.get("time_to_first_token_ms", 0.0),
            total_time_ms=data.get("total_time_ms", 0.0),
            total_tokens=data.get("total_tokens", 0),
        )


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a conversation. Never mutated after creation."""

    conversation_id: str
    role: Role
    content: str
    id: str = field(default_factory=lambda: generate_id("msg"))
    timestamp: int = field(default_factory=now_ms)
    images: tuple[str, ...] = ()
    source: ResponseSource | None = None
    knowledge_entry_id: str | None = None
    metrics: PerformanceMetrics | None = None


@dataclass
class Conversation:
    """Conversation summary shown in the conversation list."""

    id: str = field(default_factory=lambda: generate_id("conv"))
    title: str = "New Conversation"
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    message_count: int = 0
    preview: str = ""


def generate_title(content: str) -> str:
    """Derive a conversation title from its first message.

    Args:
        content: First user message

    Returns:
        First 50 characters, with an ellipsis when truncated
    """
    stripped = content.strip()
    cleaned = stripped[:TITLE_MAX_LENGTH]
    return f"{cleaned}..." if len(cleaned) < len(stripped) else cleaned
