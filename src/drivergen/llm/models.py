"""Data models for the LLM Gateway module."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# System preamble
# ---------------------------------------------------------------------------

SYSTEM_PREAMBLE = (
    "You are an AI assistant specialized in generating code, configuration "
    "files, and documentation for API drivers.\n"
    "Follow the instructions in each prompt precisely and provide only the "
    "requested output.\n"
    "Do not include any explanatory text or additional commentary unless "
    "specifically requested.\n"
    "Adapt your output format based on the instructions given in each prompt."
)

# ---------------------------------------------------------------------------
# Token pricing table (approximate USD per 1 M tokens)
# ---------------------------------------------------------------------------

TOKEN_PRICING: dict[str, dict[str, float]] = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.0},
    "claude-3-5-sonnet-20240620": {"input": 3.0, "output": 15.0},
    "claude-3-5-sonnet-20241022": {"input": 3.0, "output": 15.0},
    "claude-sonnet-4-20250514": {"input": 3.0, "output": 15.0},
}


class BlockRole(str, Enum):
    """Where a context block is placed in the assembled prompt."""

    SYSTEM = "system"
    USER = "user"


class ContextBlock(BaseModel):
    """A piece of context handed to the gateway alongside a prompt.

    ``system`` blocks are folded into the system message right after the
    preamble; ``user`` blocks become separate user messages placed before
    the caller's prompt.
    """

    model_config = ConfigDict(frozen=True)

    role: BlockRole = Field(default=BlockRole.USER)
    text: str

    @classmethod
    def system(cls, text: str) -> ContextBlock:
        return cls(role=BlockRole.SYSTEM, text=text)

    @classmethod
    def user(cls, text: str) -> ContextBlock:
        return cls(role=BlockRole.USER, text=text)


# ---------------------------------------------------------------------------
# Request / Response log entry
# ---------------------------------------------------------------------------


class LLMLogEntry(BaseModel):
    """Structured log entry for a single LLM request/response cycle."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="ISO 8601 timestamp of the request",
    )
    request_id: UUID = Field(
        default_factory=uuid4,
        description="Unique identifier for this request",
    )
    model: str = Field(..., description="Model identifier used for the request")
    step: str | None = Field(default=None, description="Pipeline step that made the request")
    messages: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Request messages (truncated if >1000 chars)",
    )
    response: str = Field(
        default="",
        description="Response text (truncated if >1000 chars)",
    )
    attempts: int = Field(default=1, description="Attempts needed for this request")
    tokens_prompt: int = Field(default=0, description="Prompt token count")
    tokens_completion: int = Field(default=0, description="Completion token count")
    tokens_total: int = Field(default=0, description="Total token count")
    latency_ms: float = Field(default=0.0, description="Request latency in ms")
    cost_usd: float = Field(default=0.0, description="Estimated cost in USD")


# ---------------------------------------------------------------------------
# Gateway configuration
# ---------------------------------------------------------------------------


class GatewayConfig(BaseModel):
    """Configuration for the LLM Gateway."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    model: str = Field(
        default="claude-3-5-sonnet-20240620",
        min_length=1,
        description="LiteLLM model identifier",
    )
    max_tokens: int = Field(
        default=8000,
        ge=1,
        description="Maximum completion tokens per request",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retry attempts after the first failure",
    )
    base_retry_delay: float = Field(
        default=5.0,
        ge=0,
        description="Base delay in seconds for exponential backoff",
    )
    system_preamble: str = Field(
        default=SYSTEM_PREAMBLE,
        description="Fixed system prompt prefix shared by every request",
    )
