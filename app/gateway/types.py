"""Core types and DTOs for the AI agent gateway."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderName(str, Enum):
    """Upstream LLM providers."""

    OPENAI = "openai"  # primary commercial chat API
    OPENROUTER = "openrouter"  # multi-model aggregator
    GEMINI = "gemini"  # search-augmented research


class AgentName(str, Enum):
    """Named marketing agents."""

    MAVEN = "maven"  # research
    MATRIX = "matrix"  # messaging
    MAX = "max"  # documents / campaign planning

    @classmethod
    def parse(cls, value: str | None) -> AgentName | None:
        """Case-insensitive lookup; None for anything unrecognized."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class AgentErrorCode(str, Enum):
    """Machine-readable codes surfaced to clients on agent failures."""

    API_KEY_MISSING = "API_KEY_MISSING"
    API_KEY_REQUIRED = "API_KEY_REQUIRED"
    API_AUTH_ERROR = "API_AUTH_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    GENERAL_ERROR = "GENERAL_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


# ---------------------------------------------------------------------------
# Provider level
# ---------------------------------------------------------------------------


@dataclass
class CompletionRequest:
    """A single chat-completion call to one provider."""

    prompt: str
    system: str = ""
    model: str = ""  # empty = adapter default
    temperature: float = 0.7
    max_tokens: int = 800
    top_p: float = 1.0
    json_mode: bool = False


@dataclass
class ProviderCompletion:
    """Raw upstream completion, same shape for every provider."""

    content: str
    provider: ProviderName
    model: str = ""
    usage: dict[str, Any] | None = None
    latency_ms: int = 0
    finish_reason: str = ""
    citations: list[dict[str, str]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Agent level
# ---------------------------------------------------------------------------


@dataclass
class AgentResult:
    """Normalized output of one agent dispatch.

    ``fallback`` — content is canned, not generated upstream.
    ``degraded`` — content is canned, repaired or wrapped from non-JSON text.
    Both are always present so callers never have to guess.
    """

    agent: AgentName
    data: dict[str, Any]
    source: str  # provider name or "fallback"
    model: str = ""
    usage: dict[str, Any] | None = None
    fallback: bool = False
    degraded: bool = False
    processing_time_ms: int = 0

    @property
    def content(self) -> str:
        """JSON-encoded form of ``data`` (stable key order for identical input)."""
        return json.dumps(self.data, ensure_ascii=False)

    def to_dict(self) -> dict:
        """Serialize to the JSON body returned by the agents endpoint."""
        return {
            "content": self.content,
            "data": self.data,
            "agent": self.agent.value,
            "source": self.source,
            "model": self.model or None,
            "usage": self.usage,
            "fallback": self.fallback,
            "degraded": self.degraded,
            "success": True,
            "processingTime": self.processing_time_ms,
        }


class AgentServiceError(Exception):
    """A structured, user-visible agent failure (research path, strict mode)."""

    def __init__(self, code: AgentErrorCode, message: str, status_code: int = 500):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "error": self.code.value,
            "success": False,
            "fallbackAvailable": True,
        }
