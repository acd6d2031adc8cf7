"""
Backend contract shared by every text-generation provider.

A backend turns a CompletionRequest into a CompletionResult and raises on
any failure (network, auth, empty content).  The gateway decides what to do
with the failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator


@dataclass(frozen=True)
class CompletionRequest:
    prompt: str
    system_prompt: str | None = None
    max_tokens: int = 512
    temperature: float = 0.7
    response_format: str = "text"  # "text" | "json"


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class CompletionResult:
    content: str
    usage: TokenUsage | None = None
    backend: str | None = None


class LLMBackend(ABC):
    """One concrete provider in the fallback chain."""

    name: str = "backend"
    supports_streaming: bool = False

    @abstractmethod
    async def complete_with_metadata(self, request: CompletionRequest) -> CompletionResult:
        ...

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        raise NotImplementedError(f"{self.name} does not support streaming")
        yield  # pragma: no cover


class EmptyCompletionError(RuntimeError):
    """A backend answered but the content was blank."""
