"""
OpenAI-compatible backend (Gemini, Groq, DeepSeek).

Uses AsyncOpenAI against each vendor's OpenAI-compatible chat endpoint.
Blank content is an error so the gateway moves on to the next backend.
Streaming is supported through the same API.

reasoning_content returned by reasoning models is ignored; only
choices[0].message.content is read.
"""

from __future__ import annotations

from typing import AsyncIterator

from openai import AsyncOpenAI

from simtrainer.infra.providers.base import (
    CompletionRequest,
    CompletionResult,
    EmptyCompletionError,
    LLMBackend,
    TokenUsage,
)


def _messages(request: CompletionRequest) -> list[dict]:
    messages = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    messages.append({"role": "user", "content": request.prompt})
    return messages


class OpenAICompatibleBackend(LLMBackend):
    """Thin async wrapper around an OpenAI-compatible chat API."""

    supports_streaming = True

    def __init__(
        self,
        name: str,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = 12.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.name = name
        self.model = model
        self._timeout = timeout
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    def _create_kwargs(self, request: CompletionRequest) -> dict:
        kwargs: dict = {
            "model": self.model,
            "messages": _messages(request),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "timeout": self._timeout,
        }
        if request.response_format == "json":
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    async def complete_with_metadata(self, request: CompletionRequest) -> CompletionResult:
        resp = await self._client.chat.completions.create(**self._create_kwargs(request))
        content = resp.choices[0].message.content if resp.choices else None
        if not content or not content.strip():
            raise EmptyCompletionError(f"{self.name} returned empty content")

        usage = None
        if resp.usage is not None:
            usage = TokenUsage(
                input_tokens=resp.usage.prompt_tokens or 0,
                output_tokens=resp.usage.completion_tokens or 0,
            )
        return CompletionResult(content=content.strip(), usage=usage, backend=self.name)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        stream = await self._client.chat.completions.create(
            **self._create_kwargs(request), stream=True
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
