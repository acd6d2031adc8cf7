"""
LLM gateway — ordered fallback chain over text-generation backends.

One pass through the chain per call: each backend is tried in priority
order, every failure is logged and recorded, and the first success wins.
When all fail, LLMGatewayError lists every backend's reason.  No retries
beyond that single pass; each backend carries its own network timeout.
"""

from __future__ import annotations

import time
from typing import AsyncIterator

from simtrainer.core.errors import LLMGatewayError
from simtrainer.core.logging import logger
from simtrainer.core.settings import Settings
from simtrainer.infra.providers.anthropic_provider import AnthropicBackend
from simtrainer.infra.providers.base import CompletionRequest, CompletionResult, LLMBackend
from simtrainer.infra.providers.mock_provider import MockBackend
from simtrainer.infra.providers.openai_compatible import OpenAICompatibleBackend


class FallbackGateway:
    def __init__(self, backends: list[LLMBackend]) -> None:
        self.backends = list(backends)

    @property
    def backend_names(self) -> list[str]:
        return [b.name for b in self.backends]

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 512,
        temperature: float = 0.7,
        response_format: str = "text",
    ) -> str:
        result = await self.complete_with_metadata(
            prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            response_format=response_format,
        )
        return result.content

    async def complete_with_metadata(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 512,
        temperature: float = 0.7,
        response_format: str = "text",
    ) -> CompletionResult:
        request = CompletionRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            response_format=response_format,
        )
        return await self._complete(request)

    async def _complete(self, request: CompletionRequest) -> CompletionResult:
        failures: list[tuple[str, str]] = []
        for backend in self.backends:
            t0 = time.monotonic()
            try:
                result = await backend.complete_with_metadata(request)
            except Exception as e:
                failures.append((backend.name, str(e) or type(e).__name__))
                logger.warning("LLM backend %s failed: %s", backend.name, e)
                continue
            if failures:
                logger.info(
                    "LLM backend %s succeeded after %d failure(s) in %.0fms",
                    backend.name, len(failures), (time.monotonic() - t0) * 1000,
                )
            return result
        raise LLMGatewayError(failures)

    async def stream_complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 512,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """
        Stream from the first streaming backend that works.

        A backend that fails before yielding anything is skipped.  If no
        streaming backend produced output, the full non-streaming chain runs
        and its answer is yielded as one chunk.
        """
        request = CompletionRequest(
            prompt=prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        for backend in self.backends:
            if not backend.supports_streaming:
                continue
            yielded = False
            try:
                async for chunk in backend.stream(request):
                    yielded = True
                    yield chunk
            except Exception as e:
                if yielded:
                    raise
                logger.warning("LLM backend %s streaming failed: %s", backend.name, e)
                continue
            if yielded:
                return

        result = await self._complete(request)
        yield result.content


def build_gateway(settings: Settings) -> FallbackGateway:
    """Assemble the chain from configured backends in settings.llm_backend_order."""
    if settings.llm_mock_enabled:
        return FallbackGateway([MockBackend()])

    timeout = float(settings.llm_timeout_seconds)
    available: dict[str, LLMBackend] = {}
    if settings.gemini_api_key:
        available["gemini"] = OpenAICompatibleBackend(
            "Gemini",
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=timeout,
        )
    if settings.anthropic_api_key:
        available["anthropic"] = AnthropicBackend(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            timeout=timeout,
        )
    if settings.groq_api_key:
        available["groq"] = OpenAICompatibleBackend(
            "Groq",
            api_key=settings.groq_api_key,
            model=settings.groq_model,
            base_url=settings.groq_base_url,
            timeout=timeout,
        )
    if settings.deepseek_api_key:
        available["deepseek"] = OpenAICompatibleBackend(
            "DeepSeek",
            api_key=settings.deepseek_api_key,
            model=settings.deepseek_model,
            base_url=settings.deepseek_base_url,
            timeout=timeout,
        )

    backends = [available[name] for name in settings.llm_backend_order if name in available]
    logger.info("LLM gateway backends: %s", [b.name for b in backends] or "none")
    return FallbackGateway(backends)
