"""
Claude backend via the Anthropic SDK.

JSON mode has no native switch here, so a JSON request appends an
instruction to the system prompt and the caller's parser handles any code
fence the model wraps around it.
"""

from __future__ import annotations

from anthropic import AsyncAnthropic

from simtrainer.infra.providers.base import (
    CompletionRequest,
    CompletionResult,
    EmptyCompletionError,
    LLMBackend,
    TokenUsage,
)

_JSON_INSTRUCTION = "Respond with a single valid JSON object only. No markdown, no explanation."


class AnthropicBackend(LLMBackend):
    name = "Claude"

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 12.0,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def complete_with_metadata(self, request: CompletionRequest) -> CompletionResult:
        system = request.system_prompt or ""
        if request.response_format == "json":
            system = f"{system}\n\n{_JSON_INSTRUCTION}".strip()

        kwargs: dict = {
            "model": self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if system:
            kwargs["system"] = system

        response = await self._client.messages.create(**kwargs)
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise EmptyCompletionError("Claude returned empty content")

        usage = None
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )
        return CompletionResult(content=text.strip(), usage=usage, backend=self.name)
