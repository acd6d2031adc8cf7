"""
Deterministic offline backend.

Enabled with LLM_MOCK_ENABLED=true for local development and the evals
harness.  JSON requests get a keyword-derived verdict for objection reviews
and an empty object for everything else, so the rule-based fallbacks take
over; text requests get a short canned client line.
"""

from __future__ import annotations

import json
import re

from simtrainer.infra.providers.base import (
    CompletionRequest,
    CompletionResult,
    LLMBackend,
    TokenUsage,
)

_RESPONSE_RE = re.compile(r"TRAINEE'S RESPONSE:\s*\"(.*?)\"", re.S)

_SIGNAL_KEYWORDS: dict[str, tuple[str, ...]] = {
    "acknowledged": ("i understand", "i hear you", "that's a fair", "good question", "i see"),
    "empathyShown": ("understand", "appreciate", "makes sense", "i know how"),
    "addressedDirectly": ("because", "the reason", "specifically", "in fact", "compared"),
    "providedValue": ("value", "save", "benefit", "return", "worth"),
    "askedFollowUp": ("?",),
    "dismissive": ("don't worry", "that's not a problem", "whatever"),
    "argumentative": ("you're wrong", "that's not true", "actually no"),
}

_PERSONALITY_LINES: dict[str, str] = {
    "friendly": "That sounds good. Could you tell me a bit more?",
    "skeptical": "Hmm, I'm not sure I believe that yet. Can you back it up?",
    "demanding": "Fine. Get to the point, what else do you have?",
    "indecisive": "I don't know... maybe. What would you do in my place?",
    "analytical": "Interesting. Do you have the numbers to support that?",
}


class MockBackend(LLMBackend):
    name = "Mock"
    supports_streaming = False

    async def complete_with_metadata(self, request: CompletionRequest) -> CompletionResult:
        if request.response_format == "json":
            content = json.dumps(self._json_payload(request.prompt))
        else:
            content = self._text_reply(request.system_prompt or "")
        return CompletionResult(
            content=content,
            usage=TokenUsage(input_tokens=150, output_tokens=75),
            backend=self.name,
        )

    def _json_payload(self, prompt: str) -> dict:
        match = _RESPONSE_RE.search(prompt)
        if match is None:
            return {}
        lower = match.group(1).lower()
        verdict = {
            signal: any(k in lower for k in keywords)
            for signal, keywords in _SIGNAL_KEYWORDS.items()
        }
        verdict["ignoredConcern"] = not (verdict["acknowledged"] or verdict["addressedDirectly"])
        verdict["techniquesUsed"] = []
        return verdict

    def _text_reply(self, system_prompt: str) -> str:
        lower = system_prompt.lower()
        for personality, line in _PERSONALITY_LINES.items():
            if personality in lower:
                return line
        return _PERSONALITY_LINES["friendly"]
