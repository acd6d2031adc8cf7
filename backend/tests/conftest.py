from __future__ import annotations

import random
from typing import AsyncIterator, Callable

import pytest

from simtrainer.domain.state import (
    ClientPersona,
    ObjectionCategory,
    GeneratedObjection,
    Personality,
    Severity,
)
from simtrainer.infra.providers.base import (
    CompletionRequest,
    CompletionResult,
    LLMBackend,
)
from simtrainer.infra.providers.gateway import FallbackGateway
from simtrainer.infra.providers.mock_provider import MockBackend
from simtrainer.infra.repositories import (
    InMemoryObjectionCatalog,
    InMemoryReportRepository,
    InMemorySessionRepository,
)
from simtrainer.usecases.deps import Services


STRONG_RESPONSE = (
    "I understand, that makes sense. Specifically, this home offers real value "
    "and will save you money on repairs. What matters most to you?"
)
WEAK_RESPONSE = "Whatever, you're wrong about that."


class ScriptedBackend(LLMBackend):
    """
    Backend that replays canned replies in order (the last one repeats) or
    always raises ``fail_with``.  Every request is recorded in ``calls``.
    """

    def __init__(
        self,
        name: str = "Scripted",
        replies: list[str] | None = None,
        fail_with: Exception | None = None,
        chunks: list[str] | None = None,
        stream_fail_with: Exception | None = None,
    ) -> None:
        self.name = name
        self.replies = list(replies or ["{}"])
        self.fail_with = fail_with
        self.chunks = chunks
        self.stream_fail_with = stream_fail_with
        self.supports_streaming = chunks is not None or stream_fail_with is not None
        self.calls: list[CompletionRequest] = []

    async def complete_with_metadata(self, request: CompletionRequest) -> CompletionResult:
        self.calls.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return CompletionResult(content=reply, backend=self.name)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        self.calls.append(request)
        if self.stream_fail_with is not None:
            raise self.stream_fail_with
        for chunk in self.chunks or []:
            yield chunk


class FixedRandom(random.Random):
    """Random whose draws are pinned: random() -> value, uniform(a, b) -> a."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value

    def uniform(self, a: float, b: float) -> float:
        return a


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def persona_factory() -> Callable[..., ClientPersona]:
    def make(personality: Personality = Personality.FRIENDLY) -> ClientPersona:
        return ClientPersona(
            name="Sarah Mitchell",
            background="First-time buyer relocating for work",
            personality=personality,
            budget="$400,000 - $450,000",
            motivations=("Find the right property",),
            objections=("The price is a bit high",),
            hidden_concerns=("Worried about making the wrong decision",),
        )

    return make


@pytest.fixture
def objection() -> GeneratedObjection:
    return GeneratedObjection(
        id="obj-price",
        category=ObjectionCategory.PRICE_BUDGET,
        severity=Severity.MODERATE,
        core_content="The price seems higher than I expected",
        variations=("This is above my budget",),
        ideal_responses=("Acknowledge and explore value",),
        common_mistakes=("Dismissing concerns",),
    )


@pytest.fixture
def make_services() -> Callable[..., Services]:
    def make(
        gateway: FallbackGateway | None = None,
        force_rule_based: bool = True,
        seed: int = 42,
        catalog: InMemoryObjectionCatalog | None = None,
    ) -> Services:
        return Services(
            sessions=InMemorySessionRepository(),
            reports=InMemoryReportRepository(),
            catalog=catalog or InMemoryObjectionCatalog(),
            gateway=gateway or FallbackGateway([MockBackend()]),
            rng=random.Random(seed),
            force_rule_based=force_rule_based,
        )

    return make


@pytest.fixture
def services(make_services) -> Services:
    return make_services()


@pytest.fixture
def offline_gateway() -> FallbackGateway:
    return FallbackGateway([
        ScriptedBackend("Primary", fail_with=RuntimeError("connection refused")),
        ScriptedBackend("Secondary", fail_with=TimeoutError("timed out")),
    ])
