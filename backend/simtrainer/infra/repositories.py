"""
Persistence collaborators: sessions with their turns, reports, objection catalog.

The use cases depend on the Protocols only.  The in-memory implementations
back the API process and the tests; swap for a database-backed version in
production.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from simtrainer.domain.state import (
    ConversationTurn,
    Difficulty,
    GeneratedObjection,
    ScenarioType,
    Sentiment,
    SessionStatus,
    SimulationOutcome,
    Speaker,
)
from simtrainer.utils.ids import generate_report_id, generate_session_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class SessionRecord:
    id: str
    trainee_id: str
    scenario_type: ScenarioType
    difficulty: Difficulty
    client_persona: dict[str, Any]
    status: SessionStatus = SessionStatus.CREATED
    created_at: datetime = field(default_factory=_utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: int | None = None
    outcome: SimulationOutcome | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    conversation_turns: list[ConversationTurn] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.status in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "traineeId": self.trainee_id,
            "scenarioType": self.scenario_type.value,
            "difficultyLevel": self.difficulty.value,
            "clientPersona": dict(self.client_persona),
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "durationSeconds": self.duration_seconds,
            "outcome": self.outcome.value if self.outcome else None,
            "metrics": dict(self.metrics),
            "conversationTurns": [t.to_dict() for t in self.conversation_turns],
        }


@dataclass
class ReportRecord:
    id: str
    trainee_id: str
    report_type: str
    source_type: str
    source_id: str
    summary: dict[str, Any]
    strengths: list[dict[str, Any]]
    weaknesses: list[dict[str, Any]]
    recommendations: list[dict[str, Any]]
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------

class SessionRepository(Protocol):
    async def create(
        self,
        trainee_id: str,
        scenario_type: ScenarioType,
        difficulty: Difficulty,
        client_persona: dict[str, Any],
    ) -> SessionRecord: ...

    async def update(self, session_id: str, **changes: Any) -> SessionRecord: ...

    async def find_by_id_with_turns(self, session_id: str) -> SessionRecord | None: ...

    async def add_conversation_turn(
        self,
        session_id: str,
        speaker: Speaker,
        message: str,
        turn_number: int,
        sentiment: Sentiment | None = None,
        detected_intent: str | None = None,
    ) -> ConversationTurn: ...


class ReportRepository(Protocol):
    async def create(self, **fields: Any) -> ReportRecord: ...

    async def find_by_source_id(self, source_id: str) -> ReportRecord | None: ...


class ObjectionCatalog(Protocol):
    async def get_by_scenario_type(self, scenario_type: ScenarioType) -> list[GeneratedObjection]: ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------

class InMemorySessionRepository:
    def __init__(self) -> None:
        self._sessions: dict[str, SessionRecord] = {}

    async def create(
        self,
        trainee_id: str,
        scenario_type: ScenarioType,
        difficulty: Difficulty,
        client_persona: dict[str, Any],
    ) -> SessionRecord:
        record = SessionRecord(
            id=generate_session_id(),
            trainee_id=trainee_id,
            scenario_type=scenario_type,
            difficulty=difficulty,
            client_persona=dict(client_persona),
        )
        self._sessions[record.id] = record
        return record

    async def update(self, session_id: str, **changes: Any) -> SessionRecord:
        record = self._sessions.get(session_id)
        if record is None:
            raise KeyError(session_id)
        for key, value in changes.items():
            if not hasattr(record, key):
                raise AttributeError(f"SessionRecord has no field {key!r}")
            setattr(record, key, value)
        return record

    async def find_by_id_with_turns(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    async def add_conversation_turn(
        self,
        session_id: str,
        speaker: Speaker,
        message: str,
        turn_number: int,
        sentiment: Sentiment | None = None,
        detected_intent: str | None = None,
    ) -> ConversationTurn:
        record = self._sessions.get(session_id)
        if record is None:
            raise KeyError(session_id)
        turn = ConversationTurn(
            speaker=speaker,
            message=message,
            turn_number=turn_number,
            sentiment=sentiment,
            detected_intent=detected_intent,
        )
        record.conversation_turns.append(turn)
        return turn

    def all(self) -> list[SessionRecord]:
        return list(self._sessions.values())


class InMemoryReportRepository:
    """Reports keyed by source id; creating again for the same source replaces the content."""

    def __init__(self) -> None:
        self._by_source: dict[str, ReportRecord] = {}

    async def create(self, **fields: Any) -> ReportRecord:
        source_id = fields["source_id"]
        existing = self._by_source.get(source_id)
        if existing is not None:
            for key, value in fields.items():
                setattr(existing, key, value)
            existing.updated_at = _utcnow()
            return existing

        report = ReportRecord(id=generate_report_id(), **fields)
        self._by_source[source_id] = report
        return report

    async def find_by_source_id(self, source_id: str) -> ReportRecord | None:
        return self._by_source.get(source_id)

    def count(self) -> int:
        return len(self._by_source)


class InMemoryObjectionCatalog:
    """Catalog seeded up front; an empty catalog makes the default pool kick in."""

    def __init__(self, objections: dict[ScenarioType, list[GeneratedObjection]] | None = None) -> None:
        self._by_scenario = {k: list(v) for k, v in (objections or {}).items()}

    async def get_by_scenario_type(self, scenario_type: ScenarioType) -> list[GeneratedObjection]:
        return list(self._by_scenario.get(scenario_type, []))
