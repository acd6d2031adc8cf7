from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from typing import Any

from simtrainer.domain.state import Difficulty, Personality, ScenarioType


class CustomPersonaConfig(BaseModel):
    """Persona fields the caller pins; unset fields keep the generated values."""
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    background: str | None = None
    personality: Personality | None = None
    budget: str | None = None
    motivations: list[str] | None = None
    objections: list[str] | None = None
    hidden_concerns: list[str] | None = Field(default=None, alias="hiddenConcerns")

    def to_overrides(self) -> dict[str, Any]:
        # camelCase, as stored on the session record
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StartSimulationRequest(BaseModel):
    scenario_type: ScenarioType
    difficulty: Difficulty = Difficulty.MEDIUM
    trainee_id: str = Field(min_length=1)
    custom_persona_config: CustomPersonaConfig | None = None


class StartSimulationResponse(BaseModel):
    session_id: str
    status: str
    client_persona: dict[str, Any]
    scenario_context: str
    initial_client_message: str
    estimated_duration_minutes: int
    tips: list[str] = []


class MessageRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)


class MessageResponse(BaseModel):
    session_id: str
    client_response: str
    sentiment: str
    conversation_state: str
    hints: list[str] = []
    turn_number: int
    elapsed_time_seconds: int
    objection_raised: bool = False
    objection_resolved: bool = False


class EndSimulationRequest(BaseModel):
    end_reason: str = "completed"


class EndSimulationResponse(BaseModel):
    session_id: str
    status: str
    total_duration_seconds: int
    turn_count: int
    resolved_objections: int = 0
    total_objections: int = 0
    preliminary_score: int
    outcome: str
    next_steps: list[str] = []


class SessionResponse(BaseModel):
    session: dict[str, Any]
    simulation_state: dict[str, Any] | None = None
