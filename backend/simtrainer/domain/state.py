"""
Domain state models for the sales roleplay simulation.

This module defines the core data structures that flow through the engine:
- ConversationState: fixed dialogue phase progression
- ClientPersona: the simulated client's character for one session
- GeneratedObjection / RaisedObjection: objection pool and objection ledger
- ObjectionHandlingEvaluation / ClientReaction: per-objection scoring output
- ConversationTurn / ConversationAnalysis: the transcript and per-turn signals
- SimulationState: per-session in-memory objection bookkeeping

Design tradeoff: dataclasses (not Pydantic) keep the domain layer
framework-free. Pydantic models live in schemas/ for the HTTP boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ConversationState(Enum):
    """
    Dialogue phases, in progression order.  Transitions are managed by
    conversation.determine_next_state and never move backwards.
    """
    OPENING = "opening"
    DISCOVERY = "discovery"
    PRESENTING = "presenting"
    NEGOTIATING = "negotiating"
    CLOSING = "closing"
    ENDED = "ended"


STATE_ORDER: tuple[ConversationState, ...] = tuple(ConversationState)


class Difficulty(Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Personality(Enum):
    FRIENDLY = "friendly"
    SKEPTICAL = "skeptical"
    DEMANDING = "demanding"
    INDECISIVE = "indecisive"
    ANALYTICAL = "analytical"


class Sentiment(Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Speaker(Enum):
    TRAINEE = "trainee"
    CLIENT = "client"


class ScenarioType(Enum):
    PROPERTY_SHOWING = "property_showing"
    PRICE_NEGOTIATION = "price_negotiation"
    OBJECTION_HANDLING = "objection_handling"
    FIRST_CONTACT = "first_contact"
    CLOSING_DEAL = "closing_deal"
    RELATIONSHIP_BUILDING = "relationship_building"
    DIFFICULT_CLIENT = "difficult_client"
    # Legacy names still accepted from older clients
    CLOSING = "closing"
    COLD_CALL = "cold_call"
    FOLLOW_UP = "follow_up"


class ObjectionCategory(Enum):
    PRICE_BUDGET = "price_budget"
    TIMING_URGENCY = "timing_urgency"
    COMPETITION_ALTERNATIVES = "competition_alternatives"
    TRUST_CREDIBILITY = "trust_credibility"
    FEATURE_QUALITY = "feature_quality"
    LOCATION_AREA = "location_area"
    PROCESS_COMPLEXITY = "process_complexity"


class Severity(Enum):
    SOFT = "soft"
    MODERATE = "moderate"
    STRONG = "strong"


class ObjectionTechnique(Enum):
    FEEL_FELT_FOUND = "feel_felt_found"
    ACKNOWLEDGE_AND_PIVOT = "acknowledge_and_pivot"
    QUESTION_TO_UNDERSTAND = "question_to_understand"
    REFRAME_VALUE = "reframe_value"
    SOCIAL_PROOF = "social_proof"
    FUTURE_PACING = "future_pacing"
    ISOLATION = "isolation"
    TRIAL_CLOSE = "trial_close"


class NextAction(Enum):
    ACCEPT = "accept"
    SOFTEN = "soften"
    MAINTAIN = "maintain"
    ESCALATE = "escalate"


class SessionStatus(Enum):
    CREATED = "created"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SimulationOutcome(Enum):
    DEAL_CLOSED = "deal_closed"
    FOLLOW_UP_SCHEDULED = "follow_up_scheduled"
    CLIENT_INTERESTED = "client_interested"
    CLIENT_UNDECIDED = "client_undecided"
    CLIENT_DECLINED = "client_declined"


# ---------------------------------------------------------------------------
# Persona
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClientPersona:
    """
    The simulated client.  Created once at session start and never mutated;
    persisted on the session record as a plain dict (see to_dict/from_dict).
    """
    name: str
    background: str
    personality: Personality
    budget: str
    motivations: tuple[str, ...] = ()
    objections: tuple[str, ...] = ()
    hidden_concerns: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "background": self.background,
            "personality": self.personality.value,
            "budget": self.budget,
            "motivations": list(self.motivations),
            "objections": list(self.objections),
            "hiddenConcerns": list(self.hidden_concerns),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientPersona:
        """Total over loose input: unknown personalities read as friendly."""
        return cls(
            name=str(data.get("name", "")),
            background=str(data.get("background", "")),
            personality=_personality_or_default(data.get("personality")),
            budget=str(data.get("budget", "")),
            motivations=_str_tuple(data.get("motivations")),
            objections=_str_tuple(data.get("objections")),
            hidden_concerns=_str_tuple(data.get("hiddenConcerns")),
        )


def _personality_or_default(value: Any) -> Personality:
    if isinstance(value, Personality):
        return value
    try:
        return Personality(value)
    except ValueError:
        return Personality.FRIENDLY


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


# ---------------------------------------------------------------------------
# Objections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeneratedObjection:
    """A scripted client concern, read-only once produced."""
    id: str
    category: ObjectionCategory
    severity: Severity
    core_content: str
    variations: tuple[str, ...] = ()
    trigger_conditions: tuple[str, ...] = ()
    ideal_responses: tuple[str, ...] = ()
    common_mistakes: tuple[str, ...] = ()

    def with_severity(self, severity: Severity) -> GeneratedObjection:
        return replace(self, severity=severity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "coreContent": self.core_content,
            "variations": list(self.variations),
            "triggerConditions": list(self.trigger_conditions),
            "idealResponses": list(self.ideal_responses),
            "commonMistakes": list(self.common_mistakes),
        }


@dataclass(frozen=True)
class ObjectionHandlingEvaluation:
    """
    Verdict on one trainee response to one raised objection.

    score is the clamped additive rubric (see handling.calculate_handling_score);
    the five booleans are the positive rubric signals that survive into the
    ledger.
    """
    score: int
    acknowledged: bool = False
    empathy_shown: bool = False
    addressed_directly: bool = False
    provided_value: bool = False
    asked_follow_up: bool = False
    techniques: tuple[ObjectionTechnique, ...] = ()
    feedback: str = ""
    improvements: tuple[str, ...] = ()
    source: str = "llm"  # "llm" | "fallback"

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "acknowledged": self.acknowledged,
            "empathyShown": self.empathy_shown,
            "addressedDirectly": self.addressed_directly,
            "providedValue": self.provided_value,
            "askedFollowUp": self.asked_follow_up,
            "techniques": [t.value for t in self.techniques],
            "feedback": self.feedback,
            "improvements": list(self.improvements),
            "source": self.source,
        }


@dataclass
class RaisedObjection:
    """
    Ledger entry for an objection the client has voiced.

    Appended when the injection policy fires.  While unresolved it records the
    trainee's latest attempt; once resolved it is never touched again.
    """
    objection: GeneratedObjection
    raised_at_turn: int
    trainee_response: str | None = None
    evaluation: ObjectionHandlingEvaluation | None = None
    resolved: bool = False
    attempts: int = 0

    def record_attempt(
        self,
        trainee_response: str,
        evaluation: ObjectionHandlingEvaluation,
        resolved: bool,
    ) -> None:
        if self.resolved:
            raise ValueError(f"Objection {self.objection.id} is already resolved")
        self.trainee_response = trainee_response
        self.evaluation = evaluation
        self.resolved = resolved
        self.attempts += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "objection": self.objection.to_dict(),
            "raisedAtTurn": self.raised_at_turn,
            "traineeResponse": self.trainee_response,
            "evaluation": self.evaluation.to_dict() if self.evaluation else None,
            "resolved": self.resolved,
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class ClientReaction:
    """How the client responds to the trainee's handling of an objection."""
    new_sentiment: Sentiment
    objection_resolved: bool
    next_action: NextAction
    response_guidance: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "newSentiment": self.new_sentiment.value,
            "objectionResolved": self.objection_resolved,
            "nextAction": self.next_action.value,
            "responseGuidance": self.response_guidance,
        }


@dataclass(frozen=True)
class ObjectionDecision:
    """Output of the injection policy for one turn."""
    should_inject: bool
    reason: str
    timing: str = "delayed"  # "immediate" | "next_turn" | "delayed"
    objection: GeneratedObjection | None = None
    probability: float | None = None


@dataclass(frozen=True)
class InjectionContext:
    """Everything the injection policy looks at on one turn."""
    current_turn: int
    conversation_state: ConversationState
    last_trainee_message: str
    pending_objections: tuple[GeneratedObjection, ...]
    raised_objections: tuple[RaisedObjection, ...]
    difficulty: Difficulty
    overall_sentiment: Sentiment = Sentiment.NEUTRAL


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConversationTurn:
    """One message in the transcript; turn_number 0 is the client's opener."""
    speaker: Speaker
    message: str
    turn_number: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sentiment: Sentiment | None = None
    detected_intent: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "speaker": self.speaker.value,
            "message": self.message,
            "turnNumber": self.turn_number,
            "timestamp": self.timestamp.isoformat(),
            "sentiment": self.sentiment.value if self.sentiment else None,
            "detectedIntent": self.detected_intent,
        }


@dataclass(frozen=True)
class ConversationAnalysis:
    """Signals extracted from one trainee message."""
    sentiment: Sentiment = Sentiment.NEUTRAL
    detected_intent: str | None = None
    hints: tuple[str, ...] = ()
    source: str = "rule_based"  # "llm" | "rule_based"


# ---------------------------------------------------------------------------
# Per-session objection state
# ---------------------------------------------------------------------------

@dataclass
class SimulationState:
    """
    Objection bookkeeping for one live session.

    Invariant: current_objection is set only while the matching ledger entry
    in raised_objections is unresolved.
    """
    session_id: str
    difficulty: Difficulty
    pending_objections: list[GeneratedObjection] = field(default_factory=list)
    raised_objections: list[RaisedObjection] = field(default_factory=list)
    current_objection: GeneratedObjection | None = None
    phase: ConversationState = ConversationState.OPENING

    def unresolved_count(self) -> int:
        return sum(1 for r in self.raised_objections if not r.resolved)

    def resolved_count(self) -> int:
        return sum(1 for r in self.raised_objections if r.resolved)

    def current_entry(self) -> RaisedObjection | None:
        """Ledger entry for the open objection, if any."""
        if self.current_objection is None:
            return None
        for entry in reversed(self.raised_objections):
            if entry.objection.id == self.current_objection.id:
                return entry
        return None

    def raise_objection(self, objection: GeneratedObjection, at_turn: int) -> RaisedObjection:
        """Move an objection from the pending pool into the ledger and open it."""
        self.pending_objections = [o for o in self.pending_objections if o.id != objection.id]
        entry = RaisedObjection(objection=objection, raised_at_turn=at_turn)
        self.raised_objections.append(entry)
        self.current_objection = objection
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "difficulty": self.difficulty.value,
            "phase": self.phase.value,
            "pendingObjections": [o.to_dict() for o in self.pending_objections],
            "raisedObjections": [r.to_dict() for r in self.raised_objections],
            "currentObjection": (
                self.current_objection.to_dict() if self.current_objection else None
            ),
        }
