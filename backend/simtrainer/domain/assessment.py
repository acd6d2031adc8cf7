"""
End-of-session multi-skill assessment.

Conversation metrics are always computed deterministically from the
transcript.  Skill scores and narrative come from an LLM verdict when one
parses; otherwise a metric-driven fallback produces the whole result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from simtrainer.domain.payload import (
    ParseFailure,
    ParseResult,
    safe_int,
    safe_str_list,
)
from simtrainer.domain.state import ConversationTurn, Speaker


SKILLS = (
    "communication",
    "negotiation",
    "objectionHandling",
    "relationshipBuilding",
    "productKnowledge",
    "closingTechnique",
)

_SKILL_NAMES = {
    "communication": "Communication",
    "negotiation": "Negotiation",
    "objectionHandling": "Objection Handling",
    "relationshipBuilding": "Relationship Building",
    "productKnowledge": "Product Knowledge",
    "closingTechnique": "Closing Technique",
}

SKILL_BENCHMARK = 75

EMPATHY_PHRASES = (
    "understand", "i see", "that makes sense", "i hear you", "appreciate", "important to you",
)
LISTENING_PHRASES = (
    "you mentioned", "earlier you said", "so what you're saying", "let me make sure i understand",
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SkillEvaluation:
    score: int
    reasoning: str
    evidence: tuple[str, ...] = ()
    tips: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "reasoning": self.reasoning,
            "evidence": list(self.evidence),
            "tips": list(self.tips),
        }


@dataclass(frozen=True)
class ConversationMetrics:
    talk_time_ratio: float = 0.5
    average_response_length: int = 0
    questions_asked: int = 0
    empathy_statements: int = 0
    active_listening_indicators: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "talkTimeRatio": self.talk_time_ratio,
            "averageResponseLength": self.average_response_length,
            "questionsAsked": self.questions_asked,
            "empathyStatements": self.empathy_statements,
            "activeListeningIndicators": self.active_listening_indicators,
        }


@dataclass(frozen=True)
class Recommendation:
    priority: str  # "high" | "medium" | "low"
    category: str
    title: str
    description: str
    actionable_steps: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "actionableSteps": list(self.actionable_steps),
        }


@dataclass(frozen=True)
class EvaluationResult:
    overall_score: int
    grade: str
    summary: str
    skill_scores: dict[str, SkillEvaluation]
    metrics: ConversationMetrics
    highlights: tuple[str, ...] = ()
    improvement_areas: tuple[str, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    source: str = "llm"  # "llm" | "fallback"

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "grade": self.grade,
            "summary": self.summary,
            "skillScores": {k: v.to_dict() for k, v in self.skill_scores.items()},
            "conversationMetrics": self.metrics.to_dict(),
            "highlights": list(self.highlights),
            "improvementAreas": list(self.improvement_areas),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "source": self.source,
        }


# ---------------------------------------------------------------------------
# Grading helpers
# ---------------------------------------------------------------------------

def clamp_score(value: float) -> int:
    return max(0, min(100, round(value)))


def score_to_grade(score: int) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def generate_summary(score: int) -> str:
    if score >= 90:
        return "Outstanding performance demonstrating mastery of key sales techniques."
    if score >= 80:
        return "Strong performance with minor areas for refinement."
    if score >= 70:
        return "Competent performance showing solid foundational skills."
    if score >= 60:
        return "Developing skills with room for significant improvement."
    return "This session highlighted important areas requiring focused practice."


def format_skill_name(skill: str) -> str:
    return _SKILL_NAMES.get(skill, skill)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def compute_metrics(turns: list[ConversationTurn]) -> ConversationMetrics:
    trainee = [t.message for t in turns if t.speaker == Speaker.TRAINEE]
    client = [t.message for t in turns if t.speaker == Speaker.CLIENT]

    trainee_chars = sum(len(m) for m in trainee)
    client_chars = sum(len(m) for m in client)

    if trainee and client and (trainee_chars + client_chars) > 0:
        ratio = round(trainee_chars / (trainee_chars + client_chars), 2)
    else:
        ratio = 0.5

    return ConversationMetrics(
        talk_time_ratio=ratio,
        average_response_length=round(trainee_chars / len(trainee)) if trainee else 0,
        questions_asked=sum(1 for m in trainee if "?" in m),
        empathy_statements=sum(
            1 for m in trainee if any(p in m.lower() for p in EMPATHY_PHRASES)
        ),
        active_listening_indicators=sum(
            1 for m in trainee if any(p in m.lower() for p in LISTENING_PHRASES)
        ),
    )


# ---------------------------------------------------------------------------
# LLM verdict -> result
# ---------------------------------------------------------------------------

def normalize_skill(raw: Any) -> SkillEvaluation:
    raw = raw if isinstance(raw, dict) else {}
    reasoning = raw.get("reasoning")
    return SkillEvaluation(
        score=clamp_score(safe_int(raw.get("score"), 50) or 50),
        reasoning=reasoning if isinstance(reasoning, str) and reasoning else "Based on conversation analysis",
        evidence=tuple(safe_str_list(raw.get("evidence"))),
        tips=tuple(safe_str_list(raw.get("tips"))),
    )


def _parse_recommendations(raw: Any) -> tuple[Recommendation, ...]:
    if not isinstance(raw, list):
        return ()
    out = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("title"):
            continue
        priority = str(item.get("priority", "medium")).lower()
        out.append(Recommendation(
            priority=priority if priority in ("high", "medium", "low") else "medium",
            category=str(item.get("category", "technique")),
            title=str(item["title"]),
            description=str(item.get("description", "")),
            actionable_steps=tuple(safe_str_list(item.get("actionableSteps"))),
        ))
    return tuple(out)


def build_evaluation_result(
    result: ParseResult,
    turns: list[ConversationTurn],
) -> EvaluationResult:
    """Use the parsed verdict, or fall back to metric scoring on a parse failure."""
    metrics = compute_metrics(turns)
    if isinstance(result, ParseFailure) or "overallScore" not in result.data:
        return fallback_evaluation(turns, metrics)

    data = result.data
    overall = clamp_score(safe_int(data.get("overallScore"), 50))
    skills_raw = data.get("skillScores") if isinstance(data.get("skillScores"), dict) else {}
    summary = data.get("summary")

    return EvaluationResult(
        overall_score=overall,
        grade=score_to_grade(overall),
        summary=summary if isinstance(summary, str) and summary else generate_summary(overall),
        skill_scores={name: normalize_skill(skills_raw.get(name)) for name in SKILLS},
        metrics=metrics,
        highlights=tuple(safe_str_list(data.get("highlights"))),
        improvement_areas=tuple(safe_str_list(data.get("improvementAreas"))),
        recommendations=_parse_recommendations(data.get("recommendations")),
        source="llm",
    )


# ---------------------------------------------------------------------------
# Deterministic fallback
# ---------------------------------------------------------------------------

def fallback_evaluation(
    turns: list[ConversationTurn],
    metrics: ConversationMetrics | None = None,
) -> EvaluationResult:
    m = metrics or compute_metrics(turns)
    turn_count = len(turns)
    q, e, l = m.questions_asked, m.empathy_statements, m.active_listening_indicators
    avg_len = m.average_response_length

    score = 50
    if turn_count >= 6:
        score += 10
    if turn_count >= 10:
        score += 5
    score += min(15, q * 5)
    score += min(10, e * 5)
    score += min(10, l * 5)
    if 0.35 <= m.talk_time_ratio <= 0.65:
        score += 5
    if 50 <= avg_len <= 200:
        score += 5
    overall = clamp_score(score)

    first_trainee = next((t.message for t in turns if t.speaker == Speaker.TRAINEE), None)

    skills = {
        "communication": SkillEvaluation(
            score=clamp_score(50 + (15 if avg_len > 30 else 0) + q * 5),
            reasoning="Based on response quality and engagement level",
            evidence=(first_trainee[:100],) if first_trainee else (),
            tips=("Practice asking open-ended questions", "Vary your response length based on context"),
        ),
        "negotiation": SkillEvaluation(
            score=clamp_score(45 + (10 if turn_count > 8 else 0) + e * 3),
            reasoning="Based on conversation flow and persistence",
            tips=("Focus on understanding client needs before proposing solutions",),
        ),
        "objectionHandling": SkillEvaluation(
            score=clamp_score(50 + l * 8 + e * 5),
            reasoning="Based on empathy and active listening indicators",
            tips=("Acknowledge concerns before addressing them", "Use the LAER method"),
        ),
        "relationshipBuilding": SkillEvaluation(
            score=clamp_score(50 + e * 8 + q * 3),
            reasoning="Based on empathy statements and questioning technique",
            tips=("Show genuine interest in client needs", "Remember and reference earlier details"),
        ),
        "productKnowledge": SkillEvaluation(
            score=clamp_score(45 + (10 if avg_len > 50 else 0) + (10 if turn_count > 6 else 0)),
            reasoning="Based on response detail and relevance",
            tips=("Provide specific property details when relevant",),
        ),
        "closingTechnique": SkillEvaluation(
            score=clamp_score(40 + (15 if turn_count > 10 else 0) + l * 5),
            reasoning="Based on conversation progression and commitment-seeking",
            tips=("Summarize benefits before asking for commitment", "Use trial closes throughout"),
        ),
    }

    return EvaluationResult(
        overall_score=overall,
        grade=score_to_grade(overall),
        summary=generate_summary(overall),
        skill_scores=skills,
        metrics=m,
        highlights=tuple(_fallback_highlights(q, e, turn_count)),
        improvement_areas=tuple(_fallback_improvement_areas(q, e, m.talk_time_ratio)),
        recommendations=tuple(_fallback_recommendations(overall)),
        source="fallback",
    )


def _fallback_highlights(questions: int, empathy: int, turns: int) -> list[str]:
    highlights = []
    if questions >= 3:
        highlights.append("Good use of questions to understand client needs")
    if empathy >= 2:
        highlights.append("Demonstrated empathy and understanding")
    if turns >= 8:
        highlights.append("Maintained engagement throughout the conversation")
    return highlights or ["Completed the simulation exercise"]


def _fallback_improvement_areas(questions: int, empathy: int, talk_ratio: float) -> list[str]:
    areas = []
    if questions < 2:
        areas.append("Ask more discovery questions to understand client needs")
    if empathy < 2:
        areas.append("Show more empathy when client expresses concerns")
    if talk_ratio > 0.7:
        areas.append("Listen more - you dominated the conversation")
    if talk_ratio < 0.3:
        areas.append("Engage more actively in the conversation")
    return areas or ["Continue practicing to refine your technique"]


def _fallback_recommendations(score: int) -> list[Recommendation]:
    recs = []
    if score < 70:
        recs.append(Recommendation(
            priority="high",
            category="technique",
            title="Master Active Listening",
            description="Focus on truly understanding client needs before responding",
            actionable_steps=(
                "Paraphrase what the client says before responding",
                "Ask clarifying questions when something is unclear",
                "Take notes on key client concerns",
            ),
        ))
    if score < 80:
        recs.append(Recommendation(
            priority="medium",
            category="technique",
            title="Improve Objection Handling",
            description="Learn to address concerns without being defensive",
            actionable_steps=(
                "Acknowledge the concern first",
                "Ask questions to understand the root issue",
                "Provide evidence-based responses",
            ),
        ))
    recs.append(Recommendation(
        priority="low",
        category="practice",
        title="Practice Different Scenarios",
        description="Build versatility by practicing various client types",
        actionable_steps=(
            "Try scenarios with different client personalities",
            "Increase difficulty level gradually",
            "Focus on your weakest skill areas",
        ),
    ))
    return recs


# ---------------------------------------------------------------------------
# Analysis-level recommendations
# ---------------------------------------------------------------------------

def build_session_recommendations(evaluation: EvaluationResult) -> list[Recommendation]:
    """
    Coaching plan for the analysis report: the two weakest skills (if below
    70) as high priority, two improvement areas as medium, one progression
    item as low.
    """
    recs: list[Recommendation] = []

    weakest = sorted(evaluation.skill_scores.items(), key=lambda kv: kv[1].score)[:2]
    for skill, data in weakest:
        if data.score >= 70:
            continue
        name = format_skill_name(skill)
        recs.append(Recommendation(
            priority="high",
            category="practice_skill",
            title=f"Improve {name}",
            description=f"Your {name.lower()} score is {data.score}/100. Focus on this area.",
            actionable_steps=data.tips or (f"Practice scenarios focused on {name.lower()}",),
        ))

    for area in evaluation.improvement_areas[:2]:
        recs.append(Recommendation(
            priority="medium",
            category="review_content",
            title="Area for Improvement",
            description=area,
            actionable_steps=("Review this feedback", "Practice in your next simulation"),
        ))

    if evaluation.overall_score >= 80:
        recs.append(Recommendation(
            priority="low",
            category="advance",
            title="Try More Challenging Scenarios",
            description="Great performance! You're ready for harder challenges.",
            actionable_steps=("Attempt the next difficulty level", "Try different scenario types"),
        ))
    else:
        recs.append(Recommendation(
            priority="low",
            category="practice_skill",
            title="Continue Practicing",
            description="Keep practicing at this level to build confidence.",
            actionable_steps=("Repeat this scenario type", "Focus on one skill at a time"),
        ))
    return recs


def suggested_scenarios(score: int) -> list[str]:
    if score >= 80:
        return ["advanced_negotiation", "difficult_client", "complex_objection"]
    if score >= 60:
        return ["objection_handling", "price_negotiation", "building_rapport"]
    return ["basic_introduction", "simple_objection", "needs_assessment"]
