"""
Analyze-simulation use case.

Scores the full transcript on six skills (LLM verdict, or the metric-based
fallback), shapes it into the analysis payload, optionally upserts the
coaching report and writes the evaluated score back onto the session.
Safe to call repeatedly: the report is keyed by session id.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

from simtrainer.core.errors import SessionNotFoundError
from simtrainer.core.logging import logger
from simtrainer.domain.assessment import (
    SKILL_BENCHMARK,
    EvaluationResult,
    build_session_recommendations,
    fallback_evaluation,
    format_skill_name,
    suggested_scenarios,
)
from simtrainer.domain.state import ClientPersona
from simtrainer.infra.providers.roleplay_llm import evaluate_conversation
from simtrainer.infra.repositories import SessionRecord
from simtrainer.usecases.deps import Services, get_services


def _skill_scores(evaluation: EvaluationResult) -> dict:
    return {
        name: {
            "score": skill.score,
            "benchmark": SKILL_BENCHMARK,
            "trend": "stable",
            "reasoning": skill.reasoning,
            "evidence": list(skill.evidence),
            "tips": list(skill.tips),
        }
        for name, skill in evaluation.skill_scores.items()
    }


def _key_moments(evaluation: EvaluationResult) -> list[dict]:
    moments = [
        {"type": "positive", "description": text} for text in evaluation.highlights
    ]
    moments += [
        {"type": "improvement", "description": text} for text in evaluation.improvement_areas
    ]
    return moments


def _build_analysis(session: SessionRecord, evaluation: EvaluationResult) -> dict:
    metrics = evaluation.metrics
    return {
        "overall_performance": {
            "score": evaluation.overall_score,
            "grade": evaluation.grade,
            "summary": evaluation.summary,
        },
        "skill_scores": _skill_scores(evaluation),
        "conversation_analysis": {
            "total_turns": len(session.conversation_turns),
            "talk_time_ratio": metrics.talk_time_ratio,
            "average_response_length": metrics.average_response_length,
            "questions_asked": metrics.questions_asked,
            "empathy_statements": metrics.empathy_statements,
            "active_listening_indicators": metrics.active_listening_indicators,
            "key_moments": _key_moments(evaluation),
        },
        "recommendations": [r.to_dict() for r in build_session_recommendations(evaluation)],
        "suggested_scenarios": suggested_scenarios(evaluation.overall_score),
        "evaluation_source": evaluation.source,
    }


async def analyze_simulation(
    session_id: str,
    generate_recommendations: bool = True,
    services: Services | None = None,
) -> dict:
    """
    Evaluate the session transcript and return the analysis.

    With ``generate_recommendations`` the coaching report is persisted
    (created once, replaced on later calls).  Raises SessionNotFoundError.
    """
    svc = services or get_services()
    t0 = time.monotonic()

    session = await svc.sessions.find_by_id_with_turns(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)

    turns = list(session.conversation_turns)
    if svc.force_rule_based:
        evaluation = fallback_evaluation(turns)
    else:
        persona = ClientPersona.from_dict(session.client_persona) if session.client_persona else None
        evaluation = await evaluate_conversation(
            svc.gateway, turns, session.scenario_type, session.difficulty, persona
        )

    analysis = _build_analysis(session, evaluation)

    if generate_recommendations:
        await svc.reports.create(
            trainee_id=session.trainee_id,
            report_type="session",
            source_type="simulation",
            source_id=session.id,
            summary={
                "overallScore": evaluation.overall_score,
                "grade": evaluation.grade,
                "summary": evaluation.summary,
                "skillScores": {
                    name: skill.score for name, skill in evaluation.skill_scores.items()
                },
            },
            strengths=[
                {"title": "Strength", "description": text} for text in evaluation.highlights
            ],
            weaknesses=[
                {
                    "skill": format_skill_name(name),
                    "score": skill.score,
                    "description": skill.reasoning,
                }
                for name, skill in evaluation.skill_scores.items()
                if skill.score < SKILL_BENCHMARK
            ],
            recommendations=analysis["recommendations"],
        )

    await svc.sessions.update(
        session_id,
        metrics={
            **session.metrics,
            "aiEvaluatedScore": evaluation.overall_score,
            "aiGrade": evaluation.grade,
            "evaluatedAt": datetime.now(timezone.utc).isoformat(),
        },
    )

    logger.info(
        "Session %s analyzed: score=%d grade=%s source=%s report=%s (%.0fms)",
        session_id,
        evaluation.overall_score,
        evaluation.grade,
        evaluation.source,
        generate_recommendations,
        (time.monotonic() - t0) * 1000,
    )

    return {"session_id": session_id, **analysis}
