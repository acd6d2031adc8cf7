"""
End-simulation use case.

Finalizes a session: tallies the objection ledger, classifies the outcome,
computes the preliminary score, persists everything on the session record
and drops the in-memory objection state.

Idempotent: if the session is already completed or abandoned, returns the
stored result without touching anything.
"""

from __future__ import annotations

from datetime import datetime, timezone

from simtrainer.core.errors import SessionNotFoundError
from simtrainer.core.logging import logger
from simtrainer.domain.outcome import (
    COMPLETED_REASON,
    ObjectionTally,
    calculate_preliminary_score,
    determine_outcome,
    get_next_steps,
    session_status_for,
)
from simtrainer.domain.state import SessionStatus, SimulationOutcome
from simtrainer.infra.repositories import SessionRecord
from simtrainer.usecases.deps import Services, get_services


def _result_from_record(session: SessionRecord) -> dict:
    metrics = session.metrics
    outcome = session.outcome or SimulationOutcome.CLIENT_DECLINED
    score = metrics.get("preliminaryScore", 0)
    return {
        "session_id": session.id,
        "status": session.status.value,
        "total_duration_seconds": session.duration_seconds or 0,
        "turn_count": metrics.get("turnCount", len(session.conversation_turns)),
        "resolved_objections": metrics.get("resolvedObjections", 0),
        "total_objections": metrics.get("totalObjections", 0),
        "preliminary_score": score,
        "outcome": outcome.value,
        "next_steps": get_next_steps(outcome, score),
    }


async def end_simulation(
    session_id: str,
    end_reason: str = COMPLETED_REASON,
    services: Services | None = None,
) -> dict:
    """
    End the session and return its summary.

    Any ``end_reason`` other than "completed" (e.g. "abandoned", "timeout")
    marks the session abandoned and forces a client_declined outcome.
    Raises SessionNotFoundError, or TurnInProgressError while a message
    is still being processed.
    """
    svc = services or get_services()

    session = await svc.sessions.find_by_id_with_turns(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    if session.is_closed:
        return _result_from_record(session)

    async with svc.store.turn_lock(session_id):
        # another end may have finished while this one waited
        session = await svc.sessions.find_by_id_with_turns(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.is_closed:
            return _result_from_record(session)

        now = datetime.now(timezone.utc)
        started = session.started_at or session.created_at
        duration = max(0, int((now - started).total_seconds()))
        turn_count = len(session.conversation_turns)

        state = svc.store.get(session_id)
        if state is None:
            logger.warning(
                "Session %s: objection state already gone, scoring on turns only",
                session_id,
            )
            tally = None
        else:
            tally = ObjectionTally.from_ledger(state.raised_objections)

        resolved = tally.resolved if tally else 0
        total = tally.total if tally else 0
        outcome = determine_outcome(end_reason, turn_count, resolved, total)
        score = calculate_preliminary_score(tally, turn_count)

        await svc.sessions.update(
            session_id,
            status=SessionStatus(session_status_for(end_reason)),
            completed_at=now,
            duration_seconds=duration,
            outcome=outcome,
            metrics={
                **session.metrics,
                "turnCount": turn_count,
                "resolvedObjections": resolved,
                "totalObjections": total,
                "preliminaryScore": score,
                "endReason": end_reason,
            },
        )
        svc.store.delete(session_id)

    logger.info(
        "Session %s ended (%s): outcome=%s score=%d objections=%d/%d turns=%d duration=%ds",
        session_id,
        end_reason,
        outcome.value,
        score,
        resolved,
        total,
        turn_count,
        duration,
    )

    return {
        "session_id": session_id,
        "status": session_status_for(end_reason),
        "total_duration_seconds": duration,
        "turn_count": turn_count,
        "resolved_objections": resolved,
        "total_objections": total,
        "preliminary_score": score,
        "outcome": outcome.value,
        "next_steps": get_next_steps(outcome, score),
    }
