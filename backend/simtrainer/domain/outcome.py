"""
Session outcome scoring — classification, preliminary score, next steps.

Outcome model (any end reason other than "completed" forces client_declined):
  resolution rate >= 0.8 and >= 10 turns  -> deal_closed
  resolution rate >= 0.6                  -> follow_up_scheduled
  resolution rate >= 0.4                  -> client_interested
  resolution rate >= 0.2                  -> client_undecided
  otherwise                               -> client_declined

With no raised objections the resolution rate counts as 1.0.

Preliminary score (halves round up, clamped to 0-100):
  base 60, +25 x resolution rate
  averaged with the mean per-objection evaluation score (0 if none)
  +5 at 8 turns, +5 more at 12 turns
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from simtrainer.domain.state import RaisedObjection, SimulationOutcome


COMPLETED_REASON = "completed"


@dataclass(frozen=True)
class ObjectionTally:
    resolved: int
    total: int
    evaluation_scores: tuple[int, ...] = ()

    @property
    def resolution_rate(self) -> float:
        return self.resolved / self.total if self.total > 0 else 1.0

    @classmethod
    def from_ledger(cls, raised: list[RaisedObjection]) -> ObjectionTally:
        return cls(
            resolved=sum(1 for r in raised if r.resolved),
            total=len(raised),
            evaluation_scores=tuple(r.evaluation.score for r in raised if r.evaluation),
        )


def determine_outcome(
    end_reason: str,
    turn_count: int,
    resolved: int,
    total: int,
) -> SimulationOutcome:
    if end_reason != COMPLETED_REASON:
        return SimulationOutcome.CLIENT_DECLINED

    rate = resolved / total if total > 0 else 1.0
    if rate >= 0.8 and turn_count >= 10:
        return SimulationOutcome.DEAL_CLOSED
    if rate >= 0.6:
        return SimulationOutcome.FOLLOW_UP_SCHEDULED
    if rate >= 0.4:
        return SimulationOutcome.CLIENT_INTERESTED
    if rate >= 0.2:
        return SimulationOutcome.CLIENT_UNDECIDED
    return SimulationOutcome.CLIENT_DECLINED


def calculate_preliminary_score(tally: ObjectionTally | None, turn_count: int) -> int:
    """
    ``tally`` is None when the in-memory objection state was already gone
    (e.g. after a restart); only the turn milestones apply then.  Otherwise
    the base is averaged with the mean evaluation score, which is 0 when
    nothing was evaluated.
    """
    score = 60.0
    if tally is not None:
        if tally.total > 0:
            score += tally.resolution_rate * 25
        scores = tally.evaluation_scores
        avg = sum(scores) / len(scores) if scores else 0.0
        score = (score + avg) / 2

    if turn_count >= 8:
        score += 5
    if turn_count >= 12:
        score += 5

    return max(0, min(100, math.floor(score + 0.5)))


def session_status_for(end_reason: str) -> str:
    return "completed" if end_reason == COMPLETED_REASON else "abandoned"


def get_next_steps(outcome: SimulationOutcome, score: int) -> list[str]:
    steps: list[str] = []
    if score < 60:
        steps.append("Review objection handling techniques")
        steps.append("Practice with easier scenarios first")
    elif score < 80:
        steps.append("Focus on closing techniques")
        steps.append("Try a more challenging scenario")
    else:
        steps.append("Excellent work! Try a harder difficulty")
        steps.append("Practice different scenario types")

    if outcome == SimulationOutcome.CLIENT_DECLINED:
        steps.append("Review the conversation transcript for learning opportunities")
    return steps
