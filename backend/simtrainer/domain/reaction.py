"""
Client reaction policy.

Maps an objection-handling score to the client's next disposition, then lets
the persona's personality bend the result.  Coin flips use the injected RNG.
"""

from __future__ import annotations

import random

from simtrainer.domain.state import (
    ClientPersona,
    ClientReaction,
    NextAction,
    ObjectionHandlingEvaluation,
    Personality,
    Sentiment,
)


_GUIDANCE: dict[NextAction, str] = {
    NextAction.ACCEPT: (
        "Client is satisfied. Acknowledge their acceptance warmly and move the "
        "conversation forward."
    ),
    NextAction.SOFTEN: (
        "Client is partially satisfied. They may have a smaller follow-up concern. "
        "Be ready to address it briefly."
    ),
    NextAction.MAINTAIN: (
        "Client still has the concern. They may rephrase or provide more context. "
        "Listen carefully and try a different approach."
    ),
    NextAction.ESCALATE: (
        "Client is frustrated. They may express stronger concerns or bring up "
        "additional objections. Focus on empathy and de-escalation."
    ),
}


def response_guidance(action: NextAction) -> str:
    return _GUIDANCE[action]


def _base_reaction(
    evaluation: ObjectionHandlingEvaluation,
    persona: ClientPersona,
) -> tuple[NextAction, bool, Sentiment]:
    score = evaluation.score
    if score >= 80:
        return NextAction.ACCEPT, True, Sentiment.POSITIVE
    if score >= 60:
        return (
            NextAction.SOFTEN,
            evaluation.empathy_shown and evaluation.addressed_directly,
            Sentiment.NEUTRAL,
        )
    if score >= 40:
        return NextAction.MAINTAIN, False, Sentiment.NEUTRAL
    if persona.personality == Personality.DEMANDING:
        return NextAction.ESCALATE, False, Sentiment.NEGATIVE
    return NextAction.MAINTAIN, False, Sentiment.NEGATIVE


def _adjust_for_personality(
    action: NextAction,
    resolved: bool,
    personality: Personality,
    rng: random.Random,
) -> tuple[NextAction, bool]:
    if personality == Personality.FRIENDLY:
        if action == NextAction.MAINTAIN:
            action = NextAction.SOFTEN
    elif personality == Personality.SKEPTICAL:
        if action == NextAction.ACCEPT:
            action = NextAction.SOFTEN
    elif personality == Personality.DEMANDING:
        if action == NextAction.MAINTAIN and rng.random() > 0.5:
            action = NextAction.ESCALATE
    elif personality == Personality.INDECISIVE:
        if action == NextAction.ACCEPT:
            resolved = rng.random() > 0.3
    elif personality == Personality.ANALYTICAL:
        if action == NextAction.SOFTEN and not resolved:
            action = NextAction.MAINTAIN
    return action, resolved


def determine_client_reaction(
    evaluation: ObjectionHandlingEvaluation,
    persona: ClientPersona,
    rng: random.Random,
) -> ClientReaction:
    action, resolved, sentiment = _base_reaction(evaluation, persona)
    action, resolved = _adjust_for_personality(action, resolved, persona.personality, rng)
    return ClientReaction(
        new_sentiment=sentiment,
        objection_resolved=resolved,
        next_action=action,
        response_guidance=response_guidance(action),
    )
