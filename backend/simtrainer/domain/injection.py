"""
Objection pool generation and the turn-by-turn injection policy.

Policy, applied once per trainee turn (first rejection wins):
  1. Phase is opening or ended            -> no injection
  2. Two or more unresolved objections    -> no injection
  3. Cooldown since the last objection    -> no injection
  4. Pending pool is empty                -> no injection
  5. Otherwise draw r ~ U(0, 1) and inject when r < p(difficulty, phase, unresolved)

When injecting, each pending objection is scored for relevance and the best
one wins (ties go to the earlier entry).  All randomness comes from the
``random.Random`` the caller passes in.
"""

from __future__ import annotations

import random
from typing import Iterable, Protocol

from simtrainer.domain.state import (
    ClientPersona,
    ConversationState,
    Difficulty,
    GeneratedObjection,
    InjectionContext,
    ObjectionCategory,
    ObjectionDecision,
    Personality,
    RaisedObjection,
    ScenarioType,
    Severity,
)


class ObjectionSource(Protocol):
    async def get_by_scenario_type(self, scenario_type: ScenarioType) -> list[GeneratedObjection]:
        ...


# ---------------------------------------------------------------------------
# Difficulty tables
# ---------------------------------------------------------------------------

_OBJECTION_COUNT: dict[Difficulty, int] = {
    Difficulty.EASY: 2,
    Difficulty.MEDIUM: 3,
    Difficulty.HARD: 5,
}

_MIN_TURN_GAP: dict[Difficulty, int] = {
    Difficulty.EASY: 4,
    Difficulty.MEDIUM: 3,
    Difficulty.HARD: 2,
}

_BASE_PROBABILITY: dict[Difficulty, float] = {
    Difficulty.EASY: 0.10,
    Difficulty.MEDIUM: 0.20,
    Difficulty.HARD: 0.35,
}

NEGOTIATING_BONUS = 0.15
UNRESOLVED_PENALTY = 0.10
MAX_UNRESOLVED = 2
NO_PREVIOUS_OBJECTION_TURN = -10


def objection_count(difficulty: Difficulty) -> int:
    return _OBJECTION_COUNT[difficulty]


def min_turn_gap(difficulty: Difficulty) -> int:
    return _MIN_TURN_GAP[difficulty]


def last_objection_turn(raised: Iterable[RaisedObjection]) -> int:
    turns = [r.raised_at_turn for r in raised]
    return max(turns) if turns else NO_PREVIOUS_OBJECTION_TURN


def _unresolved(raised: Iterable[RaisedObjection]) -> int:
    return sum(1 for r in raised if not r.resolved)


def injection_probability(
    difficulty: Difficulty,
    phase: ConversationState,
    unresolved_count: int,
) -> float:
    p = _BASE_PROBABILITY[difficulty]
    if phase == ConversationState.NEGOTIATING:
        p += NEGOTIATING_BONUS
    p -= UNRESOLVED_PENALTY * unresolved_count
    return max(0.0, min(1.0, p))


# ---------------------------------------------------------------------------
# Injection decision
# ---------------------------------------------------------------------------

def should_inject_objection(context: InjectionContext, rng: random.Random) -> ObjectionDecision:
    """
    Decide whether the client voices a pending objection on this turn.

    Total: an empty pool or a closed gate is a normal "no" decision.
    """
    if context.conversation_state in (ConversationState.OPENING, ConversationState.ENDED):
        return ObjectionDecision(False, "Inappropriate conversation stage")

    unresolved = _unresolved(context.raised_objections)
    if unresolved >= MAX_UNRESOLVED:
        return ObjectionDecision(False, "Too many unresolved objections")

    gap = context.current_turn - last_objection_turn(context.raised_objections)
    if gap < min_turn_gap(context.difficulty):
        return ObjectionDecision(False, "Too soon since last objection")

    if not context.pending_objections:
        return ObjectionDecision(False, "No pending objections")

    p = injection_probability(context.difficulty, context.conversation_state, unresolved)
    if rng.random() < p:
        objection = select_objection(context, rng)
        return ObjectionDecision(
            True,
            "Probabilistic injection based on conversation context",
            timing="next_turn",
            objection=objection,
            probability=p,
        )

    return ObjectionDecision(False, "No trigger conditions met", probability=p)


def score_objection_relevance(
    objection: GeneratedObjection,
    context: InjectionContext,
    rng: random.Random,
) -> float:
    score = 50.0
    if (
        context.conversation_state == ConversationState.NEGOTIATING
        and objection.category == ObjectionCategory.PRICE_BUDGET
    ):
        score += 20
    if (
        context.conversation_state == ConversationState.PRESENTING
        and objection.category == ObjectionCategory.FEATURE_QUALITY
    ):
        score += 15
    if "price" in context.last_trainee_message.lower():
        score += 10
    return score + rng.uniform(0, 10)


def select_objection(context: InjectionContext, rng: random.Random) -> GeneratedObjection:
    """Highest relevance score wins; a strict comparison keeps the first on ties."""
    if not context.pending_objections:
        raise ValueError("no pending objections to select from")
    best = context.pending_objections[0]
    best_score = score_objection_relevance(best, context, rng)
    for objection in context.pending_objections[1:]:
        score = score_objection_relevance(objection, context, rng)
        if score > best_score:
            best, best_score = objection, score
    return best


# ---------------------------------------------------------------------------
# Objection pool
# ---------------------------------------------------------------------------

# (category, base severity, core content, variations, trigger, ideal, mistake)
_DEFAULT_TEMPLATES: list[tuple[ObjectionCategory, Severity, str, tuple[str, ...], str, str, str]] = [
    (
        ObjectionCategory.PRICE_BUDGET, Severity.MODERATE,
        "The price seems higher than I expected",
        ("This is above my budget", "I was hoping for something more affordable"),
        "price discussion", "Acknowledge and explore value", "Dismissing concerns",
    ),
    (
        ObjectionCategory.TIMING_URGENCY, Severity.SOFT,
        "I need more time to think",
        ("Can I have some time to consider?", "I want to discuss it with my partner first"),
        "decision point", "Validate while maintaining engagement", "Pressuring",
    ),
    (
        ObjectionCategory.COMPETITION_ALTERNATIVES, Severity.MODERATE,
        "I've seen a similar place with another agency",
        ("Another agent showed me something comparable", "I want to compare a few more options"),
        "comparison", "Differentiate on concrete value", "Criticising competitors",
    ),
    (
        ObjectionCategory.TRUST_CREDIBILITY, Severity.MODERATE,
        "How do I know I can trust what you're telling me?",
        ("I've been burned by agents before", "Everyone says their property is the best"),
        "claims made", "Offer proof and references", "Getting defensive",
    ),
    (
        ObjectionCategory.FEATURE_QUALITY, Severity.SOFT,
        "I'm not convinced the finishes are good quality",
        ("The kitchen looks dated", "I'm worried about maintenance issues"),
        "property presentation", "Address specifics with facts", "Overpromising",
    ),
    (
        ObjectionCategory.LOCATION_AREA, Severity.SOFT,
        "The area isn't quite what I had in mind",
        ("It's far from my work", "I'm not sure about the neighbourhood"),
        "location discussion", "Explore what matters about the area", "Ignoring the concern",
    ),
    (
        ObjectionCategory.PROCESS_COMPLEXITY, Severity.SOFT,
        "The buying process sounds complicated",
        ("All this paperwork worries me", "I don't understand the financing steps"),
        "next steps", "Simplify and guide step by step", "Using jargon",
    ),
]

# Categories a scenario leads with; the remaining defaults follow in table order
_SCENARIO_FOCUS: dict[ScenarioType, tuple[ObjectionCategory, ...]] = {
    ScenarioType.PRICE_NEGOTIATION: (ObjectionCategory.PRICE_BUDGET, ObjectionCategory.COMPETITION_ALTERNATIVES),
    ScenarioType.OBJECTION_HANDLING: (ObjectionCategory.TRUST_CREDIBILITY, ObjectionCategory.PRICE_BUDGET),
    ScenarioType.PROPERTY_SHOWING: (ObjectionCategory.FEATURE_QUALITY, ObjectionCategory.LOCATION_AREA),
    ScenarioType.FIRST_CONTACT: (ObjectionCategory.TRUST_CREDIBILITY, ObjectionCategory.TIMING_URGENCY),
    ScenarioType.COLD_CALL: (ObjectionCategory.TRUST_CREDIBILITY, ObjectionCategory.TIMING_URGENCY),
    ScenarioType.CLOSING_DEAL: (ObjectionCategory.PROCESS_COMPLEXITY, ObjectionCategory.TIMING_URGENCY),
    ScenarioType.CLOSING: (ObjectionCategory.PROCESS_COMPLEXITY, ObjectionCategory.TIMING_URGENCY),
    ScenarioType.DIFFICULT_CLIENT: (ObjectionCategory.TRUST_CREDIBILITY, ObjectionCategory.FEATURE_QUALITY),
}

_SEVERITY_ORDER = (Severity.SOFT, Severity.MODERATE, Severity.STRONG)


def _severity_for(base: Severity, difficulty: Difficulty) -> Severity:
    if difficulty == Difficulty.EASY:
        return Severity.SOFT
    if difficulty == Difficulty.HARD:
        idx = min(_SEVERITY_ORDER.index(base) + 1, len(_SEVERITY_ORDER) - 1)
        return _SEVERITY_ORDER[idx]
    return base


def default_objections(
    difficulty: Difficulty,
    scenario_type: ScenarioType | None = None,
) -> list[GeneratedObjection]:
    """Built-in pool used when the catalog has nothing for the scenario."""
    focus = _SCENARIO_FOCUS.get(scenario_type, ()) if scenario_type else ()
    templates = sorted(
        _DEFAULT_TEMPLATES,
        key=lambda t: focus.index(t[0]) if t[0] in focus else len(focus),
    )
    pool = [
        GeneratedObjection(
            id=f"default-{category.value}",
            category=category,
            severity=_severity_for(severity, difficulty),
            core_content=core,
            variations=variations,
            trigger_conditions=(trigger,),
            ideal_responses=(ideal,),
            common_mistakes=(mistake,),
        )
        for category, severity, core, variations, trigger, ideal, mistake in templates
    ]
    return pool[: objection_count(difficulty)]


def filter_by_persona(
    objections: list[GeneratedObjection],
    persona: ClientPersona,
    rng: random.Random,
) -> list[GeneratedObjection]:
    """Keep objections that fit the persona; anything else survives a 70% draw."""
    kept = []
    for objection in objections:
        if persona.personality == Personality.ANALYTICAL and objection.category == ObjectionCategory.FEATURE_QUALITY:
            kept.append(objection)
        elif persona.personality == Personality.SKEPTICAL and objection.category == ObjectionCategory.TRUST_CREDIBILITY:
            kept.append(objection)
        elif persona.personality == Personality.DEMANDING and objection.severity == Severity.STRONG:
            kept.append(objection)
        elif rng.random() > 0.3:
            kept.append(objection)
    return kept


def build_objection_pool(
    catalog_objections: list[GeneratedObjection],
    scenario_type: ScenarioType,
    difficulty: Difficulty,
    persona: ClientPersona,
    rng: random.Random,
) -> list[GeneratedObjection]:
    if not catalog_objections:
        return default_objections(difficulty, scenario_type)
    relevant = filter_by_persona(catalog_objections, persona, rng)
    return relevant[: objection_count(difficulty)]


async def generate_objections(
    catalog: ObjectionSource,
    scenario_type: ScenarioType,
    difficulty: Difficulty,
    persona: ClientPersona,
    rng: random.Random,
) -> list[GeneratedObjection]:
    """Fetch the scenario's catalog objections and cut them down to a session pool."""
    catalog_objections = await catalog.get_by_scenario_type(scenario_type)
    return build_objection_pool(catalog_objections, scenario_type, difficulty, persona, rng)
