"""
Objection-handling rubric.

Turns the eight boolean signals of an evaluation verdict into a score,
detects the handling techniques used, and writes feedback and improvement
tips.  A failed parse yields all-false signals and therefore a score of 0.
"""

from __future__ import annotations

import re
from typing import Any

from simtrainer.domain.payload import ParseFailure, ParseResult, safe_bool
from simtrainer.domain.state import (
    GeneratedObjection,
    ObjectionHandlingEvaluation,
    ObjectionTechnique,
)


# signal -> weight; positives sum to exactly 100
SIGNAL_WEIGHTS: dict[str, int] = {
    "acknowledged": 20,
    "empathyShown": 20,
    "addressedDirectly": 25,
    "providedValue": 25,
    "askedFollowUp": 10,
    "dismissive": -15,
    "argumentative": -20,
    "ignoredConcern": -25,
}

SIGNALS = tuple(SIGNAL_WEIGHTS)

_TECHNIQUE_VALUES = {t.value: t for t in ObjectionTechnique}


def extract_signals(result: ParseResult) -> dict[str, bool]:
    """All eight signals as booleans; every one is False on a parse failure."""
    if isinstance(result, ParseFailure):
        return {name: False for name in SIGNALS}
    return {name: safe_bool(result.data.get(name)) for name in SIGNALS}


def calculate_handling_score(signals: dict[str, bool]) -> int:
    score = sum(weight for name, weight in SIGNAL_WEIGHTS.items() if signals.get(name))
    return max(0, min(100, score))


def _normalise_technique(raw: str) -> str:
    return re.sub(r"[\s\-]+", "_", raw.strip().lower())


def identify_techniques(
    response: str,
    signals: dict[str, bool],
    reported: list[Any] | None = None,
) -> list[ObjectionTechnique]:
    """
    Keyword heuristics first, then any techniques the model reported.

    Model-reported names are normalised to snake_case; unknown names are
    dropped and duplicates removed, keeping first-seen order.
    """
    lower = response.lower()
    found: list[ObjectionTechnique] = []

    def add(t: ObjectionTechnique) -> None:
        if t not in found:
            found.append(t)

    if "understand" in lower and "others" in lower:
        add(ObjectionTechnique.FEEL_FELT_FOUND)
    if "?" in response and signals.get("acknowledged"):
        add(ObjectionTechnique.QUESTION_TO_UNDERSTAND)
    if signals.get("providedValue") and "value" in lower:
        add(ObjectionTechnique.REFRAME_VALUE)
    if "client" in lower or "buyer" in lower:
        add(ObjectionTechnique.SOCIAL_PROOF)

    for item in reported or []:
        if not isinstance(item, str):
            continue
        technique = _TECHNIQUE_VALUES.get(_normalise_technique(item))
        if technique is not None:
            add(technique)

    return found


def generate_feedback(score: int) -> str:
    if score >= 80:
        return (
            "Excellent objection handling! You acknowledged the concern, showed "
            "empathy, and provided a clear solution."
        )
    if score >= 60:
        return (
            "Good attempt at handling the objection. Consider asking a follow-up "
            "question to ensure the client feels heard."
        )
    if score >= 40:
        return (
            "The objection was partially addressed. Try to acknowledge the "
            "client's concern before offering solutions."
        )
    return (
        "This objection needs better handling. Remember to listen, empathize, "
        "and address the specific concern raised."
    )


def generate_improvements(signals: dict[str, bool], objection: GeneratedObjection) -> list[str]:
    improvements: list[str] = []
    if not signals.get("acknowledged"):
        improvements.append("Start by acknowledging the client's concern to show you're listening.")
    if not signals.get("empathyShown"):
        improvements.append("Show empathy by expressing understanding of their perspective.")
    if not signals.get("addressedDirectly"):
        category = objection.category.value.replace("_", " ")
        improvements.append(f"Address the {category} concern directly with specific information.")
    if not signals.get("askedFollowUp"):
        improvements.append("Ask a follow-up question to ensure the client's concern is fully resolved.")
    return improvements[:3]


def build_evaluation(
    result: ParseResult,
    objection: GeneratedObjection,
    trainee_response: str,
) -> ObjectionHandlingEvaluation:
    """Assemble the evaluation from a parsed verdict or from its failure branch."""
    signals = extract_signals(result)
    score = calculate_handling_score(signals)
    reported = None if isinstance(result, ParseFailure) else result.data.get("techniquesUsed")
    if not isinstance(reported, list):
        reported = None

    return ObjectionHandlingEvaluation(
        score=score,
        acknowledged=signals["acknowledged"],
        empathy_shown=signals["empathyShown"],
        addressed_directly=signals["addressedDirectly"],
        provided_value=signals["providedValue"],
        asked_follow_up=signals["askedFollowUp"],
        techniques=tuple(identify_techniques(trainee_response, signals, reported)),
        feedback=generate_feedback(score),
        improvements=tuple(generate_improvements(signals, objection)),
        source="fallback" if isinstance(result, ParseFailure) else "llm",
    )
