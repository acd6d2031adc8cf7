"""
Conversation phase machine and rule-based message analysis.

Phases follow a fixed progression:

    opening -> discovery -> presenting -> negotiating -> closing -> ended

A negative trainee message holds the phase.  A positive one after the
opening exchange advances a single step.  Otherwise the phase advances on
turn-count thresholds.  No rule ever moves backwards and nothing leaves
``ended``.

Both functions here are pure, making them trivial to unit-test and replay.
"""

from __future__ import annotations

import re

from simtrainer.domain.state import (
    STATE_ORDER,
    ConversationAnalysis,
    ConversationState,
    Sentiment,
)


# ---------------------------------------------------------------------------
# Phase transitions
# ---------------------------------------------------------------------------

# Phase -> (turn threshold, phase reached once turn_number exceeds it)
_TURN_THRESHOLDS: dict[ConversationState, tuple[int, ConversationState]] = {
    ConversationState.OPENING: (4, ConversationState.DISCOVERY),
    ConversationState.DISCOVERY: (8, ConversationState.PRESENTING),
    ConversationState.PRESENTING: (12, ConversationState.NEGOTIATING),
    ConversationState.NEGOTIATING: (16, ConversationState.CLOSING),
}


def state_index(state: ConversationState) -> int:
    return STATE_ORDER.index(state)


def next_in_progression(state: ConversationState) -> ConversationState:
    """The phase one step after ``state``; ``ended`` maps to itself."""
    idx = state_index(state)
    if idx + 1 >= len(STATE_ORDER):
        return state
    return STATE_ORDER[idx + 1]


def determine_next_state(
    current: ConversationState,
    sentiment: Sentiment,
    turn_number: int,
) -> ConversationState:
    """
    Derive the phase after a trainee turn.

    Rules, first match wins:
      1. ``ended`` is terminal
      2. negative sentiment           -> stay
      3. positive and turn_number > 2 -> advance one step
      4. turn-count thresholds        -> advance one step
      5. otherwise                    -> stay
    """
    if current == ConversationState.ENDED:
        return current

    if sentiment == Sentiment.NEGATIVE:
        return current

    if sentiment == Sentiment.POSITIVE and turn_number > 2:
        return next_in_progression(current)

    threshold = _TURN_THRESHOLDS.get(current)
    if threshold is not None and turn_number > threshold[0]:
        return threshold[1]

    return current


# ---------------------------------------------------------------------------
# Rule-based message analysis (fallback for the LLM analyser)
# ---------------------------------------------------------------------------

_POSITIVE_WORDS = (
    "great", "excellent", "perfect", "happy", "glad", "wonderful",
    "absolutely", "definitely", "love", "thank",
)
_NEGATIVE_WORDS = (
    "unfortunately", "can't", "cannot", "won't", "not possible",
    "no way", "problem", "impossible", "sorry but",
)

# Ordered: first matching intent wins
_INTENT_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("closing", re.compile(r"\b(sign|contract|deposit|reserve|book (a|the) viewing|move forward|next step)\b", re.I)),
    ("price_discussion", re.compile(r"\b(price|cost|discount|budget|payment|financ\w*|mortgage|installment)\b", re.I)),
    ("objection_handling", re.compile(r"\b(i understand|i hear you|that makes sense|fair point|i appreciate)\b", re.I)),
    ("presenting", re.compile(r"\b(feature|bedroom|garden|view|square (feet|meters)|amenit\w*|finish\w*|located)\b", re.I)),
    ("discovery", re.compile(r"\?|\b(what|how|why|which|tell me)\b", re.I)),
    ("greeting", re.compile(r"\b(hello|hi|good (morning|afternoon|evening)|welcome|nice to meet)\b", re.I)),
]


def _detect_sentiment(lower: str) -> Sentiment:
    pos = sum(1 for w in _POSITIVE_WORDS if w in lower)
    neg = sum(1 for w in _NEGATIVE_WORDS if w in lower)
    if pos > neg:
        return Sentiment.POSITIVE
    if neg > pos:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def _detect_intent(text: str) -> str | None:
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(text):
            return intent
    return None


def _coaching_hints(text: str, lower: str, phase: ConversationState) -> list[str]:
    hints: list[str] = []
    if "?" not in text and phase in (ConversationState.OPENING, ConversationState.DISCOVERY):
        hints.append("Ask an open question to learn more about the client's needs.")
    if len(text.split()) > 80:
        hints.append("Keep your replies shorter so the client can talk more.")
    if "price" in lower and phase in (ConversationState.OPENING, ConversationState.DISCOVERY):
        hints.append("Build value before discussing price.")
    if not any(p in lower for p in ("understand", "appreciate", "i see", "makes sense")):
        if phase in (ConversationState.PRESENTING, ConversationState.NEGOTIATING):
            hints.append("Acknowledge the client's point before presenting your answer.")
    return hints[:3]


def analyze_message_rule_based(
    message: str,
    phase: ConversationState = ConversationState.OPENING,
) -> ConversationAnalysis:
    """
    Deterministic keyword analysis of one trainee message.

    Used when LLM analysis is disabled or fails, so every turn still gets a
    sentiment, a best-guess intent and up to three coaching hints.
    """
    lower = message.lower()
    return ConversationAnalysis(
        sentiment=_detect_sentiment(lower),
        detected_intent=_detect_intent(message),
        hints=tuple(_coaching_hints(message, lower, phase)),
        source="rule_based",
    )
