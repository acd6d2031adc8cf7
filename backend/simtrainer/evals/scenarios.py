"""
Evaluation scenarios — scripted trainee conversations with expected outcomes.

Each scenario is a list of trainee messages played against a seeded
simulated client, then ended with the given reason.  Assertions define what
the end-of-session summary should look like.

These run with FORCE_RULE_BASED=true and the mock backend for deterministic
results.  Trainee lines avoid double quotes so the mock reviewer sees the
whole response.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from simtrainer.domain.state import Difficulty, ScenarioType


_STRONG_LINES = [
    "Hi, thanks for taking the time. I understand buying a home is a big decision. What matters most to you?",
    "That makes sense. Specifically, this home is compared favourably with similar listings and offers real value. Does that help?",
    "I hear you, and I appreciate the concern. The reason the price holds is that buyers save on renovation. Shall I show you the numbers?",
    "I understand. Compared to the last three sales nearby, this one is the best value for the space. What else is on your mind?",
    "That's a fair point. In fact the commute is twelve minutes, which will save you time every day. Would that work for your family?",
    "I see why that worries you. Specifically, the inspection report is clean, so the value is protected. Want me to send it over?",
    "I understand completely. Our clients who moved here last year saved on heating because of the insulation. Does that sound useful?",
    "That makes sense. The reason I suggest acting soon is that comparable homes sold within two weeks. How does your timeline look?",
    "I appreciate you sharing that. Compared to renting, the monthly cost is similar and you build value. Shall we look at financing?",
    "I hear you. Specifically, I can arrange a second viewing this weekend to confirm the benefit for you. Which day suits you?",
    "I understand. To summarise, great value, a short commute and a clean inspection. Are you ready to make an offer?",
    "Thank you, I appreciate your time. I will prepare the paperwork so you save time. Is tomorrow morning good for you?",
]

_DISMISSIVE_LINES = [
    "Hey. So, this house. You want it or not?",
    "Don't worry about the price, whatever, everyone pays it.",
    "That's not true, the area is fine.",
    "Actually no, you're wrong about the commute.",
    "Whatever, it's not my problem if you don't like it.",
    "Don't worry, that's not a problem.",
    "You're wrong, the place is great.",
    "Look, just sign and we're done.",
    "Whatever you say.",
    "That's not a problem, move on.",
]


@dataclass
class Scenario:
    name: str
    description: str
    turns: list[str]
    scenario_type: ScenarioType = ScenarioType.PROPERTY_SHOWING
    difficulty: Difficulty = Difficulty.MEDIUM
    end_reason: str = "completed"
    seed: int = 7
    # Assertions on the end-of-session summary
    expected_outcomes: list[str] = field(default_factory=list)
    expected_status: str = "completed"
    min_score: int = 0
    max_score: int = 100
    min_turns: int = 0


SCENARIOS: list[Scenario] = [
    Scenario(
        name="strong_agent_medium",
        description=(
            "Empathetic, specific, value-led answers with a question every turn. "
            "Every objection should get resolved."
        ),
        turns=_STRONG_LINES,
        expected_outcomes=["deal_closed", "follow_up_scheduled"],
        min_score=70,
        min_turns=20,
    ),
    Scenario(
        name="strong_agent_hard_negotiation",
        description=(
            "Same trainee against a hard price negotiation with a demanding client."
        ),
        turns=_STRONG_LINES,
        scenario_type=ScenarioType.PRICE_NEGOTIATION,
        difficulty=Difficulty.HARD,
        seed=11,
        expected_outcomes=["deal_closed", "follow_up_scheduled"],
        min_score=70,
        min_turns=20,
    ),
    Scenario(
        name="dismissive_agent_walks_away",
        description=(
            "Dismissive, argumentative trainee who abandons the call. "
            "Must come out as declined and abandoned."
        ),
        turns=_DISMISSIVE_LINES,
        difficulty=Difficulty.HARD,
        end_reason="abandoned",
        expected_outcomes=["client_declined"],
        expected_status="abandoned",
        max_score=70,
    ),
    Scenario(
        name="short_call",
        description="Two polite turns then ended: too short for a closed deal.",
        turns=_STRONG_LINES[:2],
        difficulty=Difficulty.EASY,
        expected_outcomes=[
            "follow_up_scheduled",
            "client_interested",
            "client_undecided",
            "client_declined",
        ],
        max_score=70,
    ),
]
