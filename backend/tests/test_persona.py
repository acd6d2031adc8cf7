import random

import pytest

from simtrainer.domain.persona import (
    estimated_duration_minutes,
    generate_initial_message,
    generate_persona,
    get_scenario_context,
    get_scenario_tips,
)
from simtrainer.domain.state import Difficulty, Personality, ScenarioType


@pytest.mark.parametrize(
    "scenario, difficulty, expected",
    [
        (ScenarioType.PRICE_NEGOTIATION, Difficulty.HARD, Personality.DEMANDING),
        (ScenarioType.PROPERTY_SHOWING, Difficulty.EASY, Personality.FRIENDLY),
        (ScenarioType.FIRST_CONTACT, Difficulty.MEDIUM, Personality.ANALYTICAL),
        (ScenarioType.OBJECTION_HANDLING, Difficulty.EASY, Personality.SKEPTICAL),
    ],
)
def test_personality_from_difficulty_and_scenario(scenario, difficulty, expected):
    assert generate_persona(scenario, difficulty, rng=random.Random(1)).personality == expected


def test_same_seed_same_persona():
    a = generate_persona(ScenarioType.CLOSING_DEAL, Difficulty.MEDIUM, rng=random.Random(5))
    b = generate_persona(ScenarioType.CLOSING_DEAL, Difficulty.MEDIUM, rng=random.Random(5))
    assert a == b


def test_price_negotiation_motivations():
    persona = generate_persona(ScenarioType.PRICE_NEGOTIATION, Difficulty.HARD, rng=random.Random(2))
    assert "Get the best value" in persona.motivations
    assert persona.hidden_concerns


def test_custom_config_overrides_fields():
    persona = generate_persona(
        ScenarioType.PROPERTY_SHOWING,
        Difficulty.EASY,
        custom_config={"name": "Ahmed Karim", "personality": "indecisive", "hiddenConcerns": ["Divorce"]},
        rng=random.Random(3),
    )
    assert persona.name == "Ahmed Karim"
    assert persona.personality == Personality.INDECISIVE
    assert persona.hidden_concerns == ("Divorce",)


def test_loose_custom_config_never_fails():
    persona = generate_persona(
        ScenarioType.PROPERTY_SHOWING,
        Difficulty.HARD,
        custom_config={"personality": "grumpy", "motivations": "save money"},
        rng=random.Random(3),
    )
    assert persona.personality == Personality.FRIENDLY
    assert persona.motivations == ("save money",)


@pytest.mark.parametrize("scenario", list(ScenarioType))
def test_initial_message_is_filled_in(scenario):
    rng = random.Random(8)
    for difficulty in Difficulty:
        persona = generate_persona(scenario, difficulty, rng=rng)
        message = generate_initial_message(persona, scenario, rng=rng)
        assert message
        assert "{" not in message


def test_legacy_scenario_names_share_content():
    assert get_scenario_context(ScenarioType.COLD_CALL) == get_scenario_context(ScenarioType.FIRST_CONTACT)
    assert get_scenario_tips(ScenarioType.CLOSING) == get_scenario_tips(ScenarioType.CLOSING_DEAL)
    assert get_scenario_tips(ScenarioType.FOLLOW_UP)


def test_estimated_duration():
    assert [estimated_duration_minutes(d) for d in Difficulty] == [10, 15, 20]
