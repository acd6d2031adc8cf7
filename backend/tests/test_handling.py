import itertools
import json

import pytest

from conftest import ScriptedBackend
from simtrainer.domain.handling import (
    SIGNALS,
    build_evaluation,
    calculate_handling_score,
    extract_signals,
    generate_feedback,
    generate_improvements,
    identify_techniques,
)
from simtrainer.domain.payload import ParsedPayload, ParseFailure, parse_json_object
from simtrainer.domain.state import ObjectionTechnique
from simtrainer.infra.providers.gateway import FallbackGateway
from simtrainer.infra.providers.roleplay_llm import evaluate_objection_handling

POSITIVE = ("acknowledged", "empathyShown", "addressedDirectly", "providedValue", "askedFollowUp")


def test_all_false_scores_zero():
    assert calculate_handling_score({name: False for name in SIGNALS}) == 0


def test_all_positive_signals_score_hundred():
    signals = {name: name in POSITIVE for name in SIGNALS}
    assert calculate_handling_score(signals) == 100


def test_every_signal_combination_stays_in_range():
    for values in itertools.product([False, True], repeat=len(SIGNALS)):
        score = calculate_handling_score(dict(zip(SIGNALS, values)))
        assert 0 <= score <= 100


def test_penalties_subtract():
    signals = {name: name in POSITIVE for name in SIGNALS}
    signals["dismissive"] = True
    assert calculate_handling_score(signals) == 85


def test_parse_failure_is_all_false():
    signals = extract_signals(ParseFailure("invalid JSON"))
    assert signals == {name: False for name in SIGNALS}


def test_string_booleans_are_coerced():
    signals = extract_signals(ParsedPayload({"acknowledged": "true", "empathyShown": "false"}))
    assert signals["acknowledged"] is True
    assert signals["empathyShown"] is False


def test_identify_techniques_normalises_and_dedupes():
    found = identify_techniques(
        "I understand, others felt the same.",
        {"acknowledged": True},
        ["Feel Felt Found", "social-proof", "mind reading", 42, "feel_felt_found"],
    )
    assert found == [ObjectionTechnique.FEEL_FELT_FOUND, ObjectionTechnique.SOCIAL_PROOF]


def test_improvements_capped_at_three(objection):
    tips = generate_improvements({name: False for name in SIGNALS}, objection)
    assert len(tips) == 3
    assert "price budget" in tips[2]


@pytest.mark.parametrize("score, fragment", [(85, "Excellent"), (65, "Good attempt"), (45, "partially"), (10, "needs better")])
def test_feedback_bands(score, fragment):
    assert fragment in generate_feedback(score)


def test_build_evaluation_from_failure(objection):
    evaluation = build_evaluation(ParseFailure("empty response"), objection, "ok")
    assert evaluation.score == 0
    assert evaluation.source == "fallback"
    assert evaluation.techniques == ()


@pytest.mark.asyncio
async def test_evaluate_objection_handling_parses_verdict(objection):
    verdict = {name: name in POSITIVE for name in SIGNALS}
    verdict["techniquesUsed"] = ["reframe value"]
    backend = ScriptedBackend(replies=["```json\n" + json.dumps(verdict) + "\n```"])
    evaluation = await evaluate_objection_handling(
        FallbackGateway([backend]), objection, "It is worth it.", []
    )
    assert evaluation.score == 100
    assert evaluation.source == "llm"
    assert ObjectionTechnique.REFRAME_VALUE in evaluation.techniques
    assert backend.calls[0].response_format == "json"


@pytest.mark.asyncio
async def test_evaluate_objection_handling_survives_outage(objection, offline_gateway):
    evaluation = await evaluate_objection_handling(offline_gateway, objection, "Trust me.", [])
    assert evaluation.score == 0
    assert evaluation.source == "fallback"
    assert evaluation.feedback == generate_feedback(0)


@pytest.mark.asyncio
async def test_evaluate_objection_handling_unparseable(objection):
    gateway = FallbackGateway([ScriptedBackend(replies=["sure, looks good"])])
    evaluation = await evaluate_objection_handling(gateway, objection, "Trust me.", [])
    assert evaluation.score == 0


def test_parse_json_object_rejects_arrays():
    assert isinstance(parse_json_object("[1, 2]"), ParseFailure)
    assert isinstance(parse_json_object(""), ParseFailure)
