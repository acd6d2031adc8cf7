import random

import pytest

from conftest import FixedRandom
from simtrainer.domain.reaction import determine_client_reaction, response_guidance
from simtrainer.domain.state import (
    NextAction,
    ObjectionHandlingEvaluation,
    Personality,
    Sentiment,
)


def _evaluation(score, empathy=False, addressed=False):
    return ObjectionHandlingEvaluation(
        score=score, empathy_shown=empathy, addressed_directly=addressed
    )


def test_score_85_is_accepted(persona_factory):
    reaction = determine_client_reaction(
        _evaluation(85), persona_factory(Personality.FRIENDLY), FixedRandom(0.5)
    )
    assert reaction.next_action == NextAction.ACCEPT
    assert reaction.objection_resolved
    assert reaction.new_sentiment == Sentiment.POSITIVE
    assert reaction.response_guidance == response_guidance(NextAction.ACCEPT)


@pytest.mark.parametrize("seed", range(20))
def test_demanding_low_score_never_softens(persona_factory, seed):
    reaction = determine_client_reaction(
        _evaluation(25), persona_factory(Personality.DEMANDING), random.Random(seed)
    )
    assert reaction.next_action in (NextAction.MAINTAIN, NextAction.ESCALATE)
    assert not reaction.objection_resolved
    assert reaction.new_sentiment == Sentiment.NEGATIVE


def test_demanding_mid_score_escalates_on_coin_flip(persona_factory):
    persona = persona_factory(Personality.DEMANDING)
    assert determine_client_reaction(_evaluation(50), persona, FixedRandom(0.9)).next_action == NextAction.ESCALATE
    assert determine_client_reaction(_evaluation(50), persona, FixedRandom(0.1)).next_action == NextAction.MAINTAIN


def test_skeptical_downgrades_accept_but_stays_resolved(persona_factory):
    reaction = determine_client_reaction(
        _evaluation(95), persona_factory(Personality.SKEPTICAL), FixedRandom(0.5)
    )
    assert reaction.next_action == NextAction.SOFTEN
    assert reaction.objection_resolved


def test_friendly_softens_a_maintain(persona_factory):
    reaction = determine_client_reaction(
        _evaluation(45), persona_factory(Personality.FRIENDLY), FixedRandom(0.5)
    )
    assert reaction.next_action == NextAction.SOFTEN
    assert not reaction.objection_resolved


def test_soften_resolves_only_with_empathy_and_direct_answer(persona_factory):
    persona = persona_factory(Personality.FRIENDLY)
    assert determine_client_reaction(_evaluation(70, True, True), persona, FixedRandom(0.5)).objection_resolved
    assert not determine_client_reaction(_evaluation(70, True, False), persona, FixedRandom(0.5)).objection_resolved


def test_analytical_holds_out_on_unresolved_soften(persona_factory):
    reaction = determine_client_reaction(
        _evaluation(65), persona_factory(Personality.ANALYTICAL), FixedRandom(0.5)
    )
    assert reaction.next_action == NextAction.MAINTAIN
    assert not reaction.objection_resolved


def test_indecisive_may_not_commit(persona_factory):
    persona = persona_factory(Personality.INDECISIVE)
    assert not determine_client_reaction(_evaluation(90), persona, FixedRandom(0.1)).objection_resolved
    assert determine_client_reaction(_evaluation(90), persona, FixedRandom(0.8)).objection_resolved
