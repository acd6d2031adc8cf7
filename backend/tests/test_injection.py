import random

import pytest

from conftest import FixedRandom
from simtrainer.domain.injection import (
    default_objections,
    filter_by_persona,
    generate_objections,
    injection_probability,
    last_objection_turn,
    min_turn_gap,
    objection_count,
    select_objection,
    should_inject_objection,
)
from simtrainer.domain.state import (
    ConversationState,
    Difficulty,
    GeneratedObjection,
    InjectionContext,
    ObjectionCategory,
    Personality,
    RaisedObjection,
    ScenarioType,
    Sentiment,
    Severity,
)
from simtrainer.infra.repositories import InMemoryObjectionCatalog


def _objection(oid, category=ObjectionCategory.TIMING_URGENCY, severity=Severity.MODERATE):
    return GeneratedObjection(id=oid, category=category, severity=severity, core_content=oid)


def _context(
    phase=ConversationState.DISCOVERY,
    turn=10,
    pending=None,
    raised=(),
    difficulty=Difficulty.MEDIUM,
    message="Tell me more",
):
    return InjectionContext(
        current_turn=turn,
        conversation_state=phase,
        last_trainee_message=message,
        pending_objections=tuple(pending if pending is not None else [_objection("a")]),
        raised_objections=tuple(raised),
        difficulty=difficulty,
        overall_sentiment=Sentiment.NEUTRAL,
    )


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "difficulty, expected", [(Difficulty.EASY, 2), (Difficulty.MEDIUM, 3), (Difficulty.HARD, 5)]
)
def test_default_pool_size_matches_difficulty(difficulty, expected):
    assert objection_count(difficulty) == expected
    for scenario in ScenarioType:
        assert len(default_objections(difficulty, scenario)) == expected


def test_default_pool_leads_with_scenario_focus():
    pool = default_objections(Difficulty.HARD, ScenarioType.PRICE_NEGOTIATION)
    assert pool[0].category == ObjectionCategory.PRICE_BUDGET
    assert pool[1].category == ObjectionCategory.COMPETITION_ALTERNATIVES
    assert len({o.id for o in pool}) == len(pool)


def test_default_severity_tracks_difficulty():
    assert {o.severity for o in default_objections(Difficulty.EASY)} == {Severity.SOFT}
    hard = {o.category: o.severity for o in default_objections(Difficulty.HARD)}
    assert hard[ObjectionCategory.PRICE_BUDGET] == Severity.STRONG
    assert hard[ObjectionCategory.TIMING_URGENCY] == Severity.MODERATE


def test_filter_by_persona_keeps_matching_categories(persona_factory):
    objections = [
        _objection("q", ObjectionCategory.FEATURE_QUALITY),
        _objection("t", ObjectionCategory.TIMING_URGENCY),
    ]
    # a draw of 0.0 loses every 70% coin flip
    kept = filter_by_persona(objections, persona_factory(Personality.ANALYTICAL), FixedRandom(0.0))
    assert [o.id for o in kept] == ["q"]

    kept = filter_by_persona(objections, persona_factory(Personality.FRIENDLY), FixedRandom(0.9))
    assert [o.id for o in kept] == ["q", "t"]


def test_filter_by_persona_demanding_keeps_strong(persona_factory):
    objections = [_objection("s", severity=Severity.STRONG), _objection("m")]
    kept = filter_by_persona(objections, persona_factory(Personality.DEMANDING), FixedRandom(0.0))
    assert [o.id for o in kept] == ["s"]


@pytest.mark.asyncio
async def test_generate_objections_uses_defaults_for_empty_catalog(persona_factory, rng):
    pool = await generate_objections(
        InMemoryObjectionCatalog(),
        ScenarioType.PROPERTY_SHOWING,
        Difficulty.MEDIUM,
        persona_factory(),
        rng,
    )
    assert len(pool) == 3
    assert all(o.id.startswith("default-") for o in pool)


@pytest.mark.asyncio
async def test_generate_objections_slices_catalog(persona_factory):
    catalog = InMemoryObjectionCatalog({
        ScenarioType.PRICE_NEGOTIATION: [_objection(f"c{i}") for i in range(8)],
    })
    pool = await generate_objections(
        catalog,
        ScenarioType.PRICE_NEGOTIATION,
        Difficulty.EASY,
        persona_factory(),
        FixedRandom(0.9),
    )
    assert [o.id for o in pool] == ["c0", "c1"]


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("phase", [ConversationState.OPENING, ConversationState.ENDED])
def test_no_injection_in_opening_or_ended(phase):
    decision = should_inject_objection(_context(phase=phase), FixedRandom(0.0))
    assert not decision.should_inject
    assert decision.reason == "Inappropriate conversation stage"


def test_unresolved_cap_blocks_injection():
    raised = [RaisedObjection(_objection("x"), 1), RaisedObjection(_objection("y"), 4)]
    decision = should_inject_objection(
        _context(raised=raised, difficulty=Difficulty.HARD, turn=20), FixedRandom(0.0)
    )
    assert not decision.should_inject
    assert decision.reason == "Too many unresolved objections"


def test_cooldown_blocks_injection():
    raised = [RaisedObjection(_objection("x"), 8, resolved=True)]
    decision = should_inject_objection(_context(raised=raised, turn=10), FixedRandom(0.0))
    assert decision.reason == "Too soon since last objection"

    decision = should_inject_objection(_context(raised=raised, turn=11), FixedRandom(0.0))
    assert decision.should_inject


def test_empty_pool_is_a_normal_no():
    decision = should_inject_objection(_context(pending=[]), FixedRandom(0.0))
    assert not decision.should_inject
    assert decision.reason == "No pending objections"


def test_draw_above_probability_does_not_inject():
    decision = should_inject_objection(_context(), FixedRandom(0.99))
    assert not decision.should_inject
    assert decision.reason == "No trigger conditions met"
    assert decision.probability == pytest.approx(0.2)


def test_injection_picks_price_while_negotiating():
    pending = [_objection("time"), _objection("price", ObjectionCategory.PRICE_BUDGET)]
    decision = should_inject_objection(
        _context(phase=ConversationState.NEGOTIATING, pending=pending), FixedRandom(0.0)
    )
    assert decision.should_inject
    assert decision.timing == "next_turn"
    assert decision.objection.id == "price"


def test_relevance_tie_goes_to_first_entry():
    pending = [_objection("first"), _objection("second")]
    decision = should_inject_objection(_context(pending=pending), FixedRandom(0.0))
    assert decision.objection.id == "first"


def test_probability_table():
    assert injection_probability(Difficulty.HARD, ConversationState.NEGOTIATING, 0) == pytest.approx(0.5)
    assert injection_probability(Difficulty.MEDIUM, ConversationState.PRESENTING, 1) == pytest.approx(0.1)
    assert injection_probability(Difficulty.EASY, ConversationState.DISCOVERY, 1) == 0.0


def test_last_objection_turn_without_history():
    assert last_objection_turn([]) == -10
    assert min_turn_gap(Difficulty.EASY) == 4


@pytest.mark.parametrize("seed", range(30))
def test_never_injects_at_unresolved_cap(seed):
    rng = random.Random(seed)
    raised = [RaisedObjection(_objection("x"), 0), RaisedObjection(_objection("y"), 2)]
    for phase in (ConversationState.DISCOVERY, ConversationState.NEGOTIATING, ConversationState.CLOSING):
        for difficulty in Difficulty:
            ctx = _context(phase=phase, raised=raised, difficulty=difficulty, turn=rng.randint(3, 40))
            assert not should_inject_objection(ctx, rng).should_inject


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_simulated_session_respects_cooldown(difficulty):
    rng = random.Random(99)
    pending = default_objections(difficulty)
    raised: list[RaisedObjection] = []
    for turn in range(1, 60, 2):
        ctx = _context(
            phase=ConversationState.NEGOTIATING,
            turn=turn,
            pending=pending,
            raised=raised,
            difficulty=difficulty,
        )
        decision = should_inject_objection(ctx, rng)
        if decision.should_inject:
            pending = [o for o in pending if o.id != decision.objection.id]
            raised.append(RaisedObjection(decision.objection, turn + 1, resolved=True))

    turns = [r.raised_at_turn for r in raised]
    assert all(b - a >= min_turn_gap(difficulty) for a, b in zip(turns, turns[1:]))


def test_select_objection_keeps_first_on_ties():
    ctx = _context(pending=[_objection("a"), _objection("b")])
    assert select_objection(ctx, FixedRandom(0.0)).id == "a"


def test_select_objection_from_empty_pool_raises():
    with pytest.raises(ValueError):
        select_objection(_context(pending=[]), FixedRandom(0.0))
