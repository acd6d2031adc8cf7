import asyncio
import copy
import dataclasses

import pytest

from conftest import STRONG_RESPONSE, WEAK_RESPONSE
from simtrainer.core.errors import (
    SessionClosedError,
    SessionNotFoundError,
    TurnInProgressError,
)
from simtrainer.domain.injection import min_turn_gap
from simtrainer.domain.state import (
    ConversationState,
    Difficulty,
    ObjectionHandlingEvaluation,
    ScenarioType,
    SessionStatus,
    Speaker,
)
from simtrainer.infra.providers.gateway import FallbackGateway
from simtrainer.infra.repositories import InMemorySessionRepository
from simtrainer.usecases.analyze_simulation import analyze_simulation
from simtrainer.usecases.end_simulation import end_simulation
from simtrainer.usecases.get_session import get_session_by_id
from simtrainer.usecases.process_message import process_message
from simtrainer.usecases.start_simulation import start_simulation


async def _start(svc, scenario=ScenarioType.PROPERTY_SHOWING, difficulty=Difficulty.EASY):
    result = await start_simulation(scenario, difficulty, "trainee-1", services=svc)
    return result["session_id"]


def _open_first_objection(svc, session_id, at_turn=1):
    state = svc.store.get(session_id)
    return state.raise_objection(state.pending_objections[0], at_turn=at_turn)


# ---------------------------------------------------------------------------
# start_simulation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_hard_price_negotiation_start(services):
    result = await start_simulation(
        ScenarioType.PRICE_NEGOTIATION, Difficulty.HARD, "trainee-1", services=services
    )

    assert result["status"] == "ready"
    assert result["client_persona"]["personality"] == "demanding"
    assert result["estimated_duration_minutes"] == 20
    assert result["tips"]
    state = services.store.get(result["session_id"])
    assert len(state.pending_objections) == 5
    assert state.phase == ConversationState.OPENING

    session = await services.sessions.find_by_id_with_turns(result["session_id"])
    assert session.status == SessionStatus.READY
    assert session.started_at is not None
    opener = session.conversation_turns[0]
    assert (opener.speaker, opener.turn_number) == (Speaker.CLIENT, 0)
    assert opener.message == result["initial_client_message"]


@pytest.mark.asyncio
async def test_custom_persona_config_is_applied(services):
    result = await start_simulation(
        ScenarioType.FIRST_CONTACT,
        Difficulty.MEDIUM,
        "trainee-1",
        custom_persona_config={"name": "Lina Haddad"},
        services=services,
    )
    assert result["client_persona"]["name"] == "Lina Haddad"


# ---------------------------------------------------------------------------
# process_message
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_turn_appends_trainee_and_client_messages(services):
    session_id = await _start(services)

    result = await process_message(session_id, "Hello! What are you looking for?", services=services)

    assert result["turn_number"] == 2
    assert result["client_response"]
    assert result["conversation_state"] == "opening"
    session = await services.sessions.find_by_id_with_turns(session_id)
    assert session.status == SessionStatus.IN_PROGRESS
    trainee, client = session.conversation_turns[1:]
    assert (trainee.speaker, trainee.turn_number) == (Speaker.TRAINEE, 1)
    assert trainee.detected_intent == "discovery"
    assert trainee.sentiment is not None
    assert (client.speaker, client.turn_number) == (Speaker.CLIENT, 2)


@pytest.mark.asyncio
async def test_good_answer_resolves_open_objection(services):
    session_id = await _start(services, difficulty=Difficulty.EASY)  # friendly client
    entry = _open_first_objection(services, session_id)

    result = await process_message(session_id, STRONG_RESPONSE, services=services)

    assert result["objection_resolved"]
    assert entry.resolved
    assert entry.attempts == 1
    assert entry.evaluation.score >= 80
    assert entry.trainee_response == STRONG_RESPONSE
    assert services.store.get(session_id).current_objection is None
    assert result["client_response"].startswith("Okay, that actually answers my concern.")


@pytest.mark.asyncio
async def test_poor_answers_keep_objection_open_and_count_attempts(services):
    session_id = await _start(services, difficulty=Difficulty.HARD)  # demanding client
    entry = _open_first_objection(services, session_id)

    await process_message(session_id, WEAK_RESPONSE, services=services)
    await process_message(session_id, WEAK_RESPONSE, services=services)

    assert not entry.resolved
    assert entry.attempts == 2
    assert entry.evaluation.score == 0
    state = services.store.get(session_id)
    assert state.current_objection == entry.objection
    assert len(state.raised_objections) == 1


@pytest.mark.asyncio
async def test_resolved_entry_is_frozen(services):
    session_id = await _start(services)
    entry = _open_first_objection(services, session_id)
    await process_message(session_id, STRONG_RESPONSE, services=services)

    with pytest.raises(ValueError):
        entry.record_attempt("again", ObjectionHandlingEvaluation(score=10), False)


@pytest.mark.asyncio
async def test_model_outage_still_answers(make_services, offline_gateway):
    svc = make_services(gateway=offline_gateway, force_rule_based=False)
    session_id = await _start(svc, difficulty=Difficulty.MEDIUM)
    entry = _open_first_objection(svc, session_id)

    result = await process_message(session_id, STRONG_RESPONSE, services=svc)

    assert result["client_response"]
    assert entry.evaluation.source == "fallback"
    assert entry.evaluation.score == 0
    assert not entry.resolved


@pytest.mark.asyncio
async def test_llm_paths_used_when_available(make_services):
    from conftest import ScriptedBackend

    backend = ScriptedBackend(replies=[
        '{"sentiment": "positive", "intent": "greeting", "hints": ["Ask about budget"]}',
        "Nice to meet you too. I'd like a garden.",
    ])
    svc = make_services(gateway=FallbackGateway([backend]), force_rule_based=False)
    session_id = await _start(svc)

    result = await process_message(session_id, "Hi, welcome!", services=svc)

    assert result["sentiment"] == "positive"
    assert result["hints"] == ["Ask about budget"]
    assert result["client_response"] == "Nice to meet you too. I'd like a garden."


@pytest.mark.asyncio
async def test_unknown_session_is_rejected(services):
    with pytest.raises(SessionNotFoundError):
        await process_message("sim_missing", "Hello", services=services)


@pytest.mark.asyncio
async def test_concurrent_message_is_rejected(services):
    session_id = await _start(services)
    async with services.store.turn_lock(session_id):
        with pytest.raises(TurnInProgressError):
            await process_message(session_id, "Hello", services=services)


@pytest.mark.asyncio
async def test_missing_state_is_rebuilt(services):
    session_id = await _start(services)
    services.store.delete(session_id)

    result = await process_message(session_id, "Hello there", services=services)

    assert result["turn_number"] == 2
    assert services.store.get(session_id).pending_objections == []


@pytest.mark.asyncio
async def test_long_hard_session_keeps_objection_gaps(make_services):
    svc = make_services(seed=3)
    session_id = await _start(svc, ScenarioType.PRICE_NEGOTIATION, Difficulty.HARD)

    for i in range(30):
        message = STRONG_RESPONSE if i % 3 else "Great, thank you, that's wonderful."
        await process_message(session_id, message, services=svc)

    state = svc.store.get(session_id)
    turns = [r.raised_at_turn for r in state.raised_objections]
    assert all(b - a >= min_turn_gap(Difficulty.HARD) for a, b in zip(turns, turns[1:]))
    assert state.unresolved_count() <= 2
    assert len(state.raised_objections) + len(state.pending_objections) == 5


# ---------------------------------------------------------------------------
# end_simulation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_end_completed_session(services):
    session_id = await _start(services)
    await process_message(session_id, "Hello", services=services)

    result = await end_simulation(session_id, "completed", services=services)

    assert result["status"] == "completed"
    assert result["turn_count"] == 3
    assert result["next_steps"]
    assert services.store.get(session_id) is None
    session = await services.sessions.find_by_id_with_turns(session_id)
    assert session.status == SessionStatus.COMPLETED
    assert session.metrics["preliminaryScore"] == result["preliminary_score"]


@pytest.mark.asyncio
async def test_end_is_idempotent_and_closes_session(services):
    session_id = await _start(services)
    first = await end_simulation(session_id, "completed", services=services)
    second = await end_simulation(session_id, "abandoned", services=services)

    assert second == first
    with pytest.raises(SessionClosedError):
        await process_message(session_id, "Hello?", services=services)


@pytest.mark.asyncio
async def test_abandoned_session_is_declined(services):
    session_id = await _start(services)
    result = await end_simulation(session_id, "abandoned", services=services)
    assert result["status"] == "abandoned"
    assert result["outcome"] == "client_declined"


@pytest.mark.asyncio
async def test_four_of_five_resolved_over_ten_turns_is_a_closed_deal(services):
    session_id = await _start(services, ScenarioType.PRICE_NEGOTIATION, Difficulty.HARD)
    for i in range(5):
        await services.sessions.add_conversation_turn(session_id, Speaker.TRAINEE, f"Point {i}", 2 * i + 1)
        await services.sessions.add_conversation_turn(session_id, Speaker.CLIENT, f"Reply {i}", 2 * i + 2)

    state = services.store.get(session_id)
    for i, objection in enumerate(list(state.pending_objections)):
        entry = state.raise_objection(objection, at_turn=2 * i + 1)
        entry.record_attempt("answer", ObjectionHandlingEvaluation(score=85), resolved=i < 4)

    result = await end_simulation(session_id, "completed", services=services)

    assert result["turn_count"] == 11
    assert (result["resolved_objections"], result["total_objections"]) == (4, 5)
    assert result["outcome"] == "deal_closed"


@pytest.mark.asyncio
async def test_end_unknown_session(services):
    with pytest.raises(SessionNotFoundError):
        await end_simulation("sim_missing", services=services)


# ---------------------------------------------------------------------------
# analyze_simulation / get_session_by_id
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_analysis_report_is_upserted(services):
    session_id = await _start(services)
    await process_message(session_id, STRONG_RESPONSE, services=services)
    await end_simulation(session_id, services=services)

    first = await analyze_simulation(session_id, services=services)
    await analyze_simulation(session_id, services=services)

    assert services.reports.count() == 1
    assert len(first["skill_scores"]) == 6
    assert all(s["benchmark"] == 75 and s["trend"] == "stable" for s in first["skill_scores"].values())
    assert first["suggested_scenarios"]
    session = await services.sessions.find_by_id_with_turns(session_id)
    assert session.metrics["aiEvaluatedScore"] == first["overall_performance"]["score"]
    assert "preliminaryScore" in session.metrics


@pytest.mark.asyncio
async def test_analysis_without_report(services):
    session_id = await _start(services)
    await analyze_simulation(session_id, generate_recommendations=False, services=services)
    assert services.reports.count() == 0


@pytest.mark.asyncio
async def test_get_session_includes_live_state_until_end(services):
    session_id = await _start(services)

    live = await get_session_by_id(session_id, services=services)
    assert live["session"]["status"] == "ready"
    assert live["simulation_state"]["phase"] == "opening"

    await end_simulation(session_id, services=services)
    ended = await get_session_by_id(session_id, services=services)
    assert ended["simulation_state"] is None

    with pytest.raises(SessionNotFoundError):
        await get_session_by_id("sim_missing", services=services)


@pytest.mark.asyncio
async def test_end_waits_for_no_turn_in_flight(services):
    session_id = await _start(services)
    async with services.store.turn_lock(session_id):
        with pytest.raises(TurnInProgressError):
            await end_simulation(session_id, services=services)
    await asyncio.sleep(0)
    assert (await end_simulation(session_id, services=services))["status"] == "completed"


class _CopyingSessions(InMemorySessionRepository):
    """Hands out copies like a database would; ``on_read`` runs once after the next read."""

    def __init__(self):
        super().__init__()
        self.on_read = None

    async def find_by_id_with_turns(self, session_id):
        record = copy.deepcopy(await super().find_by_id_with_turns(session_id))
        hook, self.on_read = self.on_read, None
        if hook is not None:
            await hook()
        return record


@pytest.mark.asyncio
async def test_end_rechecks_status_against_fresh_record(services):
    svc = dataclasses.replace(services, sessions=_CopyingSessions())
    session_id = await _start(svc)
    finished = {}

    async def end_in_between():
        finished["first"] = await end_simulation(session_id, "completed", services=svc)

    svc.sessions.on_read = end_in_between
    second = await end_simulation(session_id, "abandoned", services=svc)

    assert second == finished["first"]
    assert second["status"] == "completed"
    session = await svc.sessions.find_by_id_with_turns(session_id)
    assert session.status == SessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_message_after_concurrent_end_is_rejected(services):
    svc = dataclasses.replace(services, sessions=_CopyingSessions())
    session_id = await _start(svc)

    async def end_in_between():
        await end_simulation(session_id, "completed", services=svc)

    svc.sessions.on_read = end_in_between
    with pytest.raises(SessionClosedError):
        await process_message(session_id, "Hello", services=svc)
    assert svc.store.get(session_id) is None
