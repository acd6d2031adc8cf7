"""
Process-message use case — one trainee turn in a live simulation.

  1.  Load the session; reject unknown or already-ended sessions
  2.  Take the session's turn lock (a second in-flight message gets 409)
  3.  Analyse the message (LLM, falling back to rule-based)
  4.  Append the trainee turn
  5.  If an objection is open: evaluate the response, apply the client
      reaction, record the attempt in the ledger, close it if resolved
  6.  If nothing is open: run the injection policy and, on a hit, have the
      client voice the new objection
  7.  Advance the conversation phase
  8.  Generate the client reply (LLM, falling back to templates)
  9.  Append the client turn and return the turn summary

Model failures never fail the turn; only the quality of the reply and the
scores degrade.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

from simtrainer.core.errors import SessionClosedError, SessionNotFoundError
from simtrainer.core.logging import logger
from simtrainer.domain.conversation import analyze_message_rule_based, determine_next_state
from simtrainer.domain.injection import should_inject_objection
from simtrainer.domain.reaction import determine_client_reaction
from simtrainer.domain.state import (
    ClientPersona,
    ClientReaction,
    ConversationAnalysis,
    ConversationState,
    ConversationTurn,
    GeneratedObjection,
    InjectionContext,
    NextAction,
    Personality,
    SessionStatus,
    SimulationState,
    Speaker,
)
from simtrainer.infra.providers.roleplay_llm import (
    analyze_message_llm,
    evaluate_objection_handling,
    formulate_objection_llm,
    generate_client_response_llm,
)
from simtrainer.infra.repositories import SessionRecord
from simtrainer.usecases.deps import Services, get_services


async def process_message(
    session_id: str,
    message: str,
    services: Services | None = None,
) -> dict:
    """
    Process one trainee message and return the client's reply.

    Returns dict with client_response, sentiment, conversation_state, hints,
    turn_number, elapsed_time_seconds and objection bookkeeping flags.
    Raises SessionNotFoundError, SessionClosedError or TurnInProgressError.
    """
    svc = services or get_services()

    session = await svc.sessions.find_by_id_with_turns(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    if session.is_closed:
        raise SessionClosedError(session_id, session.status.value)

    async with svc.store.turn_lock(session_id):
        # the session may have ended, or gained turns, while this one waited
        session = await svc.sessions.find_by_id_with_turns(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.is_closed:
            raise SessionClosedError(session_id, session.status.value)
        return await _run_turn(svc, session, message)


async def _run_turn(svc: Services, session: SessionRecord, message: str) -> dict:
    session_id = session.id
    persona = ClientPersona.from_dict(session.client_persona)
    use_llm = not svc.force_rule_based

    state = svc.store.get(session_id)
    if state is None:
        logger.warning(
            "Session %s: no in-memory objection state, continuing with an empty pool",
            session_id,
        )
        state = SimulationState(session_id=session_id, difficulty=session.difficulty)
        svc.store.put(state)

    if session.status == SessionStatus.READY:
        await svc.sessions.update(session_id, status=SessionStatus.IN_PROGRESS)

    history: list[ConversationTurn] = list(session.conversation_turns)
    turn_number = len(history)
    phase_before = state.phase

    # --- 1. Analyse the trainee message (LLM with fallback) ---
    t_analysis = time.monotonic()
    analysis = await _analyze(svc, session_id, message, phase_before, history, use_llm)
    analysis_ms = (time.monotonic() - t_analysis) * 1000

    trainee_turn = await svc.sessions.add_conversation_turn(
        session_id,
        speaker=Speaker.TRAINEE,
        message=message,
        turn_number=turn_number,
        sentiment=analysis.sentiment,
        detected_intent=analysis.detected_intent,
    )
    history.append(trainee_turn)

    # --- 2. Evaluate the response to an open objection ---
    reaction: ClientReaction | None = None
    objection_text: str | None = None
    objection_resolved = False

    entry = state.current_entry()
    if entry is not None:
        evaluation = await evaluate_objection_handling(
            svc.gateway, entry.objection, message, history
        )
        reaction = determine_client_reaction(evaluation, persona, svc.rng)
        entry.record_attempt(message, evaluation, reaction.objection_resolved)
        objection_resolved = reaction.objection_resolved

        if reaction.objection_resolved:
            state.current_objection = None
        elif reaction.next_action == NextAction.ESCALATE:
            objection_text = _escalation_text(entry.objection, svc)

        logger.info(
            "Session %s: objection %s scored %d (%s) -> %s, resolved=%s, attempt %d",
            session_id,
            entry.objection.id,
            evaluation.score,
            evaluation.source,
            reaction.next_action.value,
            reaction.objection_resolved,
            entry.attempts,
        )

    # --- 3. Maybe inject a new objection ---
    injected: GeneratedObjection | None = None
    if state.current_objection is None:
        decision = should_inject_objection(
            InjectionContext(
                current_turn=turn_number,
                conversation_state=phase_before,
                last_trainee_message=message,
                pending_objections=tuple(state.pending_objections),
                raised_objections=tuple(state.raised_objections),
                difficulty=state.difficulty,
                overall_sentiment=analysis.sentiment,
            ),
            svc.rng,
        )
        if decision.should_inject and decision.objection is not None:
            injected = decision.objection
            state.raise_objection(injected, at_turn=turn_number + 1)
            objection_text = await _formulate(svc, session_id, injected, persona, history, use_llm)
            logger.info(
                "Session %s: injected objection %s (%s, p=%.2f)",
                session_id,
                injected.id,
                injected.category.value,
                decision.probability or 0.0,
            )

    # --- 4. Advance the phase ---
    phase_after = determine_next_state(phase_before, analysis.sentiment, turn_number)
    state.phase = phase_after

    # --- 5. Client reply (LLM with fallback) ---
    t_reply = time.monotonic()
    reply_source = "template"
    client_response = None
    if use_llm:
        try:
            client_response = await generate_client_response_llm(
                svc.gateway,
                persona,
                session.scenario_type,
                phase_after,
                history,
                message,
                objection_text=objection_text,
                reaction=reaction,
            )
            reply_source = "llm"
        except Exception as e:
            logger.warning(
                "Session %s: LLM client reply failed (%s), using template", session_id, e
            )
    if client_response is None:
        client_response = _template_client_response(persona, phase_after, reaction, objection_text)
    reply_ms = (time.monotonic() - t_reply) * 1000

    await svc.sessions.add_conversation_turn(
        session_id,
        speaker=Speaker.CLIENT,
        message=client_response,
        turn_number=turn_number + 1,
        sentiment=reaction.new_sentiment if reaction else None,
    )

    started = session.started_at or session.created_at
    elapsed = int((datetime.now(timezone.utc) - started).total_seconds())

    logger.info(
        "Session %s turn %d: %s -> %s (sentiment %s) [%s/%s] analysis=%.0fms reply=%.0fms",
        session_id,
        turn_number,
        phase_before.value,
        phase_after.value,
        analysis.sentiment.value,
        analysis.source,
        reply_source,
        analysis_ms,
        reply_ms,
    )

    return {
        "session_id": session_id,
        "client_response": client_response,
        "sentiment": analysis.sentiment.value,
        "conversation_state": phase_after.value,
        "hints": list(analysis.hints),
        "turn_number": turn_number + 1,
        "elapsed_time_seconds": elapsed,
        "objection_raised": injected is not None,
        "objection_resolved": objection_resolved,
    }


# ---------------------------------------------------------------------------
# LLM-with-fallback helpers
# ---------------------------------------------------------------------------

async def _analyze(
    svc: Services,
    session_id: str,
    message: str,
    phase: ConversationState,
    history: list[ConversationTurn],
    use_llm: bool,
) -> ConversationAnalysis:
    if use_llm:
        try:
            return await analyze_message_llm(svc.gateway, message, phase, history)
        except Exception as e:
            logger.warning(
                "Session %s: LLM analysis failed (%s), using rule-based", session_id, e
            )
    return analyze_message_rule_based(message, phase)


async def _formulate(
    svc: Services,
    session_id: str,
    objection: GeneratedObjection,
    persona: ClientPersona,
    history: list[ConversationTurn],
    use_llm: bool,
) -> str:
    if use_llm:
        try:
            return await formulate_objection_llm(svc.gateway, objection, persona, history)
        except Exception as e:
            logger.warning(
                "Session %s: LLM objection wording failed (%s), using catalog text",
                session_id,
                e,
            )
    if objection.variations:
        return svc.rng.choice(objection.variations)
    return objection.core_content


def _escalation_text(objection: GeneratedObjection, svc: Services) -> str:
    if objection.variations:
        return svc.rng.choice(objection.variations)
    return objection.core_content


# ---------------------------------------------------------------------------
# Deterministic client reply (template fallback)
# ---------------------------------------------------------------------------

_REACTION_OPENERS: dict[NextAction, str] = {
    NextAction.ACCEPT: "Okay, that actually answers my concern.",
    NextAction.SOFTEN: "Alright, that helps a bit.",
    NextAction.MAINTAIN: "I hear you, but I'm still not convinced.",
    NextAction.ESCALATE: "Honestly, that doesn't address what I said at all.",
}

_PHASE_LINES: dict[Personality, dict[ConversationState, str]] = {
    Personality.FRIENDLY: {
        ConversationState.OPENING: "Nice to meet you! What can you tell me about the place?",
        ConversationState.DISCOVERY: "That's good to know. How many bedrooms does it have?",
        ConversationState.PRESENTING: "I like the sound of that. What else should I know?",
        ConversationState.NEGOTIATING: "Is there any flexibility on the price?",
        ConversationState.CLOSING: "I think I'm ready. What are the next steps?",
        ConversationState.ENDED: "Thanks so much for your time!",
    },
    Personality.SKEPTICAL: {
        ConversationState.OPENING: "Okay. And why should I trust this listing?",
        ConversationState.DISCOVERY: "Is that really accurate? How do you know?",
        ConversationState.PRESENTING: "Every agent says that. Can you prove it?",
        ConversationState.NEGOTIATING: "That price still seems high to me. Justify it.",
        ConversationState.CLOSING: "Before I agree to anything, I want it in writing.",
        ConversationState.ENDED: "Fine. I'll think about it.",
    },
    Personality.DEMANDING: {
        ConversationState.OPENING: "Let's not waste time. Give me the key facts.",
        ConversationState.DISCOVERY: "That's not enough detail. What else?",
        ConversationState.PRESENTING: "I expected more for this price.",
        ConversationState.NEGOTIATING: "I need a better number than that.",
        ConversationState.CLOSING: "If the terms are right, we can finish today.",
        ConversationState.ENDED: "We're done here.",
    },
    Personality.INDECISIVE: {
        ConversationState.OPENING: "I'm not really sure where to start...",
        ConversationState.DISCOVERY: "Hmm, I don't know. Are there other options?",
        ConversationState.PRESENTING: "It sounds nice, but let me think about it.",
        ConversationState.NEGOTIATING: "Maybe if the price came down a little I could decide.",
        ConversationState.CLOSING: "I'm almost there... I just need a bit more reassurance.",
        ConversationState.ENDED: "I'll get back to you, I think.",
    },
    Personality.ANALYTICAL: {
        ConversationState.OPENING: "What's the exact floor area and the price per square metre?",
        ConversationState.DISCOVERY: "How does that compare with recent sales in the area?",
        ConversationState.PRESENTING: "Do you have data on running costs?",
        ConversationState.NEGOTIATING: "Based on the comparables, the price should be lower. How much exactly can you move?",
        ConversationState.CLOSING: "Send me the full breakdown and I'll review it.",
        ConversationState.ENDED: "Thank you, I have what I need.",
    },
}


def _template_client_response(
    persona: ClientPersona,
    phase: ConversationState,
    reaction: ClientReaction | None,
    objection_text: str | None,
) -> str:
    parts: list[str] = []
    if reaction is not None:
        parts.append(_REACTION_OPENERS[reaction.next_action])
    if objection_text:
        parts.append(objection_text)
    else:
        parts.append(_PHASE_LINES[persona.personality][phase])
    return " ".join(parts)
