"""
Start-simulation use case.

  1. Generate the client persona (templates, no model call)
  2. Create the session record
  3. Build the objection pool and the opening line concurrently
  4. Seed the in-memory objection state
  5. Append turn 0 (the client's opener) and mark the session ready
"""

from __future__ import annotations

import asyncio
import random
import time
from datetime import datetime, timezone
from typing import Any

from simtrainer.core.logging import logger
from simtrainer.domain.injection import generate_objections
from simtrainer.domain.persona import (
    estimated_duration_minutes,
    generate_initial_message,
    generate_persona,
    get_scenario_context,
    get_scenario_tips,
)
from simtrainer.domain.state import (
    ClientPersona,
    Difficulty,
    ScenarioType,
    Sentiment,
    SessionStatus,
    SimulationState,
    Speaker,
)
from simtrainer.usecases.deps import Services, get_services


async def _initial_message(
    persona: ClientPersona,
    scenario_type: ScenarioType,
    rng: random.Random,
) -> str:
    return generate_initial_message(persona, scenario_type, rng=rng)


async def start_simulation(
    scenario_type: ScenarioType,
    difficulty: Difficulty,
    trainee_id: str,
    custom_persona_config: dict[str, Any] | None = None,
    services: Services | None = None,
) -> dict:
    svc = services or get_services()
    t0 = time.monotonic()

    persona = generate_persona(scenario_type, difficulty, custom_persona_config, rng=svc.rng)
    session = await svc.sessions.create(
        trainee_id=trainee_id,
        scenario_type=scenario_type,
        difficulty=difficulty,
        client_persona=persona.to_dict(),
    )

    objections, initial_message = await asyncio.gather(
        generate_objections(svc.catalog, scenario_type, difficulty, persona, svc.rng),
        _initial_message(persona, scenario_type, svc.rng),
    )

    svc.store.put(
        SimulationState(
            session_id=session.id,
            difficulty=difficulty,
            pending_objections=list(objections),
        )
    )

    await svc.sessions.add_conversation_turn(
        session.id,
        speaker=Speaker.CLIENT,
        message=initial_message,
        turn_number=0,
        sentiment=Sentiment.NEUTRAL,
    )
    await svc.sessions.update(
        session.id,
        status=SessionStatus.READY,
        started_at=datetime.now(timezone.utc),
    )

    logger.info(
        "Session %s created: trainee=%s scenario=%s difficulty=%s personality=%s "
        "objections=%d (%.0fms)",
        session.id,
        trainee_id,
        scenario_type.value,
        difficulty.value,
        persona.personality.value,
        len(objections),
        (time.monotonic() - t0) * 1000,
    )

    return {
        "session_id": session.id,
        "status": SessionStatus.READY.value,
        "client_persona": persona.to_dict(),
        "scenario_context": get_scenario_context(scenario_type),
        "initial_client_message": initial_message,
        "estimated_duration_minutes": estimated_duration_minutes(difficulty),
        "tips": get_scenario_tips(scenario_type),
    }
