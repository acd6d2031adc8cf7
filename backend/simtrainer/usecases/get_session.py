from __future__ import annotations

from simtrainer.core.errors import SessionNotFoundError
from simtrainer.usecases.deps import Services, get_services


async def get_session_by_id(session_id: str, services: Services | None = None) -> dict:
    """Session record with its turns, plus the live objection state while the session is open."""
    svc = services or get_services()

    session = await svc.sessions.find_by_id_with_turns(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)

    state = svc.store.get(session_id)
    return {
        "session": session.to_dict(),
        "simulation_state": state.to_dict() if state is not None else None,
    }
