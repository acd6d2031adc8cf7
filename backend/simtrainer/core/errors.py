"""
Error taxonomy for the simulation core.

Business-rule rejections (missing session, closed session, a turn already in
flight) are raised to the caller.  Model failures are absorbed by the domain
fallbacks; LLMGatewayError only escapes from the raw gateway API.
"""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for all simulation-core errors."""


class SessionNotFoundError(SimulationError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Simulation session not found: {session_id}")


class SessionClosedError(SimulationError):
    def __init__(self, session_id: str, status: str) -> None:
        self.session_id = session_id
        self.status = status
        super().__init__(f"Simulation session {session_id} is already {status}")


class TurnInProgressError(SimulationError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(
            f"A message for session {session_id} is still being processed"
        )


class LLMGatewayError(SimulationError):
    """Every backend in the fallback chain failed.

    ``failures`` keeps one ``(backend_name, reason)`` pair per attempt, in
    the order the backends were tried.
    """

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        self.failures = list(failures)
        if self.failures:
            detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures)
        else:
            detail = "no backends configured"
        super().__init__(f"All LLM backends failed: {detail}")
