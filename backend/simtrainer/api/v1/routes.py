from fastapi import APIRouter, BackgroundTasks, HTTPException

from simtrainer.core.errors import (
    SessionClosedError,
    SessionNotFoundError,
    SimulationError,
    TurnInProgressError,
)
from simtrainer.core.logging import logger
from simtrainer.schemas.analysis import AnalysisResponse, AnalyzeRequest
from simtrainer.schemas.simulation import (
    EndSimulationRequest,
    EndSimulationResponse,
    MessageRequest,
    MessageResponse,
    SessionResponse,
    StartSimulationRequest,
    StartSimulationResponse,
)
from simtrainer.usecases.analyze_simulation import analyze_simulation
from simtrainer.usecases.end_simulation import end_simulation
from simtrainer.usecases.get_session import get_session_by_id
from simtrainer.usecases.process_message import process_message
from simtrainer.usecases.start_simulation import start_simulation

router = APIRouter(prefix="/api/v1/simulations")


def _to_http(exc: SimulationError) -> HTTPException:
    if isinstance(exc, SessionNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (SessionClosedError, TurnInProgressError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


async def _auto_analyze(session_id: str) -> None:
    try:
        await analyze_simulation(session_id)
    except Exception as e:
        logger.error("Session %s: background analysis failed: %s", session_id, e, exc_info=True)


@router.post("", response_model=StartSimulationResponse)
async def post_start(body: StartSimulationRequest):
    result = await start_simulation(
        scenario_type=body.scenario_type,
        difficulty=body.difficulty,
        trainee_id=body.trainee_id,
        custom_persona_config=(
            body.custom_persona_config.to_overrides() if body.custom_persona_config else None
        ),
    )
    return StartSimulationResponse(**result)


@router.post("/{session_id}/messages", response_model=MessageResponse)
async def post_message(session_id: str, body: MessageRequest):
    try:
        result = await process_message(session_id, body.message)
    except SimulationError as e:
        raise _to_http(e)
    return MessageResponse(**result)


@router.post("/{session_id}/end", response_model=EndSimulationResponse)
async def post_end(
    session_id: str,
    background_tasks: BackgroundTasks,
    body: EndSimulationRequest | None = None,
):
    """End the session; a completed session is analyzed in the background."""
    end_reason = body.end_reason if body else "completed"
    try:
        result = await end_simulation(session_id, end_reason)
    except SimulationError as e:
        raise _to_http(e)

    if result["status"] == "completed":
        background_tasks.add_task(_auto_analyze, session_id)
    return EndSimulationResponse(**result)


@router.post("/{session_id}/analyze", response_model=AnalysisResponse)
async def post_analyze(session_id: str, body: AnalyzeRequest | None = None):
    generate = body.generate_recommendations if body else True
    try:
        result = await analyze_simulation(session_id, generate_recommendations=generate)
    except SimulationError as e:
        raise _to_http(e)
    return AnalysisResponse(**result)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    try:
        result = await get_session_by_id(session_id)
    except SimulationError as e:
        raise _to_http(e)
    return SessionResponse(**result)
