import asyncio

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from simtrainer.api.v1.routes import router as v1_router
from simtrainer.core.logging import logger, setup_logging
from simtrainer.core.settings import settings
from simtrainer.usecases.deps import get_services

setup_logging()

app = FastAPI(
    title="Sales Roleplay Trainer",
    version="0.1.0",
    description="Sales roleplay simulation API with simulated clients and objection coaching",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router)


@app.get("/health")
async def health():
    return {"ok": True, "llm_backends": get_services().gateway.backend_names}


# ---------------------------------------------------------------------------
# Idle session watchdog
# ---------------------------------------------------------------------------

async def _idle_watchdog() -> None:
    """Periodically end sessions that have been idle too long."""
    from simtrainer.usecases.end_simulation import end_simulation

    timeout = settings.idle_timeout_seconds
    while True:
        await asyncio.sleep(min(30, max(1, timeout // 10)))

        for sid in get_services().store.idle_session_ids(timeout):
            logger.info("Session %s: idle timeout (> %ds)", sid, timeout)
            try:
                await end_simulation(sid, end_reason="timeout")
            except Exception as e:
                logger.error("Session %s: failed to end idle session: %s", sid, e)


@app.on_event("startup")
async def _start_watchdog():
    if settings.idle_timeout_seconds > 0:
        asyncio.create_task(_idle_watchdog())
