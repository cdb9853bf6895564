import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
import database
from errors import COIEngineError, engine_error_handler
from routers import audit, cois, parties, requirements, scheduler
from services.scheduler import run_scheduler

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    session_factory = database.init_db()
    task = None
    if config.SCHEDULER_ENABLED:
        logger.info("Starting scheduler loop every %ss", config.SCHEDULER_INTERVAL_SECONDS)
        task = asyncio.create_task(run_scheduler(session_factory, loop=True))
    yield
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="COI Compliance Tracker", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(COIEngineError, engine_error_handler)

app.include_router(cois.router)
app.include_router(parties.router)
app.include_router(requirements.router)
app.include_router(audit.router)
app.include_router(scheduler.router)


@app.get("/")
def read_root():
    return {"status": "online", "message": "COI Compliance Tracker API", "approval_policy": config.APPROVAL_POLICY}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8081)
