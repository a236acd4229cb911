"""HTTP service for starting and following conversion runs."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imgc.api.routes import router
from imgc.config import CORS_ORIGINS, MAX_WORKERS, QUEUE_SIZE
from imgc.runs import cancel_active_runs

logger = logging.getLogger("imgc.main")
logging.getLogger("uvicorn").setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("imgc API started (workers per run: %s, queue size: %s)", MAX_WORKERS, QUEUE_SIZE)
    yield
    # running files finish, nothing new is dispatched
    stopped = cancel_active_runs()
    logger.info("imgc API shutting down, %s unfinished runs stopped", stopped)


app = FastAPI(
    title="imgc",
    description="Batch convert images matched by a glob pattern to webp, avif, png or jpeg.",
    version="1.0.0",
    lifespan=lifespan,
)
if CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    from imgc.config import HOST, PORT
    uvicorn.run("imgc.main:app", host=HOST, port=PORT)
