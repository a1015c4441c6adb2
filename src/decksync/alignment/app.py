import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from decksync.alignment.job_runner import start_background_tasks, stop_background_tasks
from decksync.alignment.routes.align_routes import router as align_router
from decksync.common.config import Config
from decksync.health import router as health_router
from decksync.tracing import init_langfuse, shutdown_langfuse

logging.basicConfig(level=getattr(logging, Config.get_log_level()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    Config.ensure_dirs()
    init_langfuse()
    start_background_tasks()
    logging.info("🔧 Alignment background tasks started")
    try:
        yield
    finally:
        await stop_background_tasks()
        shutdown_langfuse()
        logging.info("🛑 Alignment background tasks stopped")


app = FastAPI(title="Decksync Alignment Service", lifespan=lifespan)


app.include_router(health_router, prefix="/align", tags=["Alignment"])
app.include_router(align_router, prefix="/align", tags=["Alignment"])


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "FastAPI decksync alignment service is running"}
