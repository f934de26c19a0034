from fastapi import FastAPI
import logging

from roomvars.api.routes import router
from roomvars.config import settings_from_env
from roomvars.runtime import init_registry, shutdown_registry

settings = settings_from_env()

app = FastAPI(title="roomvars", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_registry(settings=settings)


@app.on_event("shutdown")
async def _shutdown() -> None:
    # Flushes queued saves before the process goes away.
    await shutdown_registry()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "roomvars", "version": "0.1.0"}
