import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .logging_config import configure_logging
from .progress_routes import close_api_client, router as progress_router


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    await close_api_client()


app = FastAPI(title="Learning Progress Engine", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(progress_router)

settings_snapshot = get_settings()
logger.info("Progress engine starting with API base URL: %s", settings_snapshot.api_base_url)


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok"}
