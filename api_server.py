from __future__ import annotations  # FastAPI server exposing interview orchestration

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents.llm_models import bind_llm_models
from api.errors import register_error_handlers
from api.routes import router
from config.settings import settings
from storage.migrate import migrate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    migrate(settings.DB_PATH)
    try:
        bind_llm_models()
    except (OSError, ValueError, KeyError) as exc:
        logger.warning("LLM routes not bound (%s); collaborators will use fallbacks", exc)
    yield


app = FastAPI(title="Interview Orchestration API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)
app.include_router(router)


@app.get("/healthz")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("api_server:app", host="0.0.0.0", port=8000)
