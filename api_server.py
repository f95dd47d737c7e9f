from __future__ import annotations  # FastAPI server exposing the mock interview session engine

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents.bootstrap import bind_gateway_models
from api.routes import router
from config.registry import MODEL_KEYS, is_bound
from config.settings import settings
from observability import configure_logging
from storage.migrate import migrate


logger = logging.getLogger(__name__)


def _config_path() -> Path:
    path = Path(settings.LLM_CONFIG_PATH)
    if not path.is_absolute():
        path = Path(__file__).resolve().parent / path
    return path


def _bind_models() -> None:  # Route every unbound model key through the LLM gateway
    if all(is_bound(key) for key in MODEL_KEYS):
        return
    path = _config_path()
    if not path.exists():
        logger.warning("LLM config %s not found; AI calls will fail until models are bound", path)
        return
    try:
        bind_gateway_models(path)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to load LLM config: %s", exc)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    migrate()
    _bind_models()
    yield


app = FastAPI(title="Mock Interview API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


@app.get("/healthz")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api_server:app", host="0.0.0.0", port=8000)
