from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

# Load the project-root .env before settings are read
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ingestion.settings import get_settings
from ingestion.utils.logging import configure_logging

from .routes import router

settings = get_settings()
configure_logging(settings.structlog_level, json_enabled=settings.log_json)

app = FastAPI(title="Greenfeed News API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_methods=["GET", "DELETE"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/healthz", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
