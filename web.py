import json
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apis.admin import router as admin_router
from apis.ai import router as ai_router
from apis.auth import router as auth_router
from apis.base import http_error
from apis.content import router as content_router
from apis.user import router as user_router
from core.ai_client import AIClient
from core.config import cfg, VERSION, API_BASE
from core.db import Database
from core.errors import AitemError
from core.log import get_logger, set_trace_id
from core.events import log_event, E
from jobs.usage_reset import start_usage_reset_worker

logger = get_logger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """JSON response that keeps Persian text unescaped."""

    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


def _ensure_sqlite_dir(url: str) -> None:
    prefix = "sqlite:///"
    if url.startswith(prefix) and url != "sqlite:///:memory:":
        folder = os.path.dirname(url[len(prefix):])
        if folder:
            os.makedirs(folder, exist_ok=True)


def build_database(url: str = None) -> Database:
    url = url or str(cfg.get("db", "sqlite:///data/aitem.db"))
    _ensure_sqlite_dir(url)
    db = Database(url)
    db.create_tables()
    return db


@asynccontextmanager
async def lifespan(app: FastAPI):
    # tests may pre-populate app.state before startup
    db = getattr(app.state, "db", None) or build_database()
    ai = getattr(app.state, "ai", None) or AIClient.from_config()
    app.state.db = db
    app.state.ai = ai
    stop = None
    if cfg.get("usage.reset_sweep_enabled", True):
        _, stop = start_usage_reset_worker(db)
    log_event(logger, E.SYSTEM_STARTUP, version=VERSION, mock_ai=ai.is_mock)
    try:
        yield
    finally:
        if stop is not None:
            stop.set()
        ai.close()
        db.dispose()
        log_event(logger, E.SYSTEM_SHUTDOWN)


app = FastAPI(
    title="Aitem API",
    description="Instagram content assistant: story scenarios, captions, chat and admin tools",
    version=VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    default_response_class=UnicodeJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_custom_header(request: Request, call_next):
    set_trace_id(request.headers.get("X-Trace-Id"))
    response = await call_next(request)
    response.headers["X-Version"] = VERSION
    response.headers["Server"] = cfg.get("app_name", "Aitem")
    return response


@app.exception_handler(AitemError)
async def aitem_error_handler(request: Request, exc: AitemError):
    err = http_error(exc)
    if err.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return UnicodeJSONResponse(status_code=err.status_code, content={"detail": err.detail})


api_router = APIRouter(prefix=f"{API_BASE}")
api_router.include_router(auth_router)
api_router.include_router(user_router)
api_router.include_router(ai_router)
api_router.include_router(content_router)
api_router.include_router(admin_router)
app.include_router(api_router)


@app.get("/api/health", include_in_schema=False)
async def health():
    return {"status": "ok", "version": VERSION}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8001")))
