"""
Focus Flow – Focus Session API
Start with: uvicorn main:app --reload
"""
import logging
import logging.handlers
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clock import Clock, SystemClock
from db import create_db_engine, init_db
from errors import FocusError, InvalidTransition
from focus_engine import FocusEngine
from routers import extension, focus, productivity
from session_store import SqlSessionStore
from settings import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger()
    root.setLevel(settings.log_level)
    if not root.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream)
    if settings.log_file:
        handler = logging.handlers.RotatingFileHandler(
            settings.log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
        root.addHandler(handler)


def create_app(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    clock = clock or SystemClock()
    configure_logging(settings)

    db_engine = create_db_engine(settings.database_url)
    store = SqlSessionStore(db_engine, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(db_engine)
        logger.info("Focus Flow API ready (db=%s)", db_engine.url.render_as_string(hide_password=True))
        yield
        db_engine.dispose()

    app = FastAPI(
        title="Focus Flow API",
        description="Focus sessions, breaks and productivity totals for the dashboard and extension",
        version="0.2.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db_engine = db_engine
    app.state.focus_engine = FocusEngine(store, clock=clock)

    # Allow the dashboard (Next.js) to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(FocusError)
    async def focus_error_handler(request: Request, exc: FocusError):
        level = logging.WARNING if isinstance(exc, InvalidTransition) else logging.INFO
        logger.log(level, "%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.code)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Failed to process request"})

    @app.get("/health")
    def health():
        """Check that the API is running. Frontend can call this first."""
        return {"status": "ok", "message": "Focus Flow API is running"}

    @app.get("/")
    def root():
        """Root welcome."""
        return {"app": "Focus Flow", "docs": "/docs"}

    app.include_router(focus.router)
    app.include_router(extension.router)
    app.include_router(productivity.router)
    return app


app = create_app()
