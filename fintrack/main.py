from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError
import time
import uuid
import structlog

from fintrack.core.config import Settings, get_settings
from fintrack.core.database import Database
from fintrack.core.errors import (
    AppError, app_error_handler, integrity_error_handler, request_validation_handler, unhandled_error_handler,
)
from fintrack.core.logging import configure_logging
from fintrack.core.schemas import HealthResponse
from fintrack.routers import auth, users, categories, transactions, budgets, families, shopping_lists
from fintrack.services.category_service import seed_default_categories

logger = structlog.get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    settings: Settings = app.state.settings
    logger.info("application_starting", environment=settings.environment, version=settings.version)

    owns_database = app.state.database is None
    if owns_database:
        app.state.database = Database(settings.database_url)
        app.state.database.connect(retries=settings.db_connect_retries)

    database: Database = app.state.database
    database.create_all()
    with database.SessionLocal() as db:
        seed_default_categories(db)

    app.state.started_at = time.monotonic()
    logger.info("application_started")

    yield

    logger.info("application_stopping")
    if owns_database:
        database.dispose()

def create_app(settings: Settings = None, database: Database = None) -> FastAPI:
    """Build the API. Tests pass their own settings and database."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, json_logs=settings.log_json or settings.is_production)

    app = FastAPI(
        title="FinTrack API",
        description="Personal and family finance tracking",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.started_at = time.monotonic()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include routers
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(categories.router)
    app.include_router(transactions.router)
    app.include_router(budgets.router)
    app.include_router(families.router)
    app.include_router(shopping_lists.router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "FinTrack API", "version": settings.version}

    @app.get("/health", response_model=HealthResponse)
    def health_check(request: Request):
        """Health check endpoint."""
        database: Database = request.app.state.database
        database_ok = database is not None and database.check_health()
        return {
            "status": "healthy" if database_ok else "degraded",
            "timestamp": datetime.now(timezone.utc),
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "version": settings.version,
            "database": "ok" if database_ok else "unavailable",
        }

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("fintrack.main:app", host="0.0.0.0", port=get_settings().port)
