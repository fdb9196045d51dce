import logging as _logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .components.sessions.cleanup import SessionCleanupService
from .components.sessions.repository import SessionRepository
from .platform.brand import BRAND_APP_DESCRIPTION, BRAND_NAME, BRAND_SERVICE_ID
from .platform.config import settings
from .platform.database import async_session_maker, create_all_tables
from .platform.logging import setup_logging
from .platform.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from .platform.scheduler import AsyncioScheduler

# Set up logging
logger = setup_logging()

# Disable interactive API docs in production (information disclosure)
_docs_url = None if settings.is_production else "/api/docs"
_openapi_url = None if settings.is_production else "/api/openapi.json"


@asynccontextmanager
async def _lifespan(app: FastAPI):
    # Startup
    if settings.DATABASE_AUTO_CREATE:
        await create_all_tables()
    cleanup = SessionCleanupService.from_settings(AsyncioScheduler(name="session-cleanup"))
    app.state.cleanup_service = cleanup
    if settings.SESSION_CLEANUP_AUTOSTART:
        cleanup.start()
    logger.info("%s API started | env=%s", BRAND_NAME, settings.DEPLOYMENT_ENV)
    yield
    # Shutdown
    cleanup.stop()


app = FastAPI(
    title=f"{BRAND_NAME} API",
    description=BRAND_APP_DESCRIPTION,
    version="1.0.0",
    docs_url=_docs_url,
    openapi_url=_openapi_url,
    lifespan=_lifespan,
)

_val_logger = _logging.getLogger("assessment_delivery.validation")
_db_logger = _logging.getLogger("assessment_delivery.database")


def _sanitize_errors(errors: list) -> list:
    """Ensure validation error details are JSON-serializable."""

    def _json_safe(value):
        if isinstance(value, (str, int, float, bool)) or value is None:
            return value
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        if isinstance(value, dict):
            return {str(k): _json_safe(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set)):
            return [_json_safe(v) for v in value]
        return str(value)

    return [_json_safe(err) for err in errors]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    _val_logger.warning("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=422,
        content={"detail": _sanitize_errors(exc.errors()), "code": "VALIDATION_FAILED"},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    _db_logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"code": "DATABASE_ERROR", "message": "A database error occurred"}},
    )


app.add_middleware(SecurityHeadersMiddleware)

# CORS: frontend URL + localhost + any extra origins
_cors_origins = [
    settings.FRONTEND_URL,
    "http://localhost:5173",
    "http://localhost:3000",
]
if settings.CORS_EXTRA_ORIGINS:
    _cors_origins.extend(o.strip() for o in settings.CORS_EXTRA_ORIGINS.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o for o in _cors_origins if o],
    allow_origin_regex=settings.CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID", "X-Requested-With"],
)

# Request logging
app.add_middleware(RequestLoggingMiddleware)

# Sentry (optional)
if settings.SENTRY_DSN and settings.SENTRY_DSN.startswith("https://"):
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=0.1,
        environment=settings.DEPLOYMENT_ENV,
        integrations=[FastApiIntegration(), SqlalchemyIntegration()],
    )

# Include routers
from .api.v1.cleanup import router as cleanup_router  # noqa: E402
from .api.v1.sessions import router as sessions_router  # noqa: E402
from .api.v1.results import router as results_router  # noqa: E402
from .api.v1.player_config import router as player_config_router  # noqa: E402

# /sessions/cleanup must be registered before /sessions/{session_id}
app.include_router(cleanup_router, prefix="/api/v1")
app.include_router(sessions_router, prefix="/api/v1")
app.include_router(results_router, prefix="/api/v1")
app.include_router(player_config_router, prefix="/api/v1")


@app.get("/health")
async def health_check(request: Request):
    db_ok = False
    counts = {"sessions": None, "results": None}
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
            repo = SessionRepository(db)
            counts = {"sessions": await repo.count_sessions(), "results": await repo.count_results()}
        db_ok = True
    except Exception:
        logger.warning("Health check could not reach the database", exc_info=True)

    cleanup = getattr(request.app.state, "cleanup_service", None)
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": BRAND_SERVICE_ID,
        "database": db_ok,
        "counts": counts,
        "cleanup": cleanup.status() if cleanup is not None else None,
    }
