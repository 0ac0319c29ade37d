from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sampha import dependencies
from sampha.auth.config import auth_settings
from sampha.auth.middleware import AuthMiddleware
from sampha.config import settings
from sampha.database import close_db_engine, init_db_engine, ping_database
from sampha.logging_config import get_logger, setup_logging
from sampha.migration_check import ensure_migrations
from sampha.routers import (
    auth as auth_router,
    calendar,
    comments,
    events,
    github,
    github_webhooks,
    notifications,
    phases,
    projects,
    tasks,
    users,
    workspaces,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - connect/disconnect Redis and database."""
    setup_logging()

    try:
        auth_settings.validate()
        if auth_settings.enabled:
            logger.info("Authentication is ENABLED")
        else:
            logger.warning("Authentication is DISABLED (AUTH_ENABLED=false)")
    except RuntimeError as e:
        logger.critical(f"Auth configuration error: {e}")
        raise

    if settings.redis_url:
        dependencies.redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await dependencies.redis_client.ping()
            logger.info(f"Connected to Redis at {settings.redis_url}")
        except Exception as e:
            logger.warning(f"Could not connect to Redis: {e}")
            logger.warning("API will continue with degraded event streaming capabilities")
    else:
        logger.warning("REDIS_URL not set; change events are disabled")

    try:
        await init_db_engine()
        logger.info("Database engine initialized")
    except Exception as e:
        logger.critical(f"Could not initialize database engine: {e}")
        raise

    try:
        ensure_migrations()
    except Exception as e:
        logger.critical(f"Migration check failed: {e}")
        raise

    yield

    try:
        await close_db_engine()
        logger.info("Database engine closed")
    except Exception as e:
        logger.error(f"Error closing database engine: {e}")

    if dependencies.redis_client:
        try:
            await dependencies.redis_client.close()
            logger.info("Disconnected from Redis")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")
        dependencies.redis_client = None


app = FastAPI(
    title="Sampha API",
    version="0.1.0",
    description="Workspaces, projects, phases and tasks with calendar views",
    lifespan=lifespan,
)

# Starlette middleware order is LIFO: CORS is added last so it runs
# outermost and 401 responses from AuthMiddleware still carry CORS headers.
app.add_middleware(AuthMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions and return a generic 500."""
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: "
        f"{type(exc).__name__}: {exc}",
        exc_info=True,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(auth_router.router, prefix="/v1/auth", tags=["auth"])
app.include_router(users.router, prefix="/v1/users", tags=["users"])
app.include_router(workspaces.router, prefix="/v1/workspaces", tags=["workspaces"])
app.include_router(projects.router, prefix="/v1", tags=["projects"])
app.include_router(phases.router, prefix="/v1", tags=["phases"])
app.include_router(tasks.router, prefix="/v1", tags=["tasks"])
app.include_router(comments.router, prefix="/v1", tags=["comments"])
app.include_router(calendar.router, prefix="/v1", tags=["calendar"])
app.include_router(github.router, prefix="/v1", tags=["github"])
app.include_router(github_webhooks.router, prefix="/v1/webhooks", tags=["webhooks"])
app.include_router(
    notifications.router, prefix="/v1/notifications", tags=["notifications"]
)
app.include_router(events.router, prefix="/v1/events", tags=["events"])


@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "OK"


@app.get("/v1/status")
async def status():
    """Get API health status."""
    redis_ok = False
    if dependencies.redis_client:
        try:
            redis_ok = await dependencies.redis_client.ping()
        except Exception as e:
            logger.debug(f"Redis ping failed: {e}")

    database_ok = await ping_database()

    return {
        "status": "ok" if database_ok else "degraded",
        "version": app.version,
        "database_connected": database_ok,
        "redis_connected": bool(redis_ok),
    }
