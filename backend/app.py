import logging
import time
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from backend.config import APP_VERSION, CORS_ORIGINS
from backend.db import engine, init_db
from backend.logging_config import setup_logging, request_id_var
from backend.health_checks import check_database, check_env, check_stalled_starts, get_app_metadata
from backend.error_handlers import register_error_handlers
from backend.narrative import StoryNarrator

setup_logging()
logger = logging.getLogger(__name__)

# Track uptime
start_time = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: schema, then the shared narrator client
    init_db()
    app.state.narrator = StoryNarrator()
    logger.info(f"Chronicle API starting (narrator configured: {app.state.narrator.configured})")
    yield
    # Shutdown
    app.state.narrator.close()
    engine.dispose()
    logger.info("Chronicle API shutting down")


application = FastAPI(
    title="Chronicle API",
    description="Turn-based collaborative storytelling: campaigns, characters, turns and votes",
    version=APP_VERSION,
    lifespan=lifespan,
)

application.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Middleware to attach request_id
@application.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        logger.info(f"{request.method} {request.url.path}")
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_id_var.reset(token)


# Health check
@application.get("/health")
async def health_check():
    """Simple health check."""
    return {
        "status": "ok",
        "uptime_seconds": time.time() - start_time,
        "timestamp": time.time(),
    }


# Health check with DB status
@application.get("/api/health")
def api_health_check(request: Request):
    """Detailed health check with DB and env checks."""
    db_status = check_database()
    narrator = getattr(request.app.state, "narrator", None)

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "uptime_seconds": time.time() - start_time,
        "database": db_status,
        "environment": check_env(),
        "narrator": {"configured": bool(narrator and narrator.configured)},
        "stalled_starts": check_stalled_starts(),
        "metadata": get_app_metadata(start_time),
        "timestamp": time.time(),
    }


# Register routers (import after app creation to avoid circular imports)
from routes.auth import auth_router, limiter
from routes.campaigns import router as campaigns_router
from routes.characters import router as characters_router
from routes.turns import router as turns_router
from routes.votes import router as votes_router

application.state.limiter = limiter
application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

application.include_router(auth_router)
application.include_router(campaigns_router)
application.include_router(characters_router)
application.include_router(turns_router)
application.include_router(votes_router)


# Root endpoint
@application.get("/")
async def root():
    """API root."""
    return {
        "message": "Chronicle API",
        "docs": "/docs",
        "openapi": "/openapi.json",
        "health": "/health",
        "api_health": "/api/health",
    }


register_error_handlers(application)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(application, host="0.0.0.0", port=8000)
