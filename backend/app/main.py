import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.logging_config import configure_logging
from app.middleware.exceptions import register_exception_handlers
from app.middleware.security import SecurityHeadersMiddleware
from app.routers import admin, auth, health
from app.utils.redis_client import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup, release the Redis pool on shutdown."""
    configure_logging()
    logger.info("CareAccess API starting (%s)", settings.environment)
    try:
        yield
    finally:
        await close_redis()
        logger.info("CareAccess API stopped")


app = FastAPI(
    title="CareAccess",
    description="Case management for health and harm-reduction programmes",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
