"""
Pinboard API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create tables if not present
  3. Connect to Redis (skipped for the in-memory social backend)
  4. Build the social toggle store
  5. Expose Prometheus /metrics endpoint
"""
import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from pinboard.config import settings
from pinboard.database import init_db
from pinboard.dependencies import init_social_store
from pinboard.telemetry import setup_tracing, instrument_app
from pinboard.clients.redis_client import close_redis, init_redis
from pinboard.routers import boards, pins, search, users

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of all external connections."""
    logger.info("Starting Pinboard API (env=%s)", settings.environment)

    await init_db()
    if settings.social_backend == "redis":
        await init_redis()
    init_social_store()

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await close_redis()


app = FastAPI(
    title="Pinboard API",
    description=(
        "Image bookmarking: pins, boards, likes, saves, follows, search "
        "and related-pin recommendations."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── Routers ────────────────────────────────────────────────────────────────
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(pins.router, prefix="/pins", tags=["Pins"])
app.include_router(boards.router, prefix="/boards", tags=["Boards"])
app.include_router(search.router, prefix="/search", tags=["Search"])

# ── Prometheus metrics endpoint ────────────────────────────────────────────
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# ── OTel FastAPI instrumentation ──────────────────────────────────────────
instrument_app(app)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.service_name}
