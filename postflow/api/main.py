import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from postflow.api.deps import get_context, get_rules, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load rules (fail-fast), build the service graph, run the queue scheduler."""
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()

    try:
        get_rules()
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    scheduler = get_context().create_scheduler()
    scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()


app = FastAPI(
    title="postflow API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from postflow.api.routes import admin_posts, posts  # noqa: E402

app.include_router(admin_posts.router, prefix="/api/admin/posts", tags=["Admin Posts"])
app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    ctx = get_context()
    return {
        "status": "ok",
        "service": "api",
        "queues": {lane: ctx.queue.size(lane) for lane in ctx.lanes},
        "failed_jobs": len(ctx.queue.failed),
    }
