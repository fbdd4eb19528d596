"""
skillswap.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn skillswap.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from skillswap import __version__  # noqa: E402
from skillswap.api.deps import get_engine  # noqa: E402
from skillswap.api.routes.ai import router as ai_router  # noqa: E402
from skillswap.api.routes.badges import router as badges_router  # noqa: E402
from skillswap.api.routes.chats import router as chats_router  # noqa: E402
from skillswap.api.routes.notifications import router as notifications_router  # noqa: E402
from skillswap.api.routes.requests import router as requests_router  # noqa: E402
from skillswap.api.routes.testimonials import router as testimonials_router  # noqa: E402
from skillswap.api.routes.users import router as users_router  # noqa: E402
from skillswap.errors import SkillSwapError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("SkillSwap API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("SkillSwap API shutting down")


app = FastAPI(
    title="SkillSwap API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SkillSwapError)
async def skillswap_error_handler(request: Request, exc: SkillSwapError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# Mount routers
app.include_router(users_router, prefix="/api")
app.include_router(badges_router, prefix="/api")
app.include_router(requests_router, prefix="/api")
app.include_router(chats_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(testimonials_router, prefix="/api")
app.include_router(ai_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
