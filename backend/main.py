"""
MoonTV Advisor - AI chat backend for MoonTVPlus
FastAPI app: data source orchestration + streaming chat relay
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
import os
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from routers import chat
from errors import register_exception_handlers
from logging_config import setup_logging
from validation import validate_startup
from config import runtime_config

setup_logging()
logger = logging.getLogger(__name__)

APP_NAME = "MoonTV Advisor"


@dataclass
class StartupHealth:
    """Tracks startup validation outcome for /health."""
    phase: str = "initializing"
    critical_issues: int = 0
    warnings: int = 0
    startup_complete: bool = False


_startup_health = StartupHealth()

# Instance ID - changes on every startup, used by frontend to detect restarts
INSTANCE_ID = str(uuid.uuid4())

# Fail startup on critical config issues instead of only logging them
STRICT_STARTUP = os.environ.get("STRICT_STARTUP_VALIDATION", "false").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    _startup_health.phase = "validating"
    result = validate_startup(runtime_config, strict=STRICT_STARTUP)
    _startup_health.critical_issues = len(result.get_critical())
    _startup_health.warnings = len(result.get_warnings())
    _startup_health.phase = "ready"
    _startup_health.startup_complete = True
    logger.info(f"{APP_NAME} ready (ai_enabled={runtime_config.ai_enabled}, provider={runtime_config.chat_provider})")

    yield

    logger.info(f"{APP_NAME} signing off")


app = FastAPI(
    title=APP_NAME,
    description="AI movie advisor with Douban, TMDB and web search context",
    version="1.0.0",
    lifespan=lifespan,
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Referrer policy for privacy
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# Request body size limit middleware
MAX_BODY_SIZE_API = 1 * 1024 * 1024  # 1MB


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests with bodies exceeding the size limit."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            size = int(content_length)
            if size > MAX_BODY_SIZE_API:
                return JSONResponse(
                    status_code=413,
                    content={"error": f"Request body too large ({size} bytes, limit {MAX_BODY_SIZE_API} bytes)"},
                )
        return await call_next(request)


app.add_middleware(SecurityHeadersMiddleware)

# Request body size limit
app.add_middleware(RequestSizeLimitMiddleware)

# CORS - the Next.js frontend calls from its own origin
_cors_origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# API Routers (chat router already has /api/ai prefix)
app.include_router(chat.router, tags=["chat"])


@app.get("/health")
async def health():
    """Health check - reports which data sources are configured."""
    cfg = runtime_config
    sources = {
        "douban": "ok",
        "web_search": "ok" if cfg.enable_web_search and cfg.web_search_api_key() else "disabled",
        "tmdb": "ok" if cfg.tmdb_api_key else "disabled",
        "decision_model": "ok" if cfg.enable_decision_model and cfg.decision_model else "disabled",
    }
    chat_ready = cfg.ai_enabled and cfg.chat_provider_ready()
    return {
        "status": "healthy" if chat_ready else "degraded",
        "service": APP_NAME,
        "ai_enabled": cfg.ai_enabled,
        "chat_provider": cfg.chat_provider,
        "chat_ready": chat_ready,
        "sources": sources,
        "startup_phase": _startup_health.phase,
        "startup_complete": _startup_health.startup_complete,
        "validation": {
            "critical": _startup_health.critical_issues,
            "warnings": _startup_health.warnings,
        },
    }


@app.get("/api/instance")
async def get_instance():
    """Return instance ID - changes on each startup."""
    return {"instance_id": INSTANCE_ID}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
