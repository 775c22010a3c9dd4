"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes
- Middleware (logging, CORS)
- Exception handlers mapping the error taxonomy onto HTTP responses
- Startup / shutdown of the service container

Design Decisions:
- Clean separation: Routes, middleware, and app config are separate
- Every service error carries its own kind and status, so one handler
  covers the whole taxonomy
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shortlink.api import endpoints
from shortlink.core.container import build_container, configure_logging
from shortlink.core.exceptions import URLShortenerException
from shortlink.core.rate_limit import limiter
from shortlink.core.setting import settings
from shortlink.middleware.logging import add_logging_middleware

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Shortlink",
    description="URL shortening service with cache-aside redirects and click analytics",
    version="1.0.0",
    docs_url="/docs" if settings.docs_enabled else None,  # Swagger UI documentation
    redoc_url="/redoc" if settings.docs_enabled else None,  # ReDoc documentation
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(URLShortenerException)
async def service_error_handler(request: Request, exc: URLShortenerException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"kind": exc.kind, "message": str(exc)}},
    )


# Health endpoints defined before router to match before catch-all route
@app.get("/", tags=["Health"])
async def root():
    """Service information."""
    return {
        "message": "Shortlink",
        "version": "1.0.0",
        "environment": settings.ENV_SETTING.value,
        "docs": app.docs_url,
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for monitoring.

    The service is healthy when the durable store answers; a cache outage
    only degrades redirects to store reads.
    """
    checks = await request.app.state.container.health()
    healthy = checks["durable_store"]
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "healthy" if healthy else "unhealthy", "checks": checks},
    )


app.include_router(endpoints.router, tags=["Shortlink"])


@app.on_event("startup")
async def startup_event():
    """Build and start services on startup."""
    configure_logging(settings.LOG_LEVEL)
    app.state.container = build_container(settings)
    await app.state.container.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Drain analytics and close connections."""
    container = getattr(app.state, "container", None)
    if container is not None:
        await container.shutdown()
