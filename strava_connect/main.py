"""
FastAPI application entrypoint for the Strava connect API.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from strava_connect.api.errors import register_exception_handlers
from strava_connect.api.routes import router as api_router
from strava_connect.core.config import AppSettings, get_settings
from strava_connect.core.logging import configure_logging

logger = logging.getLogger("strava_connect.requests")


def _install_middleware(app: FastAPI, settings: AppSettings) -> None:
    @app.middleware("http")
    async def security_headers(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        logger.info(
            "%s %s - %s",
            request.method,
            request.url.path,
            request.client.host if request.client else "-",
        )
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # Added last so it wraps everything, including preflight requests.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Cookie"],
    )


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Factory for the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Strava Connect API",
        version="0.1.0",
        description="Strava login, session credentials and athlete data proxy.",
    )
    app.state.settings = settings
    register_exception_handlers(app)
    _install_middleware(app, settings)
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
