"""Channel Dashboard Backend - FastAPI Entry Point."""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from channel_dashboard.config import settings
from channel_dashboard.database import engine
from channel_dashboard.middleware.cors import setup_cors
from channel_dashboard.middleware.error_handler import setup_error_handlers
from channel_dashboard.middleware.logging_middleware import LoggingMiddleware
from channel_dashboard.middleware.metrics import MetricsMiddleware, setup_metrics
from channel_dashboard.api.v1 import analytics as analytics_router
from channel_dashboard.api.v1 import auth as auth_router
from channel_dashboard.api.v1 import channels as channels_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger.info(
        "startup",
        env=settings.APP_ENV,
        reporting_delay_days=settings.REPORTING_DELAY_DAYS,
    )
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1 if settings.APP_ENV == "production" else 1.0,
            environment=settings.APP_ENV,
        )

    yield

    await engine.dispose()
    logger.info("shutdown")


def create_app() -> FastAPI:
    application = FastAPI(
        title="Channel Dashboard API",
        description="Multi-channel YouTube analytics dashboard",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Middleware (order matters: last added = first executed)
    setup_cors(application)
    setup_error_handlers(application)
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(MetricsMiddleware)

    setup_metrics(application)

    # API Routers
    application.include_router(auth_router.router, prefix="/api/v1/auth", tags=["Auth"])
    application.include_router(channels_router.router, prefix="/api/v1/channels", tags=["Channels"])
    application.include_router(analytics_router.router, prefix="/api/v1/analytics", tags=["Analytics"])

    @application.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
