"""CORS configuration for the dashboard frontend."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from channel_dashboard.config import settings


def setup_cors(app: FastAPI) -> None:
    """Register CORS with credentials so the session cookie reaches the API."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type"],
    )
