"""Global error handlers producing RFC 7807 problem details."""
from http import HTTPStatus

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from channel_dashboard.schemas.common import ErrorDetail
from channel_dashboard.services.date_windows import InvalidRange

logger = structlog.get_logger()


class AppException(Exception):
    def __init__(self, status_code: int, detail: str, error_type: str = "about:blank"):
        self.status_code = status_code
        self.detail = detail
        self.error_type = error_type


def _problem(status_code: int, title: str, detail: str, error_type: str = "about:blank") -> JSONResponse:
    problem = ErrorDetail(type=error_type, title=title, status=status_code, detail=detail)
    return JSONResponse(status_code=status_code, content=problem.model_dump(exclude_none=True))


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(_request: Request, exc: AppException) -> JSONResponse:
        return _problem(exc.status_code, HTTPStatus(exc.status_code).phrase, exc.detail, exc.error_type)

    @app.exception_handler(InvalidRange)
    async def invalid_range_handler(_request: Request, exc: InvalidRange) -> JSONResponse:
        return _problem(400, "Invalid Date Range", str(exc), "invalid-range")

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return _problem(400, "Bad Request", str(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return _problem(500, "Internal Server Error", "An unexpected error occurred.")
