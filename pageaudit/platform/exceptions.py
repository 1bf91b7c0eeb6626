import logging
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from pageaudit.platform.response import error_response

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """Base class for every failure the analysis engine reports to callers."""

    category = "analysis_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, category: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category


class PageLoadError(AnalysisError):
    """The target page could not be loaded.

    category is one of dns, tls, timeout, unreachable or http_error.
    """

    CATEGORIES = ("dns", "tls", "timeout", "unreachable", "http_error")
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, category: str = "unreachable"):
        if category not in self.CATEGORIES:
            category = "unreachable"
        super().__init__(message, category)


class AnalysisFailedError(AnalysisError):
    category = "analysis_failed"
    status_code = status.HTTP_502_BAD_GATEWAY


class AnalysisNotFoundError(AnalysisError):
    category = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ReportNotReadyError(AnalysisError):
    category = "not_ready"
    status_code = status.HTTP_409_CONFLICT


class InvalidJobTransition(AnalysisError):
    category = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT


def add_exception_handlers(app):
    @app.exception_handler(AnalysisError)
    async def analysis_exception_handler(request: Request, exc: AnalysisError):
        return error_response(exc.message, exc.status_code, category=exc.category)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail) or "Error", exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            "Validation failed",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            category="validation",
            errors=exc.errors(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR, category="internal")
