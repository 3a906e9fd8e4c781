"""
Global error handling middleware.

Maps domain and store errors that escape a route to JSON responses:
- ResourceNotFoundError -> 404
- PersistenceError -> store 4xx status passed through, otherwise 502
- ValueError (including GeometryError) -> 400
- anything else -> 500
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

from app.domain.errors import PersistenceError, ResourceNotFoundError


logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "detail": detail})


def _store_status(error: PersistenceError) -> int:
    if error.status_code is not None and 400 <= error.status_code < 500:
        return error.status_code
    return status.HTTP_502_BAD_GATEWAY


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns uncaught exceptions into consistent error bodies."""

    async def dispatch(self, request: Request, call_next: Callable):
        """
        Process the request and translate any escaping exception.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response object
        """
        context = {"path": request.url.path, "method": request.method}
        try:
            return await call_next(request)

        except ResourceNotFoundError as e:
            logger.info(f"Not found: {e}", extra=context)
            return _error_response(status.HTTP_404_NOT_FOUND, "Not found", str(e))

        except PersistenceError as e:
            logger.error(f"Telemetry store error: {e.message}",
                         extra={**context, "status_code": e.status_code})
            return _error_response(_store_status(e), "Telemetry store error", e.message)

        except ValueError as e:
            logger.warning(f"Validation error: {e}", extra=context)
            return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", str(e))

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}", extra=context)
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An unexpected error occurred",
            )
