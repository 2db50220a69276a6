"""
Global error handling middleware.
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

from field_hierarchy.domain.errors import HierarchyError, StoreError


logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Catches engine and unhandled exceptions and returns consistent error
    responses. Nothing is retried here: the caller decides whether to retry.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """
        Process the request and handle any exceptions.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response object
        """
        try:
            response = await call_next(request)
            return response

        except StoreError as e:
            # Earlier steps of the operation stay applied; a retry recomputes
            logger.error(
                f"Store error: {e.message}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": e.status_code,
                    "failed_state": getattr(e.failed_state, "value", None),
                }
            )
            return JSONResponse(
                status_code=e.status_code,
                content={
                    "error": "Store error",
                    "detail": f"{e.message}. Please retry the operation.",
                    "retryable": True,
                }
            )

        except HierarchyError as e:
            logger.warning(
                f"{type(e).__name__}: {e.message}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": e.status_code,
                }
            )
            return JSONResponse(
                status_code=e.status_code,
                content={
                    "error": type(e).__name__,
                    "detail": e.message,
                    "retryable": False,
                }
            )

        except Exception as e:
            # Log unexpected errors
            logger.exception(
                f"Unhandled exception: {str(e)}",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal server error",
                    "detail": "An unexpected error occurred",
                    "retryable": False,
                }
            )
