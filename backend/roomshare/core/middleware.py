"""
Request middleware.
Provides request_id injection, timing and global error handling.
"""
import time
from typing import Callable
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from roomshare.core.logging import (
    get_request_id,
    generate_request_id,
    request_id_var,
    request_start_var,
    api_logger,
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Generates/propagates request_id for tracing
    2. Tracks request timing
    3. Logs request/response summary
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()

        request_id_var.set(request_id)
        request_start_var.set(time.time())
        request.state.request_id = request_id

        # Skip health checks to reduce noise
        path = request.url.path
        quiet = path.endswith('/healthz') or path.endswith('/readyz')
        if not quiet:
            api_logger.debug(
                f"{request.method} {path}",
                client=request.client.host if request.client else 'unknown',
            )

        try:
            response = await call_next(request)

            response.headers['X-Request-ID'] = request_id

            if not quiet:
                duration = round((time.time() - request_start_var.get()) * 1000, 2)
                log_level = 'info' if response.status_code < 400 else 'warning'
                getattr(api_logger, log_level)(
                    f"{request.method} {path} -> {response.status_code}",
                    duration_ms=duration,
                    status=response.status_code,
                )

            return response

        except Exception as e:
            # Unexpected error - log and return safe JSON response
            duration = round((time.time() - request_start_var.get()) * 1000, 2)
            api_logger.error(
                f"{request.method} {path} -> 500 (unhandled)",
                error=e,
                duration_ms=duration,
            )

            return JSONResponse(
                status_code=500,
                content={
                    'success': False,
                    'detail': 'Internal server error',
                    'request_id': request_id,
                },
                headers={'X-Request-ID': request_id},
            )
        finally:
            request_id_var.set(None)
            request_start_var.set(None)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.
    Returns safe JSON response with request_id for debugging.
    """
    request_id = getattr(request.state, 'request_id', None) or get_request_id() or 'unknown'

    api_logger.error(
        f"Unhandled exception in {request.method} {request.url.path}",
        error=exc,
        path=str(request.url.path),
    )

    return JSONResponse(
        status_code=500,
        content={
            'success': False,
            'detail': 'Internal server error',
            'request_id': request_id,
        },
        headers={'X-Request-ID': request_id},
    )


async def http_exception_handler(request: Request, exc) -> JSONResponse:
    """
    Handler for HTTPException (including ValidationError / NotFoundError) -
    adds request_id to error responses.
    """
    request_id = getattr(request.state, 'request_id', None) or get_request_id() or 'unknown'

    status_code = getattr(exc, 'status_code', 500)
    detail = getattr(exc, 'detail', 'Unknown error')

    if status_code >= 500:
        api_logger.error(
            f"HTTP {status_code}: {detail}",
            path=str(request.url.path),
            status=status_code,
        )
    elif status_code >= 400:
        api_logger.warning(
            f"HTTP {status_code}: {detail}",
            path=str(request.url.path),
            status=status_code,
        )

    return JSONResponse(
        status_code=status_code,
        content={
            'success': False,
            'detail': detail,
            'request_id': request_id,
        },
        headers={**(getattr(exc, 'headers', None) or {}), 'X-Request-ID': request_id},
    )


async def validation_exception_handler(request: Request, exc) -> JSONResponse:
    """
    Handler for RequestValidationError - returns structured validation errors.
    """
    request_id = getattr(request.state, 'request_id', None) or get_request_id() or 'unknown'

    errors = []
    for error in exc.errors():
        errors.append({
            'field': '.'.join(str(loc) for loc in error.get('loc', [])),
            'message': error.get('msg', 'Validation error'),
            'type': error.get('type', 'value_error'),
        })

    api_logger.warning(
        f"Validation error in {request.method} {request.url.path}",
        errors=errors,
    )

    return JSONResponse(
        status_code=422,
        content={
            'success': False,
            'detail': 'Validation error',
            'errors': errors,
            'request_id': request_id,
        },
        headers={'X-Request-ID': request_id},
    )


def setup_middleware(app: FastAPI) -> None:
    """Register the request context middleware and exception handlers."""
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
