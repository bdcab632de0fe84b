"""FastAPI middleware."""

import time
from typing import override
from uuid import uuid4

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from docbot.core.exceptions import AppError
from docbot.core.logging import get_logger, log_request

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging requests and responses."""

    # Skip logging for health checks and docs to reduce noise
    SKIP_PATHS = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    @override
    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        path = request.url.path
        request_id = request.headers.get("x-request-id") or str(uuid4())

        if path in self.SKIP_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        client = request.client.host if request.client else None
        logger.info(
            "request_started",
            method=request.method,
            path=path,
            request_id=request_id,
            query=str(request.query_params) if request.query_params else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "request_failed",
                method=request.method,
                path=path,
                request_id=request_id,
                error=str(e),
                duration_ms=round(duration_ms, 2),
            )
            log_request(request.method, path, 500, duration_ms, request_id, client, error=str(e))
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "request_completed",
            method=request.method,
            path=path,
            request_id=request_id,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        log_request(request.method, path, response.status_code, duration_ms, request_id, client)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.2f}"
        return response


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for handling exceptions globally."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    @override
    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except AppError as e:
            if e.status_code >= 500:
                logger.error("request_error", path=request.url.path, code=e.code, error=str(e))
            else:
                logger.info("request_rejected", path=request.url.path, code=e.code, error=str(e))
            return JSONResponse(
                status_code=e.status_code,
                content=e.to_dict(),
                headers=getattr(e, "headers", None),
            )
        except Exception as e:
            logger.exception("unhandled_exception", path=request.url.path, error=str(e))
            message = str(e) if self.debug else "An unexpected error occurred"
            return JSONResponse(
                status_code=500,
                content={"error": {"code": "INTERNAL_ERROR", "message": message}},
            )
