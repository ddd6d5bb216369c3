from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from http import HTTPStatus
from typing import Optional
import time
import uuid

from applog.logger import StructuredLogger, get_logger

REQUEST_ID_HEADER = "X-Request-ID"


def resolve_request_id(request: Request) -> str:
    """Use the inbound X-Request-ID header, or generate a new id"""
    return request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())


def status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to assign a request id to every request"""

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request)

        # Add request ID to request state (accessible in route handlers)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to bind the request id and log one record per completed request"""

    def __init__(self, app: ASGIApp, logger: Optional[StructuredLogger] = None):
        super().__init__(app)
        self.logger = logger or get_logger()

    async def dispatch(self, request: Request, call_next):
        request_id = getattr(request.state, "request_id", None)
        if not request_id:
            request_id = resolve_request_id(request)
            request.state.request_id = request_id

        with self.logger.context.scope(request_id):
            start_time = time.time()

            try:
                response = await call_next(request)
            except Exception as e:
                self.logger.error(
                    f"Request failed with error: {str(e)}",
                    {
                        "method": request.method,
                        "url": _target(request),
                        "duration": _elapsed_ms(start_time),
                        "error": e,
                    },
                )
                # The framework answers with a 500
                self._log_completion(request, request_id, start_time, 500, None)
                # Re-raise the exception to be handled by the framework
                raise

            self._log_completion(
                request, request_id, start_time, response.status_code, response.headers.get("content-length")
            )

            return response

    def _log_completion(
        self,
        request: Request,
        request_id: str,
        start_time: float,
        status_code: int,
        content_length: Optional[str],
    ) -> None:
        self.logger.http(
            "HTTP Request",
            {
                "method": request.method,
                "url": _target(request),
                "statusCode": status_code,
                "statusMessage": status_phrase(status_code),
                "duration": _elapsed_ms(start_time),
                "requestId": request_id,
                "ip": request.client.host if request.client else None,
                "userAgent": request.headers.get("user-agent"),
                "contentLength": content_length,
            },
        )


def _target(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def _elapsed_ms(start_time: float) -> int:
    return int(round((time.time() - start_time) * 1000))
