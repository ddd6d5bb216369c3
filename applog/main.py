"""
Example service wired with request correlation and access logging

Run with: uvicorn applog.main:app
"""

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from applog.logger import StructuredLogger, get_logger
from applog.middleware import LoggingMiddleware, RequestIdMiddleware


def create_app(logger: StructuredLogger = None) -> FastAPI:
    logger = logger or get_logger()
    api_logger = logger.bind(component="api")

    app = FastAPI(
        title="applog example",
        description="Structured logging with per-request correlation ids",
        version="0.1.0",
    )

    # Starlette runs the last added middleware first, so ids are assigned before logging
    app.add_middleware(LoggingMiddleware, logger=logger)
    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root(request: Request):
        api_logger.info("Root endpoint accessed")
        return {
            "message": "Welcome to the applog example service",
            "request_id": request.state.request_id,
            "endpoints": {
                "health": "/health",
                "echo": "/api/echo",
            },
        }

    @app.get("/health")
    async def health_check():
        api_logger.debug("Health check endpoint called")
        return {"status": "healthy", "service": logger.config.service_name}

    @app.post("/api/echo")
    async def echo(payload: Dict[str, Any]):
        # Whatever the caller sent is logged, minus configured sensitive keys
        api_logger.info("Echo request received", payload)
        return {"echo": payload, "request_id": logger.current_request_id()}

    return app


app = create_app()
