"""FastAPI application entry point for the Call Notes Bridge"""

import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.config import settings
from app.api import calls, health, notes, webhook, websocket
from app.services.container import CallServices

logger = logging.getLogger(__name__)
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL))


def create_app(services: Optional[CallServices] = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Twilio call tracking, live audio capture and AI call notes",
        version="1.0.0"
    )
    app.state.services = services or CallServices()

    # CORS middleware - parse CORS_ORIGINS string
    cors_origins = ["*"] if settings.CORS_ORIGINS == "*" else [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    # Include routers; the catch-all WebSocket router goes last
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(webhook.router, tags=["webhook"])
    app.include_router(calls.router, tags=["calls"])
    app.include_router(notes.router, tags=["notes"])
    app.include_router(websocket.router, tags=["websocket"])

    @app.on_event("startup")
    async def startup_event():
        """Initialize database and dashboard stats push on startup"""
        try:
            await app.state.services.start()
        except Exception as e:
            logger.critical(f"Database initialization failed: {e}")
            raise
        logger.info(f"{settings.APP_NAME} ready for webhooks, audio streams and dashboard updates")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        await app.state.services.stop()

    return app


app = create_app()
