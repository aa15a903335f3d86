"""FastAPI application composing the course platform routers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from courses_api import AppSettings, ServiceContainer, error_response, routers
from db_core import get_db, ping
from domain_errors import DomainError
from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pymongo.errors import PyMongoError

from .config import CoreSettings
from .logging_setup import configure_logging

# Search for the nearest .env so running from subdirectories still loads root config.
load_dotenv(find_dotenv(usecwd=True))

# Only these indicate a fault on our side or upstream; the rest are expected outcomes.
LOGGED_AS_ERRORS = {500, 502}


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError):
        if exc.status_code in LOGGED_AS_ERRORS:
            logger.error(
                "{method} {path} failed: {error}",
                method=request.method,
                path=request.url.path,
                error=exc.message,
            )
        else:
            logger.debug(
                "{method} {path} -> {status}: {error}",
                method=request.method,
                path=request.url.path,
                status=exc.status_code,
                error=exc.message,
            )
        return error_response(exc.status_code, exc.public_message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request data"
        if errors:
            field = ".".join(str(part) for part in errors[0].get("loc", ())[1:])
            message = f"Invalid value for {field}" if field else message
        return error_response(400, message)

    @app.exception_handler(PyMongoError)
    async def handle_store_error(request: Request, exc: PyMongoError):
        logger.error(
            "{method} {path} store error: {error}",
            method=request.method,
            path=request.url.path,
            error=exc,
        )
        return error_response(503, "Service temporarily unavailable. Please try again.")


def create_app(
    container: Optional[ServiceContainer] = None,
    settings: Optional[CoreSettings] = None,
) -> FastAPI:
    """
    Build the application.

    Tests pass a prebuilt container; otherwise the container is built from the
    environment when the application starts.
    """

    settings = settings or CoreSettings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.container is None
        if owned:
            app_settings = AppSettings()
            app.state.container = ServiceContainer.build(app_settings, get_db(app_settings.mongo))
            await app.state.container.ensure_indexes()
        yield
        if owned:
            await app.state.container.aclose()

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)
    app.state.container = container

    # Allow the front-end origins (with credentials) to talk to this API.
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.info("CORS middleware added {origins}", origins=settings.cors_allow_origins)

    _register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    async def health(request: Request) -> dict[str, str]:
        """Liveness endpoint for load balancers and probes; also pings MongoDB."""

        await ping(request.app.state.container.db)
        return {"status": "ok"}

    for router in routers:
        app.include_router(router)
    return app


app = create_app()

"""Run with:

    uvicorn core_server.main:app --host 0.0.0.0 --port 8000 --reload
"""
