"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.router import api_router
from .config import get_settings
from .database import init_database
from .errors import LedgerError, NotFound, ValidationError
from .logging_config import configure_logging
from .schemas import ErrorRead

logger = logging.getLogger(__name__)


def _status_for(exc: LedgerError) -> int:
    if isinstance(exc, NotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_409_CONFLICT


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = _status_for(exc)
    logger.info("%s %s rejected with %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    body = ErrorRead(error=type(exc).__name__, detail=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    configure_logging(settings.log_level)
    init_database()

    app = FastAPI(title=settings.app_name, version=__version__)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.include_router(api_router, prefix=settings.api_v1_prefix)
    return app
