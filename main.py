import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from config import Settings
from db import build_engine, create_db_and_tables
from errors import InternalError, ReliveError
from logging_config import setup_logging
from routers import auth, donations, opportunities, requests, shelters

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request body"


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    app = FastAPI(title="ReLive")
    app.state.settings = settings
    app.state.engine = engine or build_engine(settings.database_url, echo=settings.sql_echo)

    @app.on_event("startup")
    def on_startup() -> None:
        create_db_and_tables(app.state.engine)

    @app.exception_handler(ReliveError)
    async def relive_error_handler(request: Request, exc: ReliveError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning(
                "%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        logger.warning("%s %s -> 400 VALIDATION_ERROR: %s", request.method, request.url.path, message)
        return JSONResponse(
            status_code=400,
            content={"detail": message, "code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.get("/health", tags=["health"])
    def health():
        return {"ok": True}

    app.include_router(auth.router)
    app.include_router(requests.router, prefix="/requests")
    app.include_router(donations.router)
    app.include_router(opportunities.router)
    app.include_router(shelters.router)

    return app


app = create_app()
