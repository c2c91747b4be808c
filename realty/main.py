"""FastAPI application entrypoint."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from realty.api.routes import register_routes
from realty.core.config import Settings, get_settings
from realty.core.logging import configure_logging
from realty.obs import (
    AuditMiddleware,
    PrometheusMiddleware,
    configure_tracing,
    instrument_fastapi_app,
    metrics_router,
)
from realty.services.errors import ServiceError

logger = logging.getLogger(__name__)

_HTTP_KINDS = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
    status.HTTP_503_SERVICE_UNAVAILABLE: "unavailable",
}


def _error(status_code: int, kind: str, detail: object, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"kind": kind, "detail": detail}, headers=headers)


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "request failed",
            extra={"path": request.url.path, "kind": exc.kind, "error": exc.message},
        )
    return _error(exc.status_code, exc.kind, exc.message)


async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", jsonable_encoder(exc.errors()))


async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = _HTTP_KINDS.get(exc.status_code, "internal_error" if exc.status_code >= 500 else "http_error")
    return _error(exc.status_code, kind, exc.detail, headers=getattr(exc, "headers", None))


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("database error", extra={"path": request.url.path})
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "infrastructure_error", "The data store is unavailable")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error", extra={"path": request.url.path})
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal server error")


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(ServiceError, handle_service_error)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    application.add_exception_handler(StarletteHTTPException, handle_http_exception)  # type: ignore[arg-type]
    application.add_exception_handler(SQLAlchemyError, handle_database_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, handle_unexpected_error)


def create_application(settings: Settings | None = None) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    configure_logging()
    settings = settings or get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
    )

    application.add_middleware(AuditMiddleware, settings=settings)
    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    register_exception_handlers(application)
    register_routes(application)

    if settings.enable_tracing:
        configure_tracing(settings)
        instrument_fastapi_app(application)

    return application


app = create_application()
