import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from services.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    configure_logging,
    create_engine,
    create_schema,
    dispose_engines,
    get_session_factory,
    get_settings,
    resolve_database_url,
)

from .api.audit_logs import router as audit_logs_router
from .api.health import router as health_router
from .api.inventory import router as inventory_router
from .api.orders import router as orders_router
from .errors import BusinessRuleError, NotFoundError, OrderManagementError
from .models import Base
from .schemas import ErrorResponse

SERVICE_NAME = "Order Management Service"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./order_management.db"

_LOGGER = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc))


async def _handle_business_rule(request: Request, exc: BusinessRuleError) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    _LOGGER.error("Request %s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred.",
        "Please contact support if the problem persists.",
    )


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """Create the Order Management FastAPI application."""

    resolved_settings = settings or get_settings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)
    session_factory = get_session_factory(
        database_url,
        sqlite_begin_mode=resolved_settings.sqlite_begin_mode,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.session_factory = session_factory
        try:
            if resolved_settings.auto_create_schema:
                await create_schema(create_engine(database_url), Base.metadata)
            yield
        finally:
            app.state.session_factory = None  # type: ignore[assignment]
            await dispose_engines()

    app = build_app(resolved_settings, lifespan=lifespan)
    app.add_exception_handler(NotFoundError, _handle_not_found)
    app.add_exception_handler(BusinessRuleError, _handle_business_rule)
    app.add_exception_handler(OrderManagementError, _handle_unexpected)
    app.add_exception_handler(SQLAlchemyError, _handle_unexpected)
    app.include_router(health_router)
    app.include_router(inventory_router)
    app.include_router(orders_router)
    app.include_router(audit_logs_router)
    return app


app = create_app()
