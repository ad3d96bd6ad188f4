"""Liveness endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter(prefix="/health", tags=["health"])

_LOGGER = logging.getLogger(__name__)


@router.get("", status_code=status.HTTP_200_OK)
async def healthcheck(request: Request, response: Response) -> dict[str, str]:
    """Report whether the service can reach its database."""

    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        return {"status": "ok", "database": "unconfigured"}

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        _LOGGER.warning("Database health check failed: %s", exc)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "degraded", "database": "unreachable"}
    return {"status": "ok", "database": "ok"}
