"""Audit log HTTP endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_audit_log_service
from ..schemas import AuditLogResponse
from ..services import AuditLogService

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=list[AuditLogResponse])
async def list_audit_logs(
    limit: int | None = Query(default=None, ge=1, le=1000),
    service: AuditLogService = Depends(get_audit_log_service),
) -> list[AuditLogResponse]:
    entries = await service.get_all(limit)
    return [AuditLogResponse.model_validate(entry) for entry in entries]
