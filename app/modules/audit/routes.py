from fastapi import APIRouter, Depends, Query
from app.core.dependencies import get_actor, get_audit_service, get_current_user
from app.modules.audit.schemas import (
    Actor, AuditLogListResponse, AuditLogRequest, AuditLogWriteResponse, SetWebhookRequest
)
from app.modules.audit.service import AuditService
from typing import Dict

router = APIRouter(prefix="/groups", tags=["audit-log"])


@router.get("/{group_id}/audit-log", response_model=AuditLogListResponse)
async def get_audit_log(
    group_id: str,
    limit: int = Query(100, ge=1, le=500),
    user_data: Dict = Depends(get_current_user),
    service: AuditService = Depends(get_audit_service)
):
    """Most recent audit entries first, and whether a Discord webhook is configured"""
    return AuditLogListResponse(
        entries=service.list_entries(group_id, limit=limit),
        discord_webhook="configured" if service.has_webhook(group_id) else None,
    )


@router.post("/{group_id}/audit-log", response_model=AuditLogWriteResponse, response_model_exclude_none=True)
async def write_audit_log(
    group_id: str,
    payload: AuditLogRequest,
    actor: Actor = Depends(get_actor),
    service: AuditService = Depends(get_audit_service)
):
    """Append an audit entry (forwarded to Discord when configured) or set/clear the webhook"""
    if isinstance(payload, SetWebhookRequest):
        await service.set_webhook(group_id, payload.webhook_url, actor)
        return AuditLogWriteResponse()
    entry = await service.log(
        group_id,
        payload.log_action,
        actor,
        target_user=payload.target_user,
        details=payload.details,
        group_name=payload.group_name,
    )
    return AuditLogWriteResponse(entry=entry)
