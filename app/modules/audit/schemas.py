from pydantic import Field
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from app.modules.automation.schemas import CamelModel

AuditAction = Literal[
    "role_change",
    "points_add",
    "points_remove",
    "user_suspend",
    "user_unsuspend",
    "user_kick",
    "rule_add",
    "rule_delete",
    "suspended_role_set",
    "suspended_role_clear",
    "webhook_set",
    "webhook_clear",
]


class Actor(CamelModel):
    user_id: str
    username: str = "Unknown"


class TargetUser(CamelModel):
    user_id: int
    username: str = ""


class AuditLogEntry(CamelModel):
    id: str
    timestamp: int  # epoch ms
    action: AuditAction
    performed_by: Actor
    target_user: Optional[TargetUser] = None
    details: Dict[str, Any] = {}


class AuditLogDocument(CamelModel):
    entries: List[AuditLogEntry] = []
    discord_webhook: Optional[str] = None


class LogAuditRequest(CamelModel):
    action: Literal["log"]
    log_action: AuditAction
    target_user: Optional[TargetUser] = None
    details: Dict[str, Any] = {}
    group_name: Optional[str] = None


class SetWebhookRequest(CamelModel):
    action: Literal["setWebhook"]
    webhook_url: Optional[str] = None  # empty clears the webhook


AuditLogRequest = Annotated[Union[LogAuditRequest, SetWebhookRequest], Field(discriminator="action")]


class AuditLogListResponse(CamelModel):
    entries: List[AuditLogEntry]
    discord_webhook: Optional[str] = None  # "configured" or null; the URL itself is never returned


class AuditLogWriteResponse(CamelModel):
    success: bool = True
    entry: Optional[AuditLogEntry] = None
