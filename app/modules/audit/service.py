import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from app.database.document_store import DocumentStore
from app.modules.audit.schemas import Actor, AuditLogDocument, AuditLogEntry, TargetUser
from app.modules.automation.schemas import Suspension
from app.modules.automation.suspensions import current_time_ms

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = Actor(user_id="system", username="Suspension sweeper")

ACTION_COLORS = {
    "role_change": 0x3498db,
    "points_add": 0x2ecc71,
    "points_remove": 0xe67e22,
    "user_suspend": 0xe74c3c,
    "user_unsuspend": 0x2ecc71,
    "user_kick": 0xe74c3c,
    "rule_add": 0x9b59b6,
    "rule_delete": 0x95a5a6,
    "suspended_role_set": 0xf39c12,
    "suspended_role_clear": 0xf39c12,
    "webhook_set": 0x1abc9c,
    "webhook_clear": 0x1abc9c,
}


def describe(entry: AuditLogEntry) -> str:
    performer = entry.performed_by.username
    target = entry.target_user.username if entry.target_user else "Unknown"
    details = entry.details
    reason = details.get("reason")
    reason_suffix = f" - Reason: {reason}" if reason else ""

    if entry.action == "role_change":
        return f"{performer} changed {target}'s role to {details.get('newRoleName')}"
    if entry.action == "points_add":
        return f"{performer} added {details.get('points')} point(s) to {target}"
    if entry.action == "points_remove":
        return f"{performer} removed {details.get('points')} point(s) from {target}"
    if entry.action == "user_suspend":
        return f"{performer} suspended {target} for {details.get('duration')}{reason_suffix}"
    if entry.action == "user_unsuspend":
        if details.get("automatic"):
            return f"{target}'s suspension expired and their role was restored to {details.get('restoredRoleName')}"
        return f"{performer} lifted {target}'s suspension"
    if entry.action == "user_kick":
        return f"{performer} kicked {target} from the group{reason_suffix}"
    if entry.action == "rule_add":
        return f"{performer} added automation rule: {details.get('points')} points → {details.get('roleName')}"
    if entry.action == "rule_delete":
        return f"{performer} deleted automation rule: {details.get('points')} points → {details.get('roleName')}"
    if entry.action == "suspended_role_set":
        return f"{performer} set suspended role to {details.get('roleName')}"
    if entry.action == "suspended_role_clear":
        return f"{performer} cleared the suspended role"
    if entry.action == "webhook_set":
        return f"{performer} configured Discord webhook"
    if entry.action == "webhook_clear":
        return f"{performer} removed Discord webhook"
    return f"{performer} performed an action"


def build_embed(entry: AuditLogEntry, group_name: Optional[str] = None) -> Dict[str, Any]:
    fields = [
        {"name": "Action", "value": entry.action.replace("_", " ").title(), "inline": True},
        {"name": "Performed By", "value": entry.performed_by.username, "inline": True},
    ]
    if entry.target_user:
        fields.append({"name": "Target User", "value": entry.target_user.username, "inline": True})
    if entry.details.get("reason"):
        fields.append({"name": "Reason", "value": str(entry.details["reason"]), "inline": False})
    return {
        "title": "📋 Audit Log",
        "description": describe(entry),
        "color": ACTION_COLORS.get(entry.action, 0x95a5a6),
        "fields": fields,
        "timestamp": datetime.fromtimestamp(entry.timestamp / 1000, tz=timezone.utc).isoformat(),
        "footer": {"text": group_name or "Group audit log"},
    }


class AuditService:
    """Per-group audit log with optional Discord webhook forwarding."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str = "audit_logs",
        max_entries: int = 500,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.collection = collection
        self.max_entries = max_entries
        self.http_client = http_client or httpx.AsyncClient(timeout=10.0)

    def get_document(self, group_id: str) -> AuditLogDocument:
        data = self.store.get(self.collection, group_id)
        if data is None:
            return AuditLogDocument()
        return AuditLogDocument.model_validate(data)

    def save_document(self, group_id: str, document: AuditLogDocument) -> None:
        self.store.set(self.collection, group_id, document.model_dump(by_alias=True, exclude_none=True))

    def list_entries(self, group_id: str, limit: int = 100) -> List[AuditLogEntry]:
        """Most recent first."""
        if limit <= 0:
            return []
        entries = self.get_document(group_id).entries
        return list(reversed(entries[-limit:]))

    def has_webhook(self, group_id: str) -> bool:
        return bool(self.get_document(group_id).discord_webhook)

    async def log(
        self,
        group_id: str,
        action: str,
        performed_by: Actor,
        target_user: Optional[TargetUser] = None,
        details: Optional[Dict[str, Any]] = None,
        group_name: Optional[str] = None,
    ) -> AuditLogEntry:
        """Append an entry and forward it to the group's webhook. Store errors propagate."""
        document = self.get_document(group_id)
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            timestamp=current_time_ms(),
            action=action,
            performed_by=performed_by,
            target_user=target_user,
            details=details or {},
        )
        document.entries.append(entry)
        if len(document.entries) > self.max_entries:
            document.entries = document.entries[-self.max_entries:]
        self.save_document(group_id, document)
        if document.discord_webhook:
            await self.send_webhook(document.discord_webhook, entry, group_name)
        return entry

    async def record(self, group_id: str, action: str, performed_by: Actor, **kwargs) -> Optional[AuditLogEntry]:
        """Side-effect logging for other modules: failures are logged, never raised."""
        try:
            return await self.log(group_id, action, performed_by, **kwargs)
        except Exception as e:
            logger.error(f"Error recording audit event {action} for group {group_id}: {str(e)}")
            return None

    async def record_suspension_expired(self, group_id: str, suspension: Suspension) -> None:
        await self.record(
            group_id,
            "user_unsuspend",
            SYSTEM_ACTOR,
            target_user=TargetUser(user_id=suspension.user_id, username=suspension.username),
            details={
                "automatic": True,
                "restoredRoleId": suspension.previous_role_id,
                "restoredRoleName": suspension.previous_role_name,
            },
        )

    async def set_webhook(self, group_id: str, webhook_url: Optional[str], performed_by: Actor) -> AuditLogEntry:
        document = self.get_document(group_id)
        document.discord_webhook = webhook_url or None
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            timestamp=current_time_ms(),
            action="webhook_set" if webhook_url else "webhook_clear",
            performed_by=performed_by,
        )
        document.entries.append(entry)
        if len(document.entries) > self.max_entries:
            document.entries = document.entries[-self.max_entries:]
        self.save_document(group_id, document)
        return entry

    async def send_webhook(self, webhook_url: str, entry: AuditLogEntry, group_name: Optional[str] = None) -> None:
        try:
            response = await self.http_client.post(webhook_url, json={"embeds": [build_embed(entry, group_name)]})
            if not response.is_success:
                logger.warning(f"Discord webhook returned {response.status_code}: {response.text}")
        except httpx.HTTPError as e:
            logger.error(f"Error sending Discord webhook: {str(e)}")

    async def close(self) -> None:
        await self.http_client.aclose()
