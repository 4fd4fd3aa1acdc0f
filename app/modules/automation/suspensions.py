"""
Suspension records inside an AutomationDocument.

These functions only track records; changing the member's live role is the
caller's job (see AutomationService.suspend / unsuspend and the sweeper).
"""
import time
import uuid
from typing import List, Optional, Tuple

from app.core.errors import ConfigError
from app.modules.automation.schemas import AutomationDocument, Suspension


def current_time_ms() -> int:
    return int(time.time() * 1000)


def active_suspension(document: AutomationDocument, user_id: int) -> Optional[Suspension]:
    return next((s for s in document.suspensions if s.user_id == user_id), None)


def suspend(
    document: AutomationDocument,
    user_id: int,
    username: str,
    previous_role_id: int,
    previous_role_name: str,
    duration_ms: int,
    now_ms: int,
) -> Tuple[AutomationDocument, Suspension]:
    """Record a suspension, replacing any existing one for the user."""
    if document.suspended_role is None:
        raise ConfigError("No suspended role is configured for this group")
    if duration_ms <= 0:
        raise ValueError("duration_ms must be positive")
    suspension = Suspension(
        id=str(uuid.uuid4()),
        user_id=user_id,
        username=username,
        previous_role_id=previous_role_id,
        previous_role_name=previous_role_name,
        suspended_at=now_ms,
        expires_at=now_ms + duration_ms,
    )
    remaining = [s for s in document.suspensions if s.user_id != user_id]
    updated = document.model_copy(update={"suspensions": remaining + [suspension]})
    return updated, suspension


def unsuspend(document: AutomationDocument, user_id: int) -> AutomationDocument:
    """Drop the user's suspension record; a no-op when there is none."""
    remaining = [s for s in document.suspensions if s.user_id != user_id]
    return document.model_copy(update={"suspensions": remaining})


def partition_expired(document: AutomationDocument, now_ms: int) -> Tuple[List[Suspension], List[Suspension]]:
    """Split suspensions into (expired, remaining); expiresAt == now counts as expired."""
    expired = [s for s in document.suspensions if s.expires_at <= now_ms]
    remaining = [s for s in document.suspensions if s.expires_at > now_ms]
    return expired, remaining
