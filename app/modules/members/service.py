import logging
from typing import List, Optional

from app.core.errors import NotFoundError
from app.modules.audit.schemas import Actor, TargetUser
from app.modules.automation.service import AutomationService
from app.modules.members.schemas import MemberActionResponse, RoleChangeRequest
from app.modules.roblox.schemas import GroupRole

logger = logging.getLogger(__name__)


class MemberService:
    def __init__(self, roblox, automation: AutomationService, audit=None):
        self.roblox = roblox
        self.automation = automation
        self.audit = audit

    async def list_roles(self, group_id: str) -> List[GroupRole]:
        roles = await self.roblox.get_group_roles(group_id)
        return sorted(roles, key=lambda role: role.rank)

    async def change_role(
        self, group_id: str, user_id: int, request: RoleChangeRequest, actor: Actor
    ) -> MemberActionResponse:
        """Set a member's role. A manual role change ends any active suspension."""
        roles = await self.roblox.get_group_roles(group_id)
        role = next((r for r in roles if r.id == request.role_id), None)
        if role is None:
            raise NotFoundError(f"Role {request.role_id} does not exist in group {group_id}")

        cleared = await self.automation.change_role(
            group_id, user_id, role.id, override_suspension=request.override_suspension
        )

        if self.audit is not None:
            await self.audit.record(
                group_id,
                "role_change",
                actor,
                target_user=TargetUser(user_id=user_id, username=request.username),
                details={"newRoleId": role.id, "newRoleName": role.name},
            )
        return MemberActionResponse(cleared_suspension=cleared)

    async def kick(
        self, group_id: str, user_id: int, actor: Actor, username: str = "", reason: Optional[str] = None
    ) -> MemberActionResponse:
        cleared = await self.automation.remove_member(group_id, user_id)
        if self.audit is not None:
            await self.audit.record(
                group_id,
                "user_kick",
                actor,
                target_user=TargetUser(user_id=user_id, username=username),
                details={"reason": reason} if reason else {},
            )
        return MemberActionResponse(cleared_suspension=cleared)
