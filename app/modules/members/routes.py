from fastapi import APIRouter, Depends
from app.core.dependencies import get_actor, get_current_user, get_member_service
from app.modules.audit.schemas import Actor
from app.modules.members.schemas import KickRequest, MemberActionResponse, RoleChangeRequest
from app.modules.members.service import MemberService
from app.modules.roblox.schemas import GroupRole
from typing import Dict, List, Optional

router = APIRouter(prefix="/groups", tags=["members"])


@router.get("/{group_id}/roles", response_model=List[GroupRole])
async def list_group_roles(
    group_id: str,
    user_data: Dict = Depends(get_current_user),
    service: MemberService = Depends(get_member_service)
):
    """Group roles ordered by rank"""
    return await service.list_roles(group_id)


@router.patch("/{group_id}/members/{user_id}", response_model=MemberActionResponse)
async def change_member_role(
    group_id: str,
    user_id: int,
    payload: RoleChangeRequest,
    actor: Actor = Depends(get_actor),
    service: MemberService = Depends(get_member_service)
):
    """Set a member's role. Suspended members need overrideSuspension, which also ends the suspension."""
    return await service.change_role(group_id, user_id, payload, actor)


@router.delete("/{group_id}/members/{user_id}", response_model=MemberActionResponse)
async def kick_member(
    group_id: str,
    user_id: int,
    payload: Optional[KickRequest] = None,
    actor: Actor = Depends(get_actor),
    service: MemberService = Depends(get_member_service)
):
    """Remove a member from the group and forget any suspension record"""
    payload = payload or KickRequest()
    return await service.kick(group_id, user_id, actor, username=payload.username, reason=payload.reason)
