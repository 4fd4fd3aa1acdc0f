from fastapi import APIRouter, Depends
from app.core.dependencies import get_actor, get_automation_service, get_current_user
from app.modules.audit.schemas import Actor
from app.modules.automation.schemas import AutomationAction, AutomationDocument, AutomationResponse
from app.modules.automation.service import AutomationService
from typing import Dict

router = APIRouter(prefix="/groups", tags=["automation"])


@router.get("/{group_id}/automation", response_model=AutomationDocument, response_model_exclude_none=True)
async def get_automation(
    group_id: str,
    user_data: Dict = Depends(get_current_user),
    service: AutomationService = Depends(get_automation_service)
):
    """Get the group's automation data; expired suspensions of this group are restored first"""
    return await service.get_automation(group_id)


@router.post("/{group_id}/automation", response_model=AutomationResponse, response_model_exclude_none=True)
async def update_automation(
    group_id: str,
    action: AutomationAction,
    actor: Actor = Depends(get_actor),
    service: AutomationService = Depends(get_automation_service)
):
    """
    Apply one automation action (rules, points, suspensions, sub-groups).
    Points actions also evaluate promotion rules and report the result under `promotion`.
    """
    return await service.handle_action(group_id, action, actor)
