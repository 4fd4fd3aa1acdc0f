"""
Pure document transitions for POST /groups/{group_id}/automation.

apply_action never performs I/O. Actions that reference a rule, sub-group or
user that no longer exists are no-ops.
"""
import uuid
from typing import Callable

from app.modules.automation import suspensions
from app.modules.automation.schemas import (
    AddRuleAction, AddSubGroupRuleAction, AssignUserToSubGroupAction, AutomationDocument,
    ClearSuspendedRoleAction, CreateSubGroupAction, DeleteRuleAction, DeleteSubGroupAction,
    DeleteSubGroupRuleAction, RemoveUserFromSubGroupAction, RenameSubGroupAction, Rule,
    SetPointsAction, SetSuspendedRoleAction, SubGroup, SubGroupRule, SuspendAction,
    SuspendedRole, UnsuspendAction, UpdatePointsAction, UpdateSubGroupSettingsAction, UserPoints,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _set_points(doc: AutomationDocument, user_id: int, username: str, compute: Callable[[int], int]) -> None:
    entry = next((u for u in doc.user_points if u.user_id == user_id), None)
    if entry is None:
        entry = UserPoints(user_id=user_id, username=username)
        doc.user_points.append(entry)
    entry.points = max(0, compute(entry.points))
    if username:
        entry.username = username
    # Zero-point entries carry nothing unless they hold a sub-group assignment
    if entry.points == 0 and not entry.sub_group_id:
        doc.user_points = [u for u in doc.user_points if u.user_id != user_id]


def _sub_group(doc: AutomationDocument, sub_group_id: str):
    return next((sg for sg in doc.sub_groups or [] if sg.id == sub_group_id), None)


def apply_action(document: AutomationDocument, action, now_ms: int) -> AutomationDocument:
    doc = document.model_copy(deep=True)

    if isinstance(action, AddRuleAction):
        doc.rules.append(Rule(id=_new_id(), points=action.points, role_id=action.role_id, role_name=action.role_name))
    elif isinstance(action, DeleteRuleAction):
        doc.rules = [r for r in doc.rules if r.id != action.rule_id]
    elif isinstance(action, UpdatePointsAction):
        _set_points(doc, action.user_id, action.username, lambda current: current + action.points_delta)
    elif isinstance(action, SetPointsAction):
        _set_points(doc, action.user_id, action.username, lambda current: action.points)
    elif isinstance(action, SetSuspendedRoleAction):
        doc.suspended_role = SuspendedRole(role_id=action.role_id, role_name=action.role_name)
    elif isinstance(action, ClearSuspendedRoleAction):
        doc.suspended_role = None
    elif isinstance(action, SuspendAction):
        doc, _ = suspensions.suspend(
            doc,
            user_id=action.user_id,
            username=action.username,
            previous_role_id=action.previous_role_id,
            previous_role_name=action.previous_role_name,
            duration_ms=action.duration_ms,
            now_ms=now_ms,
        )
    elif isinstance(action, UnsuspendAction):
        doc = suspensions.unsuspend(doc, action.user_id)
    elif isinstance(action, CreateSubGroupAction):
        doc.sub_groups = (doc.sub_groups or []) + [
            SubGroup(id=_new_id(), name=action.name, color=action.color or "#6366f1", rules=[])
        ]
    elif isinstance(action, DeleteSubGroupAction):
        doc.sub_groups = [sg for sg in doc.sub_groups or [] if sg.id != action.sub_group_id]
        for entry in doc.user_points:
            if entry.sub_group_id == action.sub_group_id:
                entry.sub_group_id = None
    elif isinstance(action, RenameSubGroupAction):
        sub_group = _sub_group(doc, action.sub_group_id)
        if sub_group is not None:
            sub_group.name = action.name
            if action.color:
                sub_group.color = action.color
    elif isinstance(action, UpdateSubGroupSettingsAction):
        sub_group = _sub_group(doc, action.sub_group_id)
        if sub_group is not None and action.exclude_from_general_automation is not None:
            sub_group.exclude_from_general_automation = action.exclude_from_general_automation
    elif isinstance(action, AddSubGroupRuleAction):
        sub_group = _sub_group(doc, action.sub_group_id)
        if sub_group is not None:
            sub_group.rules.append(SubGroupRule(
                id=_new_id(), points=action.points, role_id=action.role_id, role_name=action.role_name
            ))
    elif isinstance(action, DeleteSubGroupRuleAction):
        sub_group = _sub_group(doc, action.sub_group_id)
        if sub_group is not None:
            sub_group.rules = [r for r in sub_group.rules if r.id != action.rule_id]
    elif isinstance(action, AssignUserToSubGroupAction):
        entry = next((u for u in doc.user_points if u.user_id == action.user_id), None)
        # Unknown sub-group ids are ignored; a blank id clears the assignment
        unknown = bool(action.sub_group_id) and _sub_group(doc, action.sub_group_id) is None
        if unknown:
            return doc
        if entry is not None:
            entry.sub_group_id = action.sub_group_id or None
            if entry.points == 0 and not entry.sub_group_id:
                doc.user_points = [u for u in doc.user_points if u.user_id != action.user_id]
        elif action.sub_group_id:
            doc.user_points.append(UserPoints(
                user_id=action.user_id, username=action.username, points=0, sub_group_id=action.sub_group_id
            ))
    elif isinstance(action, RemoveUserFromSubGroupAction):
        entry = next((u for u in doc.user_points if u.user_id == action.user_id), None)
        if entry is not None:
            entry.sub_group_id = None
            if entry.points == 0:
                doc.user_points = [u for u in doc.user_points if u.user_id != action.user_id]
    else:
        raise ValueError(f"Unsupported automation action: {type(action).__name__}")

    return doc
