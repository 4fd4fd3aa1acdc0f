"""
Point-driven role promotion.

Within one scope (global rules or one sub-group's rules) the rule with the
highest threshold that the user's points reach wins. Sub-group rules take
precedence over global rules; a sub-group may opt out of the global fallback
with excludeFromGeneralAutomation.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from app.modules.automation.schemas import AutomationDocument, Rule, SubGroup, UserPoints
from app.modules.automation.suspensions import active_suspension
from app.modules.roblox.schemas import GroupRole


class PromotionStatus(str, Enum):
    SUSPENDED = "suspended"
    NO_RULE = "no_rule"
    NOT_MEMBER = "not_member"
    UNCHANGED = "unchanged"
    APPLY = "apply"
    APPLIED = "applied"
    DEMOTION_PENDING = "demotion_pending"
    FAILED = "failed"


@dataclass
class PromotionPlan:
    status: PromotionStatus
    rule: Optional[Rule] = None
    current_role: Optional[GroupRole] = None
    target_role: Optional[GroupRole] = None


def select_rule(points: int, rules: Sequence[Rule]) -> Optional[Rule]:
    """Rule with the largest threshold <= points; the first one wins among equal thresholds."""
    eligible = [rule for rule in rules if rule.points <= points]
    if not eligible:
        return None
    return max(eligible, key=lambda rule: rule.points)


def evaluate(points: int, sub_group: Optional[SubGroup], global_rules: Sequence[Rule]) -> Optional[Rule]:
    if sub_group is not None and sub_group.rules:
        rule = select_rule(points, sub_group.rules)
        if rule is not None:
            return rule
    if sub_group is not None and sub_group.exclude_from_general_automation:
        return None
    return select_rule(points, global_rules)


def find_sub_group(document: AutomationDocument, sub_group_id: Optional[str]) -> Optional[SubGroup]:
    # Dangling ids count as no sub-group
    if not sub_group_id:
        return None
    return next((sg for sg in document.sub_groups or [] if sg.id == sub_group_id), None)


def find_user_points(document: AutomationDocument, user_id: int) -> Optional[UserPoints]:
    return next((u for u in document.user_points if u.user_id == user_id), None)


def target_rule_for(document: AutomationDocument, user_id: int) -> PromotionPlan:
    """Evaluate a user's standing rule. Suspended users are exempt from automation."""
    if active_suspension(document, user_id) is not None:
        return PromotionPlan(PromotionStatus.SUSPENDED)
    entry = find_user_points(document, user_id)
    points = entry.points if entry else 0
    sub_group = find_sub_group(document, entry.sub_group_id if entry else None)
    rule = evaluate(points, sub_group, document.rules)
    if rule is None:
        return PromotionPlan(PromotionStatus.NO_RULE)
    return PromotionPlan(PromotionStatus.APPLY, rule=rule)


def plan_role_change(
    rule: Rule,
    current_role: Optional[GroupRole],
    roles: List[GroupRole],
    confirm_demotion: bool = False,
) -> PromotionPlan:
    """Diff the winning rule against the member's live role."""
    if current_role is None:
        return PromotionPlan(PromotionStatus.NOT_MEMBER, rule=rule)
    if current_role.id == rule.role_id:
        return PromotionPlan(PromotionStatus.UNCHANGED, rule=rule, current_role=current_role)
    target_role = next((r for r in roles if r.id == rule.role_id), None)
    if target_role is not None and target_role.rank < current_role.rank and not confirm_demotion:
        return PromotionPlan(
            PromotionStatus.DEMOTION_PENDING,
            rule=rule,
            current_role=current_role,
            target_role=target_role,
        )
    return PromotionPlan(PromotionStatus.APPLY, rule=rule, current_role=current_role, target_role=target_role)
