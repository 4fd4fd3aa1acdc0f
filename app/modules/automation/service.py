import logging
from typing import Callable, Optional, Union

from app.core.errors import AppError, ConfigError, ConflictError
from app.modules.audit.schemas import Actor, TargetUser
from app.modules.automation.evaluator import PromotionPlan, PromotionStatus, plan_role_change, target_rule_for
from app.modules.automation.reducer import apply_action
from app.modules.automation.repository import AutomationRepository, GroupLocks
from app.modules.automation.schemas import (
    AddRuleAction, AutomationDocument, AutomationResponse, CleanExpiredSuspensionsAction,
    ClearSuspendedRoleAction, DeleteRuleAction, PromotionOutcome, SetPointsAction,
    SetSuspendedRoleAction, SuspendAction, Suspension, UnsuspendAction, UpdatePointsAction,
)
from app.modules.automation.suspensions import active_suspension, current_time_ms, unsuspend
from app.modules.automation.sweeper import SuspensionSweeper, SweepResult

logger = logging.getLogger(__name__)


def format_duration(duration_ms: int) -> str:
    minutes = duration_ms // 60000
    days, minutes = divmod(minutes, 60 * 24)
    hours, minutes = divmod(minutes, 60)
    parts = [f"{value}{unit}" for value, unit in ((days, "d"), (hours, "h"), (minutes, "m")) if value]
    return " ".join(parts) or f"{duration_ms // 1000}s"


def _outcome(plan: PromotionPlan, message: Optional[str] = None) -> PromotionOutcome:
    return PromotionOutcome(
        status=plan.status.value,
        current_role_id=plan.current_role.id if plan.current_role else None,
        target_role_id=plan.rule.role_id if plan.rule else None,
        target_role_name=plan.rule.role_name if plan.rule else None,
        message=message,
    )


class AutomationService:
    """
    Request-side automation flows for one group.

    Every flow runs under the group's lock, so concurrent requests (and the
    sweeper) never interleave read-modify-write cycles on the same document.
    """

    def __init__(
        self,
        repository: AutomationRepository,
        roblox,
        sweeper: SuspensionSweeper,
        audit=None,
        locks: Optional[GroupLocks] = None,
        clock: Callable[[], int] = current_time_ms,
    ):
        self.repository = repository
        self.roblox = roblox
        self.sweeper = sweeper
        self.audit = audit
        self.locks = locks or sweeper.locks
        self.clock = clock

    async def get_automation(self, group_id: str) -> AutomationDocument:
        """Current document, with this group's expired suspensions restored first."""
        async with self.locks.for_group(group_id):
            document, _ = await self._restore_expired(group_id)
            return document

    async def change_role(
        self, group_id: str, user_id: int, role_id: int, override_suspension: bool = False
    ) -> bool:
        """
        Manually set a member's role. Returns True if a suspension record was dropped.

        The group lock is held from the suspension lookup until the record is gone.
        """
        async with self.locks.for_group(group_id):
            document = self.repository.get(group_id)
            suspension = active_suspension(document, user_id)
            if suspension is not None and not override_suspension:
                raise ConflictError(
                    f"User is suspended until {suspension.expires_at}; set overrideSuspension to change their role"
                )
            await self.roblox.set_role(group_id, user_id, role_id)
            return self._drop_suspension(group_id, document, suspension)

    async def remove_member(self, group_id: str, user_id: int) -> bool:
        """Kick a member and forget their suspension. Returns True if a record was dropped."""
        async with self.locks.for_group(group_id):
            document = self.repository.get(group_id)
            await self.roblox.remove_member(group_id, user_id)
            return self._drop_suspension(group_id, document, active_suspension(document, user_id))

    def _drop_suspension(self, group_id: str, document: AutomationDocument, suspension: Optional[Suspension]) -> bool:
        if suspension is None:
            return False
        self.repository.save(group_id, unsuspend(document, suspension.user_id))
        logger.info(f"Dropped suspension of {suspension.username} ({suspension.user_id}) in group {group_id}")
        return True

    async def handle_action(self, group_id: str, action, actor: Actor) -> AutomationResponse:
        async with self.locks.for_group(group_id):
            if isinstance(action, SuspendAction):
                return await self._suspend(group_id, action, actor)
            if isinstance(action, UnsuspendAction):
                return await self._unsuspend(group_id, action, actor)
            if isinstance(action, CleanExpiredSuspensionsAction):
                document, expired = await self._restore_expired(group_id)
                return AutomationResponse(**document.model_dump(), expired_suspensions=expired)

            document = self.repository.get(group_id)
            updated = apply_action(document, action, self.clock())
            self.repository.save(group_id, updated)
            response = AutomationResponse(**updated.model_dump())
            if isinstance(action, (UpdatePointsAction, SetPointsAction)):
                response.promotion = await self._apply_promotion(group_id, updated, action, actor)
            await self._audit_action(group_id, action, document, updated, actor)
            return response

    async def _restore_expired(self, group_id: str):
        document = self.repository.get(group_id)
        updated, expired = await self.sweeper.restore_expired(group_id, document, self.clock(), SweepResult())
        if expired:
            self.repository.update_suspensions(group_id, updated.suspensions)
        return updated, expired

    async def _suspend(self, group_id: str, action: SuspendAction, actor: Actor) -> AutomationResponse:
        document = self.repository.get(group_id)
        if document.suspended_role is None:
            raise ConfigError("No suspended role is configured for this group")

        # Record first: the stored suspensions always cover everyone on the suspended role
        updated = apply_action(document, action, self.clock())
        self.repository.save(group_id, updated)
        try:
            await self.roblox.set_role(group_id, action.user_id, document.suspended_role.role_id)
        except Exception as e:
            logger.error(f"Failed to apply suspended role to {action.user_id} in group {group_id}: {str(e)}")
            self.repository.save(group_id, document)
            raise

        logger.info(f"Suspended {action.username} ({action.user_id}) in group {group_id} for {action.duration_ms}ms")
        if self.audit is not None:
            await self.audit.record(
                group_id,
                "user_suspend",
                actor,
                target_user=TargetUser(user_id=action.user_id, username=action.username),
                details={
                    "duration": format_duration(action.duration_ms),
                    "durationMs": action.duration_ms,
                    "previousRoleName": action.previous_role_name,
                    "reason": action.reason,
                },
            )
        return AutomationResponse(**updated.model_dump())

    async def _unsuspend(self, group_id: str, action: UnsuspendAction, actor: Actor) -> AutomationResponse:
        document = self.repository.get(group_id)
        record = active_suspension(document, action.user_id)
        role_id = record.previous_role_id if record else action.previous_role_id

        # Role first: if the restore fails the record stays and the sweeper retries at expiry
        if role_id is not None:
            await self.roblox.set_role(group_id, action.user_id, role_id)
        if record is None:
            return AutomationResponse(**document.model_dump())

        updated = apply_action(document, action, self.clock())
        self.repository.save(group_id, updated)
        logger.info(f"Lifted suspension of {record.username} ({action.user_id}) in group {group_id}")
        if self.audit is not None:
            await self.audit.record(
                group_id,
                "user_unsuspend",
                actor,
                target_user=TargetUser(user_id=action.user_id, username=action.username or record.username),
                details={"restoredRoleId": role_id, "restoredRoleName": record.previous_role_name},
            )
        return AutomationResponse(**updated.model_dump())

    async def _apply_promotion(
        self,
        group_id: str,
        document: AutomationDocument,
        action: Union[UpdatePointsAction, SetPointsAction],
        actor: Actor,
    ) -> PromotionOutcome:
        plan = target_rule_for(document, action.user_id)
        if plan.status != PromotionStatus.APPLY:
            return _outcome(plan)

        try:
            current_role = await self.roblox.get_member_role(group_id, action.user_id)
            roles = []
            if current_role is not None and current_role.id != plan.rule.role_id:
                roles = await self.roblox.get_group_roles(group_id)
            plan = plan_role_change(plan.rule, current_role, roles, action.confirm_demotion)
            if plan.status != PromotionStatus.APPLY:
                return _outcome(plan)
            await self.roblox.set_role(group_id, action.user_id, plan.rule.role_id)
        except AppError as e:
            # Points are already saved; report the failed promotion instead of failing the request
            logger.error(f"Automatic role change for {action.user_id} in group {group_id} failed: {str(e)}")
            return _outcome(PromotionPlan(PromotionStatus.FAILED, rule=plan.rule), message=str(e))

        logger.info(f"Auto-promoted {action.user_id} in group {group_id} to {plan.rule.role_name}")
        if self.audit is not None:
            await self.audit.record(
                group_id,
                "role_change",
                actor,
                target_user=TargetUser(user_id=action.user_id, username=action.username),
                details={"newRoleId": plan.rule.role_id, "newRoleName": plan.rule.role_name, "automatic": True},
            )
        return _outcome(PromotionPlan(
            PromotionStatus.APPLIED, rule=plan.rule, current_role=plan.current_role, target_role=plan.target_role
        ))

    async def _audit_action(
        self,
        group_id: str,
        action,
        before: AutomationDocument,
        after: AutomationDocument,
        actor: Actor,
    ) -> None:
        if self.audit is None:
            return
        if isinstance(action, AddRuleAction):
            await self.audit.record(group_id, "rule_add", actor,
                                    details={"points": action.points, "roleName": action.role_name})
        elif isinstance(action, DeleteRuleAction):
            rule = next((r for r in before.rules if r.id == action.rule_id), None)
            if rule is not None:
                await self.audit.record(group_id, "rule_delete", actor,
                                        details={"points": rule.points, "roleName": rule.role_name})
        elif isinstance(action, (UpdatePointsAction, SetPointsAction)):
            old = next((u.points for u in before.user_points if u.user_id == action.user_id), 0)
            new = next((u.points for u in after.user_points if u.user_id == action.user_id), 0)
            if new != old:
                await self.audit.record(
                    group_id,
                    "points_add" if new > old else "points_remove",
                    actor,
                    target_user=TargetUser(user_id=action.user_id, username=action.username),
                    details={"points": abs(new - old), "newTotal": new},
                )
        elif isinstance(action, SetSuspendedRoleAction):
            await self.audit.record(group_id, "suspended_role_set", actor,
                                    details={"roleId": action.role_id, "roleName": action.role_name})
        elif isinstance(action, ClearSuspendedRoleAction):
            await self.audit.record(group_id, "suspended_role_clear", actor)
