from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, List, Literal, Optional, Union


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Rule(CamelModel):
    id: str
    points: int
    role_id: int
    role_name: str


class SubGroupRule(Rule):
    pass


class UserPoints(CamelModel):
    user_id: int
    username: str = ""
    points: int = Field(default=0, ge=0)
    sub_group_id: Optional[str] = None


class SuspendedRole(CamelModel):
    role_id: int
    role_name: str


class Suspension(CamelModel):
    id: str
    user_id: int
    username: str = ""
    previous_role_id: int
    previous_role_name: str = ""
    suspended_at: int  # epoch ms
    expires_at: int  # epoch ms


class SubGroup(CamelModel):
    id: str
    name: str
    color: str = "#6366f1"
    rules: List[SubGroupRule] = []
    exclude_from_general_automation: Optional[bool] = None


class AutomationDocument(CamelModel):
    rules: List[Rule] = []
    user_points: List[UserPoints] = []
    suspended_role: Optional[SuspendedRole] = None
    suspensions: List[Suspension] = []
    sub_groups: Optional[List[SubGroup]] = None

    def to_store(self) -> dict:
        """Wire/storage shape: camelCase, optional fields omitted instead of null."""
        return self.model_dump(by_alias=True, exclude_none=True)


# Actions accepted by POST /groups/{group_id}/automation


class AddRuleAction(CamelModel):
    action: Literal["addRule"]
    points: int = Field(ge=0)
    role_id: int
    role_name: str


class DeleteRuleAction(CamelModel):
    action: Literal["deleteRule"]
    rule_id: str


class UpdatePointsAction(CamelModel):
    action: Literal["updatePoints"]
    user_id: int
    username: str = ""
    points_delta: int
    confirm_demotion: bool = False


class SetPointsAction(CamelModel):
    action: Literal["setPoints"]
    user_id: int
    username: str = ""
    points: int
    confirm_demotion: bool = False


class SetSuspendedRoleAction(CamelModel):
    action: Literal["setSuspendedRole"]
    role_id: int
    role_name: str


class ClearSuspendedRoleAction(CamelModel):
    action: Literal["clearSuspendedRole"]


class SuspendAction(CamelModel):
    action: Literal["suspend", "suspendUser"]
    user_id: int
    username: str = ""
    previous_role_id: int
    previous_role_name: str = ""
    duration_ms: int = Field(gt=0)
    reason: Optional[str] = None


class UnsuspendAction(CamelModel):
    action: Literal["unsuspendUser", "unsuspend"]
    user_id: int
    username: str = ""
    previous_role_id: Optional[int] = None  # used only when no suspension record exists


class CleanExpiredSuspensionsAction(CamelModel):
    action: Literal["cleanExpiredSuspensions"]


class CreateSubGroupAction(CamelModel):
    action: Literal["createSubGroup"]
    name: str
    color: Optional[str] = None


class DeleteSubGroupAction(CamelModel):
    action: Literal["deleteSubGroup"]
    sub_group_id: str


class RenameSubGroupAction(CamelModel):
    action: Literal["renameSubGroup"]
    sub_group_id: str
    name: str
    color: Optional[str] = None


class UpdateSubGroupSettingsAction(CamelModel):
    action: Literal["updateSubGroupSettings"]
    sub_group_id: str
    exclude_from_general_automation: Optional[bool] = None


class AddSubGroupRuleAction(CamelModel):
    action: Literal["addSubGroupRule"]
    sub_group_id: str
    points: int = Field(ge=0)
    role_id: int
    role_name: str


class DeleteSubGroupRuleAction(CamelModel):
    action: Literal["deleteSubGroupRule"]
    sub_group_id: str
    rule_id: str


class AssignUserToSubGroupAction(CamelModel):
    action: Literal["assignUserToSubGroup"]
    user_id: int
    username: str = ""
    sub_group_id: Optional[str] = None  # empty or null clears the assignment


class RemoveUserFromSubGroupAction(CamelModel):
    action: Literal["removeUserFromSubGroup"]
    user_id: int


AutomationAction = Annotated[
    Union[
        AddRuleAction,
        DeleteRuleAction,
        UpdatePointsAction,
        SetPointsAction,
        SetSuspendedRoleAction,
        ClearSuspendedRoleAction,
        SuspendAction,
        UnsuspendAction,
        CleanExpiredSuspensionsAction,
        CreateSubGroupAction,
        DeleteSubGroupAction,
        RenameSubGroupAction,
        UpdateSubGroupSettingsAction,
        AddSubGroupRuleAction,
        DeleteSubGroupRuleAction,
        AssignUserToSubGroupAction,
        RemoveUserFromSubGroupAction,
    ],
    Field(discriminator="action"),
]


class PromotionOutcome(CamelModel):
    status: str  # see evaluator.PromotionStatus
    current_role_id: Optional[int] = None
    target_role_id: Optional[int] = None
    target_role_name: Optional[str] = None
    message: Optional[str] = None


class AutomationResponse(AutomationDocument):
    promotion: Optional[PromotionOutcome] = None
    expired_suspensions: Optional[List[Suspension]] = None
