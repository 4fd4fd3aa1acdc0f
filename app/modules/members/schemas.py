from typing import Optional

from app.modules.automation.schemas import CamelModel


class RoleChangeRequest(CamelModel):
    role_id: int
    username: str = ""
    override_suspension: bool = False  # required to re-role a member who is currently suspended


class KickRequest(CamelModel):
    username: str = ""
    reason: Optional[str] = None


class MemberActionResponse(CamelModel):
    success: bool = True
    cleared_suspension: bool = False
