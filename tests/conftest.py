import pathlib
import sys
from typing import Dict, List, Optional

import httpx
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.errors import RemoteError
from app.database.document_store import InMemoryDocumentStore
from app.modules.audit.service import AuditService
from app.modules.automation.repository import AutomationRepository, GroupLocks
from app.modules.automation.service import AutomationService
from app.modules.automation.sweeper import SuspensionSweeper
from app.modules.roblox.schemas import GroupRole

GROUP_ID = "4242"
NOW_MS = 1_700_000_000_000

ROLES = [
    GroupRole(id=1, name="Guest", rank=0),
    GroupRole(id=5, name="Suspended", rank=2),
    GroupRole(id=10, name="Member", rank=10),
    GroupRole(id=20, name="Trusted", rank=20),
    GroupRole(id=30, name="Veteran", rank=30),
]


class FakeClock:
    def __init__(self, now_ms: int = NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeRoblox:
    """Records calls in order; set_role fails for user ids listed in fail_set_role_for."""

    def __init__(self, roles: Optional[List[GroupRole]] = None):
        self.roles = list(roles or ROLES)
        self.member_roles: Dict[int, GroupRole] = {}
        self.calls: List[tuple] = []
        self.fail_set_role_for = set()
        self.fail_remove = False

    def role(self, role_id: int) -> GroupRole:
        return next((r for r in self.roles if r.id == role_id), GroupRole(id=role_id, name=f"Role {role_id}", rank=0))

    async def set_role(self, group_id, user_id, role_id):
        self.calls.append(("set_role", str(group_id), user_id, role_id))
        if user_id in self.fail_set_role_for:
            raise RemoteError(400, "The roleset is invalid or does not exist.")
        self.member_roles[user_id] = self.role(role_id)

    async def remove_member(self, group_id, user_id):
        self.calls.append(("remove_member", str(group_id), user_id))
        if self.fail_remove:
            raise RemoteError(403, "Insufficient permissions")
        self.member_roles.pop(user_id, None)

    async def get_group_roles(self, group_id):
        self.calls.append(("get_group_roles", str(group_id)))
        return list(self.roles)

    async def get_member_role(self, group_id, user_id):
        self.calls.append(("get_member_role", str(group_id), user_id))
        return self.member_roles.get(user_id)

    async def close_session(self):
        pass

    def set_role_calls(self):
        return [call for call in self.calls if call[0] == "set_role"]


class WebhookRecorder:
    def __init__(self, status_code: int = 204):
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def roblox() -> FakeRoblox:
    return FakeRoblox()


@pytest.fixture
def webhook() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def audit(store, webhook) -> AuditService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(webhook))
    return AuditService(store, collection="audit_logs", max_entries=500, http_client=client)


@pytest.fixture
def repository(store) -> AutomationRepository:
    return AutomationRepository(store, "group_automation")


@pytest.fixture
def sweeper(repository, roblox, audit, clock) -> SuspensionSweeper:
    return SuspensionSweeper(repository, roblox, audit=audit, locks=GroupLocks(), clock=clock)


@pytest.fixture
def automation(repository, roblox, sweeper, audit, clock) -> AutomationService:
    return AutomationService(repository, roblox, sweeper, audit=audit, clock=clock)
