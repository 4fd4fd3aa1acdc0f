"""
Core dependencies: shared service instances, authentication and cron access
"""

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional, Dict
import logging

from app.config.settings import settings
from app.database.document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from app.database.supabase_client import SupabaseClient, get_supabase
from app.modules.audit.schemas import Actor
from app.modules.audit.service import AuditService
from app.modules.auth.service import AuthService
from app.modules.automation.repository import AutomationRepository, GroupLocks
from app.modules.automation.service import AutomationService
from app.modules.automation.sweeper import SuspensionSweeper
from app.modules.members.service import MemberService
from app.modules.roblox.client import RobloxGroupsClient
from supabase import Client

logger = logging.getLogger(__name__)

security = HTTPBearer()


class Services:
    """Process-wide instances, created on first use."""
    _store: DocumentStore = None
    _roblox: RobloxGroupsClient = None
    _audit: AuditService = None
    _locks: GroupLocks = None
    _sweeper: SuspensionSweeper = None
    _automation: AutomationService = None

    @classmethod
    def get_store(cls) -> DocumentStore:
        if cls._store is None:
            if settings.document_store_backend == "memory":
                logger.warning("Using in-memory document store; data is lost on restart")
                cls._store = InMemoryDocumentStore()
            else:
                cls._store = SupabaseDocumentStore(SupabaseClient.get_service_client())
        return cls._store

    @classmethod
    def get_roblox(cls) -> RobloxGroupsClient:
        if cls._roblox is None:
            cls._roblox = RobloxGroupsClient(
                cookie=settings.roblox_bot_token,
                base_url=settings.roblox_groups_api_url,
                timeout=settings.roblox_request_timeout,
            )
        return cls._roblox

    @classmethod
    def get_audit(cls) -> AuditService:
        if cls._audit is None:
            cls._audit = AuditService(
                cls.get_store(),
                collection=settings.audit_collection,
                max_entries=settings.audit_log_max_entries,
            )
        return cls._audit

    @classmethod
    def get_sweeper(cls) -> SuspensionSweeper:
        if cls._sweeper is None:
            cls._locks = cls._locks or GroupLocks()
            cls._sweeper = SuspensionSweeper(
                AutomationRepository(cls.get_store(), settings.automation_collection),
                cls.get_roblox(),
                audit=cls.get_audit(),
                locks=cls._locks,
                retain_failed_restores=settings.suspension_retain_failed_restores,
            )
        return cls._sweeper

    @classmethod
    def get_automation(cls) -> AutomationService:
        if cls._automation is None:
            sweeper = cls.get_sweeper()
            cls._automation = AutomationService(
                sweeper.repository,
                cls.get_roblox(),
                sweeper,
                audit=cls.get_audit(),
                locks=sweeper.locks,
            )
        return cls._automation

    @classmethod
    async def close(cls):
        if cls._roblox is not None:
            await cls._roblox.close_session()
        if cls._audit is not None:
            await cls._audit.close()

    @classmethod
    def reset(cls):
        cls._store = None
        cls._roblox = None
        cls._audit = None
        cls._locks = None
        cls._sweeper = None
        cls._automation = None


def get_roblox_client() -> RobloxGroupsClient:
    return Services.get_roblox()


def get_audit_service() -> AuditService:
    return Services.get_audit()


def get_sweeper() -> SuspensionSweeper:
    return Services.get_sweeper()


def get_automation_service() -> AutomationService:
    return Services.get_automation()


def get_member_service() -> MemberService:
    return MemberService(Services.get_roblox(), Services.get_automation(), audit=Services.get_audit())


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict:
    """Extract current dashboard user (with linked Roblox account) from JWT token"""
    return auth_service.get_current_user(credentials.credentials)


def get_actor(user_data: Dict = Depends(get_current_user)) -> Actor:
    """Current user as recorded in audit entries"""
    return Actor(user_id=user_data["roblox_id"], username=user_data.get("username") or "Unknown")


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """External schedulers must send 'Authorization: Bearer <CRON_SECRET>' when a secret is configured"""
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
