import json
import logging
from typing import Any, List, Optional

import httpx

from app.core.errors import ConfigError, RemoteError
from app.modules.roblox.schemas import GroupRole

logger = logging.getLogger(__name__)

CSRF_HEADER = "x-csrf-token"
STATE_CHANGING_METHODS = ("POST", "PATCH", "PUT", "DELETE")


def parse_roblox_error(response: httpx.Response) -> str:
    """Best-effort user-facing message from a Roblox error body."""
    try:
        error_data = response.json()
        errors = error_data.get("errors") if isinstance(error_data, dict) else None
        if isinstance(errors, list) and errors:
            error_info = errors[0]
            if error_info.get("userFacingMessage"):
                return error_info["userFacingMessage"]
            if error_info.get("message"):
                return error_info["message"]
    except (json.JSONDecodeError, ValueError, AttributeError):
        pass
    return response.text or f"HTTP {response.status_code}"


class RobloxGroupsClient:
    """
    Bot-authenticated client for the Roblox groups API.

    State-changing requests that come back 403 with a fresh x-csrf-token
    header are retried exactly once with that token. Nothing else is retried.
    """

    def __init__(
        self,
        cookie: Optional[str],
        base_url: str = "https://groups.roblox.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._cookie = cookie
        self._csrf_token: Optional[str] = None
        self._session = httpx.AsyncClient(
            base_url=base_url,
            cookies={".ROBLOSECURITY": cookie} if cookie else None,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close_session(self):
        await self._session.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {}
        if self._csrf_token and method.upper() in STATE_CHANGING_METHODS:
            headers[CSRF_HEADER] = self._csrf_token
        try:
            return await self._session.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteError(503, f"Timed out calling Roblox: {e}") from e
        except httpx.RequestError as e:
            raise RemoteError(503, f"Network error calling Roblox: {e}") from e

    async def request(self, method: str, url: str, **kwargs) -> Any:
        if not self._cookie and method.upper() in STATE_CHANGING_METHODS:
            raise ConfigError("Bot token not configured")

        response = await self._send(method, url, **kwargs)

        if response.status_code == 403 and CSRF_HEADER in response.headers:
            logger.info("CSRF token rejected or missing, retrying once with the issued token")
            self._csrf_token = response.headers[CSRF_HEADER]
            response = await self._send(method, url, **kwargs)

        if not response.is_success:
            message = parse_roblox_error(response)
            if "roleset is invalid" in message.lower():
                message = "Cannot assign this role - it may be at or above the bot's rank"
            raise RemoteError(response.status_code, message)

        if not response.content:
            return None
        return response.json()

    async def set_role(self, group_id: str, user_id: int, role_id: int) -> None:
        await self.request("PATCH", f"/v1/groups/{group_id}/users/{user_id}", json={"roleId": role_id})
        logger.info(f"Set role {role_id} for user {user_id} in group {group_id}")

    async def remove_member(self, group_id: str, user_id: int) -> None:
        await self.request("DELETE", f"/v1/groups/{group_id}/users/{user_id}")
        logger.info(f"Removed user {user_id} from group {group_id}")

    async def get_group_roles(self, group_id: str) -> List[GroupRole]:
        data = await self.request("GET", f"/v1/groups/{group_id}/roles")
        if not data or "roles" not in data:
            raise RemoteError(502, "Could not retrieve roles from Roblox, or response was malformed")
        return [GroupRole(**role) for role in data["roles"]]

    async def get_member_role(self, group_id: str, user_id: int) -> Optional[GroupRole]:
        """Role the user currently holds in the group, or None when not a member."""
        data = await self.request("GET", f"/v1/users/{user_id}/groups/roles")
        for membership in (data or {}).get("data", []):
            if str(membership.get("group", {}).get("id")) == str(group_id):
                return GroupRole(**membership["role"])
        return None
