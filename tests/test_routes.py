import pytest
from fastapi.testclient import TestClient

from app.config.settings import settings
from app.core.dependencies import Services, get_current_user
from app.main import app

from conftest import GROUP_ID

USER = {"id": "dashboard-user", "roblox_id": "1001", "username": "admin"}


@pytest.fixture
def client(store, roblox, audit):
    Services.reset()
    Services._store = store
    Services._roblox = roblox
    Services._audit = audit
    app.dependency_overrides[get_current_user] = lambda: USER
    yield TestClient(app)
    app.dependency_overrides.clear()
    Services.reset()


def _post_action(client, payload):
    return client.post(f"/api/v1/groups/{GROUP_ID}/automation", json=payload)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_get_automation_returns_empty_document(client):
    resp = client.get(f"/api/v1/groups/{GROUP_ID}/automation")
    assert resp.status_code == 200
    assert resp.json() == {"rules": [], "userPoints": [], "suspensions": []}


def test_points_update_reports_promotion(client):
    assert _post_action(client, {"action": "addRule", "points": 10, "roleId": 20, "roleName": "Trusted"}).status_code == 200

    resp = _post_action(client, {"action": "setPoints", "userId": 7, "username": "builder", "points": 12})
    assert resp.status_code == 200
    body = resp.json()
    assert body["userPoints"] == [{"userId": 7, "username": "builder", "points": 12}]
    assert body["promotion"]["status"] == "not_member"


def test_unknown_action_is_rejected(client):
    assert _post_action(client, {"action": "launchRocket"}).status_code == 422


def test_suspend_without_suspended_role_is_bad_request(client):
    resp = _post_action(client, {"action": "suspendUser", "userId": 7, "previousRoleId": 10, "durationMs": 60000})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No suspended role is configured for this group"


def test_remote_failure_maps_to_bad_gateway(client, roblox):
    _post_action(client, {"action": "setSuspendedRole", "roleId": 5, "roleName": "Suspended"})
    roblox.fail_set_role_for.add(7)

    resp = _post_action(client, {"action": "suspend", "userId": 7, "previousRoleId": 10, "durationMs": 60000})
    assert resp.status_code == 502
    assert resp.json()["detail"].startswith("Roblox API Error 400")


def test_role_change_of_suspended_member_needs_override(client, roblox):
    _post_action(client, {"action": "setSuspendedRole", "roleId": 5, "roleName": "Suspended"})
    _post_action(client, {"action": "suspend", "userId": 7, "previousRoleId": 10, "durationMs": 60000})

    url = f"/api/v1/groups/{GROUP_ID}/members/7"
    assert client.patch(url, json={"roleId": 20}).status_code == 409

    resp = client.patch(url, json={"roleId": 20, "overrideSuspension": True})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "clearedSuspension": True}
    assert roblox.set_role_calls()[-1] == ("set_role", GROUP_ID, 7, 20)
    assert client.get(f"/api/v1/groups/{GROUP_ID}/automation").json()["suspensions"] == []


def test_kick_member(client, roblox):
    resp = client.request(
        "DELETE", f"/api/v1/groups/{GROUP_ID}/members/7", json={"username": "builder", "reason": "spam"}
    )
    assert resp.status_code == 200
    assert roblox.calls[-1] == ("remove_member", GROUP_ID, 7)

    entries = client.get(f"/api/v1/groups/{GROUP_ID}/audit-log").json()["entries"]
    assert entries[0]["action"] == "user_kick"
    assert entries[0]["details"] == {"reason": "spam"}


def test_kick_member_without_body(client, roblox):
    assert client.delete(f"/api/v1/groups/{GROUP_ID}/members/7").status_code == 200


def test_roles_are_sorted_by_rank(client, roblox):
    roblox.roles.reverse()
    ranks = [role["rank"] for role in client.get(f"/api/v1/groups/{GROUP_ID}/roles").json()]
    assert ranks == sorted(ranks)


def test_audit_log_write_and_webhook_flag(client, webhook):
    resp = client.post(f"/api/v1/groups/{GROUP_ID}/audit-log", json={
        "action": "setWebhook", "webhookUrl": "https://discord.example.test/api/webhooks/1/abc",
    })
    assert resp.status_code == 200

    resp = client.post(f"/api/v1/groups/{GROUP_ID}/audit-log", json={
        "action": "log", "logAction": "role_change",
        "targetUser": {"userId": 7, "username": "builder"},
        "details": {"newRoleName": "Trusted"},
    })
    assert resp.status_code == 200
    assert resp.json()["entry"]["performedBy"] == {"userId": "1001", "username": "admin"}
    assert len(webhook.requests) == 1

    body = client.get(f"/api/v1/groups/{GROUP_ID}/audit-log").json()
    assert body["discordWebhook"] == "configured"
    assert [e["action"] for e in body["entries"]] == ["role_change", "webhook_set"]


def test_cron_requires_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    url = "/api/v1/cron/process-suspensions"

    assert client.get(url).status_code == 401
    assert client.post(url, headers={"Authorization": "Bearer wrong"}).status_code == 401

    resp = client.post(url, headers={"Authorization": "Bearer s3cret"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert (body["processedCount"], body["restoredCount"], body["skipped"]) == (0, 0, False)
    assert "errors" not in body
    assert "timestamp" in body


def test_me_returns_linked_account(client):
    assert client.get("/api/v1/auth/me").json() == USER


def test_requests_without_token_are_rejected(client):
    app.dependency_overrides.clear()
    assert client.get(f"/api/v1/groups/{GROUP_ID}/automation").status_code in (401, 403)


def test_role_change_to_unknown_role_is_not_found(client, roblox):
    resp = client.patch(f"/api/v1/groups/{GROUP_ID}/members/7", json={"roleId": 12345})
    assert resp.status_code == 404
    assert roblox.set_role_calls() == []


@pytest.mark.parametrize("limit", [0, -1, 501])
def test_audit_log_limit_out_of_range_is_rejected(client, limit):
    assert client.get(f"/api/v1/groups/{GROUP_ID}/audit-log", params={"limit": limit}).status_code == 422


def test_kick_drops_suspension_record(client, roblox):
    _post_action(client, {"action": "setSuspendedRole", "roleId": 5, "roleName": "Suspended"})
    _post_action(client, {"action": "suspend", "userId": 7, "previousRoleId": 10, "durationMs": 60000})

    resp = client.delete(f"/api/v1/groups/{GROUP_ID}/members/7")
    assert resp.json() == {"success": True, "clearedSuspension": True}
    assert client.get(f"/api/v1/groups/{GROUP_ID}/automation").json()["suspensions"] == []
