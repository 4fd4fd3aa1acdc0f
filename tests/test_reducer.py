import pytest
from pydantic import TypeAdapter, ValidationError

from app.modules.automation.reducer import apply_action
from app.modules.automation.schemas import AutomationAction, AutomationDocument, SuspendedRole

NOW = 1_700_000_000_000

action_adapter = TypeAdapter(AutomationAction)


def _apply(document, payload):
    return apply_action(document, action_adapter.validate_python(payload), NOW)


def test_add_and_delete_rule():
    document = _apply(AutomationDocument(), {"action": "addRule", "points": 10, "roleId": 3, "roleName": "Member"})
    assert len(document.rules) == 1
    rule = document.rules[0]
    assert (rule.points, rule.role_id, rule.role_name) == (10, 3, "Member")

    document = _apply(document, {"action": "deleteRule", "ruleId": rule.id})
    assert document.rules == []


def test_apply_action_does_not_mutate_input():
    original = AutomationDocument()
    _apply(original, {"action": "addRule", "points": 10, "roleId": 3, "roleName": "Member"})
    assert original.rules == []


def test_update_points_clamps_at_zero_and_prunes_empty_entry():
    document = _apply(AutomationDocument(), {"action": "updatePoints", "userId": 1, "username": "a", "pointsDelta": 5})
    assert document.user_points[0].points == 5

    document = _apply(document, {"action": "updatePoints", "userId": 1, "pointsDelta": -20})
    assert document.user_points == []


def test_set_points_keeps_zero_point_member_of_sub_group():
    document = _apply(AutomationDocument(), {"action": "createSubGroup", "name": "Officers"})
    sub_group_id = document.sub_groups[0].id
    document = _apply(document, {"action": "assignUserToSubGroup", "userId": 1, "subGroupId": sub_group_id})
    document = _apply(document, {"action": "setPoints", "userId": 1, "points": 0})

    assert len(document.user_points) == 1
    assert document.user_points[0].sub_group_id == sub_group_id


def test_delete_sub_group_clears_member_assignments():
    document = _apply(AutomationDocument(), {"action": "createSubGroup", "name": "Officers", "color": "#ff0000"})
    sub_group = document.sub_groups[0]
    assert sub_group.color == "#ff0000"
    document = _apply(document, {"action": "setPoints", "userId": 1, "points": 40})
    document = _apply(document, {"action": "assignUserToSubGroup", "userId": 1, "subGroupId": sub_group.id})

    document = _apply(document, {"action": "deleteSubGroup", "subGroupId": sub_group.id})
    assert document.sub_groups == []
    assert document.user_points[0].sub_group_id is None
    assert document.user_points[0].points == 40


def test_sub_group_rules_and_settings():
    document = _apply(AutomationDocument(), {"action": "createSubGroup", "name": "Officers"})
    sub_group_id = document.sub_groups[0].id
    document = _apply(document, {
        "action": "addSubGroupRule", "subGroupId": sub_group_id, "points": 5, "roleId": 8, "roleName": "Officer"
    })
    document = _apply(document, {
        "action": "updateSubGroupSettings", "subGroupId": sub_group_id, "excludeFromGeneralAutomation": True
    })
    document = _apply(document, {"action": "renameSubGroup", "subGroupId": sub_group_id, "name": "Command"})

    sub_group = document.sub_groups[0]
    assert sub_group.name == "Command"
    assert sub_group.exclude_from_general_automation is True
    assert [r.role_name for r in sub_group.rules] == ["Officer"]

    document = _apply(document, {
        "action": "deleteSubGroupRule", "subGroupId": sub_group_id, "ruleId": sub_group.rules[0].id
    })
    assert document.sub_groups[0].rules == []


def test_remove_user_from_sub_group_prunes_zero_point_entry():
    document = _apply(AutomationDocument(), {"action": "createSubGroup", "name": "Officers"})
    sub_group_id = document.sub_groups[0].id
    document = _apply(document, {"action": "assignUserToSubGroup", "userId": 1, "subGroupId": sub_group_id})
    document = _apply(document, {"action": "removeUserFromSubGroup", "userId": 1})
    assert document.user_points == []


def test_actions_on_missing_targets_are_noops():
    document = AutomationDocument()
    for payload in (
        {"action": "deleteRule", "ruleId": "missing"},
        {"action": "renameSubGroup", "subGroupId": "missing", "name": "x"},
        {"action": "addSubGroupRule", "subGroupId": "missing", "points": 1, "roleId": 1, "roleName": "x"},
        {"action": "removeUserFromSubGroup", "userId": 1},
    ):
        assert _apply(document, payload) == document


def test_suspended_role_set_and_clear():
    document = _apply(AutomationDocument(), {"action": "setSuspendedRole", "roleId": 999, "roleName": "Suspended"})
    assert document.suspended_role == SuspendedRole(role_id=999, role_name="Suspended")
    document = _apply(document, {"action": "clearSuspendedRole"})
    assert document.suspended_role is None


def test_suspend_aliases_parse_to_the_same_action():
    base = AutomationDocument(suspended_role=SuspendedRole(role_id=999, role_name="Suspended"))
    for name in ("suspend", "suspendUser"):
        document = _apply(base, {
            "action": name, "userId": 7, "previousRoleId": 50, "durationMs": 60000,
        })
        assert document.suspensions[0].expires_at == NOW + 60000


def test_unknown_action_is_rejected_at_parse_time():
    with pytest.raises(ValidationError):
        action_adapter.validate_python({"action": "launchRocket"})


def test_store_shape_is_camel_case_without_nulls():
    document = _apply(AutomationDocument(), {"action": "addRule", "points": 10, "roleId": 3, "roleName": "Member"})
    stored = document.to_store()
    assert set(stored) == {"rules", "userPoints", "suspensions"}
    assert set(stored["rules"][0]) == {"id", "points", "roleId", "roleName"}


def test_assigning_to_unknown_sub_group_is_noop():
    document = _apply(AutomationDocument(), {"action": "assignUserToSubGroup", "userId": 7, "subGroupId": "does-not-exist"})
    assert document.user_points == []

    document = _apply(document, {"action": "setPoints", "userId": 7, "points": 20})
    document = _apply(document, {"action": "assignUserToSubGroup", "userId": 7, "subGroupId": "does-not-exist"})
    assert document.user_points[0].sub_group_id is None
    assert document.user_points[0].points == 20


def test_assigning_empty_sub_group_clears_assignment():
    document = _apply(AutomationDocument(), {"action": "createSubGroup", "name": "Officers"})
    sub_group_id = document.sub_groups[0].id
    document = _apply(document, {"action": "setPoints", "userId": 7, "points": 20})
    document = _apply(document, {"action": "assignUserToSubGroup", "userId": 7, "subGroupId": sub_group_id})
    document = _apply(document, {"action": "assignUserToSubGroup", "userId": 7, "subGroupId": None})
    assert document.user_points[0].sub_group_id is None
