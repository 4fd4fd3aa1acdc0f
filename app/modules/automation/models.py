# Supabase table: group_automation
# This file documents the expected database schema
# Actual operations are handled via app.database.document_store

"""
Expected Supabase table structure:
- id: text (primary key) - Roblox group id
- data: jsonb (not null) - AutomationDocument, camelCase:
    rules: [{id, points, roleId, roleName}]
    userPoints: [{userId, username, points, subGroupId?}]
    suspendedRole?: {roleId, roleName}
    suspensions: [{id, userId, username, previousRoleId, previousRoleName, suspendedAt, expiresAt}]
      (suspendedAt / expiresAt are epoch milliseconds)
    subGroups?: [{id, name, color, rules: [{id, points, roleId, roleName}], excludeFromGeneralAutomation?}]
- updated_at: timestamp (default: now())

A missing row reads as {rules: [], userPoints: [], suspensions: []}.
"""
