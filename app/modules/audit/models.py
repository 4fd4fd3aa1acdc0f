# Supabase table: audit_logs
# This file documents the expected database schema
# Actual operations are handled via app.database.document_store

"""
Expected Supabase table structure:
- id: text (primary key) - Roblox group id
- data: jsonb (not null):
    entries: [{id, timestamp, action, performedBy: {userId, username},
               targetUser?: {userId, username}, details: {}}]
      (only the most recent 500 entries are kept)
    discordWebhook?: text
- updated_at: timestamp (default: now())
"""
