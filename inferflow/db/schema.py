"""Database schema DDL. All tables use CREATE IF NOT EXISTS for idempotency."""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

# Logical keys of the persisted store.
SESSIONS_KEY = "inferflow_sessions"
CURRENT_SESSION_KEY = "inferflow_current_session"
LEGACY_TREE_KEY = "inferflow_conversations"
# Copy of a session index that could not be parsed, kept before it is replaced.
SESSIONS_BACKUP_KEY = "inferflow_sessions_unreadable"
