"""SQLite key-value persistence."""
