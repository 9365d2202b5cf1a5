"""SQLite persistence for accounts."""
