"""SQLite schema, connection pool, ledger and finalization."""
