"""Command-line entry points (sql-guard, sql-runner)."""
