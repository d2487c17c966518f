"""
SQLite persistence for logs, scans, household profiles and stored scores.

Modules:
  connection   — ``get_connection()`` context manager.
  schema       — Idempotent DDL (``apply_schema``).
  repositories — Explicit-SQL repositories speaking pydantic models.
"""
