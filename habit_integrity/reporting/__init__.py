"""
habit_integrity.reporting — ASCII formatting of scores and batch runs.

Modules:
  formatters — ASCII terminal formatters for Typer CLI commands.
"""
