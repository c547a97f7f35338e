"""Command-line interface for dqm (typer + rich)."""
