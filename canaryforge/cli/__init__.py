"""canaryforge CLI — Typer-based command-line interface.

Provides the ``canaryforge`` command with subcommands for running a
release, classifying a revision range, and inspecting the release ledger.

All output uses Rich for formatted terminal display.
"""
