"""Stateside CLI — Typer-based command-line interface.

Provides the ``stateside`` command with subcommands for composing pathways,
reconciling a tracked case, inspecting bulletin velocity, looking up USCIS
case status and refreshing live data.

All output uses Rich for formatted terminal display.
"""
