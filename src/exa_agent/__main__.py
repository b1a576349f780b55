"""Entry point for ``python -m exa_agent``."""

from exa_agent.ui.cli import app

app()
