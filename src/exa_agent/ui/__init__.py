"""UI module for exa-agent.

The CLI can be run directly:
    exa chat
    python -m exa_agent ask "Explain src/app.py"

Note: CLI components are not exported from __init__.py to avoid module
loading issues when running as a script.
"""

__all__ = []  # CLI is run directly, no exports needed
