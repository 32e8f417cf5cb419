"""Entry point for `python -m orderwatch`.

Usage:
    python -m orderwatch ingest orders.json
    uv run python -m orderwatch history RN100
"""

from __future__ import annotations

from orderwatch.cli import cli

cli()
