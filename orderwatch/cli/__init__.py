"""orderwatch command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``orderwatch`` script).
"""

from orderwatch.cli.main import cli

__all__ = ["cli"]
