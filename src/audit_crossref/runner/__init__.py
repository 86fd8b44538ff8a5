"""
CLI runner module.

Provides commands:
- ingest / remove: Manage uploaded files
- search / alerts: Query XML lines
- resolve / link-declaration / comment / links: Cross-reference documents
- export / import: Portable snapshot files
- sessions / status: Inspect stored sessions
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
