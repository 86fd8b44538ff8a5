"""
Session snapshot, autosave and recovery.
"""

from .autosave import AutosaveScheduler, AutosaveWriter
from .context import RecoveryChoice, SessionContext, SessionState
from .snapshot import MIGRATIONS, deserialize, dumps, loads, migrate, serialize

__all__ = [
    "AutosaveScheduler",
    "AutosaveWriter",
    "RecoveryChoice",
    "SessionContext",
    "SessionState",
    "MIGRATIONS",
    "deserialize",
    "dumps",
    "loads",
    "migrate",
    "serialize",
]
