"""
Remote session service client.

Provides:
- Session document load / save / delete per identity
- Session listing
- Automatic retry with backoff
"""

from .client import RemoteSessionClient

__all__ = ["RemoteSessionClient"]
