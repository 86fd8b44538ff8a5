"""
Configuration management (SSOT).

This module defines ALL configuration for the audit cross-referencing engine.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Page size is shared by search results and resolver navigation, so a page
  number computed by one is valid for the other
- The autosave interval is a fixed period; failed writes wait for the next tick
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class SearchConfig:
    """Search and pagination settings."""

    # Lines per page in the XML viewer (also used for resolver navigation)
    page_size: int = 100
    # Shorter terms leave search inactive
    min_term_length: int = 2


@dataclass
class MatchingConfig:
    """Matching resolver settings."""

    # Maximum lifetime of the advisory highlight on a found line (seconds)
    highlight_seconds: int = 60


@dataclass
class SessionConfig:
    """Session persistence settings.

    SSOT for the session backend:
    - backend: "sqlite" (local state DB) or "remote" (HTTP session service)
    - remote_url / remote_token: only used by the remote backend
    - embed_payloads: embed base64 file payloads in stored session documents
      (needed when the backend does not share the binary store)
    """

    autosave_interval_seconds: int = 300
    backend: str = "sqlite"
    remote_url: str | None = None
    remote_token: str | None = None
    timeout_seconds: int = 30
    max_retries: int = 3
    embed_payloads: bool = False


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    search: SearchConfig = field(default_factory=SearchConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.search.page_size < 1:
            errors.append("search.page_size must be >= 1")
        if self.search.min_term_length < 1:
            errors.append("search.min_term_length must be >= 1")
        if self.matching.highlight_seconds < 0:
            errors.append("matching.highlight_seconds must be >= 0")
        if self.session.autosave_interval_seconds <= 0:
            errors.append("session.autosave_interval_seconds must be > 0")

        if self.session.backend not in ("sqlite", "remote"):
            errors.append(f"session.backend must be 'sqlite' or 'remote', got '{self.session.backend}'")
        elif self.session.backend == "remote" and not self.session.remote_url:
            errors.append("session.remote_url is required when session.backend is 'remote'")

        return errors


def _int_env(name: str, default: int) -> int:
    """Read an integer override from the environment, keeping the default on bad input."""
    raw = os.environ.get(name, "")
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)  # Keep default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - AUDIT_STATE_DB (state database path)
    - AUDIT_PAGE_SIZE (lines per page)
    - AUDIT_AUTOSAVE_SECONDS (autosave interval)
    - AUDIT_SESSION_BACKEND (sqlite/remote)
    - AUDIT_REMOTE_URL
    - AUDIT_REMOTE_TOKEN
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Search config
    search_data = data.get("search", {})
    search = SearchConfig(
        page_size=_int_env("AUDIT_PAGE_SIZE", search_data.get("page_size", 100)),
        min_term_length=search_data.get("min_term_length", 2),
    )

    # Matching config
    matching_data = data.get("matching", {})
    matching = MatchingConfig(
        highlight_seconds=matching_data.get("highlight_seconds", 60),
    )

    # Session config
    session_data = data.get("session", {})
    session = SessionConfig(
        autosave_interval_seconds=_int_env(
            "AUDIT_AUTOSAVE_SECONDS", session_data.get("autosave_interval_seconds", 300)
        ),
        backend=os.environ.get("AUDIT_SESSION_BACKEND", session_data.get("backend", "sqlite")),
        remote_url=os.environ.get("AUDIT_REMOTE_URL", session_data.get("remote_url")),
        remote_token=os.environ.get("AUDIT_REMOTE_TOKEN", session_data.get("remote_token")),
        timeout_seconds=session_data.get("timeout_seconds", 30),
        max_retries=session_data.get("max_retries", 3),
        embed_payloads=session_data.get("embed_payloads", False),
    )

    # State DB
    state_db = os.environ.get("AUDIT_STATE_DB", data.get("state_db_path", "data/state.db"))

    return Config(
        search=search,
        matching=matching,
        session=session,
        state_db_path=Path(state_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Audit cross-referencing engine configuration

# Search and XML viewer pagination
search:
  page_size: 100                 # Lines per page (search results carry the page number)
  min_term_length: 2             # Shorter terms leave search inactive

# Matching resolver
matching:
  highlight_seconds: 60          # Found-line highlight expires after this many seconds

# Session persistence
session:
  autosave_interval_seconds: 300 # Autosave period (5 minutes)
  backend: "sqlite"              # "sqlite" (local) or "remote" (HTTP session service)
  remote_url: null               # Remote session service URL (backend: remote)
  remote_token: null             # Bearer token for the remote service
  timeout_seconds: 30
  max_retries: 3
  embed_payloads: false          # Embed file payloads in stored sessions (set true for remote)

# State database path (sessions and file payloads)
state_db_path: "data/state.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
