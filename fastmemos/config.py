"""
FastMemos Configuration - Persisted, non-secret settings.

Settings live in ~/.config/fastmemos/config.json (or FASTMEMOS_CONFIG_DIR).
The access token is never written here; see secret_store.
"""
from __future__ import annotations

import json
import os
import stat
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "fastmemos"
DEFAULT_VISIBILITY = "PRIVATE"


def get_config_dir() -> Path:
    """Get the config directory (FASTMEMOS_CONFIG_DIR or ~/.config/fastmemos)."""
    if env_dir := os.environ.get("FASTMEMOS_CONFIG_DIR"):
        return Path(env_dir)
    return DEFAULT_CONFIG_DIR


def get_config_path() -> Path:
    """Get the path to config.json."""
    return get_config_dir() / "config.json"


def ensure_config_dir(path: Optional[Path] = None) -> None:
    """Ensure the config directory exists with owner-only permissions."""
    directory = path or get_config_dir()
    directory.mkdir(parents=True, exist_ok=True)
    os.chmod(directory, stat.S_IRWXU)


@dataclass
class Settings:
    """Settings that survive restarts."""
    server_url: str = ""
    default_visibility: str = DEFAULT_VISIBILITY

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


class SettingsStore:
    """Loads and saves Settings as JSON."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_config_path()

    def load(self) -> Settings:
        """Load settings; missing or corrupt files yield defaults."""
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text())
                if isinstance(data, dict):
                    return Settings.from_dict(data)
            except (json.JSONDecodeError, TypeError, OSError):
                pass
        return Settings()

    def save(self, settings: Settings) -> None:
        ensure_config_dir(self.path.parent)
        self.path.write_text(json.dumps(settings.to_dict(), indent=2))

    def update(self, **changes) -> Settings:
        """Load, apply changes, save, and return the new settings."""
        settings = self.load()
        for key, value in changes.items():
            if key not in Settings.__dataclass_fields__:
                raise KeyError(f"Unknown setting: {key}")
            setattr(settings, key, value)
        self.save(settings)
        return settings

    def clear_server_url(self) -> None:
        if self.path.exists():
            self.update(server_url="")


def get_effective_settings(store: Optional[SettingsStore] = None) -> Settings:
    """Get settings with FASTMEMOS_SERVER_URL overriding the file."""
    settings = (store or SettingsStore()).load()
    if os.getenv("FASTMEMOS_SERVER_URL"):
        settings.server_url = os.getenv("FASTMEMOS_SERVER_URL")
    return settings
