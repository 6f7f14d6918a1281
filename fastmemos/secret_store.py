"""
FastMemos Secret Store - Key-value storage for the access token and username.

The session only needs get/set/delete on two keys, so any backend that
provides those three operations will do:

- FileSecretStore: credentials.json in the config dir, mode 600
- EnvSecretStore: process environment, for headless runs and CI
- MemorySecretStore: in-process dict, for tests
"""
from __future__ import annotations

import json
import os
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .config import ensure_config_dir, get_config_dir
from .logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
USERNAME_KEY = "username"


class SecretStore(ABC):
    """Opaque per-user secret storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Deleting a missing key is not an error."""
        ...


class MemorySecretStore(SecretStore):
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class EnvSecretStore(SecretStore):
    """
    Environment-backed store.

    ``accessToken`` maps to FASTMEMOS_ACCESS_TOKEN and ``username`` to
    FASTMEMOS_USERNAME. Writes only affect the current process.
    """

    PREFIX = "FASTMEMOS_"

    def __init__(self, environ: Optional[dict] = None):
        self._environ = os.environ if environ is None else environ

    @classmethod
    def env_name(cls, key: str) -> str:
        snake = "".join(f"_{c}" if c.isupper() else c for c in key)
        return cls.PREFIX + snake.upper()

    def get(self, key: str) -> Optional[str]:
        return self._environ.get(self.env_name(key)) or None

    def set(self, key: str, value: str) -> None:
        self._environ[self.env_name(key)] = value

    def delete(self, key: str) -> None:
        self._environ.pop(self.env_name(key), None)


class FileSecretStore(SecretStore):
    """JSON file readable only by its owner."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_config_dir() / "credentials.json"

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable credentials file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        ensure_config_dir(self.path.parent)
        self.path.write_text(json.dumps(data, indent=2))
        # Owner read/write only (600)
        os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        del data[key]
        if data:
            self._save(data)
        else:
            self.path.unlink(missing_ok=True)


def get_secret_store(backend: Optional[str] = None) -> SecretStore:
    """
    Pick a secret store by name: "file" (default), "env" or "memory".

    Falls back to FASTMEMOS_SECRET_STORE when no name is given.
    """
    backend = (backend or os.getenv("FASTMEMOS_SECRET_STORE", "file")).strip().lower()
    if backend == "env":
        return EnvSecretStore()
    if backend == "memory":
        return MemorySecretStore()
    if backend == "file":
        return FileSecretStore()
    raise ValueError(f"Unknown secret store backend: {backend}")
