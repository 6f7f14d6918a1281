"""
FastMemos - Quick capture for self-hosted Memos servers.
"""
from .client import MemoClient, ApiResult
from .errors import MemosError, ErrorCode
from .models import MemoDraft, Visibility
from .secret_store import SecretStore, FileSecretStore, EnvSecretStore, MemorySecretStore
from .session import SessionController, SessionSnapshot, SessionState, normalize_server_url

__version__ = "0.1.0"

__all__ = [
    "MemoClient",
    "ApiResult",
    "MemosError",
    "ErrorCode",
    "MemoDraft",
    "Visibility",
    "SecretStore",
    "FileSecretStore",
    "EnvSecretStore",
    "MemorySecretStore",
    "SessionController",
    "SessionSnapshot",
    "SessionState",
    "normalize_server_url",
]
