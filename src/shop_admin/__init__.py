"""Async client and state coordinator for the shop administration API."""

from .admin import AdminState, SnapshotLoader, SnapshotStatus
from .api import ApiService, RequestClient
from .config import Settings, get_settings
from .defaults import get_default_config
from .exceptions import (
    ApiError,
    NetworkError,
    NotAuthenticated,
    RequestFailed,
    ShopAdminError,
    Unauthorized,
)
from .schemas import Configuration, DashboardSummary, OperationResult, SessionIdentity
from .session import SessionState
from .token_store import FileTokenStore, MemoryTokenStore

__version__ = "0.1.0"

__all__ = [
    "AdminState",
    "ApiError",
    "ApiService",
    "Configuration",
    "DashboardSummary",
    "FileTokenStore",
    "MemoryTokenStore",
    "NetworkError",
    "NotAuthenticated",
    "OperationResult",
    "RequestClient",
    "RequestFailed",
    "SessionIdentity",
    "SessionState",
    "Settings",
    "ShopAdminError",
    "SnapshotLoader",
    "SnapshotStatus",
    "Unauthorized",
    "get_default_config",
    "get_settings",
]
