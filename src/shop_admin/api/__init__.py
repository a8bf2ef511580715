from .cache import CacheEntry, PendingRequests, ResponseCache
from .client import RequestClient
from .service import ApiService, CoordinatorStats

__all__ = [
    "ApiService",
    "CacheEntry",
    "CoordinatorStats",
    "PendingRequests",
    "RequestClient",
    "ResponseCache",
]
