"""Backend gateway: data queries, RPC, realtime, auth and file upload."""
from .base import Backend, BackendError, ChangeEvent, Query, Subscription
from .realtime import PollingChangeFeed
from .rest import RestBackend

__all__ = [
    "Backend",
    "BackendError",
    "ChangeEvent",
    "Query",
    "Subscription",
    "PollingChangeFeed",
    "RestBackend",
]
