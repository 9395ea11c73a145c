"""
Persistence module - background sync of annotations to a remote store.
"""

from .protocol import PersistenceBackend
from .scheduler import PersistenceScheduler
from .sync import ConflictResolution, PersistenceSync, route_key

__all__ = [
    "PersistenceBackend",
    "PersistenceScheduler",
    "PersistenceSync",
    "ConflictResolution",
    "route_key",
]
