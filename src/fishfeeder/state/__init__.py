"""State/store layer.

All shared state lives behind a :class:`StateStore`; concurrent
invocations coordinate only through it.
"""

from fishfeeder.state.firebase import FirebaseStateStore, StoreProvider
from fishfeeder.state.store import BoundedStore, MemoryStateStore, StateStore, compute_etag

__all__ = [
    "BoundedStore",
    "FirebaseStateStore",
    "MemoryStateStore",
    "StateStore",
    "StoreProvider",
    "compute_etag",
]
