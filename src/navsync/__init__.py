"""navsync: navigation tree index with lazy subtrees and panel synchronization."""

from navsync.exceptions import (
    DuplicateLocatorError,
    FetchError,
    LocatorNotFoundError,
    NavsyncError,
    ParseError,
    UnresolvedSourceError,
)
from navsync.schemas import LazyRef, Node, SyncEntry, SyncResult
from navsync.site import DocSite, load_remote_site, load_site
from navsync.sync_index import ChunkedSyncIndex, SyncTable, asynchronize, synchronize
from navsync.tree_store import TreeStore
from navsync.viewer import NavigationSession, NavigationState

__all__ = [
    "ChunkedSyncIndex",
    "DocSite",
    "DuplicateLocatorError",
    "FetchError",
    "LazyRef",
    "LocatorNotFoundError",
    "NavigationSession",
    "NavigationState",
    "NavsyncError",
    "Node",
    "ParseError",
    "SyncEntry",
    "SyncResult",
    "SyncTable",
    "TreeStore",
    "UnresolvedSourceError",
    "asynchronize",
    "load_remote_site",
    "load_site",
    "synchronize",
]
