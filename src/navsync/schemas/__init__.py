"""Shared schemas for navsync."""

from navsync.schemas.sync import SyncEntry, SyncResult
from navsync.schemas.tree import ChildEntry, LazyRef, Node

__all__ = ["ChildEntry", "LazyRef", "Node", "SyncEntry", "SyncResult"]
