"""Viewer-side navigation session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from navsync.config import DEFAULT_SYNC_OFF_MESSAGE, DEFAULT_SYNC_ON_MESSAGE
from navsync.exceptions import LocatorNotFoundError, UnresolvedSourceError
from navsync.schemas import Node, SyncResult
from navsync.sync_index import LocatorIndex, amatch_locator, match_locator
from navsync.tree_store import TreeStore

logger = logging.getLogger(__name__)


class NavigationState(str, Enum):
    IDLE = "idle"
    LOOKUP_PENDING = "lookup_pending"
    EXPANDING = "expanding"
    SYNCHRONIZED = "synchronized"
    NOT_FOUND = "not_found"


@dataclass
class NavigationSession:
    """Keeps the tree panel in step with the content panel.

    Navigation events never raise for a missing locator or an unloadable
    fragment; the previous selection is kept instead.

    Attributes:
        tree: Tree store backing the navigation panel.
        index: Locator index used to find paths.
        sync_enabled: When False, navigation events leave the panel alone.
        state: Current step of the per-event state machine.
        selected: Result of the last successful synchronization.
        last_error: Error of the last failed navigation event, if any.
        trace: Every state entered, in order.
    """

    tree: TreeStore
    index: LocatorIndex
    sync_enabled: bool = True
    sync_on_message: str = DEFAULT_SYNC_ON_MESSAGE
    sync_off_message: str = DEFAULT_SYNC_OFF_MESSAGE
    state: NavigationState = NavigationState.IDLE
    selected: SyncResult | None = None
    last_error: Exception | None = None
    trace: list[NavigationState] = field(default_factory=list, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def sync_message(self) -> str:
        """Tooltip for the sync toggle in its current position."""
        return self.sync_on_message if self.sync_enabled else self.sync_off_message

    def toggle_sync(self) -> str:
        self.sync_enabled = not self.sync_enabled
        return self.sync_message

    def on_navigate(self, locator: str) -> SyncResult | None:
        """Synchronize the panel with ``locator``; return the new selection or None."""
        if not self.sync_enabled:
            return None
        self._enter(NavigationState.LOOKUP_PENDING)
        try:
            matched, path = match_locator(self.index, locator)
            self._enter(NavigationState.EXPANDING)
            nodes = self.tree.expand(path)
        except (LocatorNotFoundError, UnresolvedSourceError) as exc:
            self._fail(locator, exc)
            return None
        return self._succeed(locator, matched, path, nodes)

    async def aon_navigate(self, locator: str) -> SyncResult | None:
        """Async ``on_navigate``; events are processed one at a time."""
        if not self.sync_enabled:
            return None
        async with self._lock:
            self._enter(NavigationState.LOOKUP_PENDING)
            try:
                matched, path = await amatch_locator(self.index, locator)
                self._enter(NavigationState.EXPANDING)
                nodes = await self.tree.aexpand(path)
            except (LocatorNotFoundError, UnresolvedSourceError) as exc:
                self._fail(locator, exc)
                return None
            return self._succeed(locator, matched, path, nodes)

    def _succeed(
        self, query: str, matched: str, path: tuple[int, ...], nodes: list[Node]
    ) -> SyncResult:
        result = SyncResult(query=query, locator=matched, path=path, nodes=tuple(nodes))
        self.selected = result
        self.last_error = None
        self._enter(NavigationState.SYNCHRONIZED)
        return result

    def _enter(self, state: NavigationState) -> None:
        self.state = state
        self.trace.append(state)

    def _fail(self, locator: str, exc: Exception) -> None:
        if isinstance(exc, LocatorNotFoundError):
            self._enter(NavigationState.NOT_FOUND)
            logger.debug("No navigation entry for %s", locator)
        else:
            logger.warning("Could not expand navigation for %s: %s", locator, exc)
        self.last_error = exc
        self._enter(NavigationState.IDLE)
