"""Locator-to-path index used to synchronize the tree panel with content."""

from __future__ import annotations

import asyncio
import logging
from bisect import bisect_right
from typing import Iterable, Iterator, Protocol, Sequence, Union

from navsync.exceptions import (
    DuplicateLocatorError,
    FetchError,
    LocatorNotFoundError,
    ParseError,
    UnresolvedSourceError,
)
from navsync.locators import locator_candidates
from navsync.schemas import SyncEntry, SyncResult
from navsync.sources import AsyncIndexChunkSource, IndexChunkSource
from navsync.tree_store import TreeStore

logger = logging.getLogger(__name__)

EntryLike = Union[SyncEntry, tuple[str, Sequence[int]]]


class LocatorIndex(Protocol):
    def lookup(self, locator: str) -> tuple[int, ...]: ...

    async def alookup(self, locator: str) -> tuple[int, ...]: ...


class SyncTable:
    """Ordered, immutable table of sync entries with hashed lookup.

    Entry position is the page order assigned by the generator; lookups
    go through a locator-keyed dict and never scan.
    """

    def __init__(self, entries: Sequence[SyncEntry], positions: dict[str, int]) -> None:
        self._entries = tuple(entries)
        self._positions = positions

    @classmethod
    def build(cls, entries: Iterable[EntryLike]) -> "SyncTable":
        """Build a table from ``SyncEntry`` objects or ``(locator, path)`` pairs.

        Raises:
            DuplicateLocatorError: If two entries share a locator. No table
                is produced in that case.
        """
        built: list[SyncEntry] = []
        positions: dict[str, int] = {}
        for position, item in enumerate(entries):
            entry = item if isinstance(item, SyncEntry) else SyncEntry(locator=item[0], path=tuple(item[1]))
            if entry.locator in positions:
                raise DuplicateLocatorError(entry.locator, positions[entry.locator], position)
            positions[entry.locator] = position
            built.append(entry)
        return cls(built, positions)

    def lookup(self, locator: str) -> tuple[int, ...]:
        """Return the path for ``locator``.

        Raises:
            LocatorNotFoundError: If the locator is not in the table.
        """
        try:
            return self._entries[self._positions[locator]].path
        except KeyError:
            raise LocatorNotFoundError(locator) from None

    async def alookup(self, locator: str) -> tuple[int, ...]:
        return self.lookup(locator)

    def get(self, locator: str, default: tuple[int, ...] | None = None) -> tuple[int, ...] | None:
        position = self._positions.get(locator)
        return default if position is None else self._entries[position].path

    def position_of(self, locator: str) -> int:
        try:
            return self._positions[locator]
        except KeyError:
            raise LocatorNotFoundError(locator) from None

    def entry_at(self, position: int) -> SyncEntry:
        return self._entries[position]

    def __contains__(self, locator: object) -> bool:
        return locator in self._positions

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SyncEntry]:
        return iter(self._entries)


class ChunkedSyncIndex:
    """Sync index split into sorted chunks that load on first use.

    ``heads`` holds the first locator of each chunk in sorted order; a
    lookup bisects the heads to pick the only chunk that can contain the
    locator, then loads and caches that chunk as a ``SyncTable``.

    Args:
        heads: First locator of every chunk, sorted ascending.
        source: Provides ``load_index_chunk`` and/or ``fetch_index_chunk``.
    """

    def __init__(
        self,
        heads: Sequence[str],
        source: IndexChunkSource | AsyncIndexChunkSource,
    ) -> None:
        self.heads = list(heads)
        if self.heads != sorted(self.heads):
            raise ValueError("Chunk heads must be sorted")
        self.source = source
        self._chunks: dict[int, SyncTable] = {}
        self._inflight: dict[int, asyncio.Task[SyncTable]] = {}

    def chunk_for(self, locator: str) -> int | None:
        """Index of the chunk that would hold ``locator``, or None."""
        chunk = bisect_right(self.heads, locator) - 1
        return chunk if chunk >= 0 else None

    def lookup(self, locator: str) -> tuple[int, ...]:
        chunk = self.chunk_for(locator)
        if chunk is None:
            raise LocatorNotFoundError(locator)
        if chunk not in self._chunks:
            if not isinstance(self.source, IndexChunkSource):
                raise UnresolvedSourceError(f"chunk {chunk}", "No blocking source for index chunks")
            try:
                entries = self.source.load_index_chunk(chunk)
            except (FetchError, ParseError) as exc:
                raise UnresolvedSourceError(f"chunk {chunk}", str(exc)) from exc
            self._chunks[chunk] = SyncTable.build(entries)
        return self._chunks[chunk].lookup(locator)

    async def alookup(self, locator: str) -> tuple[int, ...]:
        chunk = self.chunk_for(locator)
        if chunk is None:
            raise LocatorNotFoundError(locator)
        if chunk not in self._chunks:
            task = self._inflight.get(chunk)
            if task is None:
                task = asyncio.ensure_future(self._load_chunk(chunk))
                self._inflight[chunk] = task
                task.add_done_callback(lambda t: self._load_done(chunk, t))
            await asyncio.shield(task)
        return self._chunks[chunk].lookup(locator)

    def _load_done(self, chunk: int, task: asyncio.Task[SyncTable]) -> None:
        self._inflight.pop(chunk, None)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Loading index chunk %d failed: %s", chunk, task.exception())

    async def _load_chunk(self, chunk: int) -> SyncTable:
        source = self.source
        try:
            if isinstance(source, AsyncIndexChunkSource):
                entries = await source.fetch_index_chunk(chunk)
            else:
                entries = await asyncio.to_thread(source.load_index_chunk, chunk)
        except (FetchError, ParseError) as exc:
            raise UnresolvedSourceError(f"chunk {chunk}", str(exc)) from exc
        table = SyncTable.build(entries)
        self._chunks[chunk] = table
        return table

    @property
    def loaded_chunks(self) -> list[int]:
        return sorted(self._chunks)


def match_locator(
    index: LocatorIndex, locator: str, *, fallback_to_page: bool = True
) -> tuple[str, tuple[int, ...]]:
    """Return the first candidate locator found in ``index`` and its path."""
    for candidate in locator_candidates(locator, fallback_to_page=fallback_to_page):
        try:
            return candidate, index.lookup(candidate)
        except LocatorNotFoundError:
            continue
    raise LocatorNotFoundError(locator)


async def amatch_locator(
    index: LocatorIndex, locator: str, *, fallback_to_page: bool = True
) -> tuple[str, tuple[int, ...]]:
    for candidate in locator_candidates(locator, fallback_to_page=fallback_to_page):
        try:
            return candidate, await index.alookup(candidate)
        except LocatorNotFoundError:
            continue
    raise LocatorNotFoundError(locator)


def synchronize(
    tree: TreeStore,
    index: LocatorIndex,
    locator: str,
    *,
    fallback_to_page: bool = True,
) -> SyncResult:
    """Look up ``locator`` and expand the tree along its path.

    When the exact locator is missing, its sanitized form and then the bare
    page are tried.

    Raises:
        LocatorNotFoundError: If no candidate locator is in the index.
        UnresolvedSourceError: If a fragment on the path cannot be loaded.
    """
    matched, path = match_locator(index, locator, fallback_to_page=fallback_to_page)
    nodes = tree.expand(path)
    logger.debug("Synchronized %s via %s at %s", locator, matched, path)
    return SyncResult(query=locator, locator=matched, path=path, nodes=tuple(nodes))


async def asynchronize(
    tree: TreeStore,
    index: LocatorIndex,
    locator: str,
    *,
    fallback_to_page: bool = True,
) -> SyncResult:
    """Async ``synchronize``."""
    matched, path = await amatch_locator(index, locator, fallback_to_page=fallback_to_page)
    nodes = await tree.aexpand(path)
    logger.debug("Synchronized %s via %s at %s", locator, matched, path)
    return SyncResult(query=locator, locator=matched, path=path, nodes=tuple(nodes))
