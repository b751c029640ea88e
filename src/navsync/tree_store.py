"""Navigation tree with on-demand materialization of lazy subtrees."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterator, Sequence

from navsync.exceptions import (
    FetchError,
    LocatorNotFoundError,
    ParseError,
    UnresolvedSourceError,
)
from navsync.schemas import ChildEntry, LazyRef, Node
from navsync.sources import AsyncFragmentSource, FragmentSource

logger = logging.getLogger(__name__)


class TreeStore:
    """Owns the root sequence of a navigation tree.

    Placeholders are replaced by their fragment the first time a lookup or
    expansion needs to look inside them. Each fragment is fetched at most
    once; later resolutions of the same key reuse the cached nodes.

    Args:
        roots: Top-level nodes, in display order.
        source: Where fragments come from. Needs ``load`` for the blocking
            API; the async API uses ``fetch`` when present and otherwise
            runs ``load`` in a worker thread.
    """

    def __init__(
        self,
        roots: Sequence[Node],
        source: FragmentSource | AsyncFragmentSource | None = None,
    ) -> None:
        self.roots: list[ChildEntry] = list(roots)
        self.source = source
        self.fetch_count = 0
        self._resolved: dict[str, list[Node]] = {}
        self._inflight: dict[str, asyncio.Task[list[Node]]] = {}

    # -- resolution -------------------------------------------------------

    def resolve_lazy(self, ref: LazyRef) -> list[Node]:
        """Return the nodes a placeholder stands for.

        Raises:
            UnresolvedSourceError: If the fragment cannot be loaded.
        """
        key = ref.source_key
        if key not in self._resolved:
            if not isinstance(self.source, FragmentSource):
                raise UnresolvedSourceError(key, f"No blocking source for fragment {key!r}")
            self.fetch_count += 1
            try:
                nodes = self.source.load(key)
            except (FetchError, ParseError) as exc:
                raise UnresolvedSourceError(key, str(exc)) from exc
            self._resolved[key] = self._validated(key, nodes)
        return _copy_nodes(self._resolved[key])

    async def aresolve_lazy(self, ref: LazyRef) -> list[Node]:
        """Async ``resolve_lazy`` sharing one in-flight fetch per key."""
        key = ref.source_key
        if key not in self._resolved:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.ensure_future(self._fetch(key))
                self._inflight[key] = task
                task.add_done_callback(lambda t: self._fetch_done(key, t))
            await asyncio.shield(task)
        return _copy_nodes(self._resolved[key])

    def _fetch_done(self, key: str, task: asyncio.Task[list[Node]]) -> None:
        self._inflight.pop(key, None)
        # Retrieved here so a failure nobody awaited is not reported as unhandled.
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Fetch of fragment %s failed: %s", key, task.exception())

    async def _fetch(self, key: str) -> list[Node]:
        source = self.source
        if not isinstance(source, (AsyncFragmentSource, FragmentSource)):
            raise UnresolvedSourceError(key, f"No source for fragment {key!r}")
        self.fetch_count += 1
        try:
            if isinstance(source, AsyncFragmentSource):
                nodes = await source.fetch(key)
            else:
                nodes = await asyncio.to_thread(source.load, key)
        except (FetchError, ParseError) as exc:
            raise UnresolvedSourceError(key, str(exc)) from exc
        nodes = self._validated(key, nodes)
        self._resolved[key] = nodes
        return nodes

    @staticmethod
    def _validated(key: str, nodes: Sequence[Node]) -> list[Node]:
        if not nodes:
            raise UnresolvedSourceError(key, f"Fragment {key!r} is empty")
        logger.debug("Resolved fragment %s (%d nodes)", key, len(nodes))
        return list(nodes)

    def _materialize(self, children: list[ChildEntry], upto: int | None = None) -> None:
        while (ref := _first_placeholder(children, upto)) is not None:
            _splice(children, ref, self.resolve_lazy(ref))

    async def _amaterialize(self, children: list[ChildEntry], upto: int | None = None) -> None:
        while (ref := _first_placeholder(children, upto)) is not None:
            _splice(children, ref, await self.aresolve_lazy(ref))

    # -- queries ----------------------------------------------------------

    def find_path(self, locator: str) -> tuple[int, ...]:
        """Depth-first search for the first node with ``locator``.

        Placeholders are resolved as the search reaches them. A fragment
        that fails to resolve is logged and skipped, but a match found after
        it among the same siblings has no stable index, so the fragment's
        error is raised instead.

        Repeated locators are not rejected here: the first node in pre-order
        wins. ``duplicate_locators`` reports the repeats.

        Raises:
            LocatorNotFoundError: If no node carries the locator.
            UnresolvedSourceError: If the match follows an unloadable fragment.
        """
        path = self._search(self.roots, locator, ())
        if path is None:
            raise LocatorNotFoundError(locator)
        return path

    def _search(
        self, children: list[ChildEntry], locator: str, prefix: tuple[int, ...]
    ) -> tuple[int, ...] | None:
        skipped: UnresolvedSourceError | None = None
        i = 0
        while i < len(children):
            child = children[i]
            if isinstance(child, LazyRef):
                try:
                    _splice(children, child, self.resolve_lazy(child))
                except UnresolvedSourceError as exc:
                    logger.warning("Skipping unresolved fragment during search: %s", exc)
                    skipped = skipped or exc
                    i += 1
                continue
            found = prefix + (i,) if child.locator == locator else None
            if found is None:
                found = self._search(child.children, locator, prefix + (i,))
            if found is not None:
                if skipped is not None:
                    raise skipped
                return found
            i += 1
        return None

    async def afind_path(self, locator: str) -> tuple[int, ...]:
        """Async ``find_path``."""
        path = await self._asearch(self.roots, locator, ())
        if path is None:
            raise LocatorNotFoundError(locator)
        return path

    async def _asearch(
        self, children: list[ChildEntry], locator: str, prefix: tuple[int, ...]
    ) -> tuple[int, ...] | None:
        skipped: UnresolvedSourceError | None = None
        i = 0
        while i < len(children):
            child = children[i]
            if isinstance(child, LazyRef):
                try:
                    _splice(children, child, await self.aresolve_lazy(child))
                except UnresolvedSourceError as exc:
                    logger.warning("Skipping unresolved fragment during search: %s", exc)
                    skipped = skipped or exc
                    i += 1
                continue
            found = prefix + (i,) if child.locator == locator else None
            if found is None:
                found = await self._asearch(child.children, locator, prefix + (i,))
            if found is not None:
                if skipped is not None:
                    raise skipped
                return found
            i += 1
        return None

    def expand(self, path: Sequence[int]) -> list[Node]:
        """Return the nodes from the root to the end of ``path``.

        Raises:
            LocatorNotFoundError: If the path does not address a node.
            UnresolvedSourceError: If a placeholder on the path cannot be loaded.
        """
        nodes: list[Node] = []
        children = self.roots
        for depth, index in enumerate(path):
            self._materialize(children, upto=index)
            node = _child_at(children, index, path, depth)
            nodes.append(node)
            children = node.children
        if not nodes:
            raise LocatorNotFoundError(str(list(path)), "Empty path")
        return nodes

    async def aexpand(self, path: Sequence[int]) -> list[Node]:
        """Async ``expand``."""
        nodes: list[Node] = []
        children = self.roots
        for depth, index in enumerate(path):
            await self._amaterialize(children, upto=index)
            node = _child_at(children, index, path, depth)
            nodes.append(node)
            children = node.children
        if not nodes:
            raise LocatorNotFoundError(str(list(path)), "Empty path")
        return nodes

    def materialize_all(self) -> None:
        """Resolve every placeholder in the tree.

        Raises:
            UnresolvedSourceError: On the first fragment that cannot be loaded.
        """
        pending = [self.roots]
        while pending:
            children = pending.pop()
            self._materialize(children)
            pending.extend(child.children for child in children if isinstance(child, Node))

    # -- inspection -------------------------------------------------------

    def iter_nodes(self) -> Iterator[tuple[tuple[int, ...], Node]]:
        """Yield ``(path, node)`` for materialized nodes in pre-order.

        Placeholders are left untouched, so this never triggers a fetch.
        """
        yield from _walk(self.roots, ())

    def duplicate_locators(self) -> dict[str, list[tuple[int, ...]]]:
        """Report locators carried by more than one materialized node."""
        paths: dict[str, list[tuple[int, ...]]] = {}
        for path, node in self.iter_nodes():
            if node.locator:
                paths.setdefault(node.locator, []).append(path)
        return {locator: found for locator, found in paths.items() if len(found) > 1}

    def render_outline(self, indent: int = 4) -> str:
        """Render materialized nodes as an indented outline.

        Unresolved placeholders are shown as ``...`` lines.
        """
        return "\n".join(_outline_lines(self.roots, 0, indent))


def _walk(
    children: list[ChildEntry], prefix: tuple[int, ...]
) -> Iterator[tuple[tuple[int, ...], Node]]:
    for i, child in enumerate(children):
        if isinstance(child, Node):
            path = prefix + (i,)
            yield path, child
            yield from _walk(child.children, path)


def _outline_lines(children: list[ChildEntry], level: int, indent: int) -> list[str]:
    lines: list[str] = []
    pad = " " * (level * indent)
    for child in children:
        if isinstance(child, LazyRef):
            lines.append(f"{pad}...")
            continue
        suffix = f" -> {child.locator}" if child.locator else ""
        lines.append(f"{pad}{child.label}{suffix}")
        lines.extend(_outline_lines(child.children, level + 1, indent))
    return lines


def _first_placeholder(children: list[ChildEntry], upto: int | None = None) -> LazyRef | None:
    limit = len(children) if upto is None else max(upto + 1, 0)
    for child in children[:limit]:
        if isinstance(child, LazyRef):
            return child
    return None


def _splice(children: list[ChildEntry], ref: LazyRef, nodes: list[Node]) -> None:
    # Another navigation may already have replaced this placeholder.
    for i, child in enumerate(children):
        if child is ref:
            children[i : i + 1] = nodes
            return


def _child_at(
    children: list[ChildEntry], index: int, path: Sequence[int], depth: int
) -> Node:
    if not 0 <= index < len(children):
        raise LocatorNotFoundError(
            str(list(path)), f"Path {list(path)} has no child {index} at depth {depth}"
        )
    child = children[index]
    if not isinstance(child, Node):
        raise UnresolvedSourceError(child.source_key)
    return child


def _copy_nodes(nodes: list[Node]) -> list[Node]:
    return [node.model_copy(deep=True) for node in nodes]
