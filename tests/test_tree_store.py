"""Tests for the navigation tree store."""

from __future__ import annotations

import asyncio
import gc

import pytest
from pydantic import ValidationError

from navsync.exceptions import FetchError, LocatorNotFoundError, UnresolvedSourceError
from navsync.parser import nodes_from_raw
from navsync.schemas import LazyRef, Node
from navsync.sources import MappingFragmentSource
from navsync.tree_store import TreeStore


class GatedSource:
    """Async source whose fetches block until released."""

    def __init__(self, fragments: dict) -> None:
        self.fragments = fragments
        self.calls: list[str] = []
        self.release = asyncio.Event()

    async def fetch(self, source_key: str) -> list[Node]:
        self.calls.append(source_key)
        await self.release.wait()
        return nodes_from_raw(self.fragments[source_key])


class FailingGatedSource(GatedSource):
    """Gated source whose fetches fail once released."""

    async def fetch(self, source_key: str) -> list[Node]:
        self.calls.append(source_key)
        await self.release.wait()
        raise FetchError(f"{source_key} is gone")


class BlockingOnlySource:
    """Source exposing only the blocking ``load``."""

    def __init__(self, fragments: dict) -> None:
        self.fragments = fragments
        self.calls: list[str] = []

    def load(self, source_key: str) -> list[Node]:
        self.calls.append(source_key)
        return nodes_from_raw(self.fragments[source_key])


def _lazy(label: str, key: str, locator: str | None = None) -> Node:
    return Node(label=label, locator=locator, children=[LazyRef(source_key=key)])


class TestNodeModel:
    """Tests for the Node invariant."""

    def test_rejects_node_without_locator_or_children(self) -> None:
        with pytest.raises(ValidationError):
            Node(label="Empty")

    def test_structural_node_with_children_is_valid(self) -> None:
        node = _lazy("Group", "group")
        assert node.locator is None
        assert not node.is_resolved


class TestFindPath:
    """Tests for TreeStore.find_path."""

    def test_resolves_placeholder_on_demand(self, scenario_tree: TreeStore) -> None:
        """Finds a node inside a lazy fragment and splices it in."""
        assert scenario_tree.find_path("z") == (1, 0)
        assert scenario_tree.fetch_count == 1
        assert scenario_tree.roots[1].children[0].label == "C"

    def test_does_not_resolve_before_match(self, scenario_tree: TreeStore) -> None:
        """Stops at the first match without touching later placeholders."""
        assert scenario_tree.find_path("x") == (0,)
        assert scenario_tree.fetch_count == 0
        assert isinstance(scenario_tree.roots[1].children[0], LazyRef)

    def test_missing_locator_raises(self, scenario_tree: TreeStore) -> None:
        with pytest.raises(LocatorNotFoundError) as exc_info:
            scenario_tree.find_path("absent")
        assert exc_info.value.locator == "absent"
        assert isinstance(exc_info.value, KeyError)

    def test_first_match_in_preorder_wins(self) -> None:
        """A parent carrying the same locator as its child is found first."""
        roots = nodes_from_raw(
            [("Namespaces", "namespaces.html", [("Namespace List", "namespaces.html", None)])]
        )
        tree = TreeStore(roots)
        assert tree.find_path("namespaces.html") == (0,)

    def test_skips_unresolvable_fragment(self, caplog: pytest.LogCaptureFixture) -> None:
        """A missing fragment is logged, left in place, and the search continues."""
        source = MappingFragmentSource({"ok": [("Found", "found.html", None)]})
        tree = TreeStore([_lazy("Broken", "missing"), _lazy("Fine", "ok")], source)

        with caplog.at_level("WARNING", logger="navsync.tree_store"):
            assert tree.find_path("found.html") == (1, 0)

        assert isinstance(tree.roots[0].children[0], LazyRef)
        assert "missing" in caplog.text

    def test_match_after_unresolvable_sibling_raises(self) -> None:
        """A match behind a failed placeholder has no index expand could follow."""
        root = Node(label="Root", children=[LazyRef(source_key="gone"), Node(label="A", locator="x")])
        tree = TreeStore([root], MappingFragmentSource({}))

        with pytest.raises(UnresolvedSourceError) as exc_info:
            tree.find_path("x")

        assert exc_info.value.source_key == "gone"
        with pytest.raises(UnresolvedSourceError):
            tree.expand((0, 1))

    def test_match_before_unresolvable_sibling(self) -> None:
        root = Node(label="Root", children=[Node(label="A", locator="x"), LazyRef(source_key="gone")])
        tree = TreeStore([root], MappingFragmentSource({}))

        path = tree.find_path("x")

        assert path == (0, 0)
        assert tree.expand(path)[-1].locator == "x"

    @pytest.mark.asyncio
    async def test_async_match_after_unresolvable_sibling_raises(self) -> None:
        root = Node(label="Root", children=[LazyRef(source_key="gone"), Node(label="A", locator="x")])
        tree = TreeStore([root], MappingFragmentSource({}))

        with pytest.raises(UnresolvedSourceError):
            await tree.afind_path("x")


class TestExpand:
    """Tests for TreeStore.expand."""

    def test_expands_scenario_path(self, scenario_tree: TreeStore) -> None:
        nodes = scenario_tree.expand((1, 0))

        assert [node.label for node in nodes] == ["B", "C"]
        assert nodes[-1].locator == "z"

    def test_splice_keeps_sibling_order(self) -> None:
        source = MappingFragmentSource({"mid": [("M1", "m1", None), ("M2", "m2", None)]})
        parent = Node(
            label="P",
            children=[
                Node(label="First", locator="first"),
                LazyRef(source_key="mid"),
                Node(label="Last", locator="last"),
            ],
        )
        tree = TreeStore([parent], source)

        nodes = tree.expand((0, 3))

        assert nodes[-1].label == "Last"
        assert [child.label for child in parent.children] == ["First", "M1", "M2", "Last"]

    def test_repeated_expand_does_not_duplicate(self, scenario_tree: TreeStore) -> None:
        scenario_tree.expand((1, 0))
        scenario_tree.expand((1, 0))

        assert len(scenario_tree.roots[1].children) == 1
        assert scenario_tree.fetch_count == 1

    def test_index_out_of_range_raises(self, scenario_tree: TreeStore) -> None:
        with pytest.raises(LocatorNotFoundError):
            scenario_tree.expand((1, 5))

    def test_empty_path_raises(self, scenario_tree: TreeStore) -> None:
        with pytest.raises(LocatorNotFoundError):
            scenario_tree.expand(())

    def test_missing_fragment_leaves_placeholder(self) -> None:
        tree = TreeStore([_lazy("B", "gone")], MappingFragmentSource({}))

        with pytest.raises(UnresolvedSourceError) as exc_info:
            tree.expand((0, 0))

        assert exc_info.value.source_key == "gone"
        assert isinstance(tree.roots[0].children[0], LazyRef)

    def test_placeholders_after_target_are_not_fetched(self) -> None:
        source = BlockingOnlySource({"later": [("L", "l.html", None)]})
        root = Node(label="Root", children=[Node(label="A", locator="x"), LazyRef(source_key="later")])
        tree = TreeStore([root], source)

        nodes = tree.expand((0, 0))

        assert nodes[-1].locator == "x"
        assert source.calls == []
        assert isinstance(root.children[1], LazyRef)

    def test_broken_trailing_sibling_does_not_block_expand(self) -> None:
        root = Node(label="Root", children=[Node(label="A", locator="x"), LazyRef(source_key="gone")])
        tree = TreeStore([root], MappingFragmentSource({}))

        assert tree.expand((0, 0))[-1].label == "A"
        assert tree.fetch_count == 0

    @pytest.mark.asyncio
    async def test_async_placeholders_after_target_are_not_fetched(self) -> None:
        source = BlockingOnlySource({"later": [("L", "l.html", None)]})
        root = Node(label="Root", children=[Node(label="A", locator="x"), LazyRef(source_key="later")])
        tree = TreeStore([root], source)

        await tree.aexpand((0, 0))

        assert source.calls == []


class TestResolveLazy:
    """Tests for TreeStore.resolve_lazy."""

    def test_is_idempotent(self, scenario_tree: TreeStore) -> None:
        ref = LazyRef(source_key="y")

        first = scenario_tree.resolve_lazy(ref)
        second = scenario_tree.resolve_lazy(ref)

        assert first == second
        assert first[0] is not second[0]
        assert scenario_tree.fetch_count == 1

    def test_empty_fragment_is_unresolved(self) -> None:
        tree = TreeStore([], MappingFragmentSource({"empty": []}))
        with pytest.raises(UnresolvedSourceError, match="empty"):
            tree.resolve_lazy(LazyRef(source_key="empty"))

    def test_no_source_is_unresolved(self) -> None:
        tree = TreeStore([])
        with pytest.raises(UnresolvedSourceError):
            tree.resolve_lazy(LazyRef(source_key="y"))

    def test_malformed_fragment_is_unresolved(self) -> None:
        tree = TreeStore([], MappingFragmentSource({"bad": [("only-two", "fields")]}))
        with pytest.raises(UnresolvedSourceError):
            tree.resolve_lazy(LazyRef(source_key="bad"))

    def test_failed_resolution_is_retried(self) -> None:
        fragments: dict = {}
        tree = TreeStore([], MappingFragmentSource(fragments))
        with pytest.raises(UnresolvedSourceError):
            tree.resolve_lazy(LazyRef(source_key="late"))

        fragments["late"] = [("Late", "late.html", None)]
        tree.source = MappingFragmentSource(fragments)

        assert tree.resolve_lazy(LazyRef(source_key="late"))[0].label == "Late"


class TestAsyncResolution:
    """Tests for the async API and in-flight de-duplication."""

    @pytest.mark.asyncio
    async def test_concurrent_expands_fetch_once(self) -> None:
        source = GatedSource({"y": [("C", "z", None)]})
        tree = TreeStore([Node(label="A", locator="x"), _lazy("B", "y")], source)

        first = asyncio.create_task(tree.aexpand((1, 0)))
        second = asyncio.create_task(tree.aexpand((1, 0)))
        await asyncio.sleep(0)
        source.release.set()
        results = await asyncio.gather(first, second)

        assert source.calls == ["y"]
        assert [nodes[-1].locator for nodes in results] == ["z", "z"]
        assert len(tree.roots[1].children) == 1

    @pytest.mark.asyncio
    async def test_cancelled_navigation_leaves_placeholder(self) -> None:
        source = GatedSource({"y": [("C", "z", None)]})
        tree = TreeStore([_lazy("B", "y")], source)

        pending = asyncio.create_task(tree.aexpand((0, 0)))
        await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert isinstance(tree.roots[0].children[0], LazyRef)

        source.release.set()
        nodes = await tree.aexpand((0, 0))

        assert nodes[-1].label == "C"
        assert source.calls == ["y"]

    @pytest.mark.asyncio
    async def test_failed_fetch_after_cancellation_is_retrieved(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A fetch that fails after its only waiter left is still consumed."""
        source = FailingGatedSource({})
        tree = TreeStore([_lazy("B", "gone")], source)
        unhandled: list[dict] = []
        asyncio.get_running_loop().set_exception_handler(lambda _loop, ctx: unhandled.append(ctx))

        pending = asyncio.create_task(tree.aexpand((0, 0)))
        await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        with caplog.at_level("DEBUG", logger="navsync.tree_store"):
            source.release.set()
            for _ in range(5):
                await asyncio.sleep(0)
        gc.collect()

        assert "Fetch of fragment gone failed" in caplog.text
        assert unhandled == []
        assert tree._inflight == {}

    @pytest.mark.asyncio
    async def test_blocking_source_runs_in_thread(self) -> None:
        source = BlockingOnlySource({"y": [("C", "z", None)]})
        tree = TreeStore([Node(label="A", locator="x"), _lazy("B", "y")], source)

        assert await tree.afind_path("z") == (1, 0)
        assert source.calls == ["y"]

    @pytest.mark.asyncio
    async def test_async_missing_fragment_raises(self) -> None:
        tree = TreeStore([_lazy("B", "gone")], MappingFragmentSource({}))

        with pytest.raises(UnresolvedSourceError):
            await tree.aexpand((0, 0))

        assert isinstance(tree.roots[0].children[0], LazyRef)


class TestInspection:
    """Tests for outline, walking and integrity helpers."""

    def test_render_outline_marks_placeholders(self, scenario_tree: TreeStore) -> None:
        assert scenario_tree.render_outline() == "A -> x\nB\n    ..."

    def test_materialize_all_resolves_nested_fragments(self) -> None:
        source = MappingFragmentSource(
            {"outer": [("Inner", None, "inner")], "inner": [("Leaf", "leaf.html", None)]}
        )
        tree = TreeStore([_lazy("Root", "outer")], source)

        tree.materialize_all()

        assert [path for path, _ in tree.iter_nodes()] == [(0,), (0, 0), (0, 0, 0)]
        assert tree.fetch_count == 2

    def test_duplicate_locators(self) -> None:
        roots = nodes_from_raw(
            [
                ("Files", "files.html", [("File List", "files.html", None)]),
                ("Globals", "globals.html", None),
            ]
        )
        tree = TreeStore(roots)

        assert tree.duplicate_locators() == {"files.html": [(0,), (0, 0)]}
