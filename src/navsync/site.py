"""Load a generated documentation site's navigation data."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import httpx

from navsync.parser import parse_navtree_data
from navsync.sources import DirectoryFragmentSource, HttpFragmentSource
from navsync.sync_index import ChunkedSyncIndex
from navsync.tree_store import TreeStore
from navsync.viewer import NavigationSession


@dataclass
class DocSite:
    """Tree store and sync index for one documentation site."""

    tree: TreeStore
    index: ChunkedSyncIndex
    sync_on_message: str
    sync_off_message: str

    def session(self) -> NavigationSession:
        return NavigationSession(
            tree=self.tree,
            index=self.index,
            sync_on_message=self.sync_on_message,
            sync_off_message=self.sync_off_message,
        )


def load_site(html_dir: Path) -> DocSite:
    """Load navigation data from a generated HTML directory.

    Raises:
        UnresolvedSourceError: If the navigation data file is missing.
        ParseError: If the navigation data is malformed.
    """
    source = DirectoryFragmentSource(Path(html_dir))
    data = parse_navtree_data(source.read_navtree())
    return DocSite(
        tree=TreeStore(data.roots, source),
        index=ChunkedSyncIndex(data.index_heads, source),
        sync_on_message=data.sync_on_message,
        sync_off_message=data.sync_off_message,
    )


async def load_remote_site(
    base_url: str,
    *,
    client: httpx.AsyncClient | None = None,
    use_cache: bool = True,
) -> DocSite:
    """Load navigation data served over HTTP.

    Fragments and index chunks are fetched on demand through the same
    source; use the async API of the returned tree and index.
    """
    source = HttpFragmentSource(base_url, client=client, use_cache=use_cache)
    data = parse_navtree_data(await source.fetch_navtree())
    return DocSite(
        tree=TreeStore(data.roots, source),
        index=ChunkedSyncIndex(data.index_heads, source),
        sync_on_message=data.sync_on_message,
        sync_off_message=data.sync_off_message,
    )
