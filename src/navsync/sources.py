"""Fragment sources: where lazy subtrees and index chunks come from.

Every source exposes a blocking ``load`` and/or an awaitable ``fetch``
returning parsed nodes for a fragment key, plus the matching
``load_index_chunk`` / ``fetch_index_chunk`` for sync-index chunks.
Missing data raises ``UnresolvedSourceError``; transport and format
problems raise ``FetchError`` or ``ParseError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

import httpx

from navsync.cache_utils import (
    cache_dir_for,
    is_cache_fresh,
    mkdir_async,
    read_text_async,
    write_text_async,
)
from navsync.config import (
    NAVSYNC_CACHE_PATH,
    NAVSYNC_CACHE_TTL_SECONDS,
    NAVTREE_DATA_FILE,
    NAVTREE_INDEX_PREFIX,
)
from navsync.exceptions import FetchError, ParseError, UnresolvedSourceError
from navsync.http_utils import fetch_with_retries
from navsync.parser import (
    ROOT_PATH_PREFIX,
    index_entries_from_raw,
    nodes_from_raw,
    parse_fragment,
    parse_index_chunk,
)
from navsync.schemas import Node

logger = logging.getLogger(__name__)

IndexChunk = list[tuple[str, tuple[int, ...]]]


@runtime_checkable
class FragmentSource(Protocol):
    def load(self, source_key: str) -> list[Node]: ...


@runtime_checkable
class AsyncFragmentSource(Protocol):
    async def fetch(self, source_key: str) -> list[Node]: ...


@runtime_checkable
class IndexChunkSource(Protocol):
    def load_index_chunk(self, chunk: int) -> IndexChunk: ...


@runtime_checkable
class AsyncIndexChunkSource(Protocol):
    async def fetch_index_chunk(self, chunk: int) -> IndexChunk: ...


class MappingFragmentSource:
    """In-memory fragments keyed by source key.

    Fragment values are raw ``(label, locator, children)`` tuples or nodes;
    index chunk values map locators to paths.
    """

    def __init__(
        self,
        fragments: Mapping[str, Sequence[Any]] | None = None,
        index_chunks: Mapping[int, Mapping[str, Sequence[int]]] | None = None,
        *,
        path_prefix: Sequence[int] = (),
    ) -> None:
        self._fragments = dict(fragments or {})
        self._index_chunks = dict(index_chunks or {})
        self._path_prefix = tuple(path_prefix)

    def load(self, source_key: str) -> list[Node]:
        try:
            raw = self._fragments[source_key]
        except KeyError:
            raise UnresolvedSourceError(source_key) from None
        return nodes_from_raw(raw)

    async def fetch(self, source_key: str) -> list[Node]:
        return self.load(source_key)

    def load_index_chunk(self, chunk: int) -> IndexChunk:
        try:
            raw = self._index_chunks[chunk]
        except KeyError:
            raise UnresolvedSourceError(f"{NAVTREE_INDEX_PREFIX}{chunk}") from None
        return index_entries_from_raw(raw, path_prefix=self._path_prefix)

    async def fetch_index_chunk(self, chunk: int) -> IndexChunk:
        return self.load_index_chunk(chunk)


class DirectoryFragmentSource:
    """Fragments stored as ``<key>.js`` files in a generated HTML directory."""

    def __init__(self, root: Path, *, encoding: str = "utf-8") -> None:
        self.root = Path(root)
        self.encoding = encoding

    def read_navtree(self) -> str:
        return self._read(NAVTREE_DATA_FILE, NAVTREE_DATA_FILE)

    def load(self, source_key: str) -> list[Node]:
        text = self._read(f"{source_key}.js", source_key)
        return parse_fragment(text, source_key)

    def load_index_chunk(self, chunk: int) -> IndexChunk:
        key = f"{NAVTREE_INDEX_PREFIX}{chunk}"
        text = self._read(f"{key}.js", key)
        return parse_index_chunk(text, chunk, path_prefix=ROOT_PATH_PREFIX)

    def _read(self, filename: str, source_key: str) -> str:
        path = self.root / filename
        if not path.is_file():
            raise UnresolvedSourceError(source_key, f"Fragment file not found: {path}")
        try:
            return path.read_text(encoding=self.encoding)
        except UnicodeDecodeError as exc:
            raise ParseError(f"{path} is not valid {self.encoding}: {exc}") from exc
        except OSError as exc:
            raise FetchError(f"Could not read {path}: {exc}") from exc


class HttpFragmentSource:
    """Fragments served next to the generated HTML pages.

    Fetched files are cached on disk under ``cache_path`` and reused while
    fresh.

    Args:
        base_url: URL of the directory holding the generated pages.
        client: Optional pooled ``httpx.AsyncClient``.
        use_cache: Whether to read and write the on-disk cache.
        cache_path: Base cache directory. Defaults to ``NAVSYNC_CACHE_PATH``.
        ttl_seconds: Cache time-to-live; <= 0 caches forever.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        use_cache: bool = True,
        cache_path: Path | None = None,
        ttl_seconds: int = NAVSYNC_CACHE_TTL_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.use_cache = use_cache
        self.cache_dir = cache_dir_for(self.base_url, cache_path or NAVSYNC_CACHE_PATH)
        self.ttl_seconds = ttl_seconds

    async def fetch_navtree(self) -> str:
        return await self._fetch_text(NAVTREE_DATA_FILE, NAVTREE_DATA_FILE)

    async def fetch(self, source_key: str) -> list[Node]:
        text = await self._fetch_text(f"{source_key}.js", source_key)
        return parse_fragment(text, source_key)

    async def fetch_index_chunk(self, chunk: int) -> IndexChunk:
        key = f"{NAVTREE_INDEX_PREFIX}{chunk}"
        text = await self._fetch_text(f"{key}.js", key)
        return parse_index_chunk(text, chunk, path_prefix=ROOT_PATH_PREFIX)

    async def _fetch_text(self, filename: str, source_key: str) -> str:
        cached = self.cache_dir / filename
        if self.use_cache and is_cache_fresh(cached, self.ttl_seconds):
            try:
                return await read_text_async(cached)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Ignoring unreadable cache file %s: %s", cached, exc)

        url = f"{self.base_url}/{filename}"
        try:
            text = await fetch_with_retries(
                url,
                client=self.client,
                on_404_message=f"Fragment {source_key!r} not found at {url}",
            )
        except FetchError as exc:
            raise UnresolvedSourceError(source_key, str(exc)) from exc

        if self.use_cache:
            try:
                await mkdir_async(self.cache_dir, parents=True, exist_ok=True)
                await write_text_async(cached, text)
            except OSError as exc:
                logger.warning("Could not cache %s: %s", url, exc)
        return text
