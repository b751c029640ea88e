"""Cache utilities for fragments fetched over HTTP."""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlsplit

_UNSAFE_RE = re.compile(r"[^\w.\-]+")


def is_cache_fresh(path: Path, ttl_seconds: int) -> bool:
    """Check if a cached file is still fresh based on its modification time.

    Args:
        path: Path to the cached file.
        ttl_seconds: Time-to-live in seconds. If <= 0, cache is considered
            fresh indefinitely (cache forever mode).

    Returns:
        True if the cache is fresh and usable, False otherwise.
    """
    if not path.exists():
        return False
    if ttl_seconds <= 0:
        return True
    mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    age_seconds = (datetime.now(timezone.utc) - mtime).total_seconds()
    return age_seconds <= ttl_seconds


def cache_dir_for(base_url: str, base_path: Path) -> Path:
    """Get the cache directory for a documentation site.

    Host and path of the site URL are folded into a single safe directory
    name, so two sites on the same host do not share cached fragments.

    Args:
        base_url: Root URL of the generated documentation.
        base_path: The base cache directory path.

    Returns:
        Path to the cache directory for this site.
    """
    parts = urlsplit(base_url)
    key = f"{parts.netloc}{parts.path}".strip("/") or "local"
    return base_path / _UNSAFE_RE.sub("_", key)


async def read_text_async(path: Path, encoding: str = "utf-8") -> str:
    """Read text from a file asynchronously using a thread pool."""
    return await asyncio.to_thread(path.read_text, encoding=encoding)


async def write_text_async(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write text to a file asynchronously using a thread pool."""
    await asyncio.to_thread(path.write_text, content, encoding=encoding)


async def mkdir_async(
    path: Path, parents: bool = False, exist_ok: bool = False
) -> None:
    """Create a directory asynchronously using a thread pool."""
    await asyncio.to_thread(path.mkdir, parents=parents, exist_ok=exist_ok)
