"""Local configuration for navsync."""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_CACHE_DIR = ".navsync_cache"
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_FETCH_TIMEOUT_S = 10.0
DEFAULT_FETCH_MAX_RETRIES = 2
DEFAULT_FETCH_BACKOFF_S = 0.5
DEFAULT_USER_AGENT = "navsync/0.1"
DEFAULT_SYNC_ON_MESSAGE = "click to disable panel synchronisation"
DEFAULT_SYNC_OFF_MESSAGE = "click to enable panel synchronisation"

# File names written by the documentation generator.
NAVTREE_DATA_FILE = "navtreedata.js"
NAVTREE_INDEX_PREFIX = "navtreeindex"

# Local-only cache directory for fragments fetched over HTTP.
NAVSYNC_CACHE_PATH = Path(os.getenv("NAVSYNC_CACHE_PATH", DEFAULT_CACHE_DIR)).expanduser().resolve()
NAVSYNC_CACHE_TTL_SECONDS = int(os.getenv("NAVSYNC_CACHE_TTL_SECONDS", str(DEFAULT_CACHE_TTL_SECONDS)))
NAVSYNC_FETCH_TIMEOUT_S = float(os.getenv("NAVSYNC_FETCH_TIMEOUT_S", str(DEFAULT_FETCH_TIMEOUT_S)))
NAVSYNC_FETCH_MAX_RETRIES = int(os.getenv("NAVSYNC_FETCH_MAX_RETRIES", str(DEFAULT_FETCH_MAX_RETRIES)))
NAVSYNC_FETCH_BACKOFF_S = float(os.getenv("NAVSYNC_FETCH_BACKOFF_S", str(DEFAULT_FETCH_BACKOFF_S)))
NAVSYNC_USER_AGENT = os.getenv("NAVSYNC_USER_AGENT", DEFAULT_USER_AGENT)
