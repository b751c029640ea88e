"""Parse generated navigation data into tree nodes and index chunks."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from pydantic import ValidationError

from navsync.config import DEFAULT_SYNC_OFF_MESSAGE, DEFAULT_SYNC_ON_MESSAGE
from navsync.exceptions import ParseError
from navsync.schemas import ChildEntry, LazyRef, Node

_TOKEN_RE = re.compile(r"/\*.*?\*/|//[^\n]*|\bvar\s+([A-Za-z_$][\w$]*)\s*=\s*", re.S)
_SINGLE_QUOTED_RE = re.compile(r"'((?:[^'\\]|\\.)*)'")
_DECODER = json.JSONDecoder()

# Paths in generated index chunks are relative to the single top-level node.
ROOT_PATH_PREFIX: tuple[int, ...] = (0,)


@dataclass
class NavtreeData:
    """Content of the top-level navigation data file."""

    roots: list[Node]
    index_heads: list[str]
    sync_on_message: str
    sync_off_message: str


def parse_js_assignments(text: str) -> dict[str, Any]:
    """Extract ``var NAME = value;`` assignments from generated JS data.

    Values must be JSON literals or single-quoted strings. Comments such as
    license banners are skipped.
    """
    values: dict[str, Any] = {}
    pos = 0
    while True:
        match = _TOKEN_RE.search(text, pos)
        if match is None:
            return values
        if match.group(1) is None:
            pos = match.end()
            continue
        name = match.group(1)
        start = match.end()
        if text.startswith("'", start):
            quoted = _SINGLE_QUOTED_RE.match(text, start)
            if quoted is None:
                raise ParseError(f"Unterminated string for {name}")
            values[name] = _unescape_single_quoted(quoted.group(1))
            pos = quoted.end()
            continue
        try:
            values[name], pos = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Invalid value for {name}: {exc}") from exc


def parse_navtree_data(text: str) -> NavtreeData:
    """Parse the top-level navigation data file."""
    values = parse_js_assignments(text)
    if "NAVTREE" not in values:
        raise ParseError("NAVTREE is missing from navigation data")
    heads = values.get("NAVTREEINDEX", [])
    if not isinstance(heads, list) or not all(isinstance(head, str) for head in heads):
        raise ParseError("NAVTREEINDEX must be a list of locators")
    return NavtreeData(
        roots=nodes_from_raw(values["NAVTREE"]),
        index_heads=heads,
        sync_on_message=values.get("SYNCONMSG", DEFAULT_SYNC_ON_MESSAGE),
        sync_off_message=values.get("SYNCOFFMSG", DEFAULT_SYNC_OFF_MESSAGE),
    )


def parse_fragment(text: str, source_key: str) -> list[Node]:
    """Parse a lazily loaded fragment file whose variable is named after its key."""
    values = parse_js_assignments(text)
    if source_key not in values:
        raise ParseError(f"Fragment variable {source_key!r} is missing")
    return nodes_from_raw(values[source_key])


def parse_index_chunk(
    text: str, chunk: int, *, path_prefix: Sequence[int] = ROOT_PATH_PREFIX
) -> list[tuple[str, tuple[int, ...]]]:
    """Parse an index chunk into ``(locator, path)`` pairs in file order."""
    name = f"NAVTREEINDEX{chunk}"
    values = parse_js_assignments(text)
    raw = values.get(name)
    if not isinstance(raw, dict):
        raise ParseError(f"Index chunk variable {name!r} is missing")
    return index_entries_from_raw(raw, path_prefix=path_prefix)


def index_entries_from_raw(
    raw: Mapping[str, Iterable[int]], *, path_prefix: Sequence[int] = ()
) -> list[tuple[str, tuple[int, ...]]]:
    prefix = tuple(path_prefix)
    try:
        return [(locator, prefix + tuple(int(i) for i in path)) for locator, path in raw.items()]
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Invalid index path: {exc}") from exc


def nodes_from_raw(entries: Iterable[Any]) -> list[Node]:
    """Convert ``(label, locator, children | lazy-key | None)`` tuples to nodes.

    A string in the children slot names a fragment to load on demand and
    becomes a single ``LazyRef`` child.
    """
    if not isinstance(entries, (list, tuple)):
        raise ParseError(f"Expected a sequence of entries, got {type(entries).__name__}")
    return [_node_from_raw(entry) for entry in entries]


def _node_from_raw(entry: Any) -> Node:
    if isinstance(entry, Node):
        return entry.model_copy(deep=True)
    if not isinstance(entry, (list, tuple)) or len(entry) != 3:
        raise ParseError(f"Malformed navigation entry: {entry!r}")
    label, locator, tail = entry
    children: list[ChildEntry] = [] if tail is None or isinstance(tail, str) else nodes_from_raw(tail)
    try:
        if isinstance(tail, str):
            children = [LazyRef(source_key=tail)]
        return Node(label=label, locator=locator or None, children=children)
    except ValidationError as exc:
        raise ParseError(f"Invalid navigation entry {label!r}: {exc}") from exc


def _unescape_single_quoted(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)
