"""Test setup for navsync."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from navsync.schemas import LazyRef, Node  # noqa: E402
from navsync.sources import MappingFragmentSource  # noqa: E402
from navsync.tree_store import TreeStore  # noqa: E402


NAVTREEDATA_JS = """/*
 @licstart  The following is the entire license notice for the JavaScript code in this file.
 @licend  The above is the entire license notice for the JavaScript code in this file
*/
var NAVTREE =
[
  [ "Demo Project", "index.html", [
    [ "Namespaces", "namespaces.html", [
      [ "Namespace List", "namespaces.html", "namespaces_dup" ]
    ] ],
    [ "Files", "files.html", [
      [ "File List", "files.html", "files_dup" ],
      [ "Globals", "globals.html", null ]
    ] ]
  ] ]
];

var NAVTREEINDEX =
[
"files.html",
"namespacedemo.html"
];

var SYNCONMSG = 'click to disable panel synchronisation';
var SYNCOFFMSG = 'click to enable panel synchronisation';
"""

NAMESPACES_DUP_JS = """var namespaces_dup =
[
    [ "demo", "namespacedemo.html", "namespacedemo" ]
];
"""

NAMESPACEDEMO_JS = """var namespacedemo =
[
    [ "run", "namespacedemo.html#a1f2e", null ],
    [ "stop", "namespacedemo.html#b3c4d", null ]
];
"""

FILES_DUP_JS = """var files_dup =
[
    [ "main.cpp", "main_8cpp.html", null ]
];
"""

NAVTREEINDEX0_JS = """var NAVTREEINDEX0 =
{
"files.html":[1],
"globals.html":[1,1],
"index.html":[],
"main_8cpp.html":[1,0,0]
};
"""

NAVTREEINDEX1_JS = """var NAVTREEINDEX1 =
{
"namespacedemo.html":[0,0,0],
"namespacedemo.html#a1f2e":[0,0,0,0],
"namespacedemo.html#b3c4d":[0,0,0,1],
"namespaces.html":[0]
};
"""


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for pytest."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (make real network calls)",
    )


@pytest.fixture
def html_dir(tmp_path: Path) -> Path:
    """A generated documentation directory with navigation data files."""
    files = {
        "navtreedata.js": NAVTREEDATA_JS,
        "namespaces_dup.js": NAMESPACES_DUP_JS,
        "namespacedemo.js": NAMESPACEDEMO_JS,
        "files_dup.js": FILES_DUP_JS,
        "navtreeindex0.js": NAVTREEINDEX0_JS,
        "navtreeindex1.js": NAVTREEINDEX1_JS,
    }
    for name, content in files.items():
        (tmp_path / name).write_text(content, encoding="utf-8")
    return tmp_path


@pytest.fixture
def scenario_tree() -> TreeStore:
    """Roots [A(x), B(lazy y)] where fragment y holds C(z)."""
    source = MappingFragmentSource({"y": [("C", "z", None)]})
    roots = [
        Node(label="A", locator="x"),
        Node(label="B", children=[LazyRef(source_key="y")]),
    ]
    return TreeStore(roots, source)
