"""Inspect generated navigation data from the command line."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from navsync.exceptions import NavsyncError
from navsync.site import load_site
from navsync.sync_index import synchronize


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect a generated documentation navigation tree.")
    parser.add_argument("html_dir", type=Path, help="Directory holding navtreedata.js")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    outline = subparsers.add_parser("outline", help="Print the navigation outline")
    outline.add_argument("--expand", action="store_true", help="Resolve every lazy fragment first")

    find = subparsers.add_parser("find", help="Search the tree for a locator")
    find.add_argument("locator")

    sync = subparsers.add_parser("sync", help="Look up a locator in the index and expand it")
    sync.add_argument("locator")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        site = load_site(args.html_dir)
        if args.command == "outline":
            if args.expand:
                site.tree.materialize_all()
            print(site.tree.render_outline())
        elif args.command == "find":
            path = site.tree.find_path(args.locator)
            print(_format_path(path))
        else:
            result = synchronize(site.tree, site.index, args.locator)
            print(_format_path(result.path))
            for depth, node in enumerate(result.nodes):
                print(" " * (depth * 4) + node.label)
    except NavsyncError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


def _format_path(path: tuple[int, ...]) -> str:
    return "/".join(str(index) for index in path)


if __name__ == "__main__":
    raise SystemExit(main())
