"""Locator parsing and lookup fallbacks."""

from __future__ import annotations

import re

_ANCHOR_STRIP_RE = re.compile(r"[^\w\-]")
_LINE_ANCHOR_RE = re.compile(r"^l\d+$")


def split_locator(locator: str) -> tuple[str, str | None]:
    """Split ``page#anchor`` into its page and anchor parts."""
    page, sep, anchor = locator.partition("#")
    return page, (anchor if sep else None)


def normalize_locator(locator: str) -> str:
    """Strip unsafe characters from the anchor part of a locator.

    Source line anchors (``#l42``) address a line inside a listing, not a
    navigation entry, so they collapse to the bare page.
    """
    page, anchor = split_locator(locator.strip())
    if anchor is None:
        return page
    anchor = _ANCHOR_STRIP_RE.sub("", anchor)
    if not anchor or _LINE_ANCHOR_RE.match(anchor):
        return page
    return f"{page}#{anchor}"


def locator_candidates(locator: str, *, fallback_to_page: bool = True) -> list[str]:
    """Return the locators to try, most specific first, without repeats."""
    candidates = [locator, normalize_locator(locator)]
    if fallback_to_page:
        candidates.append(split_locator(locator)[0])
    seen: set[str] = set()
    result: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.add(candidate)
            result.append(candidate)
    return result
