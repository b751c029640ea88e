"""Custom exceptions for navsync."""


class NavsyncError(Exception):
    """Base exception for navsync operations."""


class LocatorNotFoundError(NavsyncError, KeyError):
    """Locator is absent from the index or the tree."""

    def __init__(self, locator: str, message: str | None = None) -> None:
        self.locator = locator
        super().__init__(message or f"Locator not found: {locator}")

    def __str__(self) -> str:
        return str(self.args[0])


class UnresolvedSourceError(NavsyncError):
    """A lazy fragment could not be materialized."""

    def __init__(self, source_key: str, message: str | None = None) -> None:
        self.source_key = source_key
        super().__init__(message or f"Fragment could not be resolved: {source_key}")


class DuplicateLocatorError(NavsyncError):
    """Two index entries share a locator."""

    def __init__(self, locator: str, first: int, second: int) -> None:
        self.locator = locator
        self.positions = (first, second)
        super().__init__(
            f"Duplicate locator {locator!r} at positions {first} and {second}"
        )


class ParseError(NavsyncError):
    """Error while parsing generated navigation data."""


class FetchError(NavsyncError):
    """Error during fragment fetching."""
