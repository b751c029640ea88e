"""Navigation tree models."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator


class LazyRef(BaseModel):
    """Placeholder for a subtree stored in an external fragment."""

    kind: Literal["lazy"] = "lazy"
    source_key: str = Field(..., min_length=1)


class Node(BaseModel):
    """A labelled navigation entry.

    Attributes:
        label: Display string shown in the navigation panel.
        locator: Page or page#anchor the entry points at, or None for
            purely structural entries.
        children: Child nodes and unresolved placeholders, in display order.
    """

    kind: Literal["node"] = "node"
    label: str
    locator: str | None = None
    children: list["ChildEntry"] = Field(default_factory=list)

    @model_validator(mode="after")
    def require_target_or_children(self) -> "Node":
        if not self.children and not self.locator:
            raise ValueError(f"Node {self.label!r} has neither a locator nor children")
        return self

    @property
    def is_resolved(self) -> bool:
        """True when no direct child is still a placeholder."""
        return not any(isinstance(child, LazyRef) for child in self.children)


ChildEntry = Annotated[Union[Node, LazyRef], Field(discriminator="kind")]

Node.model_rebuild()
