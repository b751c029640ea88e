"""Synchronization models."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from navsync.schemas.tree import Node

ChildIndex = Annotated[int, Field(ge=0)]


class SyncEntry(BaseModel):
    """Maps a locator to the child-index path that reveals it.

    The path starts at the tree's root sequence and is only valid once every
    placeholder along it has been materialized.
    """

    model_config = ConfigDict(frozen=True)

    locator: str = Field(..., min_length=1)
    path: tuple[ChildIndex, ...] = Field(..., min_length=1)


class SyncResult(BaseModel):
    """Outcome of synchronizing the tree panel with a content locator.

    Attributes:
        query: Locator the viewer asked for.
        locator: Locator that actually matched an index entry. Differs from
            ``query`` when the lookup fell back to the bare page.
        path: Child-index path from the root sequence to the target.
        nodes: Materialized nodes from the root to the target, inclusive.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    locator: str
    path: tuple[int, ...]
    nodes: tuple[Node, ...]

    @property
    def target(self) -> Node:
        return self.nodes[-1]
