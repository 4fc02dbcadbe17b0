"""A single share in the P2Pool share DAG."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(eq=True)
class Share:
    """A share mined by a node, referencing earlier shares.

    ``prev_refs`` lists the shares this one builds on. ``parent_id`` is the
    reference that places it on the main chain. ``timestamp`` is in seconds.
    """

    share_id: int
    sender_id: int
    timestamp: float
    prev_refs: list[int] = field(default_factory=list)
    parent_id: int = 0

    def __post_init__(self) -> None:
        self.prev_refs = list(self.prev_refs)

    def add_prev_ref(self, share_id: int) -> None:
        """Append a reference to an earlier share."""
        self.prev_refs.append(share_id)

    def __lt__(self, other: Share) -> bool:
        if not isinstance(other, Share):
            return NotImplemented
        return self.timestamp < other.timestamp