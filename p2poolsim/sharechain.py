"""The local view of the share DAG that each node keeps."""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping

from .share import Share

GENESIS_ID = 1


class ShareChain:
    """A DAG of shares rooted at a genesis share.

    Shares whose references are not yet known are held back and added as
    soon as all their references arrive. Shares stamped later than
    ``max_timestamp`` are refused.
    """

    def __init__(self, max_timestamp: float) -> None:
        self.max_timestamp = max_timestamp
        self.genesis = Share(GENESIS_ID, 0, 0.0, [], 0)
        self._shares: dict[int, Share] = {GENESIS_ID: self.genesis}
        self._edges: dict[int, list[int]] = {GENESIS_ID: []}
        self._tips: dict[int, int] = {GENESIS_ID: 1}
        self._pending: dict[int, Share] = {}
        self.total_shares = 1

    @property
    def shares(self) -> Mapping[int, Share]:
        """All shares in the chain, by id."""
        return dict(self._shares)

    @property
    def pending(self) -> Mapping[int, Share]:
        """Shares waiting for missing references, by id."""
        return dict(self._pending)

    def add_share(self, share: Share | None) -> bool:
        """Add a share; return whether it entered the chain now."""
        if not self._insert(share):
            return False
        self._process_pending()
        return True

    def _insert(self, share: Share | None) -> bool:
        if share is None:
            return False
        if share.timestamp > self.max_timestamp:
            return False
        if share.share_id in self._shares:
            return False
        if not all(ref in self._shares for ref in share.prev_refs):
            self._pending[share.share_id] = share
            return False

        self.total_shares += 1
        self._shares[share.share_id] = share
        self._edges[share.share_id] = [
            ref for ref in share.prev_refs if ref in self._shares
        ]
        self._update_tips(share)
        return True

    def _process_pending(self) -> None:
        progress = True
        while progress:
            progress = False
            for share_id, share in list(self._pending.items()):
                if share_id not in self._pending:
                    continue
                if share_id in self._shares:
                    del self._pending[share_id]
                    continue
                if self._insert(share):
                    del self._pending[share_id]
                    progress = True

    def _subtree_weight(self, share_id: int) -> int:
        visited = {share_id}
        queue = deque([share_id])
        while queue:
            current = queue.popleft()
            for target in self._edges.get(current, ()):
                if target not in visited:
                    visited.add(target)
                    queue.append(target)
        return len(visited)

    def _update_tips(self, share: Share) -> None:
        weight = self._subtree_weight(share.share_id)
        for ref in share.prev_refs:
            self._tips.pop(ref, None)
        self._tips[share.share_id] = weight

    def chain_tips(self) -> dict[int, int]:
        """Current tips mapped to the weight of the subtree under each."""
        return dict(self._tips)

    def best_tip(self) -> int:
        """The tip with the heaviest subtree; the first one wins ties."""
        max_weight = 0
        chosen = 0
        for tip, weight in self._tips.items():
            if weight > max_weight:
                max_weight = weight
                chosen = tip
        return chosen

    def _walk_main_chain(self):
        share = self._shares.get(self.best_tip(), self.genesis)
        while share.share_id != GENESIS_ID:
            yield share
            share = self._shares.get(share.parent_id, self.genesis)

    def main_chain(self) -> list[int]:
        """Share ids from the best tip back to genesis, inclusive."""
        return [share.share_id for share in self._walk_main_chain()] + [GENESIS_ID]

    def main_chain_length(self) -> int:
        """Number of shares on the main chain, genesis included."""
        return sum(1 for _ in self._walk_main_chain()) + 1

    def uncle_blocks(self) -> int:
        """Shares referenced by the main chain besides its own parents."""
        return sum(len(share.prev_refs) - 1 for share in self._walk_main_chain())

    def orphan_count(self) -> int:
        """Shares that are neither on the main chain nor uncles."""
        return self.total_shares - self.uncle_blocks() - self.main_chain_length()