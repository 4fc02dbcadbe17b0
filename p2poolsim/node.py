"""A P2Pool node: mines shares, keeps a share chain and gossips with peers."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from .share import Share
from .sharechain import ShareChain
from .simulator import Event, NormalVariable, Simulator

logger = logging.getLogger(__name__)

REGISTER_PREFIX = "REGISTER:"
MIN_SHARE_INTERVAL = 0.1

_UINT32_MASK = 0xFFFFFFFF
_UINT64_MASK = 0xFFFFFFFFFFFFFFFF
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _leading_int(text: str) -> int:
    """Parse the integer at the start of ``text``, ignoring what follows it."""
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(f"no integer at the start of {text!r}")
    return int(match.group(1))


def _uint32(text: str) -> int:
    return _leading_int(text) & _UINT32_MASK


def serialize_share(share: Share | None) -> str:
    """Encode a share as ``id|sender|seconds|parent|count|ref,ref,...``."""
    if share is None:
        return ""
    refs = ",".join(str(ref) for ref in share.prev_refs)
    return (
        f"{share.share_id}|{share.sender_id}|{share.timestamp:g}|"
        f"{share.parent_id}|{len(share.prev_refs)}|{refs}"
    )


def deserialize_share(data: str) -> Share | None:
    """Decode a share; return None when the data is malformed.

    The timestamp is read as whole seconds, so any fraction is dropped.
    """
    tokens = data.split("|")
    if tokens and tokens[-1] == "":
        tokens.pop()
    if len(tokens) < 5:
        return None
    try:
        share_id = _uint32(tokens[0])
        sender_id = _uint32(tokens[1])
        timestamp = float(_leading_int(tokens[2]))
        parent_id = _uint32(tokens[3])
        num_refs = _uint32(tokens[4])
        prev_refs: list[int] = []
        if len(tokens) > 5 and num_refs > 0:
            prev_refs = [_uint32(ref) for ref in tokens[5].split(",") if ref]
    except ValueError:
        return None
    return Share(share_id, sender_id, timestamp, prev_refs, parent_id)


def generate_share_id(node_id: int, shares_created: int, time_step: int) -> int:
    """Derive a 32-bit share id from the node, its share count and the time."""
    seed = (
        ((node_id << 48) & _UINT64_MASK)
        | ((shares_created << 32) & _UINT64_MASK)
        | (time_step & _UINT32_MASK)
    )
    return seed & _UINT32_MASK


class P2PoolNode:
    """A node that mines shares and relays shares received from its peers.

    Shares are written, one line each, to ``node_<id>_shares.csv`` inside
    ``output_dir`` when one is given.
    """

    def __init__(
        self,
        node_id: int,
        simulator: Simulator,
        share_gen_model: NormalVariable,
        max_tips_to_reference: int,
        max_share_time: float,
        output_dir: str | Path | None = None,
    ) -> None:
        self.node_id = node_id
        self.simulator = simulator
        self.share_gen_model = share_gen_model
        self.max_tips_to_reference = max_tips_to_reference
        self.max_share_time = max_share_time
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.share_chain = ShareChain(max_share_time)
        self.running = False
        self.shares_created = 0
        self.shares_received = 0
        self.shares_sent = 0
        self._peers: dict[int, tuple[P2PoolNode, float]] = {}
        self._links: dict[int, tuple[P2PoolNode, float]] = {}
        self._seen: set[int] = set()
        self._next_share: Event | None = None

    @property
    def peer_ids(self) -> set[int]:
        """Ids of the peers that shares are broadcast to."""
        return set(self._peers)

    def add_peer(self, peer_id: int, peer: P2PoolNode, latency: float) -> None:
        """Connect to ``peer`` and announce this node to it.

        The peer learns of this node once the registration message arrives
        after ``latency`` seconds.
        """
        self._peers[peer_id] = (peer, latency)
        logger.info("Node %s added connection to peer %s", self.node_id, peer_id)
        peer._links[self.node_id] = (self, latency)
        self._send(peer, latency, f"{REGISTER_PREFIX}{self.node_id}")

    def start(self) -> None:
        """Mark the node as running."""
        self.running = True

    def stop(self) -> None:
        """Stop mining and drop all peer connections."""
        self.running = False
        self.stop_share_generation()
        self._peers.clear()
        self._links.clear()

    def stop_share_generation(self) -> None:
        """Cancel the pending share generation, if any."""
        if self._next_share is not None and self._next_share.is_running:
            self._next_share.cancel()

    def schedule_next_share_generation(self) -> None:
        """Schedule the next share after a randomly drawn interval."""
        delay = max(MIN_SHARE_INTERVAL, self.share_gen_model.sample())
        self._next_share = self.simulator.schedule(delay, self.generate_and_broadcast_share)

    def generate_and_broadcast_share(self) -> Share:
        """Mine a share on the heaviest tips, broadcast it and schedule the next."""
        sorted_tips = sorted(
            self.share_chain.chain_tips().items(), key=lambda item: item[1], reverse=True
        )
        tip_shares = [tip for tip, _ in sorted_tips[: self.max_tips_to_reference]]
        heaviest = sorted_tips[0][0]
        now = self.simulator.now
        share_id = generate_share_id(self.node_id, self.shares_created, self.simulator.time_step)

        self._record(share_id, now, len(tip_shares), heaviest)

        share = Share(share_id, self.node_id, now, tip_shares, heaviest)
        self.share_chain.add_share(share)
        self.shares_created += 1
        self._broadcast(share)
        self.schedule_next_share_generation()
        return share

    def _record(self, share_id: int, now: float, tip_count: int, heaviest: int) -> None:
        if self.output_dir is None:
            return
        path = self.output_dir / f"node_{self.node_id}_shares.csv"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as out:
                out.write(f"{share_id},{now:g},{tip_count}, {heaviest}\n")
        except OSError as error:
            logger.error("Node %s failed to open file %s: %s", self.node_id, path, error)

    def _send(self, peer: P2PoolNode, latency: float, data: str) -> None:
        self.simulator.schedule(latency, peer.receive, data)

    def _broadcast(self, share: Share) -> None:
        self.shares_sent += 1
        data = serialize_share(share)
        for peer, latency in list(self._peers.values()):
            self._send(peer, latency, data)

    def receive(self, data: str) -> None:
        """Handle a message from a peer: a registration or a share."""
        message = data.rstrip("\x00")
        if message.startswith(REGISTER_PREFIX):
            try:
                peer_id = _uint32(message[len(REGISTER_PREFIX):])
            except ValueError:
                logger.warning("Node %s got a malformed registration %r", self.node_id, message)
                return
            logger.info("Node %s received registration from peer %s", self.node_id, peer_id)
            link = self._links.get(peer_id)
            if link is not None:
                self._peers[peer_id] = link
            return

        share = deserialize_share(message)
        if share is None:
            logger.warning("Node %s dropped a malformed share %r", self.node_id, message)
            return
        if share.share_id in self._seen:
            logger.info("Node %s already processed share %s", self.node_id, share.share_id)
            return
        self.share_chain.add_share(share)
        self._broadcast(share)
        self._seen.add(share.share_id)
        self.shares_received += 1

    def orphan_count(self) -> int:
        """Shares in the local chain that are neither main chain nor uncles."""
        return self.share_chain.orphan_count()

    def chain_stats(self) -> str:
        """A report of this node's counters and its main chain."""
        chain = self.share_chain
        lines = [
            f"Node {self.node_id} statistics:",
            f"  - Shares created: {self.shares_created}",
            f"  - Shares received: {self.shares_received}",
            f"  - Shares sent: {self.shares_sent}",
            f"  - Orphan count: {chain.orphan_count()}",
            f"  - Total shares: {chain.total_shares}",
            f"  - Uncle blocks: {chain.uncle_blocks()}",
            f"  - Main chain length: {chain.main_chain_length()}",
            " ".join(str(share_id) for share_id in chain.main_chain()),
        ]
        return "\n".join(lines) + "\n"