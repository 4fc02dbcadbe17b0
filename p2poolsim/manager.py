"""Builds a random P2Pool network, runs it and reports what each node saw."""

from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import TextIO

from .node import P2PoolNode
from .simulator import NormalVariable, Simulator

logger = logging.getLogger(__name__)

CONNECT_DELAY = 5.0


def share_gen_parameters(node_id: int, mean: float, variance: float) -> tuple[float, float, float]:
    """Scale the share interval model by a node's hash power.

    Returns ``(mean, variance, hash_power_factor)``; the factor lies in
    ``[0.5, 1.49]`` and is fixed by the node id.
    """
    hash_power_factor = 0.5 + ((node_id * 7919) % 100) / 100.0
    return mean / hash_power_factor, variance / hash_power_factor, hash_power_factor


class P2PManager:
    """Owns the simulated network: its nodes, their links and the clock.

    ``latency`` values passed in are milliseconds; times are seconds.
    """

    def __init__(
        self,
        num_nodes: int,
        share_gen_mean: float,
        share_gen_variance: float,
        max_tips_to_reference: int,
        simulation_duration: float,
        max_timestamp: float,
        *,
        rng: random.Random | None = None,
        output_dir: str | Path | None = None,
    ) -> None:
        if num_nodes < 1:
            raise ValueError(f"need at least one node, got {num_nodes}")
        self.num_nodes = num_nodes
        self.share_gen_mean = share_gen_mean
        self.share_gen_variance = share_gen_variance
        self.max_tips_to_reference = max_tips_to_reference
        self.simulation_duration = simulation_duration
        self.max_timestamp = max_timestamp
        self.output_dir = output_dir
        self.rng = rng if rng is not None else random.Random()
        self.simulator = Simulator()
        self.nodes: list[P2PoolNode] = []
        self.connections: dict[tuple[int, int], float] = {}

    def _connect_nodes(self, i: int, j: int, latency_ms: float) -> None:
        self.connections[(i, j)] = latency_ms / 1000.0

    def _create_share_gen_model(self, node_id: int) -> NormalVariable:
        mean, variance, factor = share_gen_parameters(
            node_id, self.share_gen_mean, self.share_gen_variance
        )
        logger.info(
            "Created share generation model for node %s with mean=%g, variance=%g "
            "(hash power factor: %g)",
            node_id, mean, variance, factor,
        )
        return NormalVariable(mean, variance, random.Random(self.rng.getrandbits(64)))

    def create_random_topology(
        self, connection_probability: float = 0.3, latency: float = 5.0
    ) -> None:
        """Link node pairs at random, create the nodes and plan the start.

        Every node gets at least one link: a node that drew none is linked
        to its predecessor, or node 0 to node 1. Peer connections open and
        mining begins five seconds later.
        """
        if self.num_nodes < 2:
            raise ValueError("a topology needs at least two nodes")
        for i in range(self.num_nodes):
            connected = False
            for j in range(i + 1, self.num_nodes):
                if self.rng.random() < connection_probability:
                    connected = True
                    self._connect_nodes(i, j, latency)
            if not connected:
                if i == 0:
                    self._connect_nodes(0, 1, latency)
                else:
                    self._connect_nodes(i, i - 1, latency)

        for node_id in range(self.num_nodes):
            node = P2PoolNode(
                node_id,
                self.simulator,
                self._create_share_gen_model(node_id),
                self.max_tips_to_reference,
                self.max_timestamp,
                self.output_dir,
            )
            self.simulator.schedule(0.0, node.start)
            self.simulator.schedule(self.simulation_duration + 1.0, node.stop)
            self.nodes.append(node)

        self.simulator.schedule(CONNECT_DELAY, self._make_connections)
        logger.info("Network configured with %g latency", latency)

    def _make_connections(self) -> None:
        for (i, j), latency in sorted(self.connections.items()):
            logger.info("connection %s %s", i, j)
            self.nodes[i].add_peer(j, self.nodes[j], latency)
        for node in self.nodes:
            node.schedule_next_share_generation()

    def run(self) -> None:
        """Run the simulation for its configured duration."""
        logger.info("Starting simulation for %g seconds", self.simulation_duration)
        self.simulator.stop(self.simulation_duration)
        self.simulator.run()
        logger.info("Simulation completed")

    def _require_nodes(self) -> None:
        if not self.nodes:
            raise RuntimeError("no nodes: create a topology first")

    def results(self) -> dict[int, int]:
        """Orphan count of each node, by node id."""
        self._require_nodes()
        return {node.node_id: node.orphan_count() for node in self.nodes}

    @property
    def average_orphans(self) -> float:
        """Mean orphan count over all nodes."""
        orphans = self.results()
        return sum(orphans.values()) / self.num_nodes

    def print_results(self, out: TextIO | None = None) -> None:
        """Write every node's statistics and the average orphan count."""
        self._require_nodes()
        out = out if out is not None else sys.stdout
        out.write("=== P2Pool Simulation Results ===\n")
        for node in self.nodes:
            out.write(node.chain_stats())
        out.write(f"Average orphans per node: {self.average_orphans:g}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulate a P2Pool share network.")
    parser.add_argument("--nodes", type=int, default=50)
    parser.add_argument("--mean", type=float, default=1.0)
    parser.add_argument("--variance", type=float, default=5.0)
    parser.add_argument("--max-tips", type=int, default=10000)
    parser.add_argument("--duration", type=int, default=500)
    parser.add_argument("--latency", type=float, default=50.0, help="link latency in ms")
    parser.add_argument("--probability", type=float, default=0.3)
    parser.add_argument("--output-dir", default="output")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run a simulation from the command line and print its results."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())

    max_timestamp = float(args.duration // 10)
    print("=== P2Pool Simulation Parameters ===")
    print(f"Number of nodes: {args.nodes}")
    print(f"Mean share generation time: {args.mean:g} seconds")
    print(f"Share generation variance: {args.variance:g}")
    print(f"Max tips to reference: {args.max_tips}")
    print(f"Simulation duration: {args.duration} seconds")
    print("===================================")
    print(f"Adjusted simulation duration: {args.duration} seconds")

    manager = P2PManager(
        args.nodes,
        args.mean,
        args.variance,
        args.max_tips,
        args.duration,
        max_timestamp,
        rng=random.Random(args.seed),
        output_dir=args.output_dir,
    )
    manager.create_random_topology(args.probability, args.latency)

    print("Starting simulation...")
    manager.run()
    manager.print_results()
    return 0


if __name__ == "__main__":
    sys.exit(main())