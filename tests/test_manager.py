import io
import random

import pytest

from p2poolsim.manager import P2PManager, main, share_gen_parameters


def _manager(num_nodes=4, duration=20, seed=7, output_dir=None):
    return P2PManager(
        num_nodes, 1.0, 0.5, 10, duration, 15.0,
        rng=random.Random(seed), output_dir=output_dir,
    )


def test_share_gen_parameters_node_zero_has_half_power():
    mean, variance, factor = share_gen_parameters(0, 1.0, 5.0)
    assert factor == 0.5
    assert mean == pytest.approx(2.0)
    assert variance == pytest.approx(10.0)


@pytest.mark.parametrize("node_id", range(0, 60))
def test_share_gen_parameters_scale_consistently(node_id):
    mean, variance, factor = share_gen_parameters(node_id, 3.0, 6.0)
    assert 0.5 <= factor <= 1.49 + 1e-9
    assert mean * factor == pytest.approx(3.0)
    assert variance * factor == pytest.approx(6.0)


def test_zero_nodes_rejected():
    with pytest.raises(ValueError):
        P2PManager(0, 1.0, 1.0, 10, 10, 5.0)


def test_topology_needs_two_nodes():
    manager = P2PManager(1, 1.0, 1.0, 10, 10, 5.0)
    with pytest.raises(ValueError):
        manager.create_random_topology(0.5, 10.0)


def test_probability_zero_links_each_node_to_predecessor():
    manager = _manager(num_nodes=4)
    manager.create_random_topology(0.0, 10.0)
    assert set(manager.connections) == {(0, 1), (1, 0), (2, 1), (3, 2)}
    assert len(manager.nodes) == 4


def test_probability_one_links_every_pair():
    manager = _manager(num_nodes=4)
    manager.create_random_topology(1.0, 10.0)
    expected = {(i, j) for i in range(4) for j in range(i + 1, 4)} | {(3, 2)}
    assert set(manager.connections) == expected


def test_latency_converted_to_seconds():
    manager = _manager(num_nodes=3)
    manager.create_random_topology(0.5, 40.0)
    assert all(value == pytest.approx(0.04) for value in manager.connections.values())


def test_every_node_has_a_link():
    manager = _manager(num_nodes=10, seed=3)
    manager.create_random_topology(0.1, 5.0)
    linked = {node for pair in manager.connections for node in pair}
    assert linked == set(range(10))


def test_results_require_topology():
    manager = _manager()
    with pytest.raises(RuntimeError):
        manager.results()


def test_run_creates_and_spreads_shares():
    manager = _manager(num_nodes=4, duration=20)
    manager.create_random_topology(0.5, 10.0)
    manager.run()
    assert manager.simulator.now <= 20
    assert all(node.shares_created > 0 for node in manager.nodes)
    assert all(node.shares_received > 0 for node in manager.nodes)
    for node in manager.nodes:
        chain = node.share_chain
        assert chain.main_chain()[-1] == 1
        assert chain.main_chain_length() == len(chain.main_chain())


def test_connections_registered_both_ways():
    manager = _manager(num_nodes=4, duration=10)
    manager.create_random_topology(0.0, 10.0)
    manager.run()
    for i, j in manager.connections:
        assert j in manager.nodes[i].peer_ids
        assert i in manager.nodes[j].peer_ids


def test_results_match_nodes_and_average():
    manager = _manager(num_nodes=3, duration=15)
    manager.create_random_topology(1.0, 10.0)
    manager.run()
    orphans = manager.results()
    assert orphans == {node.node_id: node.orphan_count() for node in manager.nodes}
    assert manager.average_orphans == pytest.approx(sum(orphans.values()) / 3)


def test_print_results_reports_every_node():
    manager = _manager(num_nodes=3, duration=10)
    manager.create_random_topology(1.0, 10.0)
    manager.run()
    out = io.StringIO()
    manager.print_results(out)
    text = out.getvalue()
    assert text.startswith("=== P2Pool Simulation Results ===\n")
    for node_id in range(3):
        assert f"Node {node_id} statistics:" in text
    assert f"Average orphans per node: {manager.average_orphans:g}\n" in text


def test_main_runs_and_writes_share_files(tmp_path, capsys):
    out_dir = tmp_path / "out"
    code = main([
        "--nodes", "3", "--duration", "20", "--latency", "10",
        "--seed", "1", "--output-dir", str(out_dir), "--log-level", "WARNING",
    ])
    captured = capsys.readouterr().out
    assert code == 0
    assert "Number of nodes: 3" in captured
    assert "Starting simulation..." in captured
    assert "Average orphans per node:" in captured
    assert sorted(p.name for p in out_dir.iterdir()) == [
        "node_0_shares.csv", "node_1_shares.csv", "node_2_shares.csv",
    ]