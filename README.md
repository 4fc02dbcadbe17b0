# p2poolsim

A discrete-event simulation of a P2Pool-style mining network. Each node
keeps its own share chain. The chain is a directed acyclic graph of shares:
every new share references the heaviest current chain tips and names the
heaviest one as its parent. The parent links form the main chain. Nodes
broadcast every share they create or first receive to their peers, over
links with a fixed latency.

When the run ends, the simulation reports these statistics for each node:

- shares created, received and sent
- orphan count
- total shares
- uncle blocks
- main chain length, and the main chain itself, from its best tip back to
  the genesis share

It also reports the average number of orphans per node.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running a simulation

```
p2poolsim
```

The command prints the parameters first. It then runs the simulation and
prints the per-node results last. It accepts these options:

| Option          | Default  | Meaning                                         |
|-----------------|----------|-------------------------------------------------|
| `--nodes`       | 50       | number of nodes                                 |
| `--mean`        | 1.0      | mean share generation interval, in seconds      |
| `--variance`    | 5.0      | variance of the share generation interval       |
| `--max-tips`    | 10000    | most tips a new share may reference             |
| `--duration`    | 500      | simulated run time, in whole seconds            |
| `--latency`     | 50.0     | link latency, in milliseconds                   |
| `--probability` | 0.3      | chance that any two nodes are linked            |
| `--output-dir`  | `output` | directory for the per-node share logs           |
| `--seed`        | none     | seed for the random topology and share timing   |
| `--log-level`   | `INFO`   | logging level                                   |

Each node's mean and variance are divided by a hash-power factor between
0.5 and 1.49. The factor is fixed by the node id. A drawn interval is never
shorter than 0.1 s.

A chain accepts only shares whose timestamps are at most one tenth of the
duration, rounded down. With the defaults that limit is 50 s. Peer
connections open, and mining starts, 5 s into the run.

Each node appends one line to `<output-dir>/node_<id>_shares.csv` for every
share it creates. The line has the form `share_id,time,tip_count, parent`.

## Using the library

```python
from p2poolsim.share import Share
from p2poolsim.sharechain import ShareChain

chain = ShareChain(50.0)  # shares stamped later than 50 s are refused
chain.add_share(Share(2, 0, 1.0, [1], 1))
chain.add_share(Share(3, 1, 2.0, [2], 2))

chain.main_chain()         # [3, 2, 1]
chain.main_chain_length()  # 3
chain.uncle_blocks()       # 0
chain.orphan_count()       # 0
chain.chain_tips()         # {3: 3}
```

The genesis share has id 1. A share that references unknown shares is held
in `ShareChain.pending`. It enters the chain as soon as everything it
references has arrived.

To build a network yourself, use `p2poolsim.manager.P2PManager`:

```python
import random
from p2poolsim.manager import P2PManager

manager = P2PManager(10, 1.0, 5.0, 10000, 100, 10.0, rng=random.Random(1))
manager.create_random_topology(0.3, 50.0)  # latency in milliseconds
manager.run()
manager.results()          # {node_id: orphan_count, ...}
manager.average_orphans
manager.print_results()    # writes to stdout, or to a given text stream
```

`output_dir` is optional. Without it, no share logs are written.

The building blocks are also available on their own:

- `p2poolsim.simulator.Simulator` schedules events and runs them in time
  order, with `schedule`, `stop` and `run`.
- `p2poolsim.simulator.NormalVariable` draws normally distributed intervals.
- `p2poolsim.node.P2PoolNode` is a single node. The same module provides
  `serialize_share`, `deserialize_share` and `generate_share_id`.

## Limitations

- The network exists only inside the simulation. Nodes pass messages to one
  another in memory, with a fixed delay per link.
- Links have no bandwidth limit, packet loss or real sockets.
- Timestamps in the wire format are read back as whole seconds. A share
  received from a peer therefore loses the fraction of its creation time.