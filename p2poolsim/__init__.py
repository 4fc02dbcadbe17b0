"""Discrete-event simulation of a P2Pool-style share chain network."""

__version__ = "0.1.0"
__all__ = ["share", "sharechain", "simulator", "node", "manager"]