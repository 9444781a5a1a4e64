"""Simulated RPC, checked serialisation, a key/value model and MapReduce tools."""

__version__ = "0.1.0"