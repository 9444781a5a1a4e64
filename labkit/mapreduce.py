"""Types shared by MapReduce workers, the coordinator and applications."""

from __future__ import annotations

import os
from dataclasses import dataclass

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193
_MASK32 = 0xFFFFFFFF


@dataclass(frozen=True, order=True)
class KeyValue:
    """One key/value pair emitted by a map function."""

    key: str
    value: str


@dataclass
class ExampleArgs:
    """Arguments of the example RPC."""

    x: int = 0


@dataclass
class ExampleReply:
    """Reply of the example RPC."""

    y: int = 0


def ihash(key: str) -> int:
    """Non-negative 32-bit FNV-1a hash of ``key``.

    Use ``ihash(key) % n_reduce`` to choose the reduce task for a key.
    """
    h = _FNV32_OFFSET
    for byte in key.encode("utf-8", "surrogateescape"):
        h = ((h ^ byte) * _FNV32_PRIME) & _MASK32
    return h & 0x7FFFFFFF


def coordinator_sock() -> str:
    """Per-user UNIX-domain socket path for the coordinator."""
    return f"/var/tmp/5840-mr-{os.getuid()}"