"""Sequential specification of a versioned key/value store for history checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from labkit.kvrpc import Err

_GET = 0
_PUT = 1
_INVALID = "<invalid>"


@dataclass(frozen=True)
class KvInput:
    """An operation's input; ``op`` is 0 for get and 1 for put."""

    op: int
    key: str
    value: str = ""
    version: int = 0


@dataclass(frozen=True)
class KvOutput:
    """An operation's result."""

    value: str = ""
    version: int = 0
    err: str = ""


@dataclass(frozen=True)
class KvState:
    """State of a single key."""

    value: str = ""
    version: int = 0


@dataclass(frozen=True)
class Operation:
    """One client call in a history, with its start and end times."""

    input: KvInput
    output: KvOutput
    call: int
    ret: int
    client_id: int = 0


def partition(history: Iterable[Operation]) -> list[list[Operation]]:
    """Split a history by key, in key order, keeping each key's operation order."""
    by_key: dict[str, list[Operation]] = {}
    for op in history:
        by_key.setdefault(op.input.key, []).append(op)
    return [by_key[key] for key in sorted(by_key)]


def init_state() -> KvState:
    """State of a key that was never written."""
    return KvState("", 0)


def step(state: KvState, inp: KvInput, out: KvOutput) -> tuple[bool, Union[KvState, str]]:
    """Whether ``out`` is a legal result of ``inp`` in ``state``, and the next state."""
    if inp.op == _GET:
        return out.value == state.value, state
    if inp.op == _PUT:
        if state.version == inp.version:
            legal = out.err in (Err.OK, Err.MAYBE)
            return legal, KvState(inp.value, state.version + 1)
        return out.err in (Err.VERSION, Err.MAYBE), state
    return False, _INVALID


def describe_operation(inp: KvInput, out: KvOutput) -> str:
    """Human-readable form of one operation."""
    if inp.op == _GET:
        return f"get('{inp.key}') -> ('{out.value}', '{out.version}', '{out.err}')"
    if inp.op == _PUT:
        return f"put('{inp.key}', '{inp.value}', '{inp.version}') -> ('{out.err}')"
    return _INVALID