"""Encoding of RPC arguments and persisted state.

Values are framed one per :meth:`LabEncoder.encode` call. Dataclasses,
enums, lists, tuples, dicts, bytes and scalars are supported. The encoder
warns about dataclass fields whose names start with an underscore, and the
decoder warns when asked to decode into a target that already holds
non-default values.
"""

from __future__ import annotations

import base64
import binascii
import dataclasses
import enum
import io
import json
import struct
import threading
from typing import Any, BinaryIO

_lock = threading.Lock()
_error_count = 0
_checked: set[type] = set()
_names_to_types: dict[str, type] = {}
_types_to_names: dict[type, str] = {}
_explicit: set[str] = set()

_HEADER = struct.Struct(">I")


def error_count() -> int:
    """Number of warnings issued so far."""
    with _lock:
        return _error_count


def _bump_errors() -> int:
    global _error_count
    with _lock:
        before = _error_count
        _error_count += 1
        return before


def _check_class(cls: type) -> None:
    with _lock:
        if cls in _checked:
            return
        _checked.add(cls)
    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if f.name.startswith("_"):
                print(
                    f"labgob error: private field {f.name} of {cls.__name__} "
                    "in RPC or persist/snapshot will break your Raft"
                )
                _bump_errors()


def _check_value(value: Any) -> None:
    if isinstance(value, type):
        _check_class(value)
    elif dataclasses.is_dataclass(value):
        _check_class(type(value))
        for f in dataclasses.fields(value):
            _check_value(getattr(value, f.name))
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_value(item)
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)


def _check_default(value: Any, depth: int = 2, name: str = "") -> None:
    if depth > 3:
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            field_name = f"{name}.{f.name}" if name else f.name
            _check_default(getattr(value, f.name), depth + 1, field_name)
        return
    if isinstance(value, (bool, int, float, str)) and value:
        what = name or type(value).__name__
        if _bump_errors() < 1:
            # Usually a reused reply variable, or state restored into
            # variables that already hold data.
            print(
                f"labgob warning: Decoding into a non-default variable/field {what} "
                "may not work"
            )


def _default_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def register_name(name: str, value: Any) -> None:
    """Register a dataclass or enum (class or instance) under ``name``."""
    cls = value if isinstance(value, type) else type(value)
    if not (dataclasses.is_dataclass(cls) or issubclass(cls, enum.Enum)):
        raise TypeError(f"labgob: cannot register {cls!r}: not a dataclass or enum")
    _check_value(value)
    with _lock:
        existing = _names_to_types.get(name)
        if name in _explicit and existing is not cls:
            raise ValueError(f"labgob: name {name!r} already registered for {existing!r}")
        old = _types_to_names.get(cls)
        if old is not None and old != name:
            if old in _explicit:
                raise ValueError(f"labgob: {cls!r} already registered as {old!r}")
            if _names_to_types.get(old) is cls:
                del _names_to_types[old]
        _names_to_types[name] = cls
        _types_to_names[cls] = name
        _explicit.add(name)


def register(value: Any) -> None:
    """Register a dataclass or enum under its qualified name."""
    cls = value if isinstance(value, type) else type(value)
    register_name(_default_name(cls), value)


def _name_for(cls: type) -> str:
    with _lock:
        name = _types_to_names.get(cls)
        if name is None:
            name = _default_name(cls)
            if name not in _explicit:
                _names_to_types[name] = cls
                _types_to_names[cls] = name
        return name


def _lookup(name: str) -> type:
    with _lock:
        cls = _names_to_types.get(name)
    if cls is None:
        raise ValueError(f"labgob: type {name!r} not registered")
    return cls


def _to_tree(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, enum.Enum):
        return {"$e": _name_for(type(value)), "v": _to_tree(value.value)}
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"$b": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, list):
        return [_to_tree(item) for item in value]
    if isinstance(value, tuple):
        return {"$t": [_to_tree(item) for item in value]}
    if isinstance(value, dict):
        return {"$m": [[_to_tree(k), _to_tree(v)] for k, v in value.items()]}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "$s": _name_for(type(value)),
            "f": {f.name: _to_tree(getattr(value, f.name)) for f in dataclasses.fields(value)},
        }
    raise TypeError(f"labgob: cannot encode value of type {type(value).__name__}")


def _build_dataclass(cls: type, raw: dict) -> Any:
    values = {key: _from_tree(item) for key, item in raw.items()}
    fields = dataclasses.fields(cls)
    obj = cls(**{f.name: values[f.name] for f in fields if f.init and f.name in values})
    for f in fields:
        if not f.init and f.name in values:
            object.__setattr__(obj, f.name, values[f.name])
    return obj


def _from_tree(node: Any) -> Any:
    if isinstance(node, list):
        return [_from_tree(item) for item in node]
    if not isinstance(node, dict):
        return node
    try:
        if "$b" in node:
            return base64.b64decode(node["$b"], validate=True)
        if "$t" in node:
            return tuple(_from_tree(item) for item in node["$t"])
        if "$m" in node:
            return {_from_tree(k): _from_tree(v) for k, v in node["$m"]}
        if "$e" in node:
            return _lookup(node["$e"])(_from_tree(node["v"]))
        if "$s" in node:
            return _build_dataclass(_lookup(node["$s"]), node["f"])
    except (KeyError, TypeError, binascii.Error) as exc:
        raise ValueError(f"labgob: malformed data: {exc}") from exc
    raise ValueError("labgob: malformed data")


def _fill(into: Any, value: Any) -> Any:
    if type(value) is not type(into) and not isinstance(value, type(into)):
        raise TypeError(
            f"labgob: cannot decode {type(value).__name__} into {type(into).__name__}"
        )
    if dataclasses.is_dataclass(into):
        for f in dataclasses.fields(into):
            object.__setattr__(into, f.name, getattr(value, f.name))
        return into
    if isinstance(into, list):
        into[:] = value
        return into
    if isinstance(into, dict):
        into.clear()
        into.update(value)
        return into
    return value


class LabEncoder:
    """Writes framed values to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def encode(self, value: Any) -> None:
        _check_value(value)
        payload = json.dumps(_to_tree(value), separators=(",", ":")).encode("utf-8")
        self._stream.write(_HEADER.pack(len(payload)) + payload)


class LabDecoder:
    """Reads framed values from a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def _read(self) -> Any:
        header = self._stream.read(_HEADER.size)
        if not header:
            raise EOFError("labgob: no more values")
        if len(header) < _HEADER.size:
            raise ValueError("labgob: truncated header")
        (size,) = _HEADER.unpack(header)
        payload = self._stream.read(size)
        if len(payload) < size:
            raise ValueError("labgob: truncated value")
        return _from_tree(json.loads(payload.decode("utf-8")))

    def decode(self, into: Any = None) -> Any:
        """Decode the next value.

        Without ``into`` the value is returned. A dataclass, list or dict
        given as ``into`` is updated in place and returned; for any other
        target the decoded value is returned after a type check.
        """
        if into is not None:
            _check_value(into)
            _check_default(into)
        value = self._read()
        if into is None:
            return value
        return _fill(into, value)


def dumps(value: Any) -> bytes:
    """Encode one value to bytes."""
    buf = io.BytesIO()
    LabEncoder(buf).encode(value)
    return buf.getvalue()


def loads(data: bytes) -> Any:
    """Decode exactly one value from bytes."""
    stream = io.BytesIO(data)
    value = LabDecoder(stream).decode()
    if stream.read(1):
        raise ValueError("labgob: trailing data after value")
    return value