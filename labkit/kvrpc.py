"""Request, reply and error types shared by key/value clerks and servers."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Err(str, enum.Enum):
    """Outcome of a key/value operation."""

    # Returned by server and clerk.
    OK = "OK"
    NO_KEY = "ErrNoKey"
    VERSION = "ErrVersion"
    # Returned by the clerk only.
    MAYBE = "ErrMaybe"
    # Used by replicated and sharded servers.
    WRONG_LEADER = "ErrWrongLeader"
    WRONG_GROUP = "ErrWrongGroup"

    def __str__(self) -> str:
        return self.value

    def __format__(self, spec: str) -> str:
        return format(self.value, spec)


@dataclass
class PutArgs:
    """Install ``value`` under ``key`` if ``version`` matches the server's."""

    key: str = ""
    value: str = ""
    version: int = 0


@dataclass
class PutReply:
    """Reply to a put; ``err`` holds an :class:`Err` once filled in."""

    err: str = ""


@dataclass
class GetArgs:
    """Fetch the value and version stored under ``key``."""

    key: str = ""


@dataclass
class GetReply:
    """Reply to a get; ``err`` holds an :class:`Err` once filled in."""

    value: str = ""
    version: int = 0
    err: str = ""