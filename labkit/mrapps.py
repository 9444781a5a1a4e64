"""MapReduce applications: word count, an indexer, and test applications.

Each application is a pair of a map function, taking a file name and its
contents and returning :class:`~labkit.mapreduce.KeyValue` pairs, and a
reduce function, taking a key and all its values and returning one string.
"""

from __future__ import annotations

import itertools
import os
import re
import secrets
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from labkit.mapreduce import KeyValue

MapFunc = Callable[[str, str], "list[KeyValue]"]
ReduceFunc = Callable[[str, "list[str]"], str]


@dataclass(frozen=True)
class App:
    """A named pair of map and reduce functions."""

    name: str
    map: MapFunc
    reduce: ReduceFunc


def _words(text: str) -> list[str]:
    """Maximal runs of letters in ``text``."""
    return ["".join(run) for is_letter, run in itertools.groupby(text, str.isalpha) if is_letter]


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8", "surrogateescape"))


def _sorted_join(values: list[str]) -> str:
    # Sorting makes the output deterministic.
    return " ".join(sorted(values))


# Word count.


def wc_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(word, "1")`` for every word of ``contents``."""
    return [KeyValue(word, "1") for word in _words(contents)]


def wc_reduce(key: str, values: list[str]) -> str:
    """Number of occurrences of the word."""
    return str(len(values))


# Inverted index.


def indexer_map(document: str, value: str) -> list[KeyValue]:
    """Emit ``(word, document)`` once for each distinct word of ``value``."""
    return [KeyValue(word, document) for word in dict.fromkeys(_words(value))]


def indexer_reduce(key: str, values: list[str]) -> str:
    """Count of documents followed by their sorted, comma-separated names."""
    return f"{len(values)} {','.join(sorted(values))}"


# Applications that crash or stall, to exercise recovery.


def _maybe_crash() -> None:
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        time.sleep(secrets.randbelow(10 * 1000) / 1000.0)


def _crash_pairs(filename: str, contents: str) -> list[KeyValue]:
    return [
        KeyValue("a", filename),
        KeyValue("b", str(_byte_len(filename))),
        KeyValue("c", str(_byte_len(contents))),
        KeyValue("d", "xyzzy"),
    ]


def crash_map(filename: str, contents: str) -> list[KeyValue]:
    """Like :func:`nocrash_map`, but sometimes exits the process or stalls."""
    _maybe_crash()
    return _crash_pairs(filename, contents)


def crash_reduce(key: str, values: list[str]) -> str:
    """Like :func:`nocrash_reduce`, but sometimes exits the process or stalls."""
    _maybe_crash()
    return _sorted_join(values)


def nocrash_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit the file name, its byte length, the contents' byte length and a constant."""
    return _crash_pairs(filename, contents)


def nocrash_reduce(key: str, values: list[str]) -> str:
    """The values sorted and joined with spaces."""
    return _sorted_join(values)


# An application with slow reduce tasks, to catch workers that exit early.


def early_exit_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(filename, "1")``."""
    return [KeyValue(filename, "1")]


def early_exit_reduce(key: str, values: list[str]) -> str:
    """Number of values; some keys take three seconds."""
    if "sherlock" in key or "tom" in key:
        time.sleep(3)
    return str(len(values))


# An application that counts how often map tasks run.

_job_lock = threading.Lock()
_job_counter = itertools.count()


def jobcount_map(filename: str, contents: str) -> list[KeyValue]:
    """Leave a marker file for this invocation in the current directory."""
    with _job_lock:
        n = next(_job_counter)
    Path(f"mr-worker-jobcount-{os.getpid()}-{n}").write_bytes(b"x")
    time.sleep((2000 + secrets.randbelow(3000)) / 1000.0)
    return [KeyValue("a", "x")]


def jobcount_reduce(key: str, values: list[str]) -> str:
    """Number of map invocations, counted from the marker files."""
    return str(sum(1 for name in os.listdir(".") if name.startswith("mr-worker-jobcount")))


# Applications that check that tasks run in parallel.


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


def nparallel(phase: str) -> int:
    """Number of live workers running ``phase`` now, this one included.

    Each worker announces itself with a marker file in the current
    directory for one second.
    """
    marker = Path(f"mr-worker-{phase}-{os.getpid()}")
    marker.write_bytes(b"x")
    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    running = 0
    for name in os.listdir("."):
        match = pattern.match(name)
        if match and _alive(int(match.group(1))):
            running += 1
    time.sleep(1)
    marker.unlink()
    return running


def mtiming_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit the start time and the number of map tasks running alongside."""
    started = time.time()
    pid = os.getpid()
    n = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{started:.1f}"),
        KeyValue(f"parallel-{pid}", str(n)),
    ]


def mtiming_reduce(key: str, values: list[str]) -> str:
    """The values sorted and joined with spaces."""
    return _sorted_join(values)


def rtiming_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit ten fixed keys."""
    return [KeyValue(key, "1") for key in "abcdefghij"]


def rtiming_reduce(key: str, values: list[str]) -> str:
    """Number of reduce tasks running alongside."""
    return str(nparallel("reduce"))


_APPS = {
    app.name: app
    for app in (
        App("wc", wc_map, wc_reduce),
        App("indexer", indexer_map, indexer_reduce),
        App("crash", crash_map, crash_reduce),
        App("nocrash", nocrash_map, nocrash_reduce),
        App("early_exit", early_exit_map, early_exit_reduce),
        App("jobcount", jobcount_map, jobcount_reduce),
        App("mtiming", mtiming_map, mtiming_reduce),
        App("rtiming", rtiming_map, rtiming_reduce),
    )
}


def get_app(name: str) -> App:
    """The application called ``name``; raises :class:`KeyError` if unknown."""
    try:
        return _APPS[name]
    except KeyError:
        raise KeyError(f"unknown app {name!r}; expecting one of {sorted(_APPS)}") from None