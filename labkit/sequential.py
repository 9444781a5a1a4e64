"""Run a MapReduce application sequentially in one process."""

from __future__ import annotations

import itertools
import sys
from operator import attrgetter
from pathlib import Path
from typing import Iterable, Sequence, Union

from labkit.mapreduce import KeyValue
from labkit.mrapps import App, get_app

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"
DEFAULT_OUTPUT = "mr-out-0"


def run_sequential(
    app: Union[App, str],
    filenames: Iterable[Union[str, Path]],
    output: Union[str, Path] = DEFAULT_OUTPUT,
) -> list[KeyValue]:
    """Map every input file, reduce each distinct key, and write ``key result`` lines.

    Returns the reduced pairs in key order. Raises :class:`OSError` if an
    input file cannot be read.
    """
    if isinstance(app, str):
        app = get_app(app)

    intermediate: list[KeyValue] = []
    for filename in filenames:
        contents = Path(filename).read_bytes().decode(_ENCODING, _ERRORS)
        intermediate.extend(app.map(str(filename), contents))

    # All intermediate data sits in one place, rather than being
    # partitioned into buckets as a distributed run would.
    intermediate.sort(key=attrgetter("key"))

    results = [
        KeyValue(key, app.reduce(key, [kv.value for kv in group]))
        for key, group in itertools.groupby(intermediate, key=attrgetter("key"))
    ]

    with open(output, "w", encoding=_ENCODING, errors=_ERRORS, newline="\n") as out:
        for kv in results:
            out.write(f"{kv.key} {kv.value}\n")
    return results


def main(argv: Sequence[str] | None = None) -> int:
    """Command line: ``mrsequential APP INPUTFILES...``; writes ``mr-out-0``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print("Usage: mrsequential app inputfiles...", file=sys.stderr)
        return 1
    try:
        app = get_app(args[0])
    except KeyError as exc:
        print(f"cannot load app {args[0]}: {exc.args[0]}", file=sys.stderr)
        return 1
    try:
        run_sequential(app, args[1:])
    except OSError as exc:
        print(f"cannot open {exc.filename}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())