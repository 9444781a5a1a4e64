# labkit

Small, self-contained pieces for building and testing distributed systems
in Python. It has no dependencies outside the standard library.

- `labkit.labrpc`: an in-process simulated network. Client ends call
  methods on named servers. The network can drop, delay and reorder
  messages, disable ends and remove servers.
- `labkit.labgob`: a framed serialiser for dataclasses, enums, lists,
  tuples, dicts, bytes and scalars. It warns about dataclass fields whose
  names start with an underscore, and about decoding into a target that
  already holds non-default values; `error_count()` reports how many
  warnings were issued. `register` and `register_name` name the types it
  may decode. `dumps` and `loads` cover the one-value case;
  `LabEncoder` and `LabDecoder` work on streams.
- `labkit.kvrpc`: the request and reply types for a versioned key/value
  service (`PutArgs`, `PutReply`, `GetArgs`, `GetReply`) and its `Err`
  codes.
- `labkit.models`: a sequential model of that key/value service for
  checking histories. It provides `partition`, `init_state`, `step` and
  `describe_operation` over `Operation`, `KvInput`, `KvOutput` and
  `KvState` records.
- `labkit.mapreduce`: `KeyValue`, the `ihash` partitioning hash
  (32-bit FNV-1a, masked to non-negative), the example RPC types
  `ExampleArgs` and `ExampleReply`, and `coordinator_sock()`, a per-user
  socket path.
- `labkit.mrapps`: ready-made MapReduce applications, each an `App` with
  `map` and `reduce` functions: `wc` (word count), `indexer` (inverted
  index), and the test applications `crash`, `nocrash`, `early_exit`,
  `jobcount`, `mtiming` and `rtiming`. Look them up by name with
  `get_app`.
- `labkit.sequential`: a single-process MapReduce runner,
  `run_sequential`, and its command.

## Installation

```
pip install .
```

Add the `test` extra to run the test suite:

```
pip install ".[test]"
pytest
```

## Simulated RPC

A handler is a public method of the receiver that takes exactly one
argument and returns the reply. The service is named after the
receiver's class.

```python
from labkit.labrpc import Network, Server, Service, RpcLost

class Echo:
    def Shout(self, args):
        return args.upper()

net = Network()
server = Server()
server.add_service(Service(Echo()))
net.add_server("server1", server)

end = net.make_end("client1")
net.connect("client1", "server1")
net.enable("client1", True)

try:
    print(end.call("Echo.Shout", "hello"))   # HELLO
except RpcLost:
    print("no reply")

print(net.get_count("server1"), net.get_total_count(), net.get_total_bytes())
net.cleanup()
```

A new end is disabled and unconnected; calls on it raise `RpcLost` after
a short delay (up to seven seconds with `long_delays(True)`). Call
`net.reliable(False)` to delay requests and drop about one request and
one reply in ten; `long_reordering(True)` holds back many replies for
up to a couple of seconds. A call whose server is removed with
`delete_server`, or whose end is disabled, while the handler runs also
raises `RpcLost`. After `cleanup()`, every call raises `RpcLost`.
`Network` can also be used as a context manager, which cleans up on exit.

## Serialisation

```python
from dataclasses import dataclass
from labkit import labgob

@dataclass
class Entry:
    term: int = 0
    command: str = ""

labgob.register(Entry)
data = labgob.dumps([Entry(1, "x"), Entry(2, "y")])
print(labgob.loads(data))
```

## Sequential MapReduce

Run one of the bundled applications over a set of input files:

```
labkit-mrsequential wc pg-*.txt
```

The output goes to `mr-out-0` in the current directory, with one
`key value` line for each distinct key in sorted order. From Python:

```python
from labkit.mrapps import get_app
from labkit.sequential import run_sequential

results = run_sequential(get_app("wc"), ["a.txt", "b.txt"], "mr-out-0")
```

`run_sequential` also accepts an application name and returns the
reduced `KeyValue` pairs.

Note that `crash` exits the whole process about a third of the time,
and that `jobcount`, `mtiming` and `rtiming` create marker files named
`mr-worker-*` in the current directory.

## Key/value model

```python
from labkit.models import KvInput, KvOutput, init_state, step

state = init_state()
ok, state = step(state, KvInput(op=1, key="k", value="v", version=0), KvOutput(err="OK"))
```

## What is not included

labkit has no distributed MapReduce coordinator or worker: it supplies
the shared types, the hash and the applications, and runs jobs only in
one process. It has no key/value server or clerk and no replication
layer; `kvrpc` and `models` describe such a service without
implementing it. There is no history checker either: `models` gives the
step function a checker would use.