"""A simulated network for RPC between in-process clients and servers.

The network can lose requests, lose replies, delay messages and
disconnect particular client end-points. Arguments and replies travel
encoded with :mod:`labkit.labgob`, so handlers never share objects with
their callers.

Usage::

    net = Network()
    end = net.make_end("client-1")
    server = Server()
    server.add_service(Service(receiver))
    net.add_server("server-1", server)
    net.connect("client-1", "server-1")
    net.enable("client-1", True)
    reply = end.call("Receiver.method", args)

A handler is a public method of the receiver that takes exactly one
argument and returns the reply. :meth:`ClientEnd.call` raises
:class:`RpcLost` when the network lost the request or the reply, or when
the server is down. Several calls may be in progress on one end at once,
and they may reach the server in any order.
"""

from __future__ import annotations

import queue
import random
import threading
import time
import types
from typing import Any, Callable, Hashable

from labkit import labgob

SHORT_DELAY = 27  # ms
LONG_DELAY = 7000  # ms
MAX_DELAY = LONG_DELAY + 100  # ms

_POLL_INTERVAL = 0.1  # seconds between checks for a killed server
_CO_VARARGS = 0x04


class RpcLost(Exception):
    """No reply arrived: the request or reply was lost, or the server is down."""


def _sleep_ms(ms: int) -> None:
    time.sleep(ms / 1000.0)


class ClientEnd:
    """A client end-point that sends RPCs to the one server it is connected to."""

    def __init__(self, network: "Network", endname: Hashable) -> None:
        self._network = network
        self.endname = endname

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send ``args`` to ``svc_meth`` (e.g. ``"Raft.append_entries"``) and return the reply.

        Raises :class:`RpcLost` if no reply was received.
        """
        payload = labgob.dumps(args)
        reply = self._network._deliver(self.endname, svc_meth, payload)
        return labgob.loads(reply)


class Network:
    """Holds client end-points, servers and the connections between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False  # pause a long time on send on a dead connection
        self._long_reordering = False  # sometimes delay replies a long time
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Server] = {}
        self._connections: dict[Hashable, Hashable] = {}
        self._closed = False
        self._count = 0
        self._bytes = 0

    def __enter__(self) -> "Network":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail with :class:`RpcLost`."""
        with self._lock:
            self._closed = True

    def reliable(self, yes: bool) -> None:
        with self._lock:
            self._reliable = yes

    def is_reliable(self) -> bool:
        with self._lock:
            return self._reliable

    def long_reordering(self, yes: bool) -> None:
        with self._lock:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        with self._lock:
            self._long_delays = yes

    def is_long_delays(self) -> bool:
        with self._lock:
            return self._long_delays

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a disabled, unconnected client end-point."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"make_end: {endname!r} already exists")
            end = ClientEnd(self, endname)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def delete_end(self, endname: Hashable) -> None:
        with self._lock:
            if endname not in self._ends:
                raise KeyError(f"delete_end: {endname!r} doesn't exist")
            del self._ends[endname]
            self._enabled.pop(endname, None)
            self._connections.pop(endname, None)

    def add_server(self, servername: Hashable, server: "Server") -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        """Remove a server; calls waiting on it fail with :class:`RpcLost`."""
        with self._lock:
            self._servers.pop(servername, None)

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Connect a client end-point to a server."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Number of RPCs the named server has received."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(f"get_count: no server {servername!r}")
        return server.get_count()

    def get_total_count(self) -> int:
        """Total number of RPCs sent over the network."""
        with self._lock:
            return self._count

    def get_total_bytes(self) -> int:
        """Total number of argument and reply bytes carried."""
        with self._lock:
            return self._bytes

    def _server_dead(self, endname: Hashable, servername: Hashable, server: "Server") -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    @staticmethod
    def _run_handler(server: "Server", svc_meth: str, payload: bytes, results: queue.SimpleQueue) -> None:
        try:
            results.put((True, server._dispatch(svc_meth, payload)))
        except Exception as exc:  # handed to the caller
            results.put((False, exc))

    def _deliver(self, endname: Hashable, svc_meth: str, payload: bytes) -> bytes:
        with self._lock:
            if self._closed:
                raise RpcLost("network has been cleaned up")
            self._count += 1
            self._bytes += len(payload)
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            reliable = self._reliable
            long_reordering = self._long_reordering

        if not (enabled and servername is not None and server is not None):
            # Simulate no reply and an eventual timeout.
            if self.is_long_delays():
                # Lets tests check that senders don't wait synchronously.
                _sleep_ms(random.randrange(LONG_DELAY))
            else:
                # Clients should be able to try each server in quick succession.
                _sleep_ms(random.randrange(100))
            raise RpcLost(f"no reply to {svc_meth} from {endname!r}")

        if not reliable:
            _sleep_ms(random.randrange(SHORT_DELAY))
            if random.randrange(1000) < 100:
                raise RpcLost(f"request {svc_meth} from {endname!r} dropped")

        # Run the handler on its own thread so that a killed server can be
        # noticed while the handler is still running.
        results: queue.SimpleQueue = queue.SimpleQueue()
        threading.Thread(
            target=self._run_handler,
            args=(server, svc_meth, payload, results),
            daemon=True,
        ).start()
        while True:
            try:
                ok, value = results.get(timeout=_POLL_INTERVAL)
                break
            except queue.Empty:
                if self._server_dead(endname, servername, server):
                    raise RpcLost(f"server {servername!r} went away during {svc_meth}") from None

        if not ok:
            raise value

        # No reply from a server that was deleted meanwhile: its updates may
        # have gone to a state store that has since been replaced.
        if self._server_dead(endname, servername, server):
            raise RpcLost(f"server {servername!r} went away during {svc_meth}")

        if not reliable and random.randrange(1000) < 100:
            raise RpcLost(f"reply to {svc_meth} dropped")

        if long_reordering and random.randrange(900) < 600:
            _sleep_ms(200 + random.randrange(1 + random.randrange(2000)))

        with self._lock:
            self._bytes += len(value)
        return value


class Server:
    """A collection of services sharing one RPC dispatcher."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, service: "Service") -> None:
        with self._lock:
            self._services[service.name] = service

    def get_count(self) -> int:
        """Number of RPCs received."""
        with self._lock:
            return self._count

    def _dispatch(self, svc_meth: str, payload: bytes) -> bytes:
        service_name, _, method_name = svc_meth.rpartition(".")
        with self._lock:
            self._count += 1
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if service is None:
            raise LookupError(
                f"unknown service {service_name!r} in {svc_meth!r}; expecting one of {choices}"
            )
        return service._dispatch(method_name, svc_meth, payload)


def _is_handler(func: types.FunctionType) -> bool:
    """True for a plain method taking ``self`` and exactly one argument."""
    code = func.__code__
    if code.co_flags & _CO_VARARGS:
        return False
    kwonly = code.co_varnames[code.co_argcount:code.co_argcount + code.co_kwonlyargcount]
    kwdefaults = func.__kwdefaults__ or {}
    if any(name not in kwdefaults for name in kwonly):
        return False
    return code.co_argcount == 2


def _class_functions(cls: type) -> dict[str, types.FunctionType]:
    functions: dict[str, types.FunctionType] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, attr in vars(klass).items():
            if isinstance(attr, types.FunctionType):
                functions[name] = attr
            else:
                functions.pop(name, None)
    return functions


class Service:
    """An object whose public one-argument methods handle RPCs.

    The service is named after the receiver's class.
    """

    def __init__(self, receiver: Any) -> None:
        self.name = type(receiver).__name__
        self._methods: dict[str, Callable[[Any], Any]] = {}
        for method_name, func in _class_functions(type(receiver)).items():
            if method_name.startswith("_") or not _is_handler(func):
                continue
            self._methods[method_name] = getattr(receiver, method_name)
        self.methods = tuple(sorted(self._methods))

    def _dispatch(self, method_name: str, svc_meth: str, payload: bytes) -> bytes:
        method = self._methods.get(method_name)
        if method is None:
            raise LookupError(
                f"unknown method {method_name!r} in {svc_meth!r}; expecting one of {list(self.methods)}"
            )
        return labgob.dumps(method(labgob.loads(payload)))