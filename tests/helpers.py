"""Fakes and small async utilities shared by the bridge tests."""

import asyncio

from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from proxy.wsbridge.resolver import Endpoint

CLOSE = object()


async def eventually(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class FakeClient:
    """Stands in for a server-side websockets connection."""

    def __init__(self):
        self.inbox = asyncio.Queue()
        self.sent = []
        self.pings = 0
        self.close_calls = []
        self.state = State.OPEN
        self.remote_address = ("127.0.0.1", 50000)

    def disconnect(self, error=None):
        self.inbox.put_nowait(CLOSE if error is None else error)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            item = await self.inbox.get()
            if item is CLOSE:
                self.state = State.CLOSED
                return
            if isinstance(item, BaseException):
                self.state = State.CLOSED
                raise item
            yield item

    async def send(self, message):
        if self.state is State.CLOSED:
            raise ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def ping(self):
        if self.state is State.CLOSED:
            raise ConnectionClosedOK(None, None)
        self.pings += 1

    async def close(self, code=1000, reason=""):
        self.close_calls.append((code, reason))
        self.state = State.CLOSED
        self.inbox.put_nowait(CLOSE)


class FakeUpstream:
    """Message-framed upstream driven from the test."""

    framed = True

    def __init__(self, fail=None, gate=None):
        self.endpoint = Endpoint("pool.example.com", 3333)
        self.fail = fail
        self.gate = gate
        self.connected = False
        self.written = []
        self.incoming = asyncio.Queue()
        self.close_count = 0

    async def connect(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        self.connected = True

    async def send(self, message):
        self.written.append(message)

    async def messages(self):
        while True:
            item = await self.incoming.get()
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self):
        self.close_count += 1


class FakePool:
    """A throwaway newline-delimited TCP server on localhost."""

    def __init__(self):
        self.connections = asyncio.Queue()
        self._writers = []
        self._server = None
        self.port = None

    async def start(self):
        self._server = await asyncio.start_server(self._accept, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def _accept(self, reader, writer):
        self._writers.append(writer)
        await self.connections.put((reader, writer))

    async def next_connection(self, timeout=2.0):
        return await asyncio.wait_for(self.connections.get(), timeout)

    async def stop(self):
        for writer in self._writers:
            writer.close()
        self._server.close()
        await self._server.wait_closed()
