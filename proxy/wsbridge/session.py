"""One client connection paired with exactly one upstream connection.

A session runs a small set of tasks:

* ``client-reader``   client messages -> client->upstream channel
* ``connect``         opens the upstream, then starts the rest
* ``upstream-writer`` client->upstream channel -> upstream
* ``upstream-reader`` upstream messages -> upstream->client channel
* ``client-writer``   upstream->client channel -> client
* ``keepalive``       optional periodic ping of the client

Any task ending (except ``connect`` succeeding) is a terminal event. The
first terminal event decides how the client is closed; :meth:`Session.close`
then cancels every task and closes both ends exactly once.
"""

import asyncio
import enum
import json
import logging
from functools import partial

import websockets
from websockets.protocol import State

from .channel import BLOCK, Channel
from .errors import (
    INTERNAL_ERROR,
    NORMAL_CLOSURE,
    BridgeError,
    ClientTransportError,
    UpstreamConnectError,
)
from .keepalive import Keepalive

logger = logging.getLogger(__name__)

STATUS_CONNECTED = json.dumps({"type": "status", "msg": "tcp_connected"})

# Upper bound on delivering already-read upstream lines during teardown.
FLUSH_TIMEOUT = 2.0


class SessionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class Session:
    def __init__(self, client, upstream, name: str = "session", status_notice: bool = False,
                 keepalive_interval: float = 0, queue_size: int = 0, queue_policy: str = BLOCK):
        self.client = client
        self.upstream = upstream
        self.name = name
        self.status_notice = status_notice
        self.state = SessionState.CONNECTING
        self.close_code = None
        self.close_reason = None
        self.sent_upstream = 0
        self.sent_client = 0
        self.client_gone = False

        self.to_upstream = Channel(queue_size, queue_policy, f"{name} client->upstream")
        self.to_client = Channel(queue_size, queue_policy, f"{name} upstream->client")
        self.keepalive = Keepalive(self._ping_client, keepalive_interval, name=f"{name} keepalive")

        self._tasks = set()
        self._terminal = asyncio.Event()
        self._closed = asyncio.Event()

    async def run(self):
        """Relay until either side ends, then tear both down."""
        self._spawn(self._read_client(), "client-reader")
        self._spawn(self._open_upstream(), "connect")
        try:
            await self._terminal.wait()
        finally:
            await self.close()

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = ""):
        """Tear the session down. Safe to call any number of times."""
        if self.state in (SessionState.CLOSING, SessionState.CLOSED):
            await self._closed.wait()
            return
        self.state = SessionState.CLOSING
        self._finish(code, reason)

        # Cancel everything before the first await so nothing can spawn more.
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        try:
            await asyncio.gather(*tasks, return_exceptions=True)
            self._tasks.clear()
            await self.keepalive.stop()
            if not self.client_gone:
                await self._flush_client()
            self.to_upstream.clear()
            self.to_client.clear()

            try:
                await self.upstream.close()
            except Exception:
                logger.exception("%s: error closing upstream", self.name)
            await self._close_client()
        finally:
            self.state = SessionState.CLOSED
            self._closed.set()
        logger.info("%s: closed (%s %s) after %d up / %d down messages", self.name,
                    self.close_code, self.close_reason or "-", self.sent_upstream, self.sent_client)

    async def _flush_client(self):
        pending = self.to_client.drain_nowait()
        if not pending:
            return
        try:
            await asyncio.wait_for(self._send_all(pending), FLUSH_TIMEOUT)
        except (asyncio.TimeoutError, ClientTransportError):
            logger.debug("%s: could not deliver %d queued messages", self.name, len(pending))

    async def _send_all(self, messages):
        for message in messages:
            await self._send_client(message)
            self.sent_client += 1

    async def _close_client(self):
        if getattr(self.client, "state", None) is State.CLOSED:
            return
        try:
            await self.client.close(self.close_code, self.close_reason)
        except websockets.exceptions.ConnectionClosed:
            pass

    def _finish(self, code, reason):
        # Only the first terminal event decides the close frame.
        if self.close_code is None:
            self.close_code = code
            self.close_reason = reason
        self._terminal.set()

    def _spawn(self, coro, label):
        task = asyncio.get_running_loop().create_task(coro)
        self._watch(task, label)
        return task

    def _watch(self, task, label):
        self._tasks.add(task)
        task.add_done_callback(partial(self._task_done, label))

    def _task_done(self, label, task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            if label == "connect":
                return
            logger.debug("%s: %s finished", self.name, label)
            self._finish(NORMAL_CLOSURE, "")
        elif isinstance(exc, ClientTransportError):
            self.client_gone = True
            logger.info("%s: %s", self.name, exc.reason)
            self._finish(exc.close_code, "")
        elif isinstance(exc, UpstreamConnectError):
            if exc.close_code == NORMAL_CLOSURE:
                logger.info("%s: upstream closed", self.name)
            else:
                logger.warning("%s: upstream %s (%s)", self.name, exc.reason, exc.__cause__ or "eof")
            self._finish(exc.close_code, exc.reason)
        elif isinstance(exc, BridgeError):
            logger.warning("%s: %s failed: %s", self.name, label, exc.reason)
            self._finish(exc.close_code, exc.reason)
        else:
            logger.error("%s: %s crashed", self.name, label, exc_info=exc)
            self._finish(INTERNAL_ERROR, "internal error")

    async def _open_upstream(self):
        await self.upstream.connect()
        self.state = SessionState.OPEN
        logger.info("%s: connected to %s", self.name, self.upstream.endpoint)
        if self.status_notice:
            await self._send_client(STATUS_CONNECTED)
        self._spawn(self._write_upstream(), "upstream-writer")
        self._spawn(self._read_upstream(), "upstream-reader")
        self._spawn(self._write_client(), "client-writer")
        task = self.keepalive.start()
        if task is not None:
            self._watch(task, "keepalive")

    async def _read_client(self):
        try:
            async for message in self.client:
                logger.debug("%s: >>> %r", self.name, message)
                await self.to_upstream.put(message)
        except websockets.exceptions.ConnectionClosed as e:
            raise ClientTransportError(f"client error: {e}", INTERNAL_ERROR) from e
        raise ClientTransportError("client disconnected", NORMAL_CLOSURE)

    async def _write_upstream(self):
        while True:
            message = await self.to_upstream.get()
            await self.upstream.send(message)
            self.sent_upstream += 1

    async def _read_upstream(self):
        async for message in self.upstream.messages():
            logger.debug("%s: <<< %r", self.name, message)
            await self.to_client.put(message)

    async def _write_client(self):
        while True:
            message = await self.to_client.get()
            await self._send_client(message)
            self.sent_client += 1

    async def _send_client(self, message):
        try:
            await self.client.send(message)
        except websockets.exceptions.ConnectionClosed as e:
            raise ClientTransportError(f"client gone during send: {e}", NORMAL_CLOSURE) from e

    async def _ping_client(self):
        try:
            await self.client.ping()
        except websockets.exceptions.ConnectionClosed as e:
            raise ClientTransportError(f"client gone during ping: {e}", NORMAL_CLOSURE) from e
