"""Upstream transports a session can be paired with.

Both expose the same small surface: ``connect()``, ``send(message)``,
``messages()`` (an async iterator of client-bound messages) and
``close()``. Any failure, and any end of a raw TCP stream, surfaces as
:class:`UpstreamConnectError` carrying the client close reason.
"""

import asyncio
import errno
import logging
import socket

import websockets

from .errors import NORMAL_CLOSURE, UpstreamConnectError
from .reframer import LineReframer, frame_line
from .resolver import Endpoint

logger = logging.getLogger(__name__)


def tcp_error_reason(exc: BaseException) -> str:
    if isinstance(exc, socket.gaierror):
        code = "ENOTFOUND"
    elif isinstance(exc, (asyncio.TimeoutError, TimeoutError)) and getattr(exc, "errno", None) is None:
        code = "ETIMEDOUT"
    elif getattr(exc, "errno", None) is not None:
        code = errno.errorcode.get(exc.errno, str(exc.errno))
    else:
        code = type(exc).__name__
    return f"tcp_error:{code}"


class TcpUpstream:
    """Raw newline-delimited TCP, e.g. a Stratum pool."""

    framed = False

    def __init__(self, endpoint: Endpoint, connect_timeout: float = 10.0,
                 chunk_size: int = 4096, flush_trailing: bool = False):
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self.chunk_size = chunk_size
        self.flush_trailing = flush_trailing
        self.reframer = LineReframer()
        self._reader = None
        self._writer = None

    async def connect(self):
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.endpoint.host, self.endpoint.port),
                self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise UpstreamConnectError(tcp_error_reason(e)) from e

    async def send(self, message):
        try:
            self._writer.write(frame_line(message))
            await self._writer.drain()
        except OSError as e:
            raise UpstreamConnectError(tcp_error_reason(e)) from e

    async def messages(self):
        while True:
            try:
                chunk = await self._reader.read(self.chunk_size)
            except OSError as e:
                raise UpstreamConnectError(tcp_error_reason(e)) from e
            if not chunk:
                break
            for line in self.reframer.feed(chunk):
                yield line.decode("utf-8", errors="replace")

        if self.flush_trailing:
            trailing = self.reframer.flush()
            if trailing:
                yield trailing.decode("utf-8", errors="replace")
        elif self.reframer.pending:
            logger.debug("%s closed with %d unterminated bytes, dropping",
                         self.endpoint, len(self.reframer.pending))
        raise UpstreamConnectError("tcp_closed")

    async def close(self):
        self.reframer.discard()
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            # Peer already reset the connection.
            pass


class WebSocketUpstream:
    """An upstream that already speaks WebSocket; messages pass 1:1."""

    framed = True

    def __init__(self, endpoint: Endpoint, connect_timeout: float = 10.0):
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self._ws = None

    async def connect(self):
        try:
            self._ws = await websockets.connect(
                self.endpoint.url,
                compression=None,
                open_timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logger.debug("websocket connect to %s failed: %s", self.endpoint, e)
            raise UpstreamConnectError("ws_error") from e

    async def send(self, message):
        try:
            await self._ws.send(message)
        except websockets.exceptions.ConnectionClosedOK:
            raise UpstreamConnectError("", NORMAL_CLOSURE) from None
        except websockets.exceptions.ConnectionClosed as e:
            raise UpstreamConnectError("ws_error") from e

    async def messages(self):
        try:
            async for message in self._ws:
                yield message
        except websockets.exceptions.ConnectionClosedError as e:
            raise UpstreamConnectError("ws_error") from e
        raise UpstreamConnectError("", NORMAL_CLOSURE)

    async def close(self):
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()


def open_upstream(endpoint: Endpoint, connect_timeout: float = 10.0,
                  chunk_size: int = 4096, flush_trailing: bool = False):
    """Pick the transport for ``endpoint``; nothing is connected yet."""
    if endpoint.is_websocket:
        return WebSocketUpstream(endpoint, connect_timeout=connect_timeout)
    return TcpUpstream(endpoint, connect_timeout=connect_timeout,
                       chunk_size=chunk_size, flush_trailing=flush_trailing)
