"""WebSocket listener: accept clients, pair each with an upstream."""

import argparse
import asyncio
import logging
import signal
import sys
from http import HTTPStatus

import websockets

from .config import MODES, load_config
from .errors import AddressDecodeError, ConfigError, InvalidTargetError
from .session import Session
from .upstream import open_upstream

logger = logging.getLogger(__name__)


def format_peer(address):
    if not address:
        return "?"
    return f"{address[0]}:{address[1]}"


class BridgeServer:
    def __init__(self, config):
        self.config = config
        self.resolver = config.make_resolver()

    async def handle(self, websocket):
        peer = format_peer(websocket.remote_address)
        path = websocket.request.path if websocket.request is not None else "/"
        logger.info("%s: client connected (%s)", peer, path)

        try:
            endpoint = self.resolver.resolve(path)
        except (AddressDecodeError, InvalidTargetError) as e:
            logger.warning("%s: rejected %r: %s", peer, path, e.reason)
            await websocket.close(e.close_code, e.reason)
            return

        upstream = open_upstream(
            endpoint,
            connect_timeout=self.config.connect_timeout,
            chunk_size=self.config.chunk_size,
            flush_trailing=self.config.flush_trailing,
        )
        session = Session(
            websocket,
            upstream,
            name=peer,
            status_notice=self.config.status_notice,
            keepalive_interval=self.config.keepalive_interval,
            queue_size=self.config.queue_size,
            queue_policy=self.config.queue_policy,
        )
        await session.run()

    def process_request(self, connection, request):
        """Answer plain HTTP health checks without upgrading."""
        if self.config.health_path and request.path == self.config.health_path:
            return connection.respond(HTTPStatus.OK, "OK")
        return None

    def serve(self, **kwargs):
        return websockets.serve(
            self.handle,
            self.config.host,
            self.config.port,
            compression=None,
            ping_interval=None,
            process_request=self.process_request,
            **kwargs,
        )


async def run(config, stop=None):
    loop = asyncio.get_running_loop()
    if stop is None:
        stop = loop.create_future()

        def signal_handler():
            if not stop.done():
                stop.set_result(None)

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, signal_handler)
            except NotImplementedError:
                # Windows event loops; Ctrl+C still raises KeyboardInterrupt.
                pass

    server = BridgeServer(config)
    async with server.serve():
        print(f"🚀 Bridge listening on ws://{config.host}:{config.port}")
        if config.target is not None:
            print(f"🔗 Forwarding to {config.target}")
        else:
            print("🔗 Forwarding to the base64 host:port in each request path")
        await stop


def build_parser():
    parser = argparse.ArgumentParser(
        prog="wsbridge",
        description="Bridge WebSocket clients to newline-delimited TCP (Stratum) or WebSocket upstreams.",
    )
    parser.add_argument("--host", help="listen address (LISTEN_HOST)")
    parser.add_argument("--port", type=int, help="listen port (PORT)")
    parser.add_argument("--mode", choices=MODES, help="fixed upstream or per-connection path target (BRIDGE_MODE)")
    parser.add_argument("--target", help="upstream for fixed mode: ws://, wss://, tcp:// or host:port (TARGET_URL)")
    parser.add_argument("--keepalive", type=float, dest="keepalive_interval",
                        help="seconds between client pings, 0 disables (KEEPALIVE_INTERVAL)")
    parser.add_argument("--env-file", help="load settings from this .env file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ... (LOG_LEVEL)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        config = load_config(
            dotenv_path=args.env_file,
            host=args.host,
            port=args.port,
            mode=args.mode,
            target=args.target,
            keepalive_interval=args.keepalive_interval,
            log_level=args.log_level,
        )
    except ConfigError as e:
        print(f"wsbridge: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\n👋 Shutting down...")
    return 0
