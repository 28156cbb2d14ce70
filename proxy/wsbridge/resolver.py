"""Work out which upstream a new client connection should be paired with."""

import base64
import binascii
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from .errors import AddressDecodeError, ConfigError, InvalidTargetError

WS_SCHEMES = ("ws", "wss")


@dataclass(frozen=True)
class Endpoint:
    host: str
    port: int
    scheme: str = "tcp"
    path: str = ""

    @property
    def is_websocket(self) -> bool:
        return self.scheme in WS_SCHEMES

    @property
    def url(self) -> str:
        if self.is_websocket:
            return f"{self.scheme}://{self.host}:{self.port}{self.path or '/'}"
        return f"tcp://{self.host}:{self.port}"

    def __str__(self):
        return self.url


def _parse_port(text: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise InvalidTargetError()
    port = int(text)
    if not 0 < port < 65536:
        raise InvalidTargetError()
    return port


def split_host_port(text: str):
    """Split ``host:port`` on the first colon."""
    host, sep, port = text.partition(":")
    host = host.strip()
    if not sep or not host:
        raise InvalidTargetError()
    return host, _parse_port(port.strip())


def decode_path_target(path: str) -> Endpoint:
    """Decode ``/<base64 of host:port>`` into a TCP endpoint.

    Both the standard and the URL-safe alphabets are accepted, with or
    without padding. A query string, if any, is ignored.
    """
    encoded = path.split("?", 1)[0]
    if encoded.startswith("/"):
        encoded = encoded[1:]
    encoded = encoded.translate(str.maketrans("-_", "+/"))
    encoded += "=" * (-len(encoded) % 4)
    try:
        raw = base64.b64decode(encoded, validate=True)
        text = raw.decode("utf-8")
    except (binascii.Error, ValueError):
        # UnicodeDecodeError is a ValueError
        raise AddressDecodeError() from None
    host, port = split_host_port(text)
    return Endpoint(host, port)


def parse_target_url(target: str) -> Endpoint:
    """Parse a configured upstream: ``ws://``, ``wss://``, ``tcp://`` or ``host:port``."""
    if "://" not in target:
        try:
            host, port = split_host_port(target)
        except InvalidTargetError:
            raise ConfigError(f"invalid target {target!r}") from None
        return Endpoint(host, port)

    parts = urlsplit(target)
    scheme = parts.scheme.lower()
    if scheme not in WS_SCHEMES + ("tcp",):
        raise ConfigError(f"unsupported target scheme {parts.scheme!r}")
    try:
        port = parts.port
    except ValueError:
        raise ConfigError(f"invalid port in target {target!r}") from None
    if not parts.hostname:
        raise ConfigError(f"missing host in target {target!r}")
    if port is None:
        if scheme == "tcp":
            raise ConfigError(f"missing port in target {target!r}")
        port = 443 if scheme == "wss" else 80
    path = parts.path
    if parts.query:
        path += "?" + parts.query
    return Endpoint(parts.hostname, port, scheme, path if scheme != "tcp" else "")


class FixedResolver:
    """Every client goes to the same configured upstream."""

    def __init__(self, endpoint: Endpoint):
        self.endpoint = endpoint

    def resolve(self, path: Optional[str] = None) -> Endpoint:
        return self.endpoint


class PathResolver:
    """Each client names its upstream in the request path."""

    def resolve(self, path: Optional[str] = None) -> Endpoint:
        return decode_path_target(path or "")
