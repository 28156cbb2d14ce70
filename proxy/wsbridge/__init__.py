"""WebSocket <-> newline-delimited TCP bridge for Stratum-style pools."""

from .config import BridgeConfig, load_config
from .errors import (
    AddressDecodeError,
    BridgeError,
    ClientTransportError,
    ConfigError,
    DecodeError,
    InvalidTargetError,
    UpstreamConnectError,
)
from .reframer import LineReframer, frame_line
from .resolver import Endpoint, FixedResolver, PathResolver, decode_path_target, parse_target_url
from .server import BridgeServer, main
from .session import Session, SessionState

__version__ = "0.1.0"

__all__ = [
    "AddressDecodeError",
    "BridgeConfig",
    "BridgeError",
    "BridgeServer",
    "ClientTransportError",
    "ConfigError",
    "DecodeError",
    "Endpoint",
    "FixedResolver",
    "InvalidTargetError",
    "LineReframer",
    "PathResolver",
    "Session",
    "SessionState",
    "UpstreamConnectError",
    "decode_path_target",
    "frame_line",
    "load_config",
    "main",
    "parse_target_url",
]
