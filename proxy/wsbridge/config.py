"""Bridge configuration from the environment (and an optional ``.env`` file)."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .channel import BLOCK, POLICIES
from .errors import ConfigError
from .resolver import Endpoint, FixedResolver, PathResolver, parse_target_url

FIXED = "fixed"
PATH = "path"
MODES = (FIXED, PATH)

DEFAULT_KEEPALIVE = 30.0
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class BridgeConfig:
    host: str = "0.0.0.0"
    port: int = 8080
    mode: str = PATH
    target: Optional[Endpoint] = None
    keepalive_interval: float = DEFAULT_KEEPALIVE
    status_notice: bool = True
    connect_timeout: float = 10.0
    queue_size: int = 256
    queue_policy: str = BLOCK
    flush_trailing: bool = False
    chunk_size: int = 4096
    health_path: str = "/healthz"
    log_level: str = "INFO"

    def make_resolver(self):
        if self.mode == FIXED:
            return FixedResolver(self.target)
        return PathResolver()


def _int(name, value, minimum=0):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if number < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {number}")
    return number


def _float(name, value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"{name} must not be negative, got {number}")
    return number


def _bool(name, value):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def load_config(env=None, dotenv_path=None, **overrides) -> BridgeConfig:
    """Build a :class:`BridgeConfig`.

    ``env`` defaults to ``os.environ`` after loading ``.env``. Keyword
    overrides (CLI flags) win over the environment; ``None`` means unset.
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    def setting(key, env_name, default=None):
        if overrides.get(key) is not None:
            return overrides[key]
        value = env.get(env_name)
        if value is None or value == "":
            return default
        return value

    target_url = setting("target", "TARGET_URL")
    mode = str(setting("mode", "BRIDGE_MODE", FIXED if target_url else PATH)).lower()
    if mode not in MODES:
        raise ConfigError(f"BRIDGE_MODE must be one of {', '.join(MODES)}, got {mode!r}")

    target = None
    if mode == FIXED:
        if not target_url:
            raise ConfigError("TARGET_URL is required in fixed mode")
        target = parse_target_url(str(target_url))

    queue_policy = str(setting("queue_policy", "QUEUE_POLICY", BLOCK)).lower()
    if queue_policy not in POLICIES:
        raise ConfigError(f"QUEUE_POLICY must be one of {', '.join(POLICIES)}, got {queue_policy!r}")

    log_level = str(setting("log_level", "LOG_LEVEL", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    port = _int("PORT", setting("port", "PORT", 8080))
    if port > 65535:
        raise ConfigError(f"PORT must be <= 65535, got {port}")

    path_mode = mode == PATH
    return BridgeConfig(
        host=str(setting("host", "LISTEN_HOST", "0.0.0.0")),
        port=port,
        mode=mode,
        target=target,
        keepalive_interval=_float(
            "KEEPALIVE_INTERVAL",
            setting("keepalive_interval", "KEEPALIVE_INTERVAL", DEFAULT_KEEPALIVE if path_mode else 0),
        ),
        status_notice=_bool("STATUS_NOTICE", setting("status_notice", "STATUS_NOTICE", path_mode)),
        connect_timeout=_float("CONNECT_TIMEOUT", setting("connect_timeout", "CONNECT_TIMEOUT", 10.0)),
        queue_size=_int("QUEUE_SIZE", setting("queue_size", "QUEUE_SIZE", 256)),
        queue_policy=queue_policy,
        flush_trailing=_bool("FLUSH_TRAILING_LINE", setting("flush_trailing", "FLUSH_TRAILING_LINE", False)),
        chunk_size=_int("READ_CHUNK_SIZE", setting("chunk_size", "READ_CHUNK_SIZE", 4096), minimum=1),
        # An explicitly empty HEALTH_PATH turns the route off.
        health_path=str(overrides.get("health_path") if overrides.get("health_path") is not None
                        else env.get("HEALTH_PATH", "/healthz")),
        log_level=log_level,
    )
