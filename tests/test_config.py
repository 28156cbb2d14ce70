"""Tests for proxy.wsbridge.config."""

import os

import pytest

from proxy.wsbridge.config import FIXED, PATH, load_config
from proxy.wsbridge.errors import ConfigError
from proxy.wsbridge.resolver import Endpoint, FixedResolver, PathResolver


def test_defaults_to_path_mode():
    config = load_config({})
    assert config.mode == PATH
    assert config.port == 8080
    assert config.host == "0.0.0.0"
    assert config.keepalive_interval == 30.0
    assert config.status_notice is True
    assert config.flush_trailing is False
    assert config.health_path == "/healthz"
    assert isinstance(config.make_resolver(), PathResolver)


def test_target_url_implies_fixed_mode():
    config = load_config({"TARGET_URL": "wss://node.example.com/mine", "PORT": "9000"})
    assert config.mode == FIXED
    assert config.port == 9000
    assert config.target == Endpoint("node.example.com", 443, "wss", "/mine")
    assert config.keepalive_interval == 0
    assert config.status_notice is False
    resolver = config.make_resolver()
    assert isinstance(resolver, FixedResolver)
    assert resolver.resolve("/whatever") == config.target


def test_fixed_mode_requires_target():
    with pytest.raises(ConfigError, match="TARGET_URL"):
        load_config({"BRIDGE_MODE": "fixed"})


def test_overrides_win_over_environment():
    config = load_config({"PORT": "9000", "KEEPALIVE_INTERVAL": "5"}, port=7000, keepalive_interval=None)
    assert config.port == 7000
    assert config.keepalive_interval == 5.0


def test_boolean_and_queue_settings():
    config = load_config({
        "STATUS_NOTICE": "off",
        "FLUSH_TRAILING_LINE": "yes",
        "QUEUE_SIZE": "0",
        "QUEUE_POLICY": "DROP_OLDEST",
        "LOG_LEVEL": "debug",
    })
    assert config.status_notice is False
    assert config.flush_trailing is True
    assert config.queue_size == 0
    assert config.queue_policy == "drop_oldest"
    assert config.log_level == "DEBUG"


def test_empty_health_path_disables_route():
    assert load_config({"HEALTH_PATH": ""}).health_path == ""


@pytest.mark.parametrize("env", [
    {"PORT": "eighty"},
    {"PORT": "70000"},
    {"BRIDGE_MODE": "random"},
    {"QUEUE_POLICY": "lifo"},
    {"KEEPALIVE_INTERVAL": "-1"},
    {"STATUS_NOTICE": "maybe"},
    {"LOG_LEVEL": "LOUD"},
    {"READ_CHUNK_SIZE": "0"},
    {"TARGET_URL": "http://pool:80"},
])
def test_invalid_values(env):
    with pytest.raises(ConfigError):
        load_config(env)


def test_reads_dotenv_file(tmp_path, monkeypatch):
    for name in ("TARGET_URL", "PORT", "BRIDGE_MODE"):
        monkeypatch.delenv(name, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("TARGET_URL=tcp://pool.example.com:3333\nPORT=8888\n")
    try:
        config = load_config(dotenv_path=env_file)
    finally:
        # load_dotenv writes straight into os.environ
        os.environ.pop("TARGET_URL", None)
        os.environ.pop("PORT", None)
    assert config.mode == FIXED
    assert config.port == 8888
    assert config.target == Endpoint("pool.example.com", 3333)
