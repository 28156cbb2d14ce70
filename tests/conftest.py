"""Shared fixtures for the bridge tests."""

import base64
import socket

import pytest

from helpers import FakeClient, FakeUpstream


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def encode_target():
    def encode(text, urlsafe=False):
        encoder = base64.urlsafe_b64encode if urlsafe else base64.b64encode
        return "/" + encoder(text.encode("utf-8")).decode("ascii")

    return encode


@pytest.fixture
def closed_port():
    """A localhost port nothing is listening on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
