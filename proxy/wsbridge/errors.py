"""Error taxonomy for the bridge.

Every terminal session error knows how the client connection should be
closed, so the session can turn any failure into a close frame.
"""

POLICY_VIOLATION = 1008
INTERNAL_ERROR = 1011
NORMAL_CLOSURE = 1000


class BridgeError(Exception):
    close_code = INTERNAL_ERROR

    def __init__(self, reason, close_code=None):
        super().__init__(reason)
        self.reason = reason
        if close_code is not None:
            self.close_code = close_code


class ConfigError(BridgeError):
    """Invalid startup configuration."""


class AddressDecodeError(BridgeError):
    """The request path is not valid base64 / UTF-8."""

    close_code = POLICY_VIOLATION

    def __init__(self, reason="bad base64"):
        super().__init__(reason)


DecodeError = AddressDecodeError


class InvalidTargetError(BridgeError):
    """The decoded target is missing a host or has an unusable port."""

    close_code = POLICY_VIOLATION

    def __init__(self, reason="need host:port"):
        super().__init__(reason)


class UpstreamConnectError(BridgeError):
    """Upstream connect failed, or the upstream errored/closed afterwards."""


class ClientTransportError(BridgeError):
    """The client side errored or went away."""
