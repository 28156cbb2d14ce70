"""Newline framing between a raw byte stream and discrete messages."""

NEWLINE = b"\n"


class LineReframer:
    """Turn arbitrarily chunked bytes into complete lines.

    At most one incomplete line is held between calls to :meth:`feed`.
    The held fragment never contains a newline: as soon as one arrives
    the line is emitted and the fragment reset. Empty lines are dropped.
    """

    def __init__(self):
        self._fragment = b""

    @property
    def pending(self) -> bytes:
        return self._fragment

    def feed(self, chunk: bytes):
        """Consume ``chunk`` and return an iterator over the completed lines."""
        data = self._fragment + chunk
        pieces = data.split(NEWLINE)
        # The last piece is either b"" (data ended with a newline) or the
        # start of a line still in flight.
        self._fragment = pieces.pop()
        return (line for line in pieces if line)

    def flush(self) -> bytes:
        """Return and clear the unterminated fragment."""
        fragment, self._fragment = self._fragment, b""
        return fragment

    def discard(self):
        self._fragment = b""


def frame_line(message) -> bytes:
    """Encode a client message for a newline-delimited stream.

    Exactly one trailing newline is guaranteed: one is added only if the
    message does not already end with it.
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    else:
        message = bytes(message)
    if not message.endswith(NEWLINE):
        message += NEWLINE
    return message
