"""Per-direction message queue with an explicit overflow policy."""

import asyncio
import logging

logger = logging.getLogger(__name__)

BLOCK = "block"
DROP_OLDEST = "drop_oldest"
DROP_NEWEST = "drop_newest"
POLICIES = (BLOCK, DROP_OLDEST, DROP_NEWEST)


class Channel:
    """FIFO between the reading and writing half of one pump.

    ``maxsize=0`` means unbounded. When bounded and full, ``policy`` decides
    whether the producer waits, the oldest queued message is evicted, or
    the incoming message is discarded.
    """

    def __init__(self, maxsize: int = 0, policy: str = BLOCK, name: str = "channel"):
        if policy not in POLICIES:
            raise ValueError(f"unknown overflow policy {policy!r}")
        self.name = name
        self.policy = policy
        self.dropped = 0
        self._queue = asyncio.Queue(maxsize)

    def __len__(self):
        return self._queue.qsize()

    async def put(self, item):
        if self.policy == BLOCK or not self._queue.full():
            await self._queue.put(item)
            return

        self.dropped += 1
        if self.policy == DROP_NEWEST:
            logger.warning("%s full, dropping incoming message (%d dropped)", self.name, self.dropped)
            return
        self._queue.get_nowait()
        self._queue.put_nowait(item)
        logger.warning("%s full, dropped oldest message (%d dropped)", self.name, self.dropped)

    async def get(self):
        return await self._queue.get()

    def drain_nowait(self):
        items = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items

    def clear(self):
        self.drain_nowait()
