import asyncio
import logging

logger = logging.getLogger(__name__)


class Keepalive:
    """Ping the client every ``interval`` seconds until stopped."""

    def __init__(self, probe, interval: float, name: str = "keepalive"):
        self.probe = probe
        self.interval = interval
        self.name = name
        self.sent = 0
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.interval <= 0 or self._task is not None:
            return None
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.probe()
            self.sent += 1
            logger.debug("%s: probe %d sent", self.name, self.sent)

    async def stop(self):
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
