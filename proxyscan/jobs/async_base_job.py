import threading
from typing import Optional


class AsyncBaseJob(object):
    """
    Skeleton of a checkpointed job. `_end` always runs, also when processing
    was interrupted or failed, so the job can write its final snapshot.

    The stop event is set from a signal handler; jobs poll it between
    contracts through `_should_stop` and never mid-contract.
    """

    def __init__(self, stop_event: Optional[threading.Event] = None):
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.interrupted = False
        self.completed = False

    async def run(self):
        try:
            await self._start()
            await self._process()
            self.completed = not self.interrupted
        finally:
            await self._end()

    def _should_stop(self) -> bool:
        if not self.interrupted and self.stop_event.is_set():
            self.interrupted = True
        return self.interrupted

    async def _start(self):
        pass

    async def _process(self):
        pass

    async def _end(self):
        pass
