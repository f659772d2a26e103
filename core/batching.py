import asyncio
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from .logger import ScanLogger
from .models import ProgressEvent

T = TypeVar("T")
R = TypeVar("R")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def gather_in_batches(
    items: Sequence[T],
    size: int,
    worker: Callable[[T], Awaitable[R]],
    delay: float = 0.0,
    sleep: Callable[[float], Awaitable[None]] = None,
    should_stop: Callable[[], bool] = None,
) -> AsyncIterator[Tuple[int, List[T], List[object]]]:
    """
    Runs worker over items in ordered groups of `size`. Every call in a group
    is awaited before the group is yielded, and the next group does not start
    until the consumer asks for it. Results keep item order; an exception
    raised by a worker is returned in its slot instead of propagating.

    Yields (batch_index starting at 1, batch items, results).
    """
    sleep = sleep or asyncio.sleep
    batches = chunked(items, size)
    for index, batch in enumerate(batches, start=1):
        if should_stop is not None and should_stop():
            return
        results = await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True)
        yield index, batch, list(results)
        if index < len(batches) and delay > 0:
            await sleep(delay)


class ProgressSink:
    """Fire-and-forget publisher. A missing or failing listener is never fatal."""
    def __init__(self, listener: Optional[Callable[[ProgressEvent], object]] = None, logger: ScanLogger = None):
        self.listener = listener
        self.logger = logger or ScanLogger()

    def publish(self, event: ProgressEvent):
        if self.listener is None:
            return
        try:
            self.listener(event)
        except Exception as e:
            self.logger.log(f"    [?] Progress listener dropped '{event.stage.value}' event: {e}", "dim")
