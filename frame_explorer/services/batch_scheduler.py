# frame_explorer/services/batch_scheduler.py
"""
Chunked, throttled background hydration.

`BatchScheduler.run` walks an ordered list of work items in fixed-size chunks.
Each chunk is hydrated concurrently; failed items are logged and dropped, the
survivors are committed to the result list in one step (duplicates removed),
and a delay is awaited before the next chunk. The sleep function is injectable
so tests can drive the schedule with a virtual clock.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from ..session_state import CycleWriter

logger = logging.getLogger(__name__)

K = TypeVar('K')
T = TypeVar('T')

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class BatchSchedule:
    """
    Chunk size and pacing for one kind of background load.

    When the whole workload is small (`total <= fast_threshold`) the shorter
    `fast_delay_seconds` is used so small result sets still feel instant.
    """
    chunk_size: int
    delay_seconds: float
    fast_delay_seconds: Optional[float] = None
    fast_threshold: int = 0

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must not be negative, got {self.delay_seconds}")

    def delay_for(self, total: int) -> float:
        if self.fast_delay_seconds is not None and total <= self.fast_threshold:
            return self.fast_delay_seconds
        return self.delay_seconds


@dataclass
class BatchResult(Generic[T]):
    """What one chunk contributed once committed."""
    index: int
    requested: int
    added: List[T] = field(default_factory=list)
    failed: int = 0
    skipped: int = 0


def chunked(items: Sequence[K], size: int) -> List[List[K]]:
    """Splits `items` into consecutive chunks of `size` (the last may be shorter)."""
    if size < 1:
        raise ValueError(f"size must be at least 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def hydrate_chunk(chunk: Sequence[K], hydrate: Callable[[K], Awaitable[Optional[T]]]) -> tuple[List[T], int, int]:
    """
    Hydrates every item of a chunk concurrently.

    A raised exception drops that item (logged); a None result drops it silently.

    Returns:
        (hydrated items in chunk order, number of failures, number of None results)
    """
    results = await asyncio.gather(*(hydrate(item) for item in chunk), return_exceptions=True)
    hydrated: List[T] = []
    failed = 0
    skipped = 0
    for item, result in zip(chunk, results):
        if isinstance(result, Exception):
            failed += 1
            logger.warning(f"Dropping item {item!r} from batch: {result}")
        elif isinstance(result, BaseException):
            raise result
        elif result is None:
            skipped += 1
        else:
            hydrated.append(result)
    return hydrated, failed, skipped


class BatchScheduler:
    def __init__(self, schedule: BatchSchedule, sleep: SleepFunc = asyncio.sleep):
        self.schedule = schedule
        self._sleep = sleep

    async def run(
        self,
        items: Sequence[K],
        hydrate: Callable[[K], Awaitable[Optional[T]]],
        writer: CycleWriter[T],
        total: Optional[int] = None,
    ) -> AsyncIterator[BatchResult[T]]:
        """
        Hydrates `items` chunk by chunk, committing each chunk through `writer`.

        Args:
            items: Ordered work items (frame IDs, album IDs, ...).
            hydrate: Coroutine function turning one item into a result, or None to skip it.
            writer: The cycle's write handle; the run stops once it is superseded.
            total: Size of the whole request, used to pick the delay. Defaults to len(items).

        Yields:
            One BatchResult per committed chunk, in submission order.
        """
        chunks = chunked(items, self.schedule.chunk_size)
        delay = self.schedule.delay_for(len(items) if total is None else total)
        logger.debug(f"Scheduling {len(items)} item(s) in {len(chunks)} chunk(s), {delay:.3f}s apart")

        for index, chunk in enumerate(chunks):
            if index > 0:
                await self._sleep(delay)
            if not writer.active:
                logger.info(f"Stopping background load after {index} chunk(s): cycle was superseded")
                return

            hydrated, failed, skipped = await hydrate_chunk(chunk, hydrate)
            added = writer.commit(hydrated)
            if added is None:
                return
            yield BatchResult(index=index, requested=len(chunk), added=added, failed=failed, skipped=skipped)
