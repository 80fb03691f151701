"""
Bounded batch pool for cooperative (asyncio) concurrency.

Items are split into contiguous, ordered batches. Batches run strictly one
after another; the items of one batch run concurrently, capped by a
semaphore. A fixed delay separates consecutive batches to bound load on the
backend. There is no cancellation: once started, every batch runs.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar, Union,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

BatchCallback = Callable[["BatchResult"], None]


@dataclass
class BatchResult(Generic[T, R]):
    """
    Outcome of one settled batch.

    Attributes:
        index: Zero-based batch number
        items: Items of this batch, in input order
        results: Worker result or raised exception per item, in input order
        processed_so_far: Items settled across this and all earlier batches
        total: Total items across all batches
    """
    index: int
    items: List[T]
    results: List[Union[R, BaseException]] = field(default_factory=list)
    processed_so_far: int = 0
    total: int = 0

    @property
    def errors(self) -> List[BaseException]:
        return [r for r in self.results if isinstance(r, BaseException)]


def partition(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """
    Split items into contiguous batches of `batch_size` (last may be shorter).

    Raises:
        ValueError: If batch_size is less than 1
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class BoundedBatchPool:
    """
    Runs an async worker over ordered batches with bounded concurrency.

    Features:
    - Strict inter-batch ordering (batch N+1 starts after batch N settles)
    - Intra-batch concurrency capped by a semaphore
    - Fixed throttle delay between batches, none after the last
    - Per-item failure isolation: a raising worker never cancels its siblings
    """

    def __init__(
        self,
        batch_size: int = 10,
        max_concurrency: Optional[int] = None,
        inter_batch_delay: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the pool.

        Args:
            batch_size: Items per batch
            max_concurrency: In-flight cap (default: batch_size)
            inter_batch_delay: Seconds to wait between batches
            sleep: Coroutine used for the delay (injectable for tests)
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        if inter_batch_delay < 0:
            raise ValueError(f"inter_batch_delay must be non-negative, got {inter_batch_delay}")

        self.batch_size = batch_size
        self.max_concurrency = max_concurrency or batch_size
        self.inter_batch_delay = inter_batch_delay
        self._sleep = sleep

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        on_batch_complete: Optional[BatchCallback] = None,
    ) -> List[BatchResult]:
        """
        Run `worker` over every item.

        Args:
            items: Items to process, in order
            worker: Coroutine function called once per item
            on_batch_complete: Called with each BatchResult after it settles

        Returns:
            One BatchResult per batch, in batch order
        """
        batches = partition(items, self.batch_size)
        total = len(items)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        processed = 0
        results: List[BatchResult] = []

        async def bounded(item: T) -> R:
            async with semaphore:
                return await worker(item)

        for index, batch in enumerate(batches):
            settled = await asyncio.gather(
                *(bounded(item) for item in batch),
                return_exceptions=True,
            )
            processed += len(batch)

            batch_result = BatchResult(
                index=index,
                items=batch,
                results=list(settled),
                processed_so_far=processed,
                total=total,
            )
            results.append(batch_result)
            logger.debug(f"Batch {index + 1}/{len(batches)} settled ({processed}/{total})")

            if on_batch_complete is not None:
                on_batch_complete(batch_result)

            if index < len(batches) - 1 and self.inter_batch_delay > 0:
                await self._sleep(self.inter_batch_delay)

        return results
