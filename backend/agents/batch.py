"""
Batch scheduling of trip generation.

Slots run strictly one after another. Each slot waits a stagger delay that
grows with its index, runs the retried attempt under its own timeout, and a
failed slot is followed by a cooldown before the next one starts. The batch
succeeds when at least one slot produced a trip.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from .generator import TripGenerator
from ..schemas.progress import BatchProgress, BatchState, SlotStatus
from ..schemas.requests import GenerationRequest
from ..schemas.trip import Trip
from ..utils.exceptions import BatchExhaustionError, BatchInProgressError, SlotTimeoutError
from ..utils.retry import RetryConfig, RetryOrchestrator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


class BatchScheduler:
    """
    Generates ``count`` trips and publishes a progress snapshot after every transition.

    The scheduler is the only writer of its progress; observers receive
    immutable BatchProgress snapshots.
    """

    def __init__(
        self,
        generator: TripGenerator,
        retry: Optional[RetryOrchestrator] = None,
        stagger_delay: float = 5.0,
        failure_cooldown: float = 7.0,
        item_timeout: float = 120.0,
        on_progress: Optional[ProgressCallback] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.generator = generator
        self.retry = retry or RetryOrchestrator(sleep=sleep)
        self.stagger_delay = stagger_delay
        self.failure_cooldown = failure_cooldown
        self.item_timeout = item_timeout
        self.on_progress = on_progress
        self._sleep = sleep
        self._progress = BatchProgress.initial(0)
        self._running = False

    @classmethod
    def from_settings(
        cls,
        generator: TripGenerator,
        on_progress: Optional[ProgressCallback] = None
    ) -> "BatchScheduler":
        """Scheduler with the delays and timeout configured in settings."""
        from ..utils.config import settings

        return cls(
            generator,
            retry=RetryOrchestrator(RetryConfig.from_settings()),
            stagger_delay=settings.batch_stagger_delay,
            failure_cooldown=settings.batch_failure_cooldown,
            item_timeout=settings.batch_item_timeout,
            on_progress=on_progress,
        )

    @property
    def progress(self) -> BatchProgress:
        return self._progress

    @property
    def is_running(self) -> bool:
        return self._running

    def _publish(self, **changes) -> None:
        self._progress = self._progress.model_copy(
            update={**changes, "version": self._progress.version + 1}
        )
        if self.on_progress is None:
            return
        try:
            self.on_progress(self._progress)
        except Exception:
            logger.exception("Progress observer failed")

    def _set_slot(self, index: int, status: SlotStatus, **changes) -> None:
        statuses = list(self._progress.statuses)
        statuses[index] = status
        self._publish(statuses=tuple(statuses), **changes)

    async def _run_slot(self, index: int, request: Optional[GenerationRequest]) -> Optional[Trip]:
        label = f"trip_{index + 1}"
        try:
            return await asyncio.wait_for(
                self.retry.run(lambda: self.generator.attempt(request), label=label),
                timeout=self.item_timeout
            )
        except asyncio.TimeoutError:
            error = SlotTimeoutError(index, self.item_timeout)
            logger.error(f"Error generating trip {index + 1}: {error.message}")
            return None

    async def generate_batch(
        self,
        request: Optional[GenerationRequest] = None,
        count: int = 3
    ) -> List[Optional[Trip]]:
        """
        Generate ``count`` trips sequentially.

        Args:
            request: Trip parameters; None generates recommended trips
            count: Number of slots

        Returns:
            List of length ``count``, with None for failed slots

        Raises:
            BatchExhaustionError: If every slot failed
            BatchInProgressError: If this scheduler is already running a batch
        """
        if count < 1:
            raise ValueError("count must be at least 1")
        if self._running:
            raise BatchInProgressError("A trip batch is already being generated")

        self._running = True
        try:
            self._progress = BatchProgress.initial(count)
            self._publish(state=BatchState.LOADING)
            results: List[Optional[Trip]] = []

            for i in range(count):
                self._set_slot(i, SlotStatus.LOADING, current_index=i)

                if i > 0:
                    await self._sleep(self.stagger_delay * i)

                trip = await self._run_slot(i, request)
                results.append(trip)
                self._set_slot(
                    i,
                    SlotStatus.COMPLETED if trip is not None else SlotStatus.ERROR,
                    completed=self._progress.completed + 1
                )

                if trip is None and i < count - 1:
                    logger.info(f"Trip {i + 1} failed, cooling down {self.failure_cooldown:g}s before the next one")
                    await self._sleep(self.failure_cooldown)

            succeeded = sum(1 for trip in results if trip is not None)
            if succeeded == 0:
                self._publish(state=BatchState.ERROR)
                raise BatchExhaustionError(count)

            if succeeded < count:
                logger.warning(f"Generated only {succeeded} valid trips out of {count}")
            self._publish(state=BatchState.SUCCESS)
            return results
        finally:
            self._running = False
