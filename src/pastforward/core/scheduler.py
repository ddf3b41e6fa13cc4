"""Work Scheduler: bounded-concurrency generation across the decade catalog.

A batch starts exactly ``worker_count`` worker tasks that drain one shared
FIFO queue of decades.  Each worker processes one decade completely (mark
pending, call the generator, record done/error) before pulling the next, so
at most ``worker_count`` generator calls are in flight at any time.  That
bound is what keeps the image service inside its rate limits; the scheduler
never fans out one task per decade.

A single decade can be regenerated after the batch as an independent one-off
call.  Regeneration is refused while the decade is already pending, and a
new batch is refused while a regeneration is still in flight.

Everything runs cooperatively on one asyncio event loop.  The only suspension
point is the generator call, and every store write is a single whole-entry
assignment, so the store needs no locking.

Usage
-----
::

    store = ResultStore()
    scheduler = WorkScheduler(store, client, catalog, worker_count=2)
    await scheduler.run_batch(source_image)
    await scheduler.regenerate(source_image, "1960s")
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from .catalog import Catalog, Decade
from .errors import BatchInProgressError, MissingSourceImageError
from .generator_client import GeneratorClient
from .prompt_builder import build_decade_prompt
from .result_store import ResultEntry, ResultStore, Status

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."


def describe_failure(exc: BaseException) -> str:
    """Return a human-readable message for a failed generation."""
    message = str(exc).strip()
    return message or UNKNOWN_ERROR_MESSAGE


@dataclass
class Batch:
    """One run of the scheduler across the catalog.

    Attributes:
        source_image: Uploaded photo shared by every work item.
        generation: Store generation the batch was started against.
        queue: Decades not yet claimed by a worker.
    """

    source_image: str
    generation: int
    queue: deque[Decade] = field(default_factory=deque)


class WorkScheduler:
    """Drives decades through the generator with a fixed-size worker pool."""

    def __init__(
        self,
        store: ResultStore,
        client: GeneratorClient,
        catalog: Catalog,
        *,
        worker_count: int = 2,
        prompt_builder: Callable[[str], str] = build_decade_prompt,
    ) -> None:
        """Initialise the scheduler.

        Args:
            store: Result store receiving every transition.
            client: Generator client invoked once per decade.
            catalog: Ordered decade catalog.
            worker_count: Number of concurrent workers (at least 1).
            prompt_builder: Maps a display label to prompt text.
        """
        if worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {worker_count}")
        self._store = store
        self._client = client
        self._catalog = catalog
        self._worker_count = worker_count
        self._prompt_builder = prompt_builder
        self._running_generation: int | None = None
        # Decade id -> store generation of its in-flight generator call.
        self._in_flight: dict[str, int] = {}

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def is_running(self) -> bool:
        """Whether a batch is running against the current store generation."""
        return self._running_generation == self._store.generation

    def _in_flight_now(self, decade_id: str | None = None) -> bool:
        generation = self._store.generation
        if decade_id is not None:
            return self._in_flight.get(decade_id) == generation
        return generation in self._in_flight.values()

    # -- Batch --------------------------------------------------------------

    def begin_batch(self, source_image: str | None) -> Batch:
        """Validate preconditions and mark every decade pending.

        This is the synchronous half of :meth:`run_batch`; pass the returned
        batch to :meth:`drain` to do the work.

        Raises:
            MissingSourceImageError: If no source image is given.
            BatchInProgressError: If a batch or a regeneration is already
                running for the current store generation.
        """
        if not source_image:
            raise MissingSourceImageError()
        if self.is_running:
            raise BatchInProgressError()
        if self._in_flight_now():
            raise BatchInProgressError("A regeneration is still running.")

        generation = self._store.generation
        for decade in self._catalog:
            self._store.apply(decade.id, ResultEntry.pending(), generation)

        self._running_generation = generation
        logger.info(
            "Starting batch of %d decades with %d workers (generation %d).",
            len(self._catalog),
            self._worker_count,
            generation,
        )
        return Batch(source_image=source_image, generation=generation, queue=deque(self._catalog))

    async def drain(self, batch: Batch) -> None:
        """Run the worker pool until ``batch.queue`` is exhausted.

        Resolves once every worker has finished, i.e. every claimed decade
        has settled as done or error.
        """
        try:
            workers = [
                asyncio.create_task(self._worker(batch, index), name=f"decade-worker-{index}")
                for index in range(self._worker_count)
            ]
            await asyncio.gather(*workers)
        finally:
            if self._running_generation == batch.generation:
                self._running_generation = None
        logger.info("Batch for generation %d finished.", batch.generation)

    async def run_batch(self, source_image: str | None) -> None:
        """Generate every catalog decade with bounded concurrency."""
        batch = self.begin_batch(source_image)
        await self.drain(batch)

    async def _worker(self, batch: Batch, index: int) -> None:
        while batch.queue:
            if batch.generation != self._store.generation:
                logger.info(
                    "Worker %d stopping: batch generation %d was reset.", index, batch.generation
                )
                return
            decade = batch.queue.popleft()
            logger.debug("Worker %d claimed %s.", index, decade.id)
            await self._process(batch.source_image, decade, batch.generation)

    # -- Single item --------------------------------------------------------

    async def regenerate(self, source_image: str | None, decade_id: str) -> bool:
        """Redo one decade outside the batch worker pool.

        Returns:
            ``True`` if a generation ran, ``False`` if the decade was already
            pending (no generator call is made).

        Raises:
            MissingSourceImageError: If no source image is given.
            UnknownDecadeError: If ``decade_id`` is not in the catalog.
        """
        if not source_image:
            raise MissingSourceImageError()
        decade = self._catalog.get(decade_id)

        entry = self._store.get(decade.id)
        pending = entry is not None and entry.status is Status.PENDING
        if pending or self._in_flight_now(decade.id):
            logger.info("Ignoring regeneration of %s: already pending.", decade.id)
            return False

        logger.info("Regenerating image for %s.", decade.id)
        await self._process(source_image, decade, self._store.generation)
        return True

    async def _process(self, source_image: str, decade: Decade, generation: int) -> None:
        """Single-item protocol: pending, generate, then done or error."""
        if not self._store.apply(decade.id, ResultEntry.pending(), generation):
            return

        prompt = self._prompt_builder(decade.label)
        self._in_flight[decade.id] = generation
        try:
            payload = await self._client.generate(source_image, prompt)
        except Exception as exc:
            message = describe_failure(exc)
            logger.warning("Failed to generate image for %s: %s", decade.id, message)
            self._store.apply(decade.id, ResultEntry.failed(message), generation)
            return
        finally:
            if self._in_flight.get(decade.id) == generation:
                del self._in_flight[decade.id]

        if not payload:
            logger.warning("Generator returned an empty result for %s.", decade.id)
            self._store.apply(
                decade.id, ResultEntry.failed("The generator returned no image."), generation
            )
            return

        logger.info("Generated image for %s.", decade.id)
        self._store.apply(decade.id, ResultEntry.done(payload), generation)
