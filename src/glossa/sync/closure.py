"""Closure fetch over the remote gloss endpoint.

Given some already-received gloss payloads, discovers every gloss they
reference (directly or through nested containment), fetches those one by
one, discovers what the fetched glosses reference in turn, and repeats until
nothing new turns up.

Fetching happens in waves. Within a wave requests run concurrently under a
semaphore; newly discovered IDs are merged only after the whole wave has
finished, so the bookkeeping sets are touched by the coordinating coroutine
alone.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from glossa.errors import FetchFailure
from glossa.graph.models import Gloss, GlossDTO

from .remote import GlossApiClient

logger = logging.getLogger(__name__)


@dataclass
class ClosureResult:
    """Outcome of a closure fetch."""

    records: list[Gloss] = field(default_factory=list)  # Fetch order
    failed: dict[str, str] = field(default_factory=dict)  # ID -> error message
    truncated: bool = False  # Stopped at the fetch ceiling
    cancelled: bool = False  # Stopped by deadline or cancel event
    waves: int = 0

    @property
    def complete(self) -> bool:
        return not (self.failed or self.truncated or self.cancelled)

    def ids(self) -> list[str]:
        return [record.id for record in self.records]


class ClosureFetcher:
    """Fetches the transitive closure of gloss references.

    Example:
        fetcher = ClosureFetcher(client, max_fetches=200)
        result = await fetcher.fetch_closure(situation.glosses())
        local_store.upsert_many(result.records)
    """

    def __init__(self, client: GlossApiClient, max_fetches: int = 500, concurrency: int = 4):
        """Initialize the fetcher.

        Args:
            client: Remote API client used for single-gloss fetches.
            max_fetches: Hard ceiling on fetches per closure.
            concurrency: Maximum simultaneous requests within a wave.
        """
        if max_fetches < 1:
            raise ValueError("max_fetches must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.client = client
        self.max_fetches = max_fetches
        self.concurrency = concurrency

    async def fetch_closure(
        self,
        roots: Iterable[GlossDTO],
        deadline: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ClosureResult:
        """Fetch every gloss reachable from the roots, each exactly once.

        Args:
            roots: Payloads already in hand. Their own IDs are fetched too.
            deadline: Event loop time (``loop.time()``) after which the
                fetch stops and returns what it has.
            cancel_event: Setting it stops the fetch the same way.

        Returns:
            The fetched records plus failure, truncation and cancellation
            details. Failures never raise.
        """
        result = ClosureResult()
        # Insertion-ordered set
        discovered: dict[str, None] = {}
        for root in roots:
            discovered.setdefault(root.id)
            for ref in root.iter_references():
                discovered.setdefault(ref.id)
        attempted: set[str] = set()

        while True:
            pending = [gloss_id for gloss_id in discovered if gloss_id not in attempted]
            if not pending:
                break
            if _should_stop(deadline, cancel_event):
                result.cancelled = True
                break
            budget = self.max_fetches - len(attempted)
            if budget <= 0:
                result.truncated = True
                logger.warning(
                    f"Closure fetch hit the ceiling of {self.max_fetches} fetches; "
                    f"{len(pending)} glosses left unfetched, result is partial"
                )
                break

            wave = pending[:budget]
            result.waves += 1
            outcomes, cancelled = await self._run_wave(wave, deadline, cancel_event)

            for gloss_id in wave:
                if gloss_id not in outcomes:
                    continue
                attempted.add(gloss_id)
                outcome = outcomes[gloss_id]
                if isinstance(outcome, FetchFailure):
                    result.failed[gloss_id] = outcome.message
                    continue
                result.records.append(outcome.to_record())
                for ref in outcome.iter_references():
                    discovered.setdefault(ref.id)

            if cancelled:
                result.cancelled = True
                break

        if result.cancelled:
            logger.warning(
                f"Closure fetch cancelled after {len(result.records)} glosses "
                f"in {result.waves} waves"
            )
        logger.info(
            f"Closure fetch: {len(result.records)} fetched, {len(result.failed)} failed, "
            f"{result.waves} waves"
        )
        return result

    async def _fetch_one(
        self, gloss_id: str, semaphore: asyncio.Semaphore
    ) -> GlossDTO | FetchFailure:
        async with semaphore:
            try:
                return await self.client.fetch_gloss(gloss_id)
            except FetchFailure as e:
                logger.warning(f"Failed to fetch gloss {gloss_id}: {e.message}")
                return e

    async def _run_wave(
        self,
        wave: list[str],
        deadline: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> tuple[dict[str, GlossDTO | FetchFailure], bool]:
        """Run one wave of fetches.

        Returns:
            Outcomes of the fetches that completed, and whether the wave was
            cut short by the deadline or the cancel event.
        """
        loop = asyncio.get_running_loop()
        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = {asyncio.create_task(self._fetch_one(gloss_id, semaphore)): gloss_id for gloss_id in wave}
        cancel_waiter = asyncio.create_task(cancel_event.wait()) if cancel_event else None

        outcomes: dict[str, GlossDTO | FetchFailure] = {}
        running = set(tasks)
        cancelled = False
        try:
            while running:
                timeout = None
                if deadline is not None:
                    timeout = max(0.0, deadline - loop.time())
                watched = running | {cancel_waiter} if cancel_waiter else running
                done, _ = await asyncio.wait(
                    watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    if task is cancel_waiter:
                        continue
                    running.discard(task)
                    outcomes[tasks[task]] = task.result()
                if not done or (cancel_waiter is not None and cancel_waiter in done):
                    cancelled = bool(running)
                    break
        finally:
            for task in running:
                task.cancel()
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            await asyncio.gather(*running, return_exceptions=True)
            if cancel_waiter is not None:
                await asyncio.gather(cancel_waiter, return_exceptions=True)

        return outcomes, cancelled


def _should_stop(deadline: Optional[float], cancel_event: Optional[asyncio.Event]) -> bool:
    if cancel_event is not None and cancel_event.is_set():
        return True
    return deadline is not None and asyncio.get_running_loop().time() >= deadline
