# === NAVMAP v1 ===
# {
#   "module": "PackFormats.scheduler",
#   "purpose": "Bounded-concurrency driver for artifact resolution with per-item isolation",
#   "sections": [
#     {
#       "id": "auto-concurrency",
#       "name": "auto_concurrency",
#       "anchor": "function-auto-concurrency",
#       "kind": "function"
#     },
#     {
#       "id": "resolve-concurrency",
#       "name": "resolve_concurrency",
#       "anchor": "function-resolve-concurrency",
#       "kind": "function"
#     },
#     {
#       "id": "schedulerreport",
#       "name": "SchedulerReport",
#       "anchor": "class-schedulerreport",
#       "kind": "class"
#     },
#     {
#       "id": "boundedscheduler",
#       "name": "BoundedScheduler",
#       "anchor": "class-boundedscheduler",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Bounded-concurrency scheduling of artifact resolutions.

**Design:**

All resolutions run as asyncio tasks on a single event loop. An
:class:`asyncio.Semaphore` caps how many of them may have a fetch outstanding,
because every in-flight resolution keeps a whole client archive in memory:

    scheduler = BoundedScheduler(limit=4, resolver=resolver, store=store)
    report = await scheduler.run(pending)

Mapping updates happen in the task body after its awaits complete, on the loop
thread, so they never interleave and need no lock.

**Failure isolation:**

:class:`ResolutionError` raised for one entry is logged and recorded in the
report; sibling tasks keep running and nothing is retried. Any other exception
is a programming fault and propagates out of :meth:`BoundedScheduler.run`.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

import psutil

from .errors import ResolutionError, ResolutionFailure, log_resolution_failure
from .models import CatalogEntry, PackFormatPair
from .store import MappingStore

__all__ = [
    "EST_MEM_PER_JOB",
    "CONCURRENCY_CEILING",
    "auto_concurrency",
    "resolve_concurrency",
    "SchedulerReport",
    "BoundedScheduler",
]

logger = logging.getLogger(__name__)

#: Approximate bytes held while one client archive is in memory (80 MiB).
EST_MEM_PER_JOB = 80 * 2**20

#: Hard upper bound on simultaneous resolutions.
CONCURRENCY_CEILING = 8


class Resolver(Protocol):
    async def resolve(self, entry: CatalogEntry) -> PackFormatPair: ...


def auto_concurrency(
    cpu_count: Optional[int] = None,
    total_memory: Optional[int] = None,
) -> int:
    """Derive a default concurrency limit from the host.

    The result is the smallest of the logical CPU count, the number of
    archives that fit in total memory, and :data:`CONCURRENCY_CEILING`,
    floored at 1.
    """

    cpus = cpu_count if cpu_count is not None else (os.cpu_count() or 1)
    memory = total_memory if total_memory is not None else psutil.virtual_memory().total
    memory_bound = memory // EST_MEM_PER_JOB
    return max(1, min(CONCURRENCY_CEILING, cpus, memory_bound))


def resolve_concurrency(configured: Optional[int]) -> int:
    """Return ``configured`` when it is a positive limit, otherwise the host default."""

    if configured is not None and configured >= 1:
        return configured
    return auto_concurrency()


@dataclass
class SchedulerReport:
    """Results of one scheduler run."""

    limit: int
    submitted: int = 0
    added: List[str] = field(default_factory=list)
    failures: List[ResolutionFailure] = field(default_factory=list)
    peak_in_flight: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.added)

    @property
    def failed(self) -> int:
        return len(self.failures)


class BoundedScheduler:
    """Run a resolver over pending entries with at most ``limit`` in flight."""

    def __init__(self, limit: int, resolver: Resolver, store: MappingStore) -> None:
        if limit < 1:
            raise ValueError(f"concurrency limit must be >= 1, got {limit}")
        self.limit = limit
        self.resolver = resolver
        self.store = store
        self._in_flight = 0

    async def run(self, pending: Sequence[CatalogEntry]) -> SchedulerReport:
        """Resolve every entry in ``pending`` and merge successes into the store.

        Returns once every submitted entry has either succeeded or failed.
        ``report.added`` lists ids in completion order.
        """

        report = SchedulerReport(limit=self.limit, submitted=len(pending))
        if not pending:
            return report

        semaphore = asyncio.Semaphore(self.limit)
        tasks = [
            asyncio.ensure_future(self._process(entry, semaphore, report)) for entry in pending
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        logger.info(
            "Resolved %d of %d pending versions (%d failed)",
            report.succeeded,
            report.submitted,
            report.failed,
        )
        return report

    async def _process(
        self,
        entry: CatalogEntry,
        semaphore: asyncio.Semaphore,
        report: SchedulerReport,
    ) -> None:
        async with semaphore:
            self._in_flight += 1
            report.peak_in_flight = max(report.peak_in_flight, self._in_flight)
            try:
                formats = await self.resolver.resolve(entry)
            except ResolutionError as exc:
                failure = ResolutionFailure.from_exception(entry.id, exc)
                report.failures.append(failure)
                log_resolution_failure(logger, failure)
                return
            finally:
                self._in_flight -= 1

        if self.store.put(entry.id, formats):
            report.added.append(entry.id)
            logger.info(
                "%s: data=%s, res=%s",
                entry.id,
                formats.datapack,
                formats.resourcepack,
                extra={"extra_fields": {"entry_id": entry.id, **formats.to_dict()}},
            )
