# === NAVMAP v1 ===
# {
#   "module": "PackFormats.pipeline",
#   "purpose": "End-to-end update run: load, plan, resolve, flush, report, publish",
#   "sections": [
#     {
#       "id": "runreport",
#       "name": "RunReport",
#       "anchor": "class-runreport",
#       "kind": "class"
#     },
#     {
#       "id": "updaterun",
#       "name": "UpdateRun",
#       "anchor": "class-updaterun",
#       "kind": "class"
#     },
#     {
#       "id": "run-update",
#       "name": "run_update",
#       "anchor": "function-run-update",
#       "kind": "function"
#     },
#     {
#       "id": "plan-only",
#       "name": "plan_only",
#       "anchor": "function-plan-only",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""End-to-end update run.

Control flow for one invocation:

1. The caller arms a :class:`~PackFormats.lifecycle.LifecycleSupervisor` whose
   flush callable is :meth:`UpdateRun.flush`.
2. :meth:`UpdateRun.execute` loads the mapping (corrupt file → fatal), fetches
   the catalog once, and plans (unknown cutoff → fatal, before any per-version
   request).
3. The scheduler resolves pending versions; each success is merged into the
   store.
4. The store is flushed, step outputs are written, and, when enabled and
   something was added, the mapping is handed to the publisher.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from .actions import write_outputs
from .catalog import fetch_catalog
from .config import TrackerSettings
from .errors import ConfigurationError, ResolutionFailure
from .http_session import create_http_client
from .lifecycle import LifecycleSupervisor
from .models import CatalogEntry
from .planning import PlanSummary, summarize_plan
from .publish import GitHubPublisher, PublishRequest, PublishResult
from .resolver import ArtifactResolver
from .scheduler import BoundedScheduler, resolve_concurrency
from .store import MappingStore

__all__ = ["RunReport", "UpdateRun", "run_update", "plan_only", "order_like_catalog"]

LOGGER = logging.getLogger(__name__)

PublisherFactory = Callable[[TrackerSettings], GitHubPublisher]


def order_like_catalog(ids: List[str], catalog: List[CatalogEntry]) -> List[str]:
    """Sort ``ids`` by their position in ``catalog``."""

    position = {entry.id: index for index, entry in enumerate(catalog)}
    return sorted(ids, key=lambda key: position.get(key, len(position)))


@dataclass
class RunReport:
    """Summary of one update run."""

    output_path: Path
    concurrency: int
    reference_id: str
    pending: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    added_in_catalog_order: List[str] = field(default_factory=list)
    failures: List[ResolutionFailure] = field(default_factory=list)
    skipped_known: int = 0
    skipped_too_old: int = 0
    flushed: bool = False
    publish_result: Optional[PublishResult] = None

    @property
    def did_update(self) -> bool:
        return bool(self.added)


def _repo_relative(path: Path) -> str:
    """Path of ``path`` inside the checkout, assumed to be the working directory."""

    try:
        return path.resolve().relative_to(Path.cwd().resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def _default_publisher(settings: TrackerSettings) -> GitHubPublisher:
    token = settings.token()
    if token is None:
        raise ConfigurationError("A GitHub token is required to publish")
    if not settings.github_repository:
        raise ConfigurationError("github_repository (or GITHUB_REPOSITORY) is required to publish")
    return GitHubPublisher(token, settings.github_repository, api_url=settings.github_api_url)


class UpdateRun:
    """One update invocation; owns the store once it has been loaded."""

    def __init__(self, settings: TrackerSettings, *, store: Optional[MappingStore] = None) -> None:
        self.settings = settings
        self.store = store

    def flush(self) -> bool:
        if self.store is None:
            return True
        return self.store.flush()

    async def execute(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        supervisor: Optional[LifecycleSupervisor] = None,
        publisher_factory: Optional[PublisherFactory] = None,
        publish: Optional[bool] = None,
        write_step_outputs: bool = True,
    ) -> RunReport:
        """Run the full pipeline and return its report.

        Raises:
            CorruptMappingError, CatalogError, FetchError, UnknownCutoffError:
                Fatal errors, raised before any per-version request.
            PublishError: If publishing was requested and failed.
        """

        settings = self.settings
        if supervisor is not None:
            supervisor.install_loop_handler(asyncio.get_running_loop())

        if self.store is None:
            self.store = MappingStore.load(settings.output_path)
        store = self.store

        if write_step_outputs:
            write_outputs({"path": settings.output_path.as_posix()})

        owns_client = client is None
        http = client or create_http_client(settings.http_config())
        try:
            catalog = await fetch_catalog(http, settings.manifest_url)
            summary = summarize_plan(catalog, store, settings.cutoff_version)
            concurrency = resolve_concurrency(settings.concurrency)
            LOGGER.info("Running with concurrency = %d", concurrency)
            LOGGER.info(
                "Reference version: %s (%s)",
                summary.reference.id,
                summary.reference.raw_timestamp,
            )
            LOGGER.info(
                "%d pending, %d already known, %d before cutoff",
                len(summary.pending),
                summary.known,
                summary.too_old,
            )

            scheduler = BoundedScheduler(concurrency, ArtifactResolver(http), store)
            outcome = await scheduler.run(summary.pending)
        finally:
            if owns_client:
                await http.aclose()

        report = RunReport(
            output_path=settings.output_path,
            concurrency=concurrency,
            reference_id=summary.reference.id,
            pending=summary.pending_ids,
            added=list(outcome.added),
            added_in_catalog_order=order_like_catalog(outcome.added, catalog),
            failures=list(outcome.failures),
            skipped_known=summary.known,
            skipped_too_old=summary.too_old,
        )

        report.flushed = store.flush()

        if write_step_outputs:
            outputs = {}
            if report.added:
                outputs["new_versions"] = ",".join(report.added_in_catalog_order)
            outputs["did_update"] = report.did_update
            write_outputs(outputs)

        should_publish = settings.commit_enabled if publish is None else publish
        if report.did_update and should_publish:
            if settings.token() is None and publisher_factory is None:
                LOGGER.warning("Publishing enabled but no GitHub token configured; skipping")
            else:
                report.publish_result = self._publish(report, publisher_factory or _default_publisher)
        return report

    def _publish(self, report: RunReport, factory: PublisherFactory) -> PublishResult:
        settings = self.settings
        request = PublishRequest(
            path=settings.output_path,
            versions=report.added_in_catalog_order,
            branch=settings.pr_branch,
            base=settings.pr_base,
            commit_template=settings.commit_template,
            commit_type=settings.commit_type,
            commit_scope=settings.commit_scope,
            auto_merge=settings.auto_merge,
            repo_path=_repo_relative(settings.output_path),
        )
        publisher = factory(settings)
        try:
            return publisher.publish(request)
        finally:
            publisher.close()


async def run_update(settings: TrackerSettings, **kwargs) -> RunReport:
    """Convenience wrapper around :meth:`UpdateRun.execute`."""

    return await UpdateRun(settings).execute(**kwargs)


async def plan_only(
    settings: TrackerSettings,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> PlanSummary:
    """Load the mapping and catalog and plan, without resolving or writing."""

    store = MappingStore.load(settings.output_path)
    owns_client = client is None
    http = client or create_http_client(settings.http_config())
    try:
        catalog = await fetch_catalog(http, settings.manifest_url)
    finally:
        if owns_client:
            await http.aclose()
    return summarize_plan(catalog, store, settings.cutoff_version)
