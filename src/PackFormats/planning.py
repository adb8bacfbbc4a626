"""Update planning: decide which catalog entries still need resolving.

Planning is a pure function of the catalog, the set of known ids, and the
cutoff id. It keeps no state of its own; the mapping file is the only thing
persisted between runs, so an interrupted run is simply re-planned.
"""

from __future__ import annotations

import logging
from collections.abc import Container
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from .errors import UnknownCutoffError
from .models import CatalogEntry

__all__ = [
    "DEFAULT_CUTOFF_VERSION",
    "PlanSummary",
    "find_reference_entry",
    "plan_updates",
    "summarize_plan",
]

LOGGER = logging.getLogger(__name__)

#: First snapshot whose client archive carries ``version.json``.
DEFAULT_CUTOFF_VERSION = "18w47a"


@dataclass
class PlanSummary:
    """Outcome of one planning pass."""

    reference: CatalogEntry
    pending: List[CatalogEntry] = field(default_factory=list)
    known: int = 0
    too_old: int = 0

    @property
    def pending_ids(self) -> List[str]:
        return [entry.id for entry in self.pending]


def find_reference_entry(catalog: Iterable[CatalogEntry], cutoff_id: str) -> CatalogEntry:
    """Return the catalog entry whose id equals ``cutoff_id``.

    Raises:
        UnknownCutoffError: If no entry matches.
    """

    for entry in catalog:
        if entry.id == cutoff_id:
            return entry
    raise UnknownCutoffError(cutoff_id)


def summarize_plan(
    catalog: Sequence[CatalogEntry],
    known: Container[str],
    cutoff_id: str,
) -> PlanSummary:
    """Plan updates and keep the skip counts for reporting."""

    reference = find_reference_entry(catalog, cutoff_id)
    reference_time = reference.timestamp
    summary = PlanSummary(reference=reference)

    for entry in catalog:
        if entry.id in known:
            summary.known += 1
            continue
        if entry.timestamp < reference_time:
            LOGGER.debug(
                "Skipping %s (%s) as it predates %s",
                entry.id,
                entry.raw_timestamp,
                reference.id,
            )
            summary.too_old += 1
            continue
        summary.pending.append(entry)
    return summary


def plan_updates(
    catalog: Sequence[CatalogEntry],
    known: Container[str],
    cutoff_id: str,
) -> List[CatalogEntry]:
    """Return the entries to resolve, in catalog order.

    Entries whose id is in ``known`` are skipped regardless of age, as are
    entries released strictly before the cutoff entry.
    """

    return summarize_plan(catalog, known, cutoff_id).pending
