# === NAVMAP v1 ===
# {
#   "module": "PackFormats.errors",
#   "purpose": "Exception hierarchy and failure logging helpers for pack format tracking.",
#   "sections": [
#     {
#       "id": "packformatserror",
#       "name": "PackFormatsError",
#       "anchor": "class-packformatserror",
#       "kind": "class"
#     },
#     {
#       "id": "resolutionerror",
#       "name": "ResolutionError",
#       "anchor": "class-resolutionerror",
#       "kind": "class"
#     },
#     {
#       "id": "resolutionfailure",
#       "name": "ResolutionFailure",
#       "anchor": "class-resolutionfailure",
#       "kind": "class"
#     },
#     {
#       "id": "log-resolution-failure",
#       "name": "log_resolution_failure",
#       "anchor": "function-log-resolution-failure",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across loading, planning, resolution, and publishing.

Failures fall into two classes:

- **Fatal** errors abort a run before any per-version work starts
  (:class:`CorruptMappingError`, :class:`UnknownCutoffError`,
  :class:`CatalogError`, :class:`ConfigurationError`).
- **Per-item** errors are subclasses of :class:`ResolutionError`. The scheduler
  catches them, logs them through :func:`log_resolution_failure`, and keeps
  going with sibling versions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

__all__ = [
    "PackFormatsError",
    "ConfigurationError",
    "CorruptMappingError",
    "CatalogError",
    "UnknownCutoffError",
    "ResolutionError",
    "FetchError",
    "DescriptorError",
    "MissingMetadataError",
    "PackVersionSchemaError",
    "PublishError",
    "ResolutionFailure",
    "log_resolution_failure",
]

LOGGER = logging.getLogger(__name__)


class PackFormatsError(RuntimeError):
    """Base exception for every failure raised by the tracker."""


class ConfigurationError(PackFormatsError):
    """Raised when settings or CLI inputs are invalid."""


class CorruptMappingError(PackFormatsError):
    """Raised when the mapping file exists but cannot be decoded."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class CatalogError(PackFormatsError):
    """Raised when the version manifest is missing or malformed."""


class UnknownCutoffError(PackFormatsError):
    """Raised when the configured cutoff id is absent from the catalog."""

    def __init__(self, cutoff_id: str) -> None:
        super().__init__(f"Reference version {cutoff_id} not found in the manifest.")
        self.cutoff_id = cutoff_id


class ResolutionError(PackFormatsError):
    """Per-version failure while resolving pack formats from a client archive."""

    def __init__(self, message: str, *, entry_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.entry_id = entry_id


class FetchError(ResolutionError):
    """Raised when a network request returns a non-success status or fails."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: Optional[int] = None,
        entry_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, entry_id=entry_id)
        self.url = url
        self.status_code = status_code


class DescriptorError(ResolutionError):
    """Raised when a version descriptor lacks the client download locator."""


class MissingMetadataError(ResolutionError):
    """Raised when the archive is unreadable or has no ``version.json`` entry."""


class PackVersionSchemaError(ResolutionError):
    """Raised when ``pack_version`` is absent or has an unrecognised shape."""


class PublishError(PackFormatsError):
    """Raised when the GitHub publishing step fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ResolutionFailure:
    """Structured record of a version that could not be resolved."""

    entry_id: str
    error_type: str
    message: str
    url: Optional[str] = None
    status_code: Optional[int] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, entry_id: str, exc: ResolutionError) -> "ResolutionFailure":
        return cls(
            entry_id=entry_id,
            error_type=type(exc).__name__,
            message=str(exc),
            url=getattr(exc, "url", None),
            status_code=getattr(exc, "status_code", None),
        )


def log_resolution_failure(
    logger: logging.Logger,
    failure: ResolutionFailure,
) -> None:
    """Log a per-version failure with structured context.

    Args:
        logger: Logger instance to use for output
        failure: Failure record produced by the scheduler

    Examples:
        >>> log_resolution_failure(
        ...     LOGGER,
        ...     ResolutionFailure("1.14", "FetchError", "https://example.org -> 404"),
        ... )
    """

    log_entry: dict[str, Any] = {
        "entry_id": failure.entry_id,
        "error_type": failure.error_type,
    }
    if failure.url:
        log_entry["url"] = failure.url
    if failure.status_code is not None:
        log_entry["status_code"] = failure.status_code
    if failure.metadata:
        log_entry.update(failure.metadata)

    logger.error(
        "Failed to process %s: %s",
        failure.entry_id,
        failure.message,
        extra={"extra_fields": log_entry},
    )
