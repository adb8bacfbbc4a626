"""Incremental tracker of datapack/resourcepack formats per game version.

The public surface covers the durable mapping store, the artifact resolver,
the update planner, the bounded scheduler, and the lifecycle supervisor that
keeps the mapping flushed when a run is interrupted.
"""

from __future__ import annotations

from .errors import (
    CatalogError,
    ConfigurationError,
    CorruptMappingError,
    DescriptorError,
    FetchError,
    MissingMetadataError,
    PackFormatsError,
    PackVersionSchemaError,
    PublishError,
    ResolutionError,
    ResolutionFailure,
    UnknownCutoffError,
)
from .lifecycle import LifecycleSupervisor
from .models import CatalogEntry, PackFormatPair, decode_pack_version
from .planning import plan_updates
from .resolver import ArtifactResolver, extract_pack_formats
from .scheduler import BoundedScheduler, auto_concurrency
from .store import MappingStore

__version__ = "1.0.0"

__all__ = [
    "ArtifactResolver",
    "BoundedScheduler",
    "CatalogEntry",
    "CatalogError",
    "ConfigurationError",
    "CorruptMappingError",
    "DescriptorError",
    "FetchError",
    "LifecycleSupervisor",
    "MappingStore",
    "MissingMetadataError",
    "PackFormatPair",
    "PackFormatsError",
    "PackVersionSchemaError",
    "PublishError",
    "ResolutionError",
    "ResolutionFailure",
    "UnknownCutoffError",
    "auto_concurrency",
    "decode_pack_version",
    "extract_pack_formats",
    "plan_updates",
    "__version__",
]
