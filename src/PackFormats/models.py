"""Typed records for catalog entries, pack format pairs, and ``pack_version`` shapes.

``version.json`` has carried three different ``pack_version`` layouts over the
years. :func:`decode_pack_version` maps the raw JSON value onto one of three
tagged variants and rejects anything else with :class:`PackVersionSchemaError`,
so an unknown future layout fails loudly instead of producing empty values.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from .errors import CatalogError, PackVersionSchemaError

__all__ = [
    "FormatNumber",
    "CatalogEntry",
    "PackFormatPair",
    "FlatPackVersion",
    "SplitPackVersion",
    "MajorMinorPackVersion",
    "PackVersion",
    "decode_pack_version",
    "normalize_major_minor",
    "parse_timestamp",
]

FormatNumber = Union[int, float]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 manifest timestamp into an aware UTC ``datetime``."""

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise CatalogError(f"Invalid timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class CatalogEntry:
    """One version listed in the version manifest."""

    id: str
    url: str
    release_time: Optional[str] = None
    time: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.release_time or self.time):
            raise CatalogError(f"Catalog entry {self.id} has neither releaseTime nor time")

    @property
    def raw_timestamp(self) -> str:
        return self.release_time or self.time or ""

    @property
    def timestamp(self) -> datetime:
        return parse_timestamp(self.raw_timestamp)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CatalogEntry":
        """Build an entry from a manifest ``versions[]`` object."""

        if not isinstance(payload, Mapping):
            raise CatalogError(f"Catalog entry must be an object, got {type(payload).__name__}")
        entry_id = payload.get("id")
        url = payload.get("url")
        if not isinstance(entry_id, str) or not entry_id:
            raise CatalogError("Catalog entry is missing a string 'id'")
        if not isinstance(url, str) or not url:
            raise CatalogError(f"Catalog entry {entry_id} is missing a string 'url'")
        return cls(
            id=entry_id,
            url=url,
            release_time=payload.get("releaseTime") or None,
            time=payload.get("time") or None,
        )


@dataclass(frozen=True)
class PackFormatPair:
    """Datapack and resourcepack format identifiers for one version."""

    datapack: FormatNumber
    resourcepack: FormatNumber

    def to_dict(self) -> dict[str, FormatNumber]:
        return {"datapack": self.datapack, "resourcepack": self.resourcepack}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PackFormatPair":
        datapack = payload.get("datapack")
        resourcepack = payload.get("resourcepack")
        if not _is_number(datapack) or not _is_number(resourcepack):
            raise ValueError("datapack and resourcepack must both be numbers")
        return cls(datapack=datapack, resourcepack=resourcepack)


def normalize_major_minor(major: FormatNumber, minor: FormatNumber) -> FormatNumber:
    """Collapse a major/minor pair into one comparable number.

    ``(5, 0)`` becomes ``5`` and ``(5, 2)`` becomes ``5.2``; the non-zero case
    is the numeric parse of ``"<major>.<minor>"``.
    """

    if minor == 0:
        return major
    return float(f"{major}.{minor}")


@dataclass(frozen=True)
class FlatPackVersion:
    """Single number shared by datapacks and resourcepacks."""

    value: FormatNumber

    def to_formats(self) -> PackFormatPair:
        return PackFormatPair(datapack=self.value, resourcepack=self.value)


@dataclass(frozen=True)
class SplitPackVersion:
    """``{"data": n, "resource": n}`` layout."""

    data: FormatNumber
    resource: FormatNumber

    def to_formats(self) -> PackFormatPair:
        return PackFormatPair(datapack=self.data, resourcepack=self.resource)


@dataclass(frozen=True)
class MajorMinorPackVersion:
    """``{"data_major", "data_minor", "resource_major", "resource_minor"}`` layout."""

    data_major: FormatNumber
    data_minor: FormatNumber
    resource_major: FormatNumber
    resource_minor: FormatNumber

    def to_formats(self) -> PackFormatPair:
        return PackFormatPair(
            datapack=normalize_major_minor(self.data_major, self.data_minor),
            resourcepack=normalize_major_minor(self.resource_major, self.resource_minor),
        )


PackVersion = Union[FlatPackVersion, SplitPackVersion, MajorMinorPackVersion]

_MAJOR_MINOR_KEYS = ("data_major", "data_minor", "resource_major", "resource_minor")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_numbers(payload: Mapping[str, Any], keys: tuple[str, ...]) -> list[FormatNumber]:
    values = [payload[key] for key in keys]
    bad = [key for key, value in zip(keys, values) if not _is_number(value)]
    if bad:
        raise PackVersionSchemaError(f"pack_version fields must be numbers: {', '.join(bad)}")
    return values


def _require_version_parts(payload: Mapping[str, Any], keys: tuple[str, ...]) -> list[int]:
    """Major/minor parts must be non-negative whole numbers; ``5.0`` counts as ``5``."""

    parts: list[int] = []
    for key, value in zip(keys, _require_numbers(payload, keys)):
        if value < 0 or (isinstance(value, float) and not value.is_integer()):
            raise PackVersionSchemaError(
                f"pack_version field {key} must be a non-negative integer, got {value!r}"
            )
        parts.append(int(value))
    return parts


def decode_pack_version(raw: Any) -> PackVersion:
    """Decode a raw ``pack_version`` JSON value into its tagged variant.

    Raises:
        PackVersionSchemaError: If ``raw`` matches none of the known layouts.
    """

    if _is_number(raw):
        return FlatPackVersion(raw)
    if isinstance(raw, Mapping):
        if "data" in raw and "resource" in raw:
            data, resource = _require_numbers(raw, ("data", "resource"))
            return SplitPackVersion(data=data, resource=resource)
        if all(key in raw for key in _MAJOR_MINOR_KEYS):
            data_major, data_minor, resource_major, resource_minor = _require_version_parts(
                raw, _MAJOR_MINOR_KEYS
            )
            return MajorMinorPackVersion(
                data_major=data_major,
                data_minor=data_minor,
                resource_major=resource_major,
                resource_minor=resource_minor,
            )
        keys = ", ".join(sorted(str(key) for key in raw)) or "<none>"
        raise PackVersionSchemaError(f"Unrecognised pack_version object with keys: {keys}")
    raise PackVersionSchemaError(f"Unrecognised pack_version value of type {type(raw).__name__}")
