# === NAVMAP v1 ===
# {
#   "module": "PackFormats.store",
#   "purpose": "Durable id -> pack format mapping with dirty tracking and atomic flushes",
#   "sections": [
#     {
#       "id": "mappingstore",
#       "name": "MappingStore",
#       "anchor": "class-mappingstore",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Durable mapping store.

The mapping file is the only persistent state of the tracker. :class:`MappingStore`
owns the in-memory table, the dirty flag, and the flush protocol:

- ``put`` is add-if-absent; a known id is never recomputed or overwritten.
- ``flush`` writes the whole table through :func:`atomic_write_text` and clears
  the dirty flag only after the rename succeeded.
- A flush requested while another is running (for example from a signal handler
  that interrupted the first) is ignored instead of queued.
- A sibling ``.lock`` file held through :class:`filelock.FileLock` keeps two
  processes from interleaving their writes.
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from filelock import FileLock, Timeout

from .errors import CorruptMappingError
from .io_utils import atomic_write_text
from .models import PackFormatPair

__all__ = ["MappingStore", "LOCK_SUFFIX"]

LOGGER = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"


def _decode_mapping(text: str, path: Path) -> Dict[str, PackFormatPair]:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptMappingError(f"{path} is not valid JSON: {exc}", path=str(path)) from exc
    if not isinstance(raw, dict):
        raise CorruptMappingError(
            f"{path} must contain a JSON object, got {type(raw).__name__}", path=str(path)
        )

    mapping: Dict[str, PackFormatPair] = {}
    for key, value in raw.items():
        if not isinstance(value, dict):
            raise CorruptMappingError(f"{path}: entry {key!r} is not an object", path=str(path))
        try:
            mapping[key] = PackFormatPair.from_dict(value)
        except ValueError as exc:
            raise CorruptMappingError(f"{path}: entry {key!r}: {exc}", path=str(path)) from exc
    return mapping


class MappingStore:
    """In-memory view of the mapping file plus its persistence protocol."""

    def __init__(
        self,
        path: Union[str, Path],
        mapping: Optional[Dict[str, PackFormatPair]] = None,
        *,
        lock_timeout: float = 30.0,
    ) -> None:
        self.path = Path(path)
        self._mapping: Dict[str, PackFormatPair] = dict(mapping or {})
        self._dirty = False
        self._flush_guard = threading.Lock()
        self._lock_timeout = lock_timeout

    @classmethod
    def load(cls, path: Union[str, Path], **kwargs) -> "MappingStore":
        """Load ``path`` or start empty when it does not exist.

        Raises:
            CorruptMappingError: If the file exists but is not a valid mapping.
        """

        target = Path(path)
        try:
            text = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            LOGGER.info("No mapping at %s yet; starting empty", target)
            return cls(target, **kwargs)
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptMappingError(f"Cannot read {target}: {exc}", path=str(target)) from exc

        mapping = _decode_mapping(text, target)
        LOGGER.info("Loaded %d known versions from %s", len(mapping), target)
        return cls(target, mapping, **kwargs)

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def flushing(self) -> bool:
        return self._flush_guard.locked()

    def has(self, key: str) -> bool:
        return key in self._mapping

    def get(self, key: str) -> Optional[PackFormatPair]:
        return self._mapping.get(key)

    def put(self, key: str, formats: PackFormatPair) -> bool:
        """Record ``formats`` for ``key`` unless the key is already known.

        Returns:
            ``True`` when the key was added and the store marked dirty.
        """

        if key in self._mapping:
            return False
        self._mapping[key] = formats
        self._dirty = True
        return True

    def keys(self) -> List[str]:
        return list(self._mapping)

    def snapshot(self) -> Dict[str, PackFormatPair]:
        return dict(self._mapping)

    def __contains__(self, key: object) -> bool:
        return key in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._mapping))

    def serialize(self) -> str:
        payload = {key: value.to_dict() for key, value in self._mapping.items()}
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def flush(self) -> bool:
        """Persist the mapping atomically when it has unsaved changes.

        Returns:
            ``True`` when the file on disk reflects the in-memory mapping (either
            because nothing was dirty or the write succeeded); ``False`` when the
            call was ignored because another flush is in progress.

        Raises:
            OSError: If writing or renaming fails; the dirty flag stays set.
            TimeoutError: If the cross-process lock cannot be acquired.
        """

        if not self._dirty:
            return True
        if not self._flush_guard.acquire(blocking=False):
            LOGGER.debug("Flush already in progress; ignoring concurrent request")
            return False
        try:
            if not self._dirty:
                return True
            document = self.serialize()
            count = len(self._mapping)
            with self._file_lock():
                atomic_write_text(self.path, document)
            self._dirty = False
            LOGGER.info("Flushed %d versions to %s", count, self.path)
            return True
        finally:
            self._flush_guard.release()

    @contextlib.contextmanager
    def _file_lock(self) -> Iterator[None]:
        lock_path = self.path.with_name(self.path.name + LOCK_SUFFIX)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        file_lock = FileLock(str(lock_path))
        try:
            file_lock.acquire(timeout=self._lock_timeout)
        except Timeout as exc:
            raise TimeoutError(
                f"Could not acquire lock on {self.path} after {self._lock_timeout}s"
            ) from exc
        try:
            yield
        finally:
            # The lock file stays on disk; unlinking it would let two writers lock different inodes.
            file_lock.release()
