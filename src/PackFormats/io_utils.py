# === NAVMAP v1 ===
# {
#   "module": "PackFormats.io_utils",
#   "purpose": "Atomic file write utilities for the durable mapping file",
#   "sections": [
#     {
#       "id": "atomic-write-text",
#       "name": "atomic_write_text",
#       "anchor": "function-atomic-write-text",
#       "kind": "function"
#     },
#     {
#       "id": "fsync-directory",
#       "name": "_fsync_directory",
#       "anchor": "function-fsync-directory",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Atomic file write utilities.

**Purpose**
-----------
Persist the mapping so the target path always holds either the previous
complete document or the new complete document, never a truncated one.

**Safety & Reliability**
------------------------
- **Atomic writes**: Temporary file in the target directory + fsync + os.replace
- **Directory fsync**: Makes the rename durable where the platform allows it
- **Error recovery**: Removes the temporary file on any failure
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

__all__ = ["atomic_write_text", "TMP_PREFIX", "TMP_SUFFIX"]

logger = logging.getLogger(__name__)

TMP_PREFIX = ".part-"
TMP_SUFFIX = ".tmp"


def _fsync_directory(directory: Path) -> None:
    """Flush directory metadata for ``directory``."""

    flags = getattr(os, "O_DIRECTORY", None)
    if flags is None:
        return
    fd = os.open(directory, os.O_RDONLY | flags)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_text(
    dest_path: Union[str, Path],
    text: str,
    *,
    encoding: str = "utf-8",
) -> int:
    """Write ``text`` to ``dest_path`` atomically.

    Args:
        dest_path: Destination file. Parent directories are created if missing.
        text: Full document to write.
        encoding: Text encoding for the payload.

    Returns:
        Number of bytes written.

    Raises:
        OSError: If the write or rename fails. The destination is left untouched
            and the temporary file is removed.
    """

    dest = Path(dest_path)
    dest_dir = dest.parent if str(dest.parent) else Path(".")
    dest_dir.mkdir(parents=True, exist_ok=True)

    payload = text.encode(encoding)
    fd, tmp_name = tempfile.mkstemp(dir=str(dest_dir), prefix=TMP_PREFIX, suffix=TMP_SUFFIX)
    tmp_path: Path | None = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())

        os.replace(tmp_path, dest)
        tmp_path = None
        _fsync_directory(dest_dir)
    finally:
        if tmp_path is not None:
            with contextlib.suppress(FileNotFoundError):
                tmp_path.unlink()

    logger.debug("Atomically wrote %d bytes to %s", len(payload), dest)
    return len(payload)
