"""Project file listing."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_MAX_FILE_SIZE, SKIP_DIRS
from .models import Language, SourceFile

logger = logging.getLogger(__name__)


class FileListingError(Exception):
    """The project root (or scope) cannot be listed."""

    code = "FILE_LISTING_FAILED"

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


def _skip_dir(name: str) -> bool:
    return name in SKIP_DIRS or name.startswith(".")


def list_source_files(
    root: Path,
    scope: Optional[str] = None,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
) -> List[SourceFile]:
    """Walk *root* and return every regular file as a :class:`SourceFile`.

    Paths are root-relative with forward slashes, sorted.  VCS, build and
    vendor directories and hidden entries are skipped, as are files larger
    than *max_file_size* bytes.  *scope* restricts the walk to a
    sub-directory of *root*.
    """
    root = Path(root)
    start = root / scope if scope else root
    if not root.is_dir():
        raise FileListingError(f"Project root is not a directory: {root}", root)
    if not start.is_dir():
        raise FileListingError(f"Scope is not a directory: {start}", start)

    def _on_error(exc: OSError) -> None:
        if Path(exc.filename or "") == start:
            raise FileListingError(f"Cannot list {start}: {exc.strerror}", start) from exc
        logger.warning("Cannot list %s: %s", exc.filename, exc.strerror)

    files: List[SourceFile] = []
    for dirpath, dirnames, filenames in os.walk(start, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if not _skip_dir(d))
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            full = Path(dirpath) / name
            try:
                if not full.is_file():
                    continue
                size = full.stat().st_size
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", full, exc)
                continue
            rel = full.relative_to(root).as_posix()
            if size > max_file_size:
                logger.info("Skipping %s: %d bytes exceeds max_file_size", rel, size)
                continue
            files.append(SourceFile(rel, Language.from_path(rel)))

    files.sort(key=lambda f: f.path)
    logger.debug("Listed %d files under %s", len(files), start)
    return files
