"""Directory enumeration feeding the ingestion pipeline."""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from merkdir.merkle.models import IOFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileEntry:
    """A regular file found under the scanned root."""

    path: str  # relative, "/"-separated
    size: int


@dataclass
class ScanResult:
    """Output of a directory scan, in walk order."""

    root: Path
    files: list[FileEntry]
    skipped: list[str]

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)


def _walk(
    root: Path, rel: PurePosixPath, ignore: set[str], follow_symlinks: bool
) -> Iterator[tuple[PurePosixPath, os.DirEntry]]:
    """Depth-first, entries of each directory in lexical order.

    Entries whose name is in *ignore* are pruned along with their subtree.
    """
    with os.scandir(root / rel) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.name in ignore:
            continue
        child = rel / entry.name
        yield child, entry
        if entry.is_dir(follow_symlinks=follow_symlinks):
            yield from _walk(root, child, ignore, follow_symlinks)


def scan_directory(
    root: Path,
    ignore_patterns: Iterable[str] = (),
    follow_symlinks: bool = False,
) -> ScanResult:
    """List every regular file under *root* with its size.

    The order is the lexical depth-first walk order; leaf order in the tree
    is taken from it, so it must stay stable for identical directories.
    Symlinks (unless followed), sockets, devices and pipes are skipped.
    """
    root = Path(root)
    ignore = set(ignore_patterns)
    files: list[FileEntry] = []
    skipped: list[str] = []

    try:
        for rel, entry in _walk(root, PurePosixPath(), ignore, follow_symlinks):
            if entry.is_dir(follow_symlinks=follow_symlinks):
                continue
            st = entry.stat(follow_symlinks=follow_symlinks)
            if not stat.S_ISREG(st.st_mode):
                logger.info("Ignoring special file: %s", rel)
                skipped.append(str(rel))
                continue
            files.append(FileEntry(path=str(rel), size=st.st_size))
    except OSError as e:
        raise IOFailure(str(root), e) from e

    logger.debug("Scanned %s: %d files, %d skipped", root, len(files), len(skipped))
    return ScanResult(root=root, files=files, skipped=skipped)
