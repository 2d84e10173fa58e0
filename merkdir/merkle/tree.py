"""Merkle tree over a directory, with the metadata needed to reuse it later."""

from __future__ import annotations

import hmac
import logging
import os
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from merkdir.merkle.builder import build_tree
from merkdir.merkle.hashing import CHUNK_SIZE, hash_leaf
from merkdir.merkle.models import (
    DriftReport,
    FileNotInTree,
    InclusionProof,
    IOFailure,
    Leaf,
    Node,
)
from merkdir.merkle.pipeline import hash_files
from merkdir.merkle.proof import generate_proof, locate_leaf
from merkdir.merkle.scanner import ScanResult, scan_directory

logger = logging.getLogger(__name__)


class MerkleTree:
    """Root node plus the source directory and a path -> leaf index map.

    ``len(files)`` is the tree size. Built once, then only read.
    """

    def __init__(
        self,
        path: str,
        files: dict[str, int],
        created_at: datetime,
        root: Node,
    ) -> None:
        self.path = path
        self.files = files
        self.created_at = created_at
        self.root = root

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MerkleTree):
            return NotImplemented
        return (
            self.path == other.path
            and self.files == other.files
            and self.created_at == other.created_at
            and self.root == other.root
        )

    def __repr__(self) -> str:
        return f"MerkleTree(path={self.path!r}, size={self.size}, root={self.root_hash.hex()})"

    @property
    def size(self) -> int:
        return len(self.files)

    @property
    def root_hash(self) -> bytes:
        return self.root.hash

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        root_path: Path,
        ignore_patterns: list[str] | None = None,
        *,
        follow_symlinks: bool = False,
        workers: int | None = None,
        chunk_size: int = CHUNK_SIZE,
        on_scan: Callable[[ScanResult], None] | None = None,
        on_read: Callable[[int], None] | None = None,
    ) -> MerkleTree:
        """Walk *root_path*, hash every regular file and build the tree.

        *on_scan* sees the file list before hashing starts (used to size a
        progress bar); *on_read* is called with every chunk size read.
        """
        root_path = Path(root_path).resolve()
        started = datetime.now(timezone.utc).replace(microsecond=0)

        scan = scan_directory(root_path, ignore_patterns or (), follow_symlinks)
        if on_scan is not None:
            on_scan(scan)
        names = [f.path for f in scan.files]
        leaves = hash_files(
            root_path, names, workers=workers, chunk_size=chunk_size, on_read=on_read
        )

        tree = cls(
            path=str(root_path),
            files={name: i for i, name in enumerate(names)},
            created_at=started,
            root=build_tree(leaves),
        )
        logger.info("Built tree for %s: %d files, root %s", root_path, tree.size, tree.root_hash.hex())
        return tree

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def leaf_index(self, name: str) -> int:
        try:
            return self.files[name]
        except KeyError:
            raise FileNotInTree(f"file not found in tree: {name}") from None

    def leaf(self, name: str) -> Leaf:
        """Return the leaf recorded for relative path *name*."""
        return locate_leaf(self.root, self.size, self.leaf_index(name))

    def inclusion_proof(self, name: str) -> InclusionProof:
        """Generate the inclusion proof for relative path *name*."""
        return generate_proof(self.root, self.size, self.leaf_index(name))

    # ------------------------------------------------------------------
    # Re-verification against disk
    # ------------------------------------------------------------------

    def _disk_path(self, name: str) -> Path:
        # Lexical only; symlinks under the root are not resolved.
        root = Path(os.path.normpath(self.path))
        fpath = Path(os.path.normpath(root / name))
        if fpath == root or not fpath.is_relative_to(root):
            raise FileNotInTree(f"path escapes the tree root: {name}")
        return fpath

    def verify_file(self, name: str, chunk_size: int = CHUNK_SIZE) -> bool:
        """Re-hash ``path/name`` with its stored nonce and compare to the leaf.

        Only the leaf is compared; the stored tree is trusted as-is.
        """
        leaf = self.leaf(name)
        fpath = self._disk_path(name)
        try:
            f = open(fpath, "rb")
        except OSError as e:
            raise IOFailure(name, e) from e
        with f:
            current = hash_leaf(f, leaf.nonce, chunk_size=chunk_size, name=name)
        return hmac.compare_digest(current, leaf.hash)

    def check_drift(self, chunk_size: int = CHUNK_SIZE) -> DriftReport:
        """Re-hash every recorded file; report changed and missing ones."""
        changed: list[str] = []
        missing: list[str] = []
        for name in sorted(self.files, key=self.files.__getitem__):
            if not self._disk_path(name).is_file():
                missing.append(name)
                continue
            if not self.verify_file(name, chunk_size=chunk_size):
                changed.append(name)
        if changed or missing:
            logger.info("Drift in %s: %d changed, %d missing", self.path, len(changed), len(missing))
        return DriftReport(changed=tuple(changed), missing=tuple(missing))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        from merkdir.merkle.codec import dump_tree

        return dump_tree(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> MerkleTree:
        from merkdir.merkle.codec import load_tree

        return load_tree(data)

    def save(self, path: Path) -> None:
        """Write the tree container to *path*."""
        Path(path).write_bytes(self.to_bytes())

    @classmethod
    def load(cls, path: Path) -> MerkleTree:
        """Read a tree container from *path*."""
        return cls.from_bytes(Path(path).read_bytes())
